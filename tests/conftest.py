import fakeredis
import pytest

from api import create_app, shutdown_app

PASSWORD = "Passw0rd1"
API = "/api/v1"


class ApiHelper:
    """Small wrapper around the Flask test client for the common flows."""

    def __init__(self, client):
        self.client = client

    def csrf_headers(self):
        resp = self.client.get(f"{API}/csrf-token")
        return {"X-XSRF-TOKEN": resp.get_json()["data"]["csrfToken"]}

    @staticmethod
    def bearer(token):
        return {"Authorization": f"Bearer {token}"}

    def register(self, username, email=None, password=PASSWORD, display_name=None):
        body = {
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
        }
        if display_name:
            body["displayName"] = display_name
        resp = self.client.post(f"{API}/auth/register", json=body, headers=self.csrf_headers())
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]

    def login(self, email, password=PASSWORD):
        return self.client.post(
            f"{API}/auth/login",
            json={"email": email, "password": password},
            headers=self.csrf_headers(),
        )

    def refresh(self, refresh_token):
        return self.client.post(
            f"{API}/auth/refresh",
            json={"refreshToken": refresh_token},
            headers=self.csrf_headers(),
        )

    def create_project(self, token, name="Roadmap", **fields):
        resp = self.client.post(f"{API}/projects", json={"name": name, **fields}, headers=self.bearer(token))
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]["project"]

    def invite(self, token, project_id, email, role="viewer"):
        return self.client.post(
            f"{API}/collaborators/invite",
            json={"projectId": project_id, "email": email, "role": role},
            headers=self.bearer(token),
        )

    def accept(self, token, collaboration_id):
        return self.client.post(
            f"{API}/collaborators/{collaboration_id}/accept",
            headers=self.bearer(token),
        )

    def add_collaborator(self, owner_token, project_id, user, role="viewer"):
        """Invite ``user`` (a register() result) and accept on their behalf."""
        resp = self.invite(owner_token, project_id, user["user"]["email"], role)
        assert resp.status_code == 201, resp.get_json()
        cid = resp.get_json()["data"]["collaboration"]["collaborationId"]
        assert self.accept(user["accessToken"], cid).status_code == 200
        return cid

    def create_note(self, token, project_id, title="Kickoff", **fields):
        return self.client.post(
            f"{API}/projects/{project_id}/notes",
            json={"title": title, **fields},
            headers=self.bearer(token),
        )


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def app(redis_client):
    app = create_app("testing", redis_client=redis_client)
    yield app
    shutdown_app(app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api(client):
    return ApiHelper(client)


@pytest.fixture
def alice(api):
    return api.register("alice")


@pytest.fixture
def bob(api):
    return api.register("bob")


@pytest.fixture
def carol(api):
    return api.register("carol")
