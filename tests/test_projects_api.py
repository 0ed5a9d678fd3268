import uuid
from datetime import datetime, timedelta, timezone

from utils.security import Identity, TokenIssuer

API = "/api/v1"


def test_create_project(api, alice):
    project = api.create_project(alice["accessToken"], "Roadmap", description="Q3", metadata={"color": "blue"})
    assert project["ownerId"] == alice["user"]["userId"]
    assert project["status"] == "active"
    assert project["visibility"] == "private"
    assert project["metadata"] == {"color": "blue"}


def test_create_project_validation(api, client, alice):
    resp = client.post(f"{API}/projects", json={"visibility": "everyone"}, headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 400
    assert set(resp.get_json()["details"]) == {"name", "visibility"}


def test_create_project_requires_auth(api, client):
    resp = client.post(f"{API}/projects", json={"name": "x"}, headers=api.csrf_headers())
    assert resp.status_code == 401


def test_list_only_owned_and_accepted(api, client, alice, bob):
    mine = api.create_project(alice["accessToken"], "Alice's")
    api.create_project(bob["accessToken"], "Bob's")

    resp = api.invite(alice["accessToken"], mine["projectId"], "bob@example.com")
    cid = resp.get_json()["data"]["collaboration"]["collaborationId"]

    def names():
        resp = client.get(f"{API}/projects", headers=api.bearer(bob["accessToken"]))
        assert resp.status_code == 200
        return sorted(p["name"] for p in resp.get_json()["data"]["projects"])

    # pending invitation does not list the project yet
    assert names() == ["Bob's"]
    api.accept(bob["accessToken"], cid)
    assert names() == ["Alice's", "Bob's"]


def test_list_pagination(api, client, alice):
    for name in ("One", "Two", "Three"):
        api.create_project(alice["accessToken"], name)
    resp = client.get(f"{API}/projects?limit=2&page=2&sort=name", headers=api.bearer(alice["accessToken"]))
    data = resp.get_json()["data"]
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 3}
    assert [p["name"] for p in data["projects"]] == ["Two"]

    resp = client.get(f"{API}/projects?sort=owner", headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 400


def test_get_private_project(api, client, alice, bob):
    project = api.create_project(alice["accessToken"])
    url = f"{API}/projects/{project['projectId']}"

    resp = client.get(url, headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["role"] == "owner"

    resp = client.get(url)
    assert resp.status_code == 401

    resp = client.get(url, headers=api.bearer(bob["accessToken"]))
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "FORBIDDEN"


def test_missing_project_is_404_before_403(api, client, bob):
    resp = client.get(f"{API}/projects/{uuid.uuid4()}", headers=api.bearer(bob["accessToken"]))
    assert resp.status_code == 404
    resp = client.put(f"{API}/projects/{uuid.uuid4()}", json={"name": "x"}, headers=api.bearer(bob["accessToken"]))
    assert resp.status_code == 404


def test_public_project_is_readable_anonymously(api, client, alice, bob):
    project = api.create_project(alice["accessToken"], visibility="public")
    url = f"{API}/projects/{project['projectId']}"

    resp = client.get(url)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["role"] is None

    # a bad token on a public project is treated as anonymous
    assert client.get(url, headers=api.bearer("garbage")).status_code == 200
    assert client.get(url, headers=api.bearer(bob["accessToken"])).status_code == 200


def test_update_project_roles(api, client, alice, bob, carol):
    project = api.create_project(alice["accessToken"])
    api.add_collaborator(alice["accessToken"], project["projectId"], bob, role="editor")
    api.add_collaborator(alice["accessToken"], project["projectId"], carol, role="viewer")
    url = f"{API}/projects/{project['projectId']}"

    resp = client.put(url, json={"name": "Renamed"}, headers=api.bearer(bob["accessToken"]))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["project"]["name"] == "Renamed"

    resp = client.put(url, json={"name": "Nope"}, headers=api.bearer(carol["accessToken"]))
    assert resp.status_code == 403

    resp = client.put(url, json={"visibility": "public"}, headers=api.bearer(bob["accessToken"]))
    assert resp.status_code == 403

    resp = client.put(url, json={"visibility": "public"}, headers=api.bearer(alice["accessToken"]))
    assert resp.get_json()["data"]["project"]["visibility"] == "public"

    resp = client.put(url, json={}, headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 400


def test_delete_project_owner_only(api, client, alice, bob):
    project = api.create_project(alice["accessToken"])
    api.add_collaborator(alice["accessToken"], project["projectId"], bob, role="editor")
    note = api.create_note(alice["accessToken"], project["projectId"]).get_json()["data"]["note"]
    url = f"{API}/projects/{project['projectId']}"

    assert client.delete(url, headers=api.bearer(bob["accessToken"])).status_code == 403

    resp = client.delete(url, headers=api.bearer(alice["accessToken"]))
    assert resp.status_code == 200
    assert client.get(url, headers=api.bearer(alice["accessToken"])).status_code == 404
    assert client.get(f"{API}/notes/{note['noteId']}", headers=api.bearer(alice["accessToken"])).status_code == 404


def test_private_project_reports_why_the_token_failed(app, api, client, alice):
    project = api.create_project(alice["accessToken"])
    url = f"{API}/projects/{project['projectId']}"

    past = datetime.now(timezone.utc) - timedelta(hours=1)
    stale = TokenIssuer(
        app.config["JWT_SECRET"],
        app.config["JWT_REFRESH_SECRET"],
        issuer=app.config["JWT_ISSUER"],
        clock=lambda: past,
    )
    user = alice["user"]
    expired = stale.issue_token_pair(Identity(user["userId"], user["username"], user["email"])).access_token

    resp = client.get(url, headers=api.bearer(expired))
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "TOKEN_EXPIRED"

    resp = client.get(url, headers=api.bearer("forged.token.value"))
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "INVALID_TOKEN"

    resp = client.get(url)
    assert resp.get_json()["code"] == "UNAUTHENTICATED"
