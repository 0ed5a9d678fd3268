import warnings
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from api.config import TestingConfig
from utils.results import ErrorKind
from utils.security import (
    CurrentUser,
    Identity,
    TokenIssuer,
    authenticate_bearer,
    extract_bearer,
    hash_password,
    verify_password,
)

ACCESS_SECRET = "unit-access-secret-0123456789abcdef"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef"
SHARED_SECRET = "unit-shared-secret-0123456789abcdef"
OTHER_SECRET = "unit-other-secret-0123456789abcdefgh"

ALICE = Identity(user_id="u-1", username="alice", email="alice@example.com")


@pytest.fixture
def issuer():
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)


class FakeStorage:
    def __init__(self, users):
        self.users = users

    def find_user_by_id(self, user_id):
        return self.users.get(user_id)


class FakeUser:
    display_name = "Alice A."


def test_password_hash_roundtrip():
    hashed = hash_password("Passw0rd1")
    assert hashed != "Passw0rd1"
    assert verify_password("Passw0rd1", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_with_garbage_hash():
    assert verify_password("Passw0rd1", "not-a-hash") is False


def test_pair_verifies_to_same_identity(issuer):
    pair = issuer.issue_token_pair(ALICE)
    assert issuer.verify_access_token(pair.access_token).value == ALICE
    assert issuer.verify_refresh_token(pair.refresh_token).value == ALICE
    assert pair.access_expires_in == 900
    assert pair.refresh_expires_in == 7 * 24 * 3600


def test_claims_carry_type_and_issuer(issuer):
    pair = issuer.issue_token_pair(ALICE)
    claims = jwt.decode(pair.access_token, ACCESS_SECRET, algorithms=["HS256"], issuer="collab-platform-api")
    assert claims["type"] == "access"
    assert claims["sub"] == "u-1"
    assert claims["exp"] - claims["iat"] == 900


def test_back_to_back_pairs_differ(issuer):
    first = issuer.issue_token_pair(ALICE)
    second = issuer.issue_token_pair(ALICE)
    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token


def test_tokens_are_not_interchangeable(issuer):
    pair = issuer.issue_token_pair(ALICE)
    assert issuer.verify_refresh_token(pair.access_token).error is ErrorKind.INVALID_TOKEN
    assert issuer.verify_access_token(pair.refresh_token).error is ErrorKind.INVALID_TOKEN


def test_wrong_type_rejected_even_with_shared_secret():
    shared = TokenIssuer(SHARED_SECRET, SHARED_SECRET)
    pair = shared.issue_token_pair(ALICE)
    outcome = shared.verify_access_token(pair.refresh_token)
    assert outcome.error is ErrorKind.INVALID_TOKEN


def test_expired_token_reports_expired():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    stale = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=lambda: past)
    pair = stale.issue_token_pair(ALICE)
    assert stale.verify_access_token(pair.access_token).error is ErrorKind.EXPIRED_TOKEN
    # the refresh token of the same pair is still inside its 7 day window
    assert stale.verify_refresh_token(pair.refresh_token).ok


@pytest.mark.parametrize("token", ["", None, "garbage", "a.b.c"])
def test_malformed_tokens_are_invalid(issuer, token):
    assert issuer.verify_access_token(token).error is ErrorKind.INVALID_TOKEN


def test_foreign_secret_and_issuer_rejected(issuer):
    other = TokenIssuer(OTHER_SECRET, REFRESH_SECRET)
    assert issuer.verify_access_token(other.issue_token_pair(ALICE).access_token).error is ErrorKind.INVALID_TOKEN

    foreign = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, issuer="someone-else")
    assert issuer.verify_access_token(foreign.issue_token_pair(ALICE).access_token).error is ErrorKind.INVALID_TOKEN


def test_to_dict_shape(issuer):
    body = issuer.issue_token_pair(ALICE).to_dict()
    assert set(body) == {"accessToken", "refreshToken", "tokenType", "expiresIn"}
    assert body["expiresIn"] == 900


@pytest.mark.parametrize(
    "header,expected",
    [
        (None, None),
        ("", None),
        ("Basic abc", None),
        ("Bearer ", None),
        ("Bearer abc.def", "abc.def"),
    ],
)
def test_extract_bearer(header, expected):
    assert extract_bearer(header) == expected


def test_authenticate_bearer_outcomes(issuer):
    token = issuer.issue_token_pair(ALICE).access_token
    storage = FakeStorage({"u-1": FakeUser()})

    assert authenticate_bearer(None, issuer, storage).error is ErrorKind.UNAUTHENTICATED
    assert authenticate_bearer("Bearer nope", issuer, storage).error is ErrorKind.INVALID_TOKEN

    outcome = authenticate_bearer(f"Bearer {token}", issuer, storage)
    assert outcome.value == CurrentUser("u-1", "alice", "alice@example.com", "Alice A.")

    empty = FakeStorage({})
    assert authenticate_bearer(f"Bearer {token}", issuer, empty).error is ErrorKind.USER_NOT_FOUND
    assert authenticate_bearer(f"Bearer {token}", issuer, empty, verify_user=False).ok


def test_hs256_secrets_are_long_enough():
    secrets = (ACCESS_SECRET, REFRESH_SECRET, SHARED_SECRET, OTHER_SECRET,
               TestingConfig.JWT_SECRET, TestingConfig.JWT_REFRESH_SECRET)
    assert all(len(secret.encode()) >= 32 for secret in secrets)

    # PyJWT warns (UserWarning) about HMAC keys shorter than the digest
    with warnings.catch_warnings():
        warnings.simplefilter("error", UserWarning)
        issuer = TokenIssuer(TestingConfig.JWT_SECRET, TestingConfig.JWT_REFRESH_SECRET)
        pair = issuer.issue_token_pair(ALICE)
        assert issuer.verify_access_token(pair.access_token).ok
        assert issuer.verify_refresh_token(pair.refresh_token).ok
