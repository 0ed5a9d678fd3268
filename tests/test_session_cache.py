import fakeredis
import pytest

from utils.session_cache import SessionCache


@pytest.fixture
def cache():
    return SessionCache(fakeredis.FakeRedis(decode_responses=True))


def test_put_and_get(cache):
    cache.put("u-1", "token-a", 60)
    assert cache.get("u-1") == "token-a"
    assert cache.client.get("refresh_token:u-1") == "token-a"
    assert 0 < cache.ttl("u-1") <= 60


def test_put_overwrites_previous_token(cache):
    cache.put("u-1", "token-a", 60)
    cache.put("u-1", "token-b", 60)
    assert not cache.matches("u-1", "token-a")
    assert cache.matches("u-1", "token-b")


def test_delete_revokes(cache):
    cache.put("u-1", "token-a", 60)
    cache.delete("u-1")
    assert cache.get("u-1") is None
    assert not cache.matches("u-1", "token-a")
    # deleting a missing entry is fine
    cache.delete("u-1")


def test_users_are_isolated(cache):
    cache.put("u-1", "token-a", 60)
    cache.put("u-2", "token-b", 60)
    assert not cache.matches("u-1", "token-b")
    assert cache.matches("u-2", "token-b")


def test_ttl_never_below_one_second(cache):
    cache.put("u-1", "token-a", 0)
    assert cache.ttl("u-1") == 1


def test_bytes_client_values_are_decoded():
    cache = SessionCache(fakeredis.FakeRedis())
    cache.put("u-1", "token-a", 60)
    assert cache.get("u-1") == "token-a"
    assert cache.matches("u-1", "token-a")
