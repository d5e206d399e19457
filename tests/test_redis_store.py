import pytest
import redis

from chatgate.config import ConfigMgr
from chatgate.pools import ConnectionPool, KeepAlivePool
from chatgate.redis_store import RedisStore, create_redis_store


class FakeRedis:
    """An in-memory stand-in answering like a redis-py client."""

    def __init__(self, backend=None, password=None):
        self.data = {} if backend is None else backend
        self.password = password
        self.pings = 0

    def ping(self):
        self.pings += 1
        return True

    def execute_command(self, *args):
        command, *rest = args
        command = command.upper()
        data = self.data
        if command == "GET":
            value = data.get(rest[0])
            return value.encode() if isinstance(value, str) else None
        if command == "SET":
            data[rest[0]] = rest[1]
            return True
        if command == "AUTH":
            if rest[0] != self.password:
                raise redis.ResponseError("invalid password")
            return True
        if command in ("LPUSH", "RPUSH"):
            items = data.setdefault(rest[0], [])
            if command == "LPUSH":
                items.insert(0, rest[1])
            else:
                items.append(rest[1])
            return len(items)
        if command in ("LPOP", "RPOP"):
            items = data.get(rest[0])
            if not items:
                return None
            value = items.pop(0) if command == "LPOP" else items.pop()
            return value.encode()
        if command == "HSET":
            fields = data.setdefault(rest[0], {})
            added = 0 if rest[1] in fields else 1
            fields[rest[1]] = rest[2]
            return added
        if command == "HGET":
            value = data.get(rest[0], {}).get(rest[1])
            if value is None:
                return None
            return value if isinstance(value, bytes) else value.encode()
        if command == "HDEL":
            fields = data.get(rest[0], {})
            return 1 if fields.pop(rest[1], None) is not None else 0
        if command == "DEL":
            return 1 if data.pop(rest[0], None) is not None else 0
        if command == "EXISTS":
            return 1 if rest[0] in data else 0
        raise redis.ResponseError(f"unknown command {command}")


class BrokenRedis:
    def execute_command(self, *args):
        raise redis.ConnectionError("connection lost")


@pytest.fixture
def store():
    backend = {}
    return RedisStore(ConnectionPool(lambda: FakeRedis(backend), 2))


def test_manager_sequence(store):
    assert store.set("blogwebsite", "nova.club")
    assert store.get("blogwebsite") == "nova.club"
    assert store.get("nonekey") is None
    assert store.hset("bloginfo", "blogwebsite", "nova.club")
    assert store.hget("bloginfo", "blogwebsite") == "nova.club"
    assert store.exists("bloginfo")
    assert store.delete("bloginfo")
    assert store.delete("bloginfo")
    assert store.exists("bloginfo") is False
    assert store.lpush("lpushkey1", "lpushvalue1")
    assert store.lpush("lpushkey1", "lpushvalue2")
    assert store.lpush("lpushkey1", "lpushvalue3")
    assert store.rpop("lpushkey1") == "lpushvalue1"
    assert store.rpop("lpushkey1") == "lpushvalue2"
    assert store.lpop("lpushkey1") == "lpushvalue3"
    assert store.lpop("lpushkey2") is None


def test_rpush_keeps_order(store):
    assert store.rpush("queue", "a")
    assert store.rpush("queue", "b")
    assert store.lpop("queue") == "a"
    assert store.rpop("queue") == "b"
    assert store.rpop("queue") is None


def test_hget_missing_is_empty(store):
    assert store.hget("nohash", "field") == ""


def test_hset_binary_value(store):
    assert store.hset("bin", "field", b"\x00\x01")
    assert store.hget("bin", "field") == "\x00\x01"


def test_hdel_reports_removal(store):
    store.hset("h", "f", "v")
    assert store.hdel("h", "f") is True
    assert store.hdel("h", "f") is False
    assert store.hget("h", "f") == ""


def test_set_overwrites(store):
    store.set("k", "one")
    store.set("k", "two")
    assert store.get("k") == "two"


def test_auth():
    password = "password"
    pool = ConnectionPool(lambda: FakeRedis(password=password), 1)
    store = RedisStore(pool)
    assert store.auth(password) is True
    assert store.auth("secret") is False
    assert len(pool) == 1


def test_connection_returned_after_each_command(store):
    for _ in range(5):
        store.set("k", "v")
    assert len(store.pool) == 2


def test_closed_pool_reports_failure(store):
    store.set("k", "v")
    store.close()
    assert store.pool.closed
    assert store.get("k") is None
    assert store.set("k", "v") is False
    assert store.hget("k", "f") == ""
    assert store.exists("k") is False
    assert store.lpop("k") is None


def test_server_error_reports_failure():
    pool = ConnectionPool(BrokenRedis, 1)
    store = RedisStore(pool)
    assert store.get("k") is None
    assert store.set("k", "v") is False
    assert store.lpush("k", "v") is False
    assert store.delete("k") is False
    assert store.hdel("k", "f") is False
    assert len(pool) == 1


def test_wrong_type_reply_is_failure(store):
    store.lpush("list", "v")
    assert store.lpush("list", "w")
    store.set("plain", "v")
    store.pool  # same backend
    # A hash stored value read with GET is not a string reply.
    store.hset("hash", "f", "v")
    assert store.get("hash") is None


def test_keepalive_pool_entries():
    backend = {}
    pool = KeepAlivePool(lambda: FakeRedis(backend), 1, ping=lambda c: c.ping(), idle_seconds=0)
    try:
        store = RedisStore(pool)
        assert store.set("k", "v")
        pool.check_connections()
        assert store.get("k") == "v"
        assert len(pool) == 1
    finally:
        pool.close()


def test_create_redis_store_uses_config(monkeypatch):
    created = []

    class Recorder(FakeRedis):
        def __init__(self, host, port, password):
            super().__init__(password=password)
            self.host = host
            self.port = port
            created.append(self)

    monkeypatch.setattr(redis, "Redis", Recorder)
    password = "password"
    config = ConfigMgr({"Redis": {"Host": "localhost", "Port": "6380", "Passwd": password}})
    store = create_redis_store(config, 3)
    try:
        assert len(created) == 3
        assert {(c.host, c.port, c.password) for c in created} == {("localhost", 6380, password)}
        assert len(store.pool) == 3
        assert store.set("k", "v")
        assert store.get("k") == "v"
    finally:
        store.close()


def test_create_redis_store_skips_failed_connections(monkeypatch):
    class Unreachable:
        def __init__(self, host, port, password):
            pass

        def ping(self):
            raise redis.ConnectionError("refused")

    monkeypatch.setattr(redis, "Redis", Unreachable)
    config = ConfigMgr({"Redis": {"Host": "localhost", "Port": "6380"}})
    store = create_redis_store(config, 2)
    try:
        assert len(store.pool) == 0
    finally:
        store.close()