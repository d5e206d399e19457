"""Redis-backed key/value, list and hash operations over a connection pool."""

from __future__ import annotations

import logging
import time
from typing import Any

import redis

from chatgate.config import ConfigMgr, default_config
from chatgate.pools import ConnectionPool, KeepAliveConnection, KeepAlivePool, PoolClosedError

log = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 5

_FAILED = object()
_OK_REPLIES = (True, "OK", "ok", b"OK", b"ok")


def _text(reply: Any) -> str | None:
    """Return a string reply as ``str``, or None if it is not a string."""
    if isinstance(reply, bytes):
        return reply.decode("utf-8", "surrogateescape")
    if isinstance(reply, str):
        return reply
    return None


def _is_int(reply: Any) -> bool:
    return isinstance(reply, int) and not isinstance(reply, bool)


def _port_number(port: str) -> int:
    """Read a port the lenient way: leading digits, or 0 if there are none."""
    digits = []
    for ch in port.strip():
        if not ch.isdigit():
            break
        digits.append(ch)
    return int("".join(digits)) if digits else 0


class RedisStore:
    """Runs Redis commands on connections borrowed from a pool.

    Every operation reports failure quietly, as ``False``, ``None`` or ``""``,
    when the pool is closed, the server errors or the reply has the wrong type.
    """

    def __init__(self, pool: ConnectionPool[Any]):
        self._pool = pool

    @property
    def pool(self) -> ConnectionPool[Any]:
        return self._pool

    def _execute(self, *args: Any) -> Any:
        try:
            with self._pool.connection() as entry:
                keep_alive = isinstance(entry, KeepAliveConnection)
                conn = entry.conn if keep_alive else entry
                reply = conn.execute_command(*args)
                if keep_alive:
                    entry.last_used = time.time()
                return reply
        except PoolClosedError:
            return _FAILED
        except (redis.RedisError, OSError) as exc:
            log.warning("Redis command %s failed: %s", args[0], exc)
            return _FAILED

    def get(self, key: str) -> str | None:
        """Return the string stored at ``key``, or None."""
        value = _text(self._execute("GET", key))
        if value is None:
            log.info("[ GET  %s ] failed", key)
            return None
        log.info("Succeed to execute command [ GET %s  ]", key)
        return value

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` at ``key``; True if the server answered OK."""
        reply = self._execute("SET", key, value)
        ok = reply is not _FAILED and reply in _OK_REPLIES
        log.info("Execut command [ SET %s  %s ] %s !", key, value, "success" if ok else "failure")
        return ok

    def auth(self, password: str) -> bool:
        """Authenticate a pooled connection; False if the server refuses."""
        reply = self._execute("AUTH", password)
        if reply is _FAILED:
            log.info("Redis authentication failed")
            return False
        log.info("Redis authentication succeeded")
        return True

    def _push(self, command: str, key: str, value: str) -> bool:
        reply = self._execute(command, key, value)
        ok = _is_int(reply) and reply > 0
        log.info("Execut command [ %s %s  %s ] %s !", command, key, value, "success" if ok else "failure")
        return ok

    def _pop(self, command: str, key: str) -> str | None:
        value = _text(self._execute(command, key))
        log.info("Execut command [ %s %s ] %s !", command, key, "failure" if value is None else "success")
        return value

    def lpush(self, key: str, value: str) -> bool:
        """Push ``value`` onto the head of the list at ``key``."""
        return self._push("LPUSH", key, value)

    def lpop(self, key: str) -> str | None:
        """Pop from the head of the list at ``key``; None if it is empty."""
        return self._pop("LPOP", key)

    def rpush(self, key: str, value: str) -> bool:
        """Push ``value`` onto the tail of the list at ``key``."""
        return self._push("RPUSH", key, value)

    def rpop(self, key: str) -> str | None:
        """Pop from the tail of the list at ``key``; None if it is empty."""
        return self._pop("RPOP", key)

    def hset(self, key: str, hkey: str, value: str | bytes) -> bool:
        """Set field ``hkey`` of the hash at ``key``; ``value`` may be binary."""
        reply = self._execute("HSET", key, hkey, value)
        ok = _is_int(reply)
        log.info("Execut command [ HSet %s  %s  %r ] %s !", key, hkey, value, "success" if ok else "failure")
        return ok

    def hget(self, key: str, hkey: str) -> str:
        """Return field ``hkey`` of the hash at ``key``, or ``""`` if absent."""
        value = _text(self._execute("HGET", key, hkey))
        if value is None:
            log.info("Execut command [ HGet %s %s  ] failure !", key, hkey)
            return ""
        log.info("Execut command [ HGet %s %s ] success !", key, hkey)
        return value

    def hdel(self, key: str, field: str) -> bool:
        """Remove ``field`` from the hash at ``key``; True if it was there."""
        reply = self._execute("HDEL", key, field)
        if reply is _FAILED:
            log.error("HDEL command failed")
            return False
        return _is_int(reply) and reply > 0

    def delete(self, key: str) -> bool:
        """Delete ``key``; True whenever the server ran the command."""
        ok = _is_int(self._execute("DEL", key))
        log.info("Execut command [ Del %s ] %s !", key, "success" if ok else "failure")
        return ok

    def exists(self, key: str) -> bool:
        """True if ``key`` exists."""
        reply = self._execute("EXISTS", key)
        found = _is_int(reply) and reply != 0
        if found:
            log.info(" Found [ Key %s ] exists ! ", key)
        else:
            log.info("Not Found [ Key %s ]  ! ", key)
        return found

    def close(self) -> None:
        """Close the pool; later operations report failure."""
        self._pool.close()


def create_redis_store(config: ConfigMgr | None = None, size: int = DEFAULT_POOL_SIZE) -> RedisStore:
    """Build a store from the ``[Redis]`` section: ``Host``, ``Port`` and ``Passwd``.

    Connections that cannot connect or authenticate are left out of the pool;
    idle connections are pinged in the background to keep them open.
    """
    if config is None:
        config = default_config()
    section = config["Redis"]
    host = section["Host"]
    port = _port_number(section["Port"])
    password = section["Passwd"] or None

    def connect() -> Any:
        client = redis.Redis(host=host, port=port, password=password)
        client.ping()
        return client

    pool = KeepAlivePool(connect, size, ping=lambda client: client.ping(), idle_seconds=0.0)
    return RedisStore(pool)