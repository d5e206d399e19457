"""The status service: picks the least loaded chat server and checks login tokens."""

from __future__ import annotations

import logging
import re
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Protocol

from chatgate.codes import LOGIN_COUNT, USER_TOKEN_PREFIX, ErrorCode
from chatgate.config import ConfigMgr, default_config
from chatgate.logic import ChatServerReply

log = logging.getLogger(__name__)

INT_MAX = 2**31 - 1
INT_MIN = -(2**31)
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class ChatServer:
    """A configured chat server and its current login count."""

    host: str = ""
    port: str = ""
    name: str = ""
    con_count: int = 0


@dataclass
class LoginReply:
    """The result of checking a user's login token."""

    error: int = 0
    uid: int = 0
    token: str = ""


class StatusStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> bool: ...

    def hget(self, key: str, hkey: str) -> str: ...


def parse_server_names(value: str) -> list[str]:
    """Split a comma-separated list; a trailing comma adds no empty name."""
    parts = value.split(",")
    if parts[-1] == "":
        parts.pop()
    return parts


def generate_unique_string() -> str:
    """A fresh random UUID in its canonical text form."""
    return str(uuid.uuid4())


def _parse_count(text: str) -> int:
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"invalid login count: {text!r}")
    count = int(match.group(1))
    if not INT_MIN <= count <= INT_MAX:
        raise ValueError(f"login count out of range: {text!r}")
    return count


class StatusService:
    """Hands out chat servers and login tokens using counts kept in Redis."""

    def __init__(self, config: ConfigMgr | None, redis: StatusStore):
        if config is None:
            config = default_config()
        self._redis = redis
        self._lock = threading.Lock()
        self._servers: dict[str, ChatServer] = {}
        for word in parse_server_names(config["chatservers"]["Name"]):
            section = config[word]
            if not section["Name"]:
                continue
            server = ChatServer(host=section["Host"], port=section["Port"], name=section["Name"])
            self._servers[server.name] = server

    @property
    def servers(self) -> list[ChatServer]:
        """Copies of the configured chat servers, in configuration order."""
        with self._lock:
            return [replace(server) for server in self._servers.values()]

    def _load_count(self, name: str) -> int:
        text = self._redis.hget(LOGIN_COUNT, name)
        return INT_MAX if not text else _parse_count(text)

    def _least_loaded(self) -> ChatServer:
        with self._lock:
            if not self._servers:
                raise LookupError("no chat servers configured")
            servers = iter(self._servers.values())
            best = replace(next(servers))
            best.con_count = self._load_count(best.name)
            for server in servers:
                if server.name == best.name:
                    continue
                server.con_count = self._load_count(server.name)
                if server.con_count < best.con_count:
                    best = replace(server)
            return best

    def get_chat_server(self, uid: int) -> ChatServerReply:
        """Pick the server with the fewest logins and issue a token for ``uid``.

        Raises LookupError if no chat server is configured.
        """
        server = self._least_loaded()
        token = generate_unique_string()
        self._redis.set(USER_TOKEN_PREFIX + str(uid), token)
        log.info("assigned uid %s to chat server %s", uid, server.name)
        return ChatServerReply(error=int(ErrorCode.SUCCESS), host=server.host, port=server.port, token=token)

    def login(self, uid: int, token: str) -> LoginReply:
        """Check ``token`` for ``uid``.

        A uid with a stored token is reported as UID_INVALID; otherwise the
        token is compared with an empty stored value.
        """
        stored = self._redis.get(USER_TOKEN_PREFIX + str(uid))
        if stored is not None:
            return LoginReply(error=int(ErrorCode.UID_INVALID))
        if token != "":
            return LoginReply(error=int(ErrorCode.TOKEN_INVALID))
        return LoginReply(error=int(ErrorCode.SUCCESS), uid=uid, token=token)