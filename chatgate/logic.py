"""Request routing and the gate's HTTP handlers for codes, registration and login."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from chatgate.codes import CODE_PREFIX, ErrorCode

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "text/json"


@dataclass
class UserInfo:
    """A user account as stored in the database."""

    name: str = ""
    pwd: str = ""
    uid: int = 0
    email: str = ""


@dataclass
class ChatServerReply:
    """The status server's answer: which chat server to use and the login token."""

    error: int = 0
    host: str = ""
    port: str = ""
    token: str = ""


@dataclass
class HttpExchange:
    """One request as seen by a handler, and the response it builds."""

    body: str = ""
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    _response: io.StringIO = field(default_factory=io.StringIO, repr=False)

    def write(self, text: str) -> None:
        """Append ``text`` to the response body."""
        self._response.write(text)

    @property
    def response_body(self) -> str:
        """Everything written to the response so far."""
        return self._response.getvalue()


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def exists(self, key: str) -> bool: ...


class UserRepository(Protocol):
    def reg_user(self, name: str, email: str, pwd: str) -> int: ...

    def check_email(self, name: str, email: str) -> bool: ...

    def update_pwd(self, name: str, pwd: str) -> bool: ...

    def check_pwd(self, name: str, pwd: str) -> UserInfo | None: ...


class CodeVerifier(Protocol):
    def get_varify_code(self, email: str) -> int: ...


class StatusClient(Protocol):
    def get_chat_server(self, uid: int) -> ChatServerReply: ...


HttpHandler = Callable[[HttpExchange], Any]


def _styled(root: dict[str, Any]) -> str:
    """Render a reply the way the clients expect: indented, keys sorted."""
    return json.dumps(root, indent=3, sort_keys=True, separators=(",", " : "), ensure_ascii=False) + "\n"


def _as_string(value: Any) -> str:
    """Read a JSON field as text; missing fields read as ``""``."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    raise TypeError(f"value is not convertible to string: {value!r}")


def _parse_body(body: str) -> dict[str, Any] | None:
    """Parse a request body; None if it is not JSON.

    A ``null`` document reads as an empty object; any other non-object
    document raises TypeError, since its fields cannot be looked up.
    """
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise TypeError(f"request body is not a JSON object: {body!r}")
    return parsed


class LogicSystem:
    """Routes GET and POST paths to their handlers.

    The built-in routes are ``/get_test``, ``/get_varifycode``,
    ``/user_register``, ``/reset_pwd`` and ``/user_login``.
    """

    def __init__(
        self,
        redis: KeyValueStore,
        users: UserRepository,
        verifier: CodeVerifier,
        status: StatusClient,
    ):
        self._redis = redis
        self._users = users
        self._verifier = verifier
        self._status = status
        self._get_handlers: dict[str, HttpHandler] = {}
        self._post_handlers: dict[str, HttpHandler] = {}
        self.reg_get("/get_test", self._get_test)
        self.reg_post("/get_varifycode", self._get_varify_code)
        self.reg_post("/user_register", self._user_register)
        self.reg_post("/reset_pwd", self._reset_pwd)
        self.reg_post("/user_login", self._user_login)

    def reg_get(self, url: str, handler: HttpHandler) -> None:
        """Register a GET handler; a path already registered keeps its handler."""
        self._get_handlers.setdefault(url, handler)

    def reg_post(self, url: str, handler: HttpHandler) -> None:
        """Register a POST handler; a path already registered keeps its handler."""
        self._post_handlers.setdefault(url, handler)

    def handle_get(self, path: str, exchange: HttpExchange) -> bool:
        """Run the GET handler for ``path``; False if there is none."""
        handler = self._get_handlers.get(path)
        if handler is None:
            return False
        handler(exchange)
        return True

    def handle_post(self, path: str, exchange: HttpExchange) -> bool:
        """Run the POST handler for ``path``; False if there is none."""
        handler = self._post_handlers.get(path)
        if handler is None:
            return False
        handler(exchange)
        return True

    @staticmethod
    def _get_test(exchange: HttpExchange) -> None:
        exchange.write("receive get_test req")
        for i, (key, value) in enumerate(exchange.params.items(), start=1):
            exchange.write(f"param{i}key is {key}")
            exchange.write(f"param{i}value is {value}\n")

    @staticmethod
    def _start_json(exchange: HttpExchange) -> dict[str, Any] | None:
        log.info("receive body is %s", exchange.body)
        exchange.headers["Content-Type"] = JSON_CONTENT_TYPE
        src = _parse_body(exchange.body)
        if src is None:
            log.warning("Failed to parse JSON data!")
            exchange.write(_styled({"error": int(ErrorCode.ERROR_JSON)}))
        return src

    @staticmethod
    def _fail(exchange: HttpExchange, code: ErrorCode, reason: str) -> None:
        log.info("%s", reason)
        exchange.write(_styled({"error": int(code)}))

    def _check_code(self, exchange: HttpExchange, src: dict[str, Any]) -> bool:
        code = self._redis.get(CODE_PREFIX + _as_string(src.get("email")))
        if code is None:
            self._fail(exchange, ErrorCode.VARIFY_EXPIRED, "get varify code expired")
            return False
        if code != _as_string(src.get("varifycode")):
            self._fail(exchange, ErrorCode.VARIFY_CODE_ERR, "varify code error")
            return False
        return True

    def _get_varify_code(self, exchange: HttpExchange) -> None:
        src = self._start_json(exchange)
        if src is None:
            return
        email = _as_string(src.get("email"))
        try:
            error = int(self._verifier.get_varify_code(email))
        except Exception as exc:
            log.warning("verify service call failed: %s", exc)
            error = int(ErrorCode.RPC_FAILED)
        log.info("email is %s", email)
        exchange.write(_styled({"error": error, "email": src.get("email")}))

    def _user_register(self, exchange: HttpExchange) -> None:
        src = self._start_json(exchange)
        if src is None or not self._check_code(exchange, src):
            return
        user = _as_string(src.get("user"))
        if self._redis.exists(user):
            self._fail(exchange, ErrorCode.USER_EXIST, "user exist")
            return
        email = _as_string(src.get("email"))
        uid = self._users.reg_user(user, email, _as_string(src.get("passwd")))
        if uid in (0, -1):
            self._fail(exchange, ErrorCode.USER_EXIST, "user or email exist")
            return
        exchange.write(
            _styled(
                {
                    "error": 0,
                    "email": email,
                    "uid": uid,
                    "user": user,
                    "passwd": _as_string(src.get("passwd")),
                    "confirm": _as_string(src.get("confirm")),
                    "varifycode": _as_string(src.get("varifycode")),
                }
            )
        )

    def _reset_pwd(self, exchange: HttpExchange) -> None:
        src = self._start_json(exchange)
        if src is None:
            return
        email = _as_string(src.get("email"))
        name = _as_string(src.get("user"))
        pwd = _as_string(src.get("passwd"))
        if not self._check_code(exchange, src):
            return
        if not self._users.check_email(name, email):
            self._fail(exchange, ErrorCode.EMAIL_NOT_MATCH, "user email not match")
            return
        if not self._users.update_pwd(name, pwd):
            self._fail(exchange, ErrorCode.PASSWD_UP_FAILED, "update pwd failed")
            return
        log.info("succeed to update password for %s", name)
        exchange.write(
            _styled(
                {
                    "error": 0,
                    "email": email,
                    "user": name,
                    "passwd": pwd,
                    "varifycode": _as_string(src.get("varifycode")),
                }
            )
        )

    def _user_login(self, exchange: HttpExchange) -> None:
        src = self._start_json(exchange)
        if src is None:
            return
        name = _as_string(src.get("user"))
        pwd = _as_string(src.get("passwd"))
        info = self._users.check_pwd(name, pwd)
        if info is None:
            self._fail(exchange, ErrorCode.PASSWD_INVALID, "user pwd not match")
            return
        try:
            reply = self._status.get_chat_server(info.uid)
        except Exception as exc:
            log.warning("status service call failed: %s", exc)
            reply = ChatServerReply(error=int(ErrorCode.RPC_FAILED))
        if reply.error:
            self._fail(exchange, ErrorCode.RPC_FAILED, f"grpc get chat server failed, error is {reply.error}")
            return
        log.info("succeed to load userinfo uid is %s", info.uid)
        exchange.write(
            _styled(
                {
                    "error": 0,
                    "user": name,
                    "uid": info.uid,
                    "token": reply.token,
                    "host": reply.host,
                }
            )
        )