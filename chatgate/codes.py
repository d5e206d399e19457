"""Error codes and key prefixes shared by the gate and status servers."""

from __future__ import annotations

from enum import IntEnum

CODE_PREFIX = "code_"
USER_IP_PREFIX = "uip_"
USER_TOKEN_PREFIX = "utoken_"
IP_COUNT_PREFIX = "ipcount_"
USER_BASE_INFO = "ubaseinfo_"
LOGIN_COUNT = "logincount"


class ErrorCode(IntEnum):
    """Numeric error codes carried in the ``error`` field of every reply."""

    SUCCESS = 0
    ERROR_JSON = 1001
    RPC_FAILED = 1002
    VARIFY_EXPIRED = 1003
    VARIFY_CODE_ERR = 1004
    USER_EXIST = 1005
    PASSWD_ERR = 1006
    EMAIL_NOT_MATCH = 1007
    PASSWD_UP_FAILED = 1008
    PASSWD_INVALID = 1009
    TOKEN_INVALID = 1010
    UID_INVALID = 1011

    @property
    def description(self) -> str:
        """A short human-readable explanation of the code."""
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ErrorCode.SUCCESS: "success",
    ErrorCode.ERROR_JSON: "JSON parse error",
    ErrorCode.RPC_FAILED: "RPC request failed",
    ErrorCode.VARIFY_EXPIRED: "verification code expired",
    ErrorCode.VARIFY_CODE_ERR: "verification code incorrect",
    ErrorCode.USER_EXIST: "user already exists",
    ErrorCode.PASSWD_ERR: "password incorrect",
    ErrorCode.EMAIL_NOT_MATCH: "email does not match",
    ErrorCode.PASSWD_UP_FAILED: "password update failed",
    ErrorCode.PASSWD_INVALID: "password invalid",
    ErrorCode.TOKEN_INVALID: "token invalid",
    ErrorCode.UID_INVALID: "uid invalid",
}