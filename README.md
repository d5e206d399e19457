# chatgate

`chatgate` is the front door of a chat system. It has two parts:

* **Gate server** (`chatgate.gate_server`, `chatgate.logic`). This is a
  threaded HTTP server for account requests. It checks verification codes
  that are stored in Redis. At login it asks a status service which chat
  server the client should use.
* **Status service** (`chatgate.status_service`). It picks the chat server
  with the fewest logins, using the counts kept in a Redis hash. It also
  issues login tokens and checks them.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Configuration

Configuration is an INI file. By default `default_config()` reads
`config.ini` from the current working directory, once, and keeps it.

These keys are read:

```ini
[Redis]
Host = 127.0.0.1
Port = 6379
Passwd = password

[chatservers]
Name = chatserver1,chatserver2

[chatserver1]
Name = chatserver1
Host = 127.0.0.1
Port = 8090

[chatserver2]
Name = chatserver2
Host = 127.0.0.1
Port = 8091
```

A section listed in `[chatservers] Name` that has no `Name` key of its own is
skipped. A missing section or key is not an error; it reads as an empty
string:

```python
from chatgate.config import load_config

config = load_config("config.ini")
config["Redis"]["Host"]            # "127.0.0.1"
config["Nowhere"]["Anything"]      # ""
config.get_value("Redis", "Port")  # "6379"
config.sections()                  # section names, sorted
```

`load_config` raises `chatgate.config.ConfigError` (a `ValueError`) in these
cases: a line has no `=`, a `[` is not closed, a section name is repeated, or
a key is repeated within a section.

## Running the gate server

```
chatgate-gate [--host HOST] [--port PORT] [--config PATH]
```

The server listens on `0.0.0.0:8080` by default. If `--config` is not given,
it reads `./config.ini`. It connects to Redis from the `[Redis]` section and
runs until it gets Ctrl+C or SIGTERM.

Each connection serves one request and is then closed. A connection that
stays idle for 60 seconds times out.

### HTTP routes

| Method | Path              | Body fields                                      |
|--------|-------------------|--------------------------------------------------|
| GET    | `/get_test`       | none; echoes the decoded query parameters        |
| POST   | `/get_varifycode` | `email`                                          |
| POST   | `/user_register`  | `email`, `user`, `passwd`, `confirm`, `varifycode` |
| POST   | `/reset_pwd`      | `email`, `user`, `passwd`, `varifycode`          |
| POST   | `/user_login`     | `user`, `passwd`                                 |

GET targets are split into a path and query parameters. POST targets are
matched as a whole. A path that does not match any route gets `404` with the
body `url not found`. A match gets `200` with a `Server: GateServer` header.

POST replies are JSON, sent with content type `text/json`. The keys are sorted
and the JSON is indented. Every reply has an `error` field: `0` on success, or
one of the values of `chatgate.codes.ErrorCode`:

| Code | Member             | Meaning                            |
|------|--------------------|------------------------------------|
| 1001 | `ERROR_JSON`       | The body is not valid JSON         |
| 1002 | `RPC_FAILED`       | A backend call failed              |
| 1003 | `VARIFY_EXPIRED`   | No verification code is stored     |
| 1004 | `VARIFY_CODE_ERR`  | The verification code is wrong     |
| 1005 | `USER_EXIST`       | The user or e-mail already exists  |
| 1006 | `PASSWD_ERR`       | Wrong password                     |
| 1007 | `EMAIL_NOT_MATCH`  | The e-mail does not match the user |
| 1008 | `PASSWD_UP_FAILED` | The password update failed         |
| 1009 | `PASSWD_INVALID`   | Wrong user name or password        |
| 1010 | `TOKEN_INVALID`    | Wrong token                        |
| 1011 | `UID_INVALID`      | Invalid uid                        |

Verification codes are read from the Redis key `code_<email>`. Login tokens
are stored under `utoken_<uid>`.

## What the package does not do

The package has no user database and no verification-code service. The
`chatgate-gate` command builds its `LogicSystem` without either one:

* `/get_varifycode` always answers with `error` 1002.
* `/user_register`, `/reset_pwd` and `/user_login` get as far as the account
  step. There the request fails: no reply is sent and the connection is
  closed. Earlier checks, such as bad JSON or a wrong code, still give a
  reply with an `error` field.

The status service runs inside the gate process. It is not a network service
of its own. The package also contains no chat server.

To get full behaviour, build a `LogicSystem` yourself and pass it objects
that provide these methods:

* users: `reg_user(name, email, pwd) -> int` (0 or -1 means the user already
  exists), `check_email(name, email) -> bool`, `update_pwd(name, pwd) -> bool`,
  and `check_pwd(name, pwd) -> UserInfo | None`.
* verifier: `get_varify_code(email) -> int`, which returns an error code.

Then serve it with `make_server(host, port, logic)`.

## Using the pieces directly

```python
from chatgate.gate_server import handle_request

response = handle_request(logic, "POST", "/user_login", '{"user": "alice", "passwd": "password"}')
response.status, response.headers, response.body
```

`handle_request` returns `None` in two cases: the method is not GET or POST,
or a handler raised an exception.

`StatusService(config, redis)` has two methods:

* `get_chat_server(uid)` returns a `ChatServerReply` with the host, port and a
  new UUID token for the least-loaded server. The token is stored in Redis. A
  server with no stored count counts as fully loaded. If no server is
  configured, the method raises `LookupError`.
* `login(uid, token)` returns a `LoginReply`. If a token is already stored
  for the uid, the result is `UID_INVALID`. Otherwise a non-empty token gives
  `TOKEN_INVALID`.

`create_redis_store(config, size=5)` returns a `RedisStore`:

* It offers `get`, `set`, `auth`, `lpush`, `lpop`, `rpush`, `rpop`, `hset`,
  `hget`, `hdel`, `delete`, `exists` and `close`.
* Failures come back as `False`, `None` or `""`. They are not raised.
* It uses a `chatgate.pools.KeepAlivePool`, which pings idle connections once
  a minute in the background.
* `ConnectionPool.get_connection` blocks until a connection is free. It raises
  `PoolClosedError` once the pool has been closed.

URL encoding follows the form-style rules: a space becomes `+`, and letters,
digits and `-_.~` pass through unchanged.

```python
from chatgate.urlcodec import url_encode, url_decode, parse_target

url_encode("a b&c")              # "a+b%26c"
url_decode("a+b%26c")            # "a b&c"
parse_target("/get_test?x=1&y")  # ParsedTarget(path="/get_test", params={"x": "1"})
```