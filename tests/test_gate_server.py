import http.client
import json
import threading
from http import HTTPStatus

import pytest

from chatgate.codes import ErrorCode
from chatgate.gate_server import GateResponse, handle_request, main, make_server
from chatgate.logic import ChatServerReply, LogicSystem, UserInfo


class FakeRedis:
    def __init__(self, values=None):
        self.values = dict(values or {})

    def get(self, key):
        return self.values.get(key)

    def exists(self, key):
        return key in self.values


class FakeUsers:
    def __init__(self, info=None, fail=False):
        self.info = info
        self.fail = fail

    def reg_user(self, name, email, pwd):
        return 1

    def check_email(self, name, email):
        return True

    def update_pwd(self, name, pwd):
        return True

    def check_pwd(self, name, pwd):
        if self.fail:
            raise RuntimeError("database down")
        return self.info


class FakeVerifier:
    def get_varify_code(self, email):
        return 0


class FakeStatus:
    def get_chat_server(self, uid):
        return ChatServerReply(error=0, host="127.0.0.1", port="8090", token="token")


def make_logic(users=None):
    return LogicSystem(FakeRedis(), users or FakeUsers(UserInfo(name="alice", uid=7)), FakeVerifier(), FakeStatus())


def test_get_test_route_echoes_params():
    response = handle_request(make_logic(), "GET", "/get_test?a=1")
    assert response.status == HTTPStatus.OK
    assert response.headers["Server"] == "GateServer"
    assert response.body == "receive get_test req" + "param1key is a" + "param1value is 1\n"


def test_unknown_get_path_is_not_found():
    response = handle_request(make_logic(), "GET", "/missing?x=1")
    assert response == GateResponse(HTTPStatus.NOT_FOUND, {"Content-Type": "text/plain"}, "url not found\r\n")


def test_post_target_is_matched_whole():
    response = handle_request(make_logic(), "POST", "/user_login?x=1", "{}")
    assert response.status == HTTPStatus.NOT_FOUND


def test_post_login_returns_json():
    body = json.dumps({"user": "alice", "passwd": "password"})
    response = handle_request(make_logic(), "POST", "/user_login", body)
    assert response.status == HTTPStatus.OK
    assert response.headers["Content-Type"] == "text/json"
    data = json.loads(response.body)
    assert data["error"] == 0
    assert data["uid"] == 7
    assert data["token"] == "token"
    assert data["host"] == "127.0.0.1"


def test_post_bad_json_reports_error_code():
    response = handle_request(make_logic(), "POST", "/user_login", "not json")
    assert json.loads(response.body)["error"] == int(ErrorCode.ERROR_JSON)


@pytest.mark.parametrize("method", ["PUT", "DELETE", "get"])
def test_other_methods_get_no_response(method):
    assert handle_request(make_logic(), method, "/get_test") is None


def test_handler_exception_gives_no_response():
    logic = make_logic(FakeUsers(fail=True))
    assert handle_request(logic, "POST", "/user_login", json.dumps({"user": "alice"})) is None


def test_live_server_round_trip():
    server = make_server("127.0.0.1", 0, make_logic())
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        port = server.server_address[1]
        conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
        conn.request("GET", "/get_test")
        reply = conn.getresponse()
        assert reply.status == 200
        assert reply.read().decode() == "receive get_test req"
        conn.close()

        conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
        conn.request("POST", "/nowhere", body=b"{}")
        reply = conn.getresponse()
        assert reply.status == 404
        assert reply.read() == b"url not found\r\n"
        conn.close()
    finally:
        server.shutdown()
        server.server_close()


def test_main_fails_on_missing_config(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "absent.ini")]) == 1
    assert "Error:" in capsys.readouterr().err