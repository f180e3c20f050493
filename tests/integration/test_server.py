"""
End-to-end tests against a live server on a loopback port.
"""

import http.client
import logging
import socket
import threading

import pytest

from kvserver import KeyValueStore, ServerConfig, create_app
from kvserver.__main__ import main


def request(server, method: str, path: str, headers=None):
    """One request on a fresh connection; returns (status, body, headers)."""
    conn = http.client.HTTPConnection(server.host, server.port, timeout=5)
    try:
        conn.request(method, path, headers=headers or {})
        response = conn.getresponse()
        return response.status, response.read().decode("utf-8"), dict(response.getheaders())
    finally:
        conn.close()


def raw_exchange(server, data: bytes) -> bytes:
    with socket.create_connection((server.host, server.port), timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestKVRoutes:

    def test_put_get_scenario(self, live_server):
        assert request(live_server, "PUT", "/entry/color/red")[:2] == (
            200, "Updated: data[color] = red"
        )
        assert request(live_server, "GET", "/entry/color")[:2] == (
            200, "Read entry: data[color] = red"
        )
        assert request(live_server, "GET", "/entry/missing")[:2] == (
            200, "Read entry: data[missing] = "
        )

    def test_list_empty(self, live_server):
        assert request(live_server, "GET", "/list")[:2] == (200, "Read list: ")

    def test_list_after_puts(self, live_server):
        request(live_server, "PUT", "/entry/b/2")
        request(live_server, "PUT", "/entry/a/1")

        assert request(live_server, "GET", "/list")[1] == "Read list: a:1, b:2"

    def test_writes_land_in_store(self, live_server, store: KeyValueStore):
        request(live_server, "PUT", "/entry/k/v")

        assert store.get("k") == "v"

    def test_percent_encoded_value(self, live_server, store: KeyValueStore):
        status, body, _ = request(live_server, "PUT", "/entry/greeting/hello%20world")

        assert status == 200
        assert body == "Updated: data[greeting] = hello world"
        assert store.get("greeting") == "hello world"

    def test_headers(self, live_server):
        _, _, headers = request(live_server, "GET", "/list")

        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert headers["Server"] == "kvserver/1.0"
        assert "X-Request-ID" in headers

    @pytest.mark.parametrize("method,path", [
        ("GET", "/"),
        ("GET", "/nope"),
        ("PUT", "/list"),
        ("DELETE", "/entry/color"),
        ("GET", "/entry/a/b"),
    ])
    def test_unmatched_routes_404(self, live_server, method, path):
        status, body, _ = request(live_server, method, path)

        assert status == 404
        assert body.startswith("404 Not Found")

    def test_concurrent_puts_same_key(self, live_server, store: KeyValueStore):
        barrier = threading.Barrier(2)

        def put(value):
            barrier.wait()
            request(live_server, "PUT", f"/entry/k/{value}")

        threads = [threading.Thread(target=put, args=(v,)) for v in ("A", "B")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("k") in ("A", "B")
        assert request(live_server, "GET", "/entry/k")[1] in (
            "Read entry: data[k] = A",
            "Read entry: data[k] = B",
        )

    def test_many_clients(self, live_server, store: KeyValueStore):
        def put(n):
            request(live_server, "PUT", f"/entry/key{n}/value{n}")

        threads = [threading.Thread(target=put, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 20


class TestProtocol:

    def test_keep_alive_reuses_connection(self, live_server):
        conn = http.client.HTTPConnection(live_server.host, live_server.port, timeout=5)
        try:
            conn.request("PUT", "/entry/a/1")
            first = conn.getresponse()
            first.read()
            assert first.getheader("Connection") == "keep-alive"

            conn.request("GET", "/entry/a")
            second = conn.getresponse()
            assert second.read() == b"Read entry: data[a] = 1"
        finally:
            conn.close()

    def test_connection_close(self, live_server):
        raw = raw_exchange(
            live_server,
            b"GET /list HTTP/1.1\r\nHost: t\r\nConnection: close\r\n\r\n",
        )

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Connection: close\r\n" in raw
        assert raw.endswith(b"Read list: ")

    def test_malformed_request_line(self, live_server):
        raw = raw_exchange(live_server, b"GARBAGE\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")

    @pytest.mark.parametrize("request_line", [
        b"PROPFIND /nope HTTP/1.1",
        b"get /list HTTP/1.1",
        b"HEAD /list HTTP/1.1",
    ])
    def test_unrouted_methods_are_404(self, live_server, request_line):
        raw = raw_exchange(live_server, request_line + b"\r\nConnection: close\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")

    def test_unsupported_version(self, live_server):
        raw = raw_exchange(live_server, b"GET /list HTTP/2.0\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 505 HTTP Version Not Supported\r\n")


class TestServerOptions:

    def test_method_not_allowed_option(self, config: ServerConfig, serve):
        config.method_not_allowed = True
        server = serve(create_app(config))

        status, _, headers = request(server, "PUT", "/list")

        assert status == 405
        assert headers["Allow"] == "GET"

    def test_handler_error_is_500(self, config: ServerConfig, serve):
        app = create_app(config)

        @app.get("/boom")
        def boom(req):
            raise RuntimeError("boom")

        server = serve(app)

        status, body, _ = request(server, "GET", "/boom")
        assert request(server, "GET", "/list")[0] == 200  # the worker survives

        assert status == 500
        assert body == "500 Internal Server Error"


class TestBindFailure:

    def test_address_in_use_exits_1(self, free_port: int, caplog):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", free_port))
        blocker.listen(1)
        caplog.set_level(logging.CRITICAL, logger="kvserver")

        try:
            with pytest.raises(SystemExit) as exc_info:
                main(["--addr", f"127.0.0.1:{free_port}", "--log-level", "WARNING"])
        finally:
            blocker.close()

        assert exc_info.value.code == 1
        assert any(
            r.levelno == logging.CRITICAL and r.getMessage().startswith("ListenAndServe:")
            for r in caplog.records
        )

    def test_invalid_address_exits_2(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["--addr", "no-port-here"])

        assert exc_info.value.code == 2

    def test_invalid_workers_env_exits_2(self, monkeypatch):
        monkeypatch.setenv("KVSERVER_WORKERS", "lots")

        with pytest.raises(SystemExit) as exc_info:
            main(["--addr", "127.0.0.1:0"])

        assert exc_info.value.code == 2
