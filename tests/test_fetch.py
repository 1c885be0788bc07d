"""
Tests for the HTTP fetch client: redirects, timeouts and error translation.
"""

import io
import itertools
import socket
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

import requests
from requests.structures import CaseInsensitiveDict

from gitfeed.core.fetch import FetchResponse, HttpClient
from gitfeed.errors import FetchTimeout, MalformedResponse, NetworkFailure, TooManyRedirects


def make_response(status=200, body=b"", headers=None, url=""):
    resp = requests.Response()
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw = io.BytesIO(body)
    resp.url = url
    resp.encoding = "utf-8"
    return resp


def make_client(*responses, **kwargs):
    session = MagicMock(spec=requests.Session)
    session.get.side_effect = list(responses)
    return HttpClient(session, **kwargs), session


class TestFetch(unittest.TestCase):
    def test_plain_get(self):
        client, session = make_client(make_response(200, b"<html>hi</html>"))
        resp = client.fetch("https://example.com/", headers={"X-Test": "1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "<html>hi</html>")
        self.assertEqual(resp.url, "https://example.com/")
        _, kwargs = session.get.call_args
        self.assertFalse(kwargs["allow_redirects"])
        self.assertEqual(kwargs["headers"], {"X-Test": "1"})

    def test_non_success_status_returned_as_data(self):
        client, _ = make_client(make_response(404, b"not found"))
        resp = client.fetch("https://example.com/missing")
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.ok)

    def test_host_relative_redirect(self):
        client, session = make_client(
            make_response(301, headers={"Location": "/new-path"}),
            make_response(200, b"moved"),
        )
        resp = client.fetch("https://example.com/old")
        second_url = session.get.call_args_list[1][0][0]
        self.assertEqual(second_url, "https://example.com/new-path")
        self.assertEqual(resp.url, "https://example.com/new-path")
        self.assertEqual(resp.history, ["https://example.com/old"])
        self.assertEqual(resp.content, b"moved")

    def test_absolute_redirect_chain(self):
        client, session = make_client(
            make_response(302, headers={"Location": "http://b.example.com/"}),
            make_response(307, headers={"Location": "https://c.example.com/blog"}),
            make_response(200, b"done"),
        )
        resp = client.fetch("http://a.example.com/")
        self.assertEqual(session.get.call_count, 3)
        self.assertEqual(resp.url, "https://c.example.com/blog")

    def test_redirect_headers_forwarded(self):
        client, session = make_client(
            make_response(301, headers={"Location": "/b"}),
            make_response(200, b"ok"),
        )
        client.fetch("https://example.com/a", headers={"Authorization": "bearer t"})
        for call in session.get.call_args_list:
            self.assertEqual(call[1]["headers"], {"Authorization": "bearer t"})

    def test_redirect_cap(self):
        loop = [make_response(302, headers={"Location": "/again"}) for _ in range(5)]
        client, _ = make_client(*loop, max_redirects=3)
        with self.assertRaises(TooManyRedirects):
            client.fetch("https://example.com/start")

    def test_request_timeout_translated(self):
        client, _ = make_client(requests.ConnectTimeout("slow"))
        with self.assertRaises(FetchTimeout):
            client.fetch("https://example.com/")

    def test_connection_error_translated(self):
        client, _ = make_client(requests.ConnectionError("dns"))
        with self.assertRaises(NetworkFailure) as ctx:
            client.fetch("https://nowhere.invalid/")
        self.assertIn("ConnectionError", str(ctx.exception))

    def test_ssl_error_translated(self):
        client, _ = make_client(requests.exceptions.SSLError("bad cert"))
        with self.assertRaises(NetworkFailure):
            client.fetch("https://self-signed.example.com/")

    def test_wall_clock_deadline_while_reading_body(self):
        client, _ = make_client(make_response(200, b"x" * 10), timeout=5)
        clock = itertools.chain([0.0, 0.0], itertools.repeat(100.0))
        with patch("gitfeed.core.fetch.time") as mock_time:
            mock_time.monotonic.side_effect = lambda: next(clock)
            with self.assertRaises(FetchTimeout):
                client.fetch("https://example.com/slow")

    def test_deadline_spent_before_redirect_hop(self):
        client, session = make_client(
            make_response(301, headers={"Location": "/next"}),
            make_response(200, b"never"),
            timeout=5,
        )
        clock = itertools.chain([0.0, 1.0], itertools.repeat(10.0))
        with patch("gitfeed.core.fetch.time") as mock_time:
            mock_time.monotonic.side_effect = lambda: next(clock)
            with self.assertRaises(FetchTimeout):
                client.fetch("https://example.com/")
        self.assertEqual(session.get.call_count, 1)


def local_session():
    session = requests.Session()
    session.trust_env = False
    return session


class TrickleServer:
    """Local HTTP server that dribbles its reply out one piece at a time."""

    def __init__(self, pieces, interval):
        self.pieces = pieces
        self.interval = interval
        self.stop = threading.Event()
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.url = f"http://127.0.0.1:{self.sock.getsockname()[1]}/slow"
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        with conn:
            try:
                conn.recv(65536)
                for piece in self.pieces:
                    if self.stop.is_set():
                        return
                    conn.sendall(piece)
                    time.sleep(self.interval)
            except OSError:
                return

    def close(self):
        self.stop.set()
        self.sock.close()


class TestHardDeadline(unittest.TestCase):
    HEAD = b"HTTP/1.1 200 OK\r\nContent-Length: 20\r\nContent-Type: text/html\r\n\r\n"

    def _assert_bounded(self, server, budget=1.0):
        self.addCleanup(server.close)
        client = HttpClient(local_session(), timeout=budget)
        t0 = time.monotonic()
        with self.assertRaises(FetchTimeout):
            client.fetch(server.url)
        self.assertLess(time.monotonic() - t0, budget + 1.0)

    def test_body_trickled_one_byte_at_a_time(self):
        body = [bytes([b]) for b in b"x" * 20]
        self._assert_bounded(TrickleServer([self.HEAD] + body, interval=0.3))

    def test_headers_trickled_one_byte_at_a_time(self):
        head = [bytes([b]) for b in self.HEAD]
        self._assert_bounded(TrickleServer(head, interval=0.3))

    def test_fast_server_within_budget(self):
        server = TrickleServer([self.HEAD + b"y" * 20], interval=0)
        self.addCleanup(server.close)
        resp = HttpClient(local_session(), timeout=5.0).fetch(server.url)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.content, b"y" * 20)


class TestFetchResponse(unittest.TestCase):
    def test_json(self):
        resp = FetchResponse(url="u", status_code=200, content=b'{"a": 1}')
        self.assertEqual(resp.json(), {"a": 1})

    def test_invalid_json_is_malformed(self):
        resp = FetchResponse(url="u", status_code=200, content=b"<html>")
        with self.assertRaises(MalformedResponse):
            resp.json()

    def test_ok_range(self):
        self.assertTrue(FetchResponse(url="u", status_code=204).ok)
        self.assertFalse(FetchResponse(url="u", status_code=301).ok)
        self.assertFalse(FetchResponse(url="u", status_code=500).ok)


if __name__ == "__main__":
    unittest.main()
