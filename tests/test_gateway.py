import http.client
import json
import os
import socket
import sys
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from deskhub.core import DeskhubCore
from deskhub.gateway import DeskhubThreadingHTTPServer, build_gateway
from deskhub.resources.rewrite import HOME_NAV_MARKER, PATH_FIXER_MARKER

INDEX_HTML = '<html><head><script src="/assets/app.js"></script></head><body></body></html>'


class GatewayTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        base = Path(self._temp.name)
        self.data_dir = base / "data"
        self.cwd = base / "app"
        dist = self.cwd / "resources" / "studio" / "dist"
        (dist / "assets").mkdir(parents=True)
        (dist / "index.html").write_text(INDEX_HTML, encoding="utf-8")
        (dist / "assets" / "app.js").write_text("window.ok = true;", encoding="utf-8")
        os.environ["DESKHUB_HOME"] = str(self.data_dir)
        self.core = DeskhubCore(data_dir=self.data_dir, cwd=self.cwd)
        self._start(self.core)

    def tearDown(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(timeout=5)
        os.environ.pop("DESKHUB_HOME", None)
        self._temp.cleanup()

    def _start(self, core: DeskhubCore) -> None:
        self.server = build_gateway(core, "127.0.0.1", 0)
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()

    def _request(self, method: str, path: str, body: bytes | None = None, headers: dict | None = None):
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return response.status, dict(response.getheaders()), response.read()
        finally:
            conn.close()

    def test_health(self) -> None:
        status, headers, body = self._request("GET", "/health")
        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body), {"status": "ok", "views": 0})
        self.assertEqual(headers["Access-Control-Allow-Origin"], "*")

    def test_serves_project_entry_with_home_nav(self) -> None:
        status, headers, body = self._request("GET", "/studio/dist/index.html")
        self.assertEqual(status, 200)
        self.assertEqual(headers["Content-Type"], "text/html")
        self.assertEqual(body.decode("utf-8").count(HOME_NAV_MARKER), 1)
        self.assertNotIn(PATH_FIXER_MARKER, body.decode("utf-8"))

    def test_root_absolute_asset_uses_referer_project(self) -> None:
        status, headers, body = self._request(
            "GET",
            "/assets/app.js",
            headers={"Referer": f"http://127.0.0.1:{self.port}/studio/dist/index.html"},
        )
        self.assertEqual(status, 200)
        self.assertEqual(headers["Content-Type"], "application/javascript")
        self.assertEqual(body, b"window.ok = true;")

    def test_missing_asset_is_404(self) -> None:
        status, _, body = self._request("GET", "/studio/dist/missing.png")
        self.assertEqual(status, 404)
        self.assertIn("missing.png", body.decode("utf-8"))

    def test_api_paths_are_not_served(self) -> None:
        status, headers, body = self._request("GET", "/studio/api/users")
        self.assertEqual(status, 404)
        self.assertEqual(headers["Content-Type"], "application/json")
        self.assertIn("error", json.loads(body))

    def test_options_preflight(self) -> None:
        status, headers, _ = self._request("OPTIONS", "/v1/commands/createView")
        self.assertEqual(status, 200)
        self.assertIn("POST", headers["Access-Control-Allow-Methods"])

    def test_commands_over_http(self) -> None:
        payload = {"config": {"projectId": "studio", "x": 0, "y": 40, "width": 800, "height": 600}}
        status, _, body = self._request("POST", "/v1/commands/createView", body=json.dumps(payload).encode("utf-8"))
        self.assertEqual(status, 200)
        self.assertEqual(json.loads(body)["data"]["label"], "child_studio")

        status, _, body = self._request("GET", "/v1/views")
        self.assertEqual(status, 200)
        self.assertEqual([view["label"] for view in json.loads(body)["data"]["views"]], ["child_studio"])

        status, _, body = self._request("POST", "/v1/commands/showView", body=b'{"projectId": "ghost"}')
        self.assertEqual(status, 400)
        self.assertFalse(json.loads(body)["ok"])

    def test_resolve_resource_command_returns_raw_body(self) -> None:
        body = json.dumps({"locator": "myapp://studio/dist/assets/app.js"}).encode("utf-8")
        status, headers, payload = self._request("POST", "/v1/commands/resolveResource", body=body)
        self.assertEqual(status, 200)
        self.assertEqual(headers["Content-Type"], "application/javascript")
        self.assertEqual(payload, b"window.ok = true;")

    def test_bad_json_and_unknown_command(self) -> None:
        status, _, _ = self._request("POST", "/v1/commands/showView", body=b"not json")
        self.assertEqual(status, 400)
        status, _, _ = self._request("POST", "/v1/commands/launchRockets", body=b"{}")
        self.assertEqual(status, 404)
        status, _, _ = self._request("POST", "/elsewhere", body=b"{}")
        self.assertEqual(status, 404)

    def test_invalid_content_length_is_rejected(self) -> None:
        for value in ("abc", "-1", str(10 * 1024 * 1024)):
            with self.subTest(content_length=value):
                request = (
                    "POST /v1/commands/listViews HTTP/1.1\r\n"
                    "Host: 127.0.0.1\r\n"
                    f"Content-Length: {value}\r\n"
                    "\r\n"
                ).encode("ascii")
                with socket.create_connection(("127.0.0.1", self.port), timeout=5) as sock:
                    sock.sendall(request)
                    raw = b""
                    while True:
                        chunk = sock.recv(65536)
                        if not chunk:
                            break
                        raw += chunk
                self.assertTrue(raw.startswith(b"HTTP/1.0 400") or raw.startswith(b"HTTP/1.1 400"), raw[:40])
                self.assertFalse(json.loads(raw.split(b"\r\n\r\n", 1)[1])["ok"])

    def test_path_fixer_when_enabled(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(timeout=5)
        core = DeskhubCore(
            data_dir=self.data_dir,
            cwd=self.cwd,
            cli_overrides={"gateway": {"path_fixer": True}},
        )
        self._start(core)
        status, _, body = self._request("GET", "/studio/dist/index.html")
        self.assertEqual(status, 200)
        text = body.decode("utf-8")
        self.assertIn('<base href="/studio/dist/">', text)
        self.assertIn(PATH_FIXER_MARKER, text)


class GatewayServerErrorTests(unittest.TestCase):
    def test_client_disconnects_are_logged_not_raised(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            os.environ["DESKHUB_HOME"] = temp_dir
            try:
                server = DeskhubThreadingHTTPServer.__new__(DeskhubThreadingHTTPServer)
                with patch("deskhub.gateway.log_event") as log_mock:
                    try:
                        raise BrokenPipeError("client went away")
                    except BrokenPipeError:
                        server.handle_error(None, ("127.0.0.1", 50000))
                log_mock.assert_called_once()
                self.assertEqual(log_mock.call_args.args[0]["event"], "gateway_client_disconnected")
            finally:
                os.environ.pop("DESKHUB_HOME", None)


if __name__ == "__main__":
    unittest.main()
