import io
import os
import socket
import tempfile
import threading
import time
import unittest
from unittest import mock

import aiohttp
from yarl import URL

import main
from config import ServeConfig
from errors import BindError


def ipv6_available() -> bool:
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as s:
            s.bind(("::1", 0))
    except OSError:
        return False
    return True


class TestRun(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = os.path.join(tmp.name, "a.txt")
        with open(self.path, "wb") as f:
            f.write(b"0123456789")

        self.blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.blocker.bind(("127.0.0.1", 0))
        self.blocker.listen(1)
        self.addCleanup(self.blocker.close)
        self.busy_port = self.blocker.getsockname()[1]

    def config(self, **kwargs):
        defaults = dict(
            file_path=self.path,
            port=self.busy_port,
            bind_address="127.0.0.1",
            announce_ip="127.0.0.1",
            clipboard=False,
            token_style="random",
        )
        defaults.update(kwargs)
        return ServeConfig(**defaults)

    def wait_for_url(self, out: io.StringIO) -> str:
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            for line in out.getvalue().splitlines():
                if line.startswith("http://"):
                    return line
            time.sleep(0.02)
        self.fail("no URL announced")

    async def test_auto_port_url_reflects_bound_port(self):
        out = io.StringIO()
        result = {}

        def target():
            result["served"] = main.run(self.config(auto_port=True))

        with mock.patch("sys.stdout", out):
            t = threading.Thread(target=target, daemon=True)
            t.start()
            url = self.wait_for_url(out)

            port = URL(url).port
            self.assertGreater(port, self.busy_port)
            token, name = URL(url, encoded=True).path.lstrip("/").split("/")
            self.assertEqual(len(token), 30)
            self.assertEqual(name, "a.txt")

            async with aiohttp.ClientSession() as session:
                async with session.get(URL(url, encoded=True)) as resp:
                    self.assertEqual(resp.status, 200)
                    self.assertEqual(await resp.read(), b"0123456789")
                    self.assertEqual(resp.headers["Content-Type"], "text/plain")
            t.join(timeout=5)

        self.assertFalse(t.is_alive())
        self.assertEqual(result["served"], 1)
        self.assertIn("Serving a.txt (10 bytes, text/plain)", out.getvalue())

    def test_port_in_use_is_fatal_without_auto(self):
        with self.assertRaises(BindError):
            main.run(self.config())

    def test_main_exits_nonzero_on_missing_file(self):
        err = io.StringIO()
        with mock.patch("sys.stderr", err), self.assertRaises(SystemExit) as cm:
            main.main(["/nonexistent/file.bin", "--no-clipboard"])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("error:", err.getvalue())

    def test_main_exits_nonzero_without_file(self):
        err = io.StringIO()
        with mock.patch("sys.stderr", err), self.assertRaises(SystemExit) as cm:
            main.main([])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("No file given", err.getvalue())

    def test_main_exits_nonzero_on_bind_failure(self):
        err = io.StringIO()
        argv = ["-i", "127.0.0.1", "-p", str(self.busy_port), "--no-clipboard", self.path]
        with mock.patch("sys.stderr", err), self.assertRaises(SystemExit) as cm:
            main.main(argv)
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Cannot listen on 127.0.0.1", err.getvalue())

    async def test_ipv6_announcement_binds_ipv6(self):
        if not ipv6_available():
            self.skipTest("IPv6 loopback not available")
        out = io.StringIO()
        result = {}

        def target():
            result["served"] = main.run(self.config(announce_ip=None, bind_address="", auto_port=True))

        with mock.patch("sys.stdout", out), mock.patch.object(main, "get_local_ip", return_value="::1"):
            t = threading.Thread(target=target, daemon=True)
            t.start()
            url = self.wait_for_url(out)
            self.assertTrue(url.startswith("http://[::1]:"))
            port = URL(url).port
            path = URL(url, encoded=True).path
            with socket.create_connection(("::1", port), timeout=5) as s:
                s.sendall(f"GET {path} HTTP/1.0\r\n\r\n".encode())
                response = b""
                while True:
                    chunk = s.recv(4096)
                    if not chunk:
                        break
                    response += chunk
            t.join(timeout=5)

        self.assertTrue(response.startswith(b"HTTP/1.0 200 OK\r\n"))
        self.assertTrue(response.endswith(b"\r\n\r\n0123456789"))
        self.assertEqual(result["served"], 1)

    def test_url_copied_to_clipboard(self):
        out = io.StringIO()
        clipboard = mock.MagicMock()
        clipboard.copy.return_value = True
        with mock.patch("sys.stdout", out), \
                mock.patch.object(main, "CommandClipboard", return_value=clipboard), \
                mock.patch.object(main, "bind_listener", return_value=(mock.MagicMock(), 4321)), \
                mock.patch.object(main, "FileServer") as server_cls:
            server_cls.return_value.serve.return_value = 1
            self.assertEqual(main.run(self.config(clipboard=True)), 1)
        lines = out.getvalue().splitlines()
        url = next(line for line in lines if line.startswith("http://"))
        self.assertTrue(url.startswith("http://127.0.0.1:4321/"))
        clipboard.copy.assert_called_once_with(url)
        self.assertIn("URL copied to clipboard.", lines)

    def test_ctrl_c_exits_cleanly(self):
        out = io.StringIO()
        with mock.patch("sys.stdout", out), \
                mock.patch.object(main, "run", side_effect=KeyboardInterrupt), \
                self.assertRaises(SystemExit) as cm:
            main.main(["--no-clipboard", self.path])
        self.assertEqual(cm.exception.code, 0)
        self.assertIn("Stopped.", out.getvalue())

    def test_logger_follows_module_name(self):
        self.assertEqual(main.logger.name, main.__name__)


if __name__ == "__main__":
    unittest.main()
