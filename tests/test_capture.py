import datetime
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import httpx

from sitecapture.capture import CaptureRequest, HttpCaptureBackend, parse_page, suggested_filename
from sitecapture.config import Config
from sitecapture.errors import CaptureFailure
from sitecapture.log import get_logger
from sitecapture.scheduler import TaskScheduler

PAGE = """<!DOCTYPE html>
<html><head><title>Hello World</title></head>
<body>
  <a href="/a">a</a>
  <a href="http://other.com/b">b</a>
  <a href="mailto:me@a.com">mail</a>
  <a href="#top">top</a>
  <a>no href</a>
  <map><area href="c" alt="c"></map>
</body></html>
"""


class TestParsePage(unittest.TestCase):
    def test_title_and_links(self):
        title, links, _ = parse_page(PAGE, "http://a.com/dir/index.html")
        self.assertEqual(title, "Hello World")
        self.assertEqual(links, ["http://a.com/a", "http://other.com/b", "http://a.com/dir/c"])

    def test_link_targets_made_absolute_in_content(self):
        _, _, content = parse_page(PAGE, "http://a.com/dir/index.html")
        self.assertIn('href="http://a.com/a"', content)
        self.assertIn('href="http://a.com/dir/c"', content)
        self.assertIn('href="#top"', content)
        self.assertIn('href="mailto:me@a.com"', content)
        self.assertNotIn('href="/a"', content)

    def test_base_href(self):
        html = '<html><head><base href="http://cdn.a.com/root/"></head><body><a href="x">x</a></body></html>'
        _, links, _ = parse_page(html, "http://a.com/")
        self.assertEqual(links, ["http://cdn.a.com/root/x"])


class TestSuggestedFilename(unittest.TestCase):
    def test_title(self):
        self.assertEqual(suggested_filename("Hello World", "http://a.com/"), "Hello World.html")

    def test_without_title_uses_url(self):
        name = suggested_filename("", "http://a.com/")
        self.assertTrue(name.endswith(".html"))
        self.assertGreater(len(name), len(".html"))

    def test_save_date(self):
        now = datetime.datetime(2024, 1, 2, 3, 4, 5)
        name = suggested_filename("T", "http://a.com/", append_save_date=True, now=now)
        self.assertEqual(name, "T (2024-01-02 03.04.05).html")


class TestHttpCaptureBackend(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.cfg = Config(log_file=None, max_attempts=1)

    async def test_capture_over_http(self):
        def handler(request):
            return httpx.Response(200, text=PAGE, headers={"Content-Type": "text/html"})

        async with HttpCaptureBackend(self.cfg, transport=httpx.MockTransport(handler)) as backend:
            result = await backend.capture(CaptureRequest("http://a.com/dir/index.html", self.cfg))

        self.assertEqual(result.filename, "Hello World.html")
        self.assertIn("<title>Hello World</title>", result.content)
        self.assertIn("http://a.com/a", result.links)

    async def test_client_error_is_capture_failure(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="nope"))
        async with HttpCaptureBackend(self.cfg, transport=transport) as backend:
            with self.assertRaises(CaptureFailure):
                await backend.capture(CaptureRequest("http://a.com/missing", self.cfg))

    async def test_server_error_retried_then_fails(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(503)

        cfg = Config(log_file=None, max_attempts=2)
        async with HttpCaptureBackend(cfg, transport=httpx.MockTransport(handler)) as backend:
            with mock.patch("sitecapture.capture.asyncio.sleep", new=mock.AsyncMock()) as sleep:
                with self.assertRaises(CaptureFailure):
                    await backend.capture(CaptureRequest("http://a.com/", cfg))
        self.assertEqual(len(calls), 2)
        sleep.assert_awaited_once()

    async def test_server_error_retried_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, text=PAGE, headers={"Content-Type": "text/html"})

        cfg = Config(log_file=None, max_attempts=2)
        async with HttpCaptureBackend(cfg, transport=httpx.MockTransport(handler)) as backend:
            with mock.patch("sitecapture.capture.asyncio.sleep", new=mock.AsyncMock()):
                result = await backend.capture(CaptureRequest("http://a.com/", cfg))
        self.assertEqual(len(calls), 2)
        self.assertEqual(result.filename, "Hello World.html")

    async def test_local_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "page.html"
            path.write_text(PAGE, encoding="utf-8")
            async with HttpCaptureBackend(self.cfg) as backend:
                result = await backend.capture(CaptureRequest(path.as_uri(), self.cfg))
        self.assertEqual(result.filename, "Hello World.html")
        self.assertIn("http://other.com/b", result.links)

    async def test_missing_local_file(self):
        async with HttpCaptureBackend(self.cfg) as backend:
            with self.assertRaises(CaptureFailure):
                await backend.capture(CaptureRequest("file:///nonexistent/dir/page.html", self.cfg))

    async def test_requires_context_manager(self):
        backend = HttpCaptureBackend(self.cfg)
        with self.assertRaises(RuntimeError):
            await backend.capture(CaptureRequest("http://a.com/", self.cfg))


class TestRelativeLinksEndToEnd(unittest.IsolatedAsyncioTestCase):
    async def test_relative_links_point_at_local_files(self):
        pages = {
            "/": '<html><head><title>Home</title></head><body><a href="/child">c</a></body></html>',
            "/child": '<html><head><title>Child</title></head><body><a href="/">home</a></body></html>',
        }

        def handler(request):
            return httpx.Response(200, text=pages[request.url.path], headers={"Content-Type": "text/html"})

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            cfg = Config(
                url="http://a.com/",
                output_dir=tmp,
                log_file=None,
                max_attempts=1,
                crawl_links=True,
                crawl_replace_urls=True,
            )
            async with HttpCaptureBackend(cfg, transport=httpx.MockTransport(handler)) as backend:
                frontier = await TaskScheduler(cfg, backend, logger=get_logger("test")).run()
            home = (root / "Home.html").read_text(encoding="utf-8")
            child = (root / "Child.html").read_text(encoding="utf-8")

        self.assertEqual([t.url for t in frontier], ["http://a.com/", "http://a.com/child"])
        self.assertIn('href="Child.html"', home)
        self.assertIn('href="Home.html"', child)


if __name__ == "__main__":
    unittest.main()
