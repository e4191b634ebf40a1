"""
Tests for static file and directory delivery.
"""

import errno
import gzip
import os
import pathlib

import pytest

from replykit import StaticFileNotFoundError, StaticRoute
from replykit.static import check_gzip_required, parse_range_header

ASSETS = StaticRoute(name="assets", path="/assets/*filepath", dir="assets", list_dir=True)


@pytest.fixture
def serve(engine, make_request):
    """Serve a request through a static route and return the finalized response."""
    def _serve(path, route=ASSETS, method="GET", headers=None):
        filepath = path[len("/assets/"):] if path.startswith("/assets/") else ""
        request = make_request(method, path, headers, path_params={"filepath": filepath})
        ctx = engine.new_context(request, route=route)
        engine.serve_static(ctx)
        assert ctx.reply.is_done
        status, header_items, body = ctx.res.finalize()
        return status, dict(header_items), body
    return _serve


class TestServeFiles:
    """Regular files through file and directory routes."""

    def test_file_route(self, serve):
        route = StaticRoute(name="robots", path="/robots.txt", file="robots.txt")
        status, headers, body = serve("/robots.txt", route=route)
        assert status == 200
        assert body == b"User-agent: *\n"
        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert "Last-Modified" in headers
        assert headers["Accept-Ranges"] == "bytes"

    def test_dir_route(self, serve):
        status, headers, body = serve("/assets/readme.txt")
        assert status == 200
        assert body == b"0123456789"
        assert headers["Content-Length"] == "10"

    def test_head(self, serve):
        status, headers, body = serve("/assets/readme.txt", method="HEAD")
        assert status == 200
        assert body == b""
        assert headers["Content-Length"] == "10"

    def test_hooks_fire(self, engine, make_request):
        calls = []
        engine.on_pre_reply(lambda ctx: calls.append("pre"))
        engine.on_after_reply(lambda ctx: calls.append("after"))
        request = make_request("GET", "/assets/readme.txt", path_params={"filepath": "readme.txt"})
        engine.serve_static(engine.new_context(request, route=ASSETS))
        assert calls == ["pre", "after"]


class TestErrors:
    """Missing paths, permissions and traversal."""

    def test_not_found_raises(self, engine, make_request):
        request = make_request("GET", "/assets/missing.txt", path_params={"filepath": "missing.txt"})
        ctx = engine.new_context(request, route=ASSETS)
        with pytest.raises(StaticFileNotFoundError) as exc_info:
            engine.serve_static(ctx)
        assert exc_info.value.path == "/assets/missing.txt"
        assert not ctx.res.written
        assert not ctx.reply.is_done

    def test_traversal_is_not_found(self, engine, make_request):
        request = make_request("GET", "/assets/../static/robots.txt",
                               path_params={"filepath": "../static/robots.txt"})
        with pytest.raises(StaticFileNotFoundError):
            engine.serve_static(engine.new_context(request, route=ASSETS))

    def test_permission_denied(self, serve, monkeypatch):
        def deny(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(pathlib.Path, "open", deny)
        status, headers, body = serve("/assets/readme.txt")
        assert status == 403
        assert body == b"403 Forbidden"

    def test_io_error(self, serve, monkeypatch):
        def fail(self, *args, **kwargs):
            raise OSError(errno.EIO, "I/O error")

        monkeypatch.setattr(pathlib.Path, "open", fail)
        status, headers, body = serve("/assets/readme.txt")
        assert status == 500
        assert body == b"500 Internal Server Error"
        assert headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_null_byte_in_path(self, serve):
        status, _, body = serve("/assets/read\x00me.txt")
        assert status == 500
        assert body == b"500 Internal Server Error"


class TestDirectories:
    """Directory redirects and listings."""

    def test_redirect_to_trailing_slash(self, serve):
        status, headers, body = serve("/assets/docs")
        assert status == 302
        assert headers["Location"] == "/assets/docs/"
        assert b"Found" in body

    def test_listing(self, serve):
        status, headers, body = serve("/assets/")
        assert status == 200
        assert headers["Content-Type"] == "text/html; charset=utf-8"
        page = body.decode()
        assert "<title>Listing of /assets/</title>" in page
        assert '<a href="../">../</a>' in page
        assert '<a href="docs/">docs/</a>' in page
        assert page.index("docs/") < page.index("readme.txt")

    def test_listing_with_dangling_symlink(self, serve, app_dir):
        os.symlink(app_dir / "assets" / "gone.txt", app_dir / "assets" / "broken-link")
        status, _, body = serve("/assets/")
        assert status == 200
        assert b'<a href="broken-link">broken-link</a>' in body
        assert b"readme.txt" in body

    def test_listing_disabled(self, serve):
        route = StaticRoute(name="assets", path="/assets/*filepath", dir="assets", list_dir=False)
        status, _, body = serve("/assets/docs/", route=route)
        assert status == 403
        assert body == b"403 Directory listing not allowed"


class TestGzip:
    """Only allow-listed extensions are compressed."""

    @pytest.mark.parametrize("name,expected", [
        ("site.css", True),
        ("app.JS", True),
        ("font.ttf", True),
        ("logo.png", False),
        ("archive.zip", False),
        ("noext", False),
    ])
    def test_check_gzip_required(self, name, expected):
        assert check_gzip_required(name) is expected

    def test_css_compressed(self, serve):
        route = StaticRoute(name="css", path="/site.css", file="css/site.css")
        status, headers, body = serve("/site.css", route=route, headers={"Accept-Encoding": "gzip, br"})
        assert headers["Content-Encoding"] == "gzip"
        assert gzip.decompress(body).startswith(b"body {")

    def test_png_not_compressed(self, serve):
        route = StaticRoute(name="logo", path="/logo.png", file="img/logo.png")
        status, headers, body = serve("/logo.png", route=route, headers={"Accept-Encoding": "gzip"})
        assert "Content-Encoding" not in headers
        assert body.startswith(b"\x89PNG")

    def test_gzip_disabled_by_config(self, engine, serve):
        engine.config.gzip.enable = False
        route = StaticRoute(name="css", path="/site.css", file="css/site.css")
        _, headers, _ = serve("/site.css", route=route, headers={"Accept-Encoding": "gzip"})
        assert "Content-Encoding" not in headers


class TestConditionalAndRanges:
    """If-Modified-Since and Range handling."""

    def test_not_modified(self, serve):
        status, headers, body = serve(
            "/assets/readme.txt", headers={"If-Modified-Since": "Fri, 01 Jan 2100 00:00:00 GMT"})
        assert status == 304
        assert body == b""

    def test_modified(self, serve):
        status, _, _ = serve(
            "/assets/readme.txt", headers={"If-Modified-Since": "Thu, 01 Jan 1970 00:00:00 GMT"})
        assert status == 200

    def test_range(self, serve):
        status, headers, body = serve("/assets/readme.txt", headers={"Range": "bytes=2-5"})
        assert status == 206
        assert body == b"2345"
        assert headers["Content-Range"] == "bytes 2-5/10"
        assert headers["Content-Length"] == "4"

    def test_suffix_range(self, serve):
        status, _, body = serve("/assets/readme.txt", headers={"Range": "bytes=-3"})
        assert status == 206
        assert body == b"789"

    def test_unsatisfiable(self, serve):
        status, headers, _ = serve("/assets/readme.txt", headers={"Range": "bytes=50-"})
        assert status == 416
        assert headers["Content-Range"] == "bytes */10"

    def test_if_range_etag_ignores_range(self, serve):
        status, _, body = serve("/assets/readme.txt", headers={"Range": "bytes=0-1", "If-Range": '"abc"'})
        assert status == 200
        assert body == b"0123456789"


class TestParseRangeHeader:
    """Range header parsing."""

    @pytest.mark.parametrize("header,expected", [
        ("bytes=0-0", [(0, 0)]),
        ("bytes=5-", [(5, 9)]),
        ("bytes=-4", [(6, 9)]),
        ("bytes=0-100", [(0, 9)]),
        ("bytes=0-1, 4-5", [(0, 1), (4, 5)]),
        ("bytes=20-30", []),
        ("bytes=5-2", []),
        ("items=0-1", []),
        ("bytes=a-b", []),
    ])
    def test_parse(self, header, expected):
        assert parse_range_header(header, 10) == expected
