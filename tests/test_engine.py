"""
Tests for writing replies with the Engine.
"""

import gzip
import json
import logging

from replykit import AppConfig, Engine, ViewRegistry, make_cookie
from replykit.exceptions import RenderError


def finalize(ctx):
    status, header_items, body = ctx.res.finalize()
    return status, header_items, dict(header_items), body


class TestWriteReply:
    """Reply to ResponseWriter translation."""

    def test_json(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.created().header("X-Request-Id", "42").json({"id": 42})
        engine.write_reply(ctx)

        status, _, headers, body = finalize(ctx)
        assert status == 201
        assert headers["Content-Type"] == "application/json; charset=utf-8"
        assert headers["X-Request-Id"] == "42"
        assert json.loads(body) == {"id": 42}
        assert ctx.reply.is_done
        assert ctx.reply.body.getvalue() == body

    def test_pretty(self, app_dir, make_request):
        engine = Engine(AppConfig.from_mapping({"render": {"pretty": True}}), ViewRegistry(), app_dir)
        ctx = engine.new_context(make_request())
        ctx.reply.json({"a": 1})
        engine.write_reply(ctx)
        assert b"\n" in finalize(ctx)[3]

    def test_done_reply_skipped(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.text("ignored").done()
        engine.write_reply(ctx)
        assert not ctx.res.written

    def test_no_content(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.no_content()
        engine.write_reply(ctx)
        status, _, headers, body = finalize(ctx)
        assert status == 204
        assert body == b""

    def test_redirect(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.redirect("/login")
        engine.write_reply(ctx)
        status, _, headers, body = finalize(ctx)
        assert status == 302
        assert headers["Location"] == "/login"

    def test_cookies(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.cookie(make_cookie("a", "1", path="/")).cookie(make_cookie("b", "2")).text("ok")
        engine.write_reply(ctx)
        _, items, _, _ = finalize(ctx)
        cookies = [value for name, value in items if name == "Set-Cookie"]
        assert cookies == ["a=1; Path=/", "b=2"]

    def test_default_content_type_from_config(self, app_dir, make_request):
        engine = Engine(AppConfig.from_mapping({"render": {"default": "xml"}}), ViewRegistry(), app_dir)
        ctx = engine.new_context(make_request())
        ctx.reply.binary(b"<a/>")
        engine.write_reply(ctx)
        assert finalize(ctx)[2]["Content-Type"] == "application/xml; charset=utf-8"

    def test_file_content_type_detected(self, engine, app_dir, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.file_download(app_dir / "static" / "robots.txt", "robots.txt")
        engine.write_reply(ctx)
        _, _, headers, body = finalize(ctx)
        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert headers["Content-Disposition"] == "attachment; filename=robots.txt"
        assert body == b"User-agent: *\n"

    def test_binary_defaults_to_octet_stream(self, engine, make_request):
        ctx = engine.new_context(make_request())
        ctx.reply.binary(b"\x00\x01")
        engine.write_reply(ctx)
        assert finalize(ctx)[2]["Content-Type"] == "application/octet-stream"

    def test_gzip(self, engine, make_request):
        ctx = engine.new_context(make_request(headers={"Accept-Encoding": "gzip"}))
        ctx.reply.text("x" * 2000)
        engine.write_reply(ctx)
        _, _, headers, body = finalize(ctx)
        assert headers["Content-Encoding"] == "gzip"
        assert gzip.decompress(body) == b"x" * 2000

    def test_gzip_disabled_on_reply(self, engine, make_request):
        ctx = engine.new_context(make_request(headers={"Accept-Encoding": "gzip"}))
        ctx.reply.text("x" * 2000).disable_gzip()
        engine.write_reply(ctx)
        assert "Content-Encoding" not in finalize(ctx)[2]

    def test_render_failure(self, engine, make_request, caplog):
        class Failing:
            def render(self, output, request=None, pretty=False):
                raise RenderError("broken")

        ctx = engine.new_context(make_request())
        ctx.reply.json({})
        ctx.reply.renderer = Failing()
        with caplog.at_level(logging.ERROR):
            engine.write_reply(ctx)
        status, _, _, body = finalize(ctx)
        assert status == 500
        assert "broken" in caplog.text

    def test_html(self, engine, make_request):
        ctx = engine.new_context(make_request(path="/welcome"), controller="AppController", action="Index")
        ctx.reply.html({"name": "World", "title": "Welcome"})
        engine.write_reply(ctx)
        _, _, headers, body = finalize(ctx)
        assert headers["Content-Type"] == "text/html; charset=utf-8"
        page = body.decode()
        assert "<title>Welcome</title>" in page
        assert "<h1>Hello World</h1>" in page
        assert "http://localhost:8080/welcome" in page

    def test_html_missing_view(self, engine, make_request):
        ctx = engine.new_context(make_request(), controller="AppController", action="Missing")
        ctx.reply.html()
        engine.write_reply(ctx)
        status, _, _, body = finalize(ctx)
        assert status == 200
        assert b"View Not Found: views/pages/app/missing.html" in body


class TestHooks:
    """Pre and after reply hooks."""

    def test_order(self, engine, make_request):
        events = []

        @engine.on_pre_reply
        def pre(ctx):
            events.append(("pre", ctx.res.written))

        @engine.on_after_reply
        def after(ctx):
            events.append(("after", ctx.res.written))

        ctx = engine.new_context(make_request())
        ctx.reply.text("ok")
        engine.write_reply(ctx)
        assert events == [("pre", False), ("after", True)]

    def test_pre_reply_can_add_headers(self, engine, make_request):
        engine.on_pre_reply(lambda ctx: ctx.res.headers.set("X-Hook", "1"))
        ctx = engine.new_context(make_request())
        ctx.reply.text("ok")
        engine.write_reply(ctx)
        assert finalize(ctx)[2]["X-Hook"] == "1"


class TestNotFound:
    """Built-in and custom 404 handling."""

    def test_default_page(self, engine, make_request):
        ctx = engine.new_context(make_request())
        engine.handle_not_found(ctx)
        status, _, headers, body = finalize(ctx)
        assert status == 404
        assert b"404 Not Found" in body

    def test_custom_handler(self, engine, make_request):
        engine.not_found_handler = lambda ctx: ctx.reply.not_found().json({"error": "missing"})
        ctx = engine.new_context(make_request())
        engine.handle_not_found(ctx)
        status, _, headers, body = finalize(ctx)
        assert status == 404
        assert json.loads(body) == {"error": "missing"}
