"""
Tests for body renderers.
"""

import json
from io import BytesIO
from xml.etree import ElementTree

import pytest
from pydantic import BaseModel

from replykit import Request
from replykit.content_renderers import (
    BinaryRenderer,
    HTMLRenderer,
    JSONRenderer,
    TextRenderer,
    XMLRenderer,
)
from replykit.exceptions import RenderError


def render(renderer, request=None, pretty=False) -> bytes:
    output = BytesIO()
    renderer.render(output, request, pretty=pretty)
    return output.getvalue()


class Item(BaseModel):
    id: int
    name: str


class TestJSONRenderer:
    """JSON and JSONP output."""

    def test_plain(self):
        assert json.loads(render(JSONRenderer({"a": [1, 2]}))) == {"a": [1, 2]}

    def test_pretty(self):
        assert b"\n  " in render(JSONRenderer({"a": 1}), pretty=True)

    def test_pydantic_models(self):
        body = render(JSONRenderer([Item(id=1, name="x")]))
        assert json.loads(body) == [{"id": 1, "name": "x"}]

    def test_jsonp_explicit_callback(self):
        assert render(JSONRenderer({"a": 1}, is_jsonp=True, callback="cb")) == b'cb({"a": 1});'

    def test_jsonp_callback_from_query(self):
        request = Request("GET", "/", query_params={"callback": "handle"})
        assert render(JSONRenderer([1], is_jsonp=True), request) == b"handle([1]);"

    def test_jsonp_without_callback_is_plain_json(self):
        assert render(JSONRenderer([1], is_jsonp=True), Request("GET", "/")) == b"[1]"

    def test_unencodable(self):
        with pytest.raises(RenderError):
            render(JSONRenderer({"a": object()}))


class TestXMLRenderer:
    """XML output from the supported inputs."""

    def test_dict(self):
        root = ElementTree.fromstring(render(XMLRenderer({"name": "x", "tags": ["a", "b"], "ok": True})))
        assert root.tag == "response"
        assert root.find("name").text == "x"
        assert [e.text for e in root.find("tags")] == ["a", "b"]
        assert root.find("ok").text == "true"

    def test_declaration(self):
        assert render(XMLRenderer({"a": 1})).startswith(b"<?xml")

    def test_element(self):
        element = ElementTree.Element("user", id="7")
        root = ElementTree.fromstring(render(XMLRenderer(element)))
        assert root.tag == "user"
        assert root.get("id") == "7"

    def test_string_passthrough(self):
        assert render(XMLRenderer("<a/>")) == b"<a/>"

    def test_to_xml(self):
        class Doc:
            def to_xml(self):
                return "<doc/>"

        assert render(XMLRenderer(Doc())) == b"<doc/>"


class TestTextRenderer:
    """Formatted text."""

    def test_format(self):
        assert render(TextRenderer("%s has %d items", ("cart", 3))) == b"cart has 3 items"

    def test_no_values(self):
        assert render(TextRenderer("100%")) == b"100%"


class TestBinaryRenderer:
    """Reader and file copies."""

    def test_reader_closed(self):
        reader = BytesIO(b"\x00\x01\x02")
        assert render(BinaryRenderer(reader=reader)) == b"\x00\x01\x02"
        assert reader.closed

    def test_file(self, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"abc")
        assert render(BinaryRenderer(path=path)) == b"abc"

    def test_missing_file(self, tmp_path):
        with pytest.raises(RenderError):
            render(BinaryRenderer(path=tmp_path / "missing.bin"))


class TestHTMLRenderer:
    """HTML output through a resolved template."""

    def test_no_template(self):
        with pytest.raises(RenderError):
            render(HTMLRenderer())

    def test_template_failure_wrapped(self):
        class Broken:
            name = "broken.html"

            def render(self, args):
                raise ValueError("boom")

        with pytest.raises(RenderError) as exc_info:
            render(HTMLRenderer(template=Broken()))
        assert isinstance(exc_info.value.original_exception, ValueError)

    def test_template(self):
        class Static:
            def render(self, args):
                return f"<p>{args['x']}</p>"

        assert render(HTMLRenderer(view_args={"x": 1}, template=Static())) == b"<p>1</p>"
