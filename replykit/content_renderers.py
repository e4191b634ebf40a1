"""
Body renderers attached to a Reply.

Each renderer writes the response body to a binary output stream; the
engine picks the content type, the renderer only produces bytes.
"""

import json
import shutil
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Sequence, Union
from xml.etree import ElementTree

from .exceptions import RenderError
from .models import Request


class ContentRenderer:
    """Base class for body renderers."""

    media_type = "application/octet-stream"

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        """Write the rendered body to ``output``."""
        raise NotImplementedError


def _serialize_pydantic(data: Any) -> Any:
    """Convert Pydantic models (possibly nested in lists/dicts) to plain data."""
    if hasattr(data, "model_dump"):
        return data.model_dump()
    elif isinstance(data, list):
        return [_serialize_pydantic(item) for item in data]
    elif isinstance(data, dict):
        return {key: _serialize_pydantic(value) for key, value in data.items()}
    return data


class JSONRenderer(ContentRenderer):
    """JSON and JSONP renderer."""

    media_type = "application/json"

    def __init__(self, data: Any, is_jsonp: bool = False, callback: str = ""):
        self.data = data
        self.is_jsonp = is_jsonp
        self.callback = callback

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        try:
            payload = json.dumps(_serialize_pydantic(self.data), indent=2 if pretty else None)
        except (TypeError, ValueError) as e:
            raise RenderError(f"Unable to encode JSON response: {e}", e)

        if self.is_jsonp:
            callback = self.callback
            if not callback and request is not None:
                callback = request.query_value("callback")
            if callback:
                payload = f"{callback}({payload});"

        output.write(payload.encode("utf-8"))


class XMLRenderer(ContentRenderer):
    """XML renderer.

    Accepts an ``ElementTree.Element``, a ready made ``str``/``bytes``
    document, an object with a ``to_xml()`` method, or dict/list data which
    is converted under a ``<response>`` root element.
    """

    media_type = "application/xml"
    root_tag = "response"
    item_tag = "item"

    def __init__(self, data: Any):
        self.data = data

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        data = self.data
        if hasattr(data, "to_xml"):
            data = data.to_xml()

        if isinstance(data, bytes):
            output.write(data)
            return
        if isinstance(data, str):
            output.write(data.encode("utf-8"))
            return

        if isinstance(data, ElementTree.Element):
            element = data
        else:
            element = self._to_element(self.root_tag, _serialize_pydantic(data))

        if pretty:
            ElementTree.indent(element)
        output.write(ElementTree.tostring(element, encoding="utf-8", xml_declaration=True))

    def _to_element(self, tag: str, value: Any) -> ElementTree.Element:
        element = ElementTree.Element(tag)
        if isinstance(value, dict):
            for key, child in value.items():
                element.append(self._to_element(str(key), child))
        elif isinstance(value, (list, tuple)):
            for child in value:
                element.append(self._to_element(self.item_tag, child))
        elif value is not None:
            element.text = str(value).lower() if isinstance(value, bool) else str(value)
        return element


class TextRenderer(ContentRenderer):
    """Plain text renderer with optional %-style formatting."""

    media_type = "text/plain"

    def __init__(self, fmt: str, values: Sequence[Any] = ()):
        self.format = fmt
        self.values = tuple(values)

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        text = self.format % self.values if self.values else self.format
        output.write(text.encode("utf-8"))


class BinaryRenderer(ContentRenderer):
    """Copies a reader or a file into the response.

    Readers with a ``close()`` method are closed once copied.
    """

    def __init__(self, reader: Optional[BinaryIO] = None, path: Optional[Union[str, Path]] = None):
        self.reader = reader
        self.path = Path(path) if path is not None else None

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        if self.path is not None:
            try:
                with self.path.open("rb") as f:
                    shutil.copyfileobj(f, output)
            except OSError as e:
                raise RenderError(f"Unable to read file {self.path}: {e}", e)
            return

        if self.reader is None:
            return
        try:
            shutil.copyfileobj(self.reader, output)
        finally:
            close = getattr(self.reader, "close", None)
            if callable(close):
                close()


class HTMLRenderer(ContentRenderer):
    """Template based HTML renderer.

    ``template`` is filled in by the view resolver; it is anything with a
    ``render(view_args) -> str`` method (see ``replykit.views.ViewTemplate``).
    """

    media_type = "text/html"

    def __init__(self, layout: str = "", filename: str = "",
                 view_args: Optional[Dict[str, Any]] = None, template: Any = None):
        self.layout = layout
        self.filename = filename
        self.view_args: Dict[str, Any] = view_args if view_args is not None else {}
        self.template = template

    def render(self, output: BinaryIO, request: Optional[Request] = None, pretty: bool = False) -> None:
        if self.template is None:
            raise RenderError("HTML renderer has no template")

        try:
            page = self.template.render(self.view_args)
        except Exception as e:
            raise RenderError(f"Unable to render template {getattr(self.template, 'name', '')}: {e}", e)

        output.write(page.encode("utf-8"))
