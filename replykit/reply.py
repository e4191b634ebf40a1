"""
Reply: the per-request response builder.

Controllers describe the response through chained calls::

    ctx.reply.created().header("X-Request-Id", rid).json({"id": 42})

Every builder method returns the same ``Reply`` instance. Nothing here
touches the wire; the engine consumes the finished Reply.
"""

from http import HTTPStatus
from http.cookies import Morsel
from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Union
from urllib.parse import quote

from .config import CONTENT_TYPE_HTML, CONTENT_TYPE_JSON, CONTENT_TYPE_TEXT, CONTENT_TYPE_XML
from .content_renderers import (
    BinaryRenderer,
    ContentRenderer,
    HTMLRenderer,
    JSONRenderer,
    TextRenderer,
    XMLRenderer,
)
from .models import HEADER_CONTENT_DISPOSITION, HEADER_CONTENT_TYPE, MultiValueHeaders

# Builder method name -> status it sets.
STATUS_METHODS: Dict[str, HTTPStatus] = {
    "ok": HTTPStatus.OK,
    "created": HTTPStatus.CREATED,
    "accepted": HTTPStatus.ACCEPTED,
    "no_content": HTTPStatus.NO_CONTENT,
    "moved_permanently": HTTPStatus.MOVED_PERMANENTLY,
    "found": HTTPStatus.FOUND,
    "temporary_redirect": HTTPStatus.TEMPORARY_REDIRECT,
    "bad_request": HTTPStatus.BAD_REQUEST,
    "unauthorized": HTTPStatus.UNAUTHORIZED,
    "forbidden": HTTPStatus.FORBIDDEN,
    "not_found": HTTPStatus.NOT_FOUND,
    "method_not_allowed": HTTPStatus.METHOD_NOT_ALLOWED,
    "conflict": HTTPStatus.CONFLICT,
    "internal_server_error": HTTPStatus.INTERNAL_SERVER_ERROR,
    "service_unavailable": HTTPStatus.SERVICE_UNAVAILABLE,
}


def content_disposition(kind: str, filename: str) -> str:
    """Build a Content-Disposition value.

    Names that do not fit in latin-1 use the RFC 6266 ``filename*`` form.
    """
    try:
        filename.encode("latin-1")
    except UnicodeEncodeError:
        return f"{kind}; filename*=UTF-8''{quote(filename, safe='')}"
    return f"{kind}; filename={filename}"


class Reply:
    """Fluent builder for one HTTP response."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Restore the initial state so the instance can serve another request."""
        self.status_code: int = HTTPStatus.OK
        self.content_type: str = ""
        self.headers: MultiValueHeaders = MultiValueHeaders()
        self.renderer: Optional[ContentRenderer] = None
        self.body: Optional[BytesIO] = None
        self.cookies: List[Morsel] = []
        self.redirect_url: str = ""
        self.is_redirect: bool = False
        self.is_done: bool = False
        self.gzip: bool = True

    # Status codes

    def status(self, code: int) -> "Reply":
        self.status_code = code
        return self

    def ok(self) -> "Reply":
        """200 OK, RFC 7231 6.3.1."""
        return self.status(HTTPStatus.OK)

    def created(self) -> "Reply":
        """201 Created, RFC 7231 6.3.2."""
        return self.status(HTTPStatus.CREATED)

    def accepted(self) -> "Reply":
        """202 Accepted, RFC 7231 6.3.3."""
        return self.status(HTTPStatus.ACCEPTED)

    def no_content(self) -> "Reply":
        """204 No Content, RFC 7231 6.3.5."""
        return self.status(HTTPStatus.NO_CONTENT)

    def moved_permanently(self) -> "Reply":
        """301 Moved Permanently, RFC 7231 6.4.2."""
        return self.status(HTTPStatus.MOVED_PERMANENTLY)

    def found(self) -> "Reply":
        """302 Found, RFC 7231 6.4.3."""
        return self.status(HTTPStatus.FOUND)

    def temporary_redirect(self) -> "Reply":
        """307 Temporary Redirect, RFC 7231 6.4.7."""
        return self.status(HTTPStatus.TEMPORARY_REDIRECT)

    def bad_request(self) -> "Reply":
        """400 Bad Request, RFC 7231 6.5.1."""
        return self.status(HTTPStatus.BAD_REQUEST)

    def unauthorized(self) -> "Reply":
        """401 Unauthorized, RFC 7235 3.1."""
        return self.status(HTTPStatus.UNAUTHORIZED)

    def forbidden(self) -> "Reply":
        """403 Forbidden, RFC 7231 6.5.3."""
        return self.status(HTTPStatus.FORBIDDEN)

    def not_found(self) -> "Reply":
        """404 Not Found, RFC 7231 6.5.4."""
        return self.status(HTTPStatus.NOT_FOUND)

    def method_not_allowed(self) -> "Reply":
        """405 Method Not Allowed, RFC 7231 6.5.5."""
        return self.status(HTTPStatus.METHOD_NOT_ALLOWED)

    def conflict(self) -> "Reply":
        """409 Conflict, RFC 7231 6.5.8."""
        return self.status(HTTPStatus.CONFLICT)

    def internal_server_error(self) -> "Reply":
        """500 Internal Server Error, RFC 7231 6.6.1."""
        return self.status(HTTPStatus.INTERNAL_SERVER_ERROR)

    def service_unavailable(self) -> "Reply":
        """503 Service Unavailable, RFC 7231 6.6.4."""
        return self.status(HTTPStatus.SERVICE_UNAVAILABLE)

    # Content types and renderers

    def set_content_type(self, content_type: str) -> "Reply":
        """Set the response Content-Type; an empty value clears it."""
        self.content_type = content_type
        return self

    def is_content_type_set(self) -> bool:
        return bool(self.content_type)

    def _default_content_type(self, content_type: str) -> None:
        if not self.is_content_type_set():
            self.set_content_type(content_type)

    def json(self, data: Any) -> "Reply":
        """Render ``data`` as JSON (``application/json; charset=utf-8``).

        Output is indented when ``render.pretty`` is enabled.
        """
        self.renderer = JSONRenderer(data)
        self._default_content_type(CONTENT_TYPE_JSON)
        return self

    def jsonp(self, data: Any, callback: str = "") -> "Reply":
        """Render ``data`` as JSONP.

        An empty ``callback`` falls back to the ``callback`` query parameter.
        """
        self.renderer = JSONRenderer(data, is_jsonp=True, callback=callback)
        self._default_content_type(CONTENT_TYPE_JSON)
        return self

    def xml(self, data: Any) -> "Reply":
        self.renderer = XMLRenderer(data)
        self._default_content_type(CONTENT_TYPE_XML)
        return self

    def text(self, fmt: str, *values: Any) -> "Reply":
        """Render plain text; ``values`` are applied with ``%`` formatting."""
        self.renderer = TextRenderer(fmt, values)
        self._default_content_type(CONTENT_TYPE_TEXT)
        return self

    def binary(self, data: bytes) -> "Reply":
        """Write raw bytes. Content-Type is detected later if not set."""
        return self.read_from(BytesIO(data))

    def read_from(self, reader: BinaryIO) -> "Reply":
        """Copy ``reader`` into the response; it is closed after serving."""
        self.renderer = BinaryRenderer(reader=reader)
        return self

    def file(self, path: Union[str, Path]) -> "Reply":
        """Send a file. Content-Type is detected from the name if not set."""
        self.renderer = BinaryRenderer(path=path)
        return self

    def file_download(self, path: Union[str, Path], target_name: str) -> "Reply":
        """Send a file as a download (``Content-Disposition: attachment``)."""
        self.header(HEADER_CONTENT_DISPOSITION, content_disposition("attachment", target_name))
        return self.file(path)

    def file_inline(self, path: Union[str, Path], target_name: str) -> "Reply":
        """Send a file for display in the browser (``Content-Disposition: inline``)."""
        self.header(HEADER_CONTENT_DISPOSITION, content_disposition("inline", target_name))
        return self.file(path)

    def html(self, data: Optional[Dict[str, Any]] = None) -> "Reply":
        """Render the conventional template for the current controller action.

        With controller ``App``, action ``Login`` and ``view.ext`` ``.html``
        the template is ``views/pages/app/login.html`` (or
        ``views/pages/App/Login.html`` when ``view.case_sensitive`` is on),
        wrapped in the ``master.html`` layout.
        """
        return self.html_layout_file("", "", data)

    def html_layout(self, layout: str, data: Optional[Dict[str, Any]] = None) -> "Reply":
        return self.html_layout_file(layout, "", data)

    def html_file(self, filename: str, data: Optional[Dict[str, Any]] = None) -> "Reply":
        return self.html_layout_file("", filename, data)

    def html_layout_file(self, layout: str, filename: str, data: Optional[Dict[str, Any]] = None) -> "Reply":
        self.renderer = HTMLRenderer(layout=layout, filename=filename, view_args=data)
        self._default_content_type(CONTENT_TYPE_HTML)
        return self

    def is_html(self) -> bool:
        return self.content_type.split(";")[0].strip().lower() == "text/html"

    # Redirects

    def redirect(self, url: str, code: int = HTTPStatus.FOUND) -> "Reply":
        """Redirect to ``url``, 302 unless another status is given."""
        self.is_redirect = True
        self.redirect_url = url
        return self.status(code)

    # Headers, cookies and flags

    def header(self, key: str, value: str) -> "Reply":
        """Set a header, replacing existing values; an empty value deletes it.

        ``Content-Type`` is kept in ``content_type`` rather than in the header
        map so both ways of setting it stay in agreement.
        """
        if key.lower() == HEADER_CONTENT_TYPE.lower():
            return self.set_content_type(value)

        if value:
            self.headers.set(key, value)
        else:
            self.headers.discard(key)
        return self

    def header_append(self, key: str, value: str) -> "Reply":
        """Add a header value without replacing existing ones."""
        if key.lower() == HEADER_CONTENT_TYPE.lower():
            return self.set_content_type(value)

        self.headers.add(key, value)
        return self

    def cookie(self, cookie: Morsel) -> "Reply":
        self.cookies.append(cookie)
        return self

    def done(self) -> "Reply":
        """Mark the response as already written; the engine will leave it alone."""
        self.is_done = True
        return self

    def disable_gzip(self) -> "Reply":
        self.gzip = False
        return self

    def __repr__(self) -> str:
        return (f"Reply(status_code={int(self.status_code)}, content_type={self.content_type!r}, "
                f"renderer={type(self.renderer).__name__ if self.renderer else None})")


def make_cookie(name: str, value: str, **attributes: Any) -> Morsel:
    """Build a cookie for ``Reply.cookie``.

    Attribute names follow ``http.cookies.Morsel`` (``path``, ``max_age`` /
    ``max-age``, ``httponly``, ``secure``, ``samesite``, ...).
    """
    morsel: Morsel = Morsel()
    morsel.set(name, value, value)
    for key, attr in attributes.items():
        morsel[key.replace("_", "-")] = attr
    return morsel
