"""
Static file and directory delivery.

Routes come from the routing layer as ``StaticRoute`` descriptors: a file
route points at one file below ``<base>/static``, a directory route maps
the ``filepath`` path parameter below ``<base>/<route.dir>``.
"""

import html
import logging
import mimetypes
import os
import stat
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, List, Optional, Tuple
from urllib.parse import quote

from .config import CONTENT_TYPE_HTML, CONTENT_TYPE_OCTET_STREAM
from .exceptions import StaticFileNotFoundError
from .models import (
    HEADER_CONTENT_LENGTH,
    HEADER_CONTENT_TYPE,
    HEADER_LOCATION,
    Request,
    format_http_date,
)
from .writer import ResponseWriter

if TYPE_CHECKING:
    from .engine import Context, Engine

logger = logging.getLogger(__name__)

DIR_STATIC = "static"

GZIP_EXTENSIONS = frozenset({
    ".css", ".js", ".html", ".htm", ".json", ".xml",
    ".txt", ".csv", ".ttf", ".otf", ".eot",
})

_COPY_CHUNK_SIZE = 64 * 1024

# reserved and already-escaped characters are kept in redirect targets
REDIRECT_SAFE = "/:?#[]@!$&'()*+,;=%"


def check_gzip_required(file_path: str) -> bool:
    """True when a static file with this name should be gzip compressed."""
    return os.path.splitext(file_path)[1].lower() in GZIP_EXTENSIONS


def get_http_dir_and_file_path(ctx: "Context", base_dir: Path) -> Tuple[Path, str]:
    """Return the directory to serve from and the requested path inside it."""
    route = ctx.route
    if route.is_file():
        return base_dir / DIR_STATIC, route.file
    return base_dir / route.dir, ctx.req.path_value("filepath")


def resolve_static_path(http_dir: Path, file_path: str) -> Path:
    """Join ``file_path`` onto ``http_dir`` without leaving it.

    Raises:
        FileNotFoundError: the path escapes ``http_dir``
    """
    root = http_dir.resolve()
    target = (root / file_path.lstrip("/")).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        raise FileNotFoundError(file_path)
    return target


def serve_static(engine: "Engine", ctx: "Context") -> None:
    """Serve the static file or directory selected by ``ctx.route``.

    Raises:
        StaticFileNotFoundError: nothing exists at the resolved path
    """
    http_dir, file_path = get_http_dir_and_file_path(ctx, engine.base_dir)
    logger.debug(f"Dir: {http_dir}, Filepath: {file_path}")

    res, req = ctx.res, ctx.req
    try:
        target = resolve_static_path(http_dir, file_path)
        info = target.stat()
        f = target.open("rb") if stat.S_ISREG(info.st_mode) else None
    except FileNotFoundError:
        logger.error(f"file not found: {req.path}")
        raise StaticFileNotFoundError(req.path)
    except PermissionError:
        logger.warning(f"permission issue: {req.path}")
        _write_plain(ctx, HTTPStatus.FORBIDDEN, "403 Forbidden")
        return
    except (OSError, ValueError) as e:
        logger.error(f"unable to open {req.path}: {e}")
        _write_plain(ctx, HTTPStatus.INTERNAL_SERVER_ERROR, "500 Internal Server Error")
        return

    ctx.reply.gzip = check_gzip_required(file_path)
    engine.apply_gzip(ctx)
    engine.write_headers(ctx)
    ctx.reply.done()

    if f is not None:
        with f:
            engine.publish_on_pre_reply(ctx)
            modtime = datetime.fromtimestamp(info.st_mtime, tz=timezone.utc)
            serve_content(res, req, os.path.basename(file_path), modtime, f, info.st_size)
            engine.publish_on_after_reply(ctx)
        return

    if stat.S_ISDIR(info.st_mode) and ctx.route.list_dir:
        if not req.path.endswith("/"):
            location = req.path + "/"
            logger.debug(f"redirecting to dir: {location}")
            write_redirect(res, req, location, HTTPStatus.FOUND)
            return

        engine.publish_on_pre_reply(ctx)
        directory_list(res, req, target, engine.config.format.datetime)
        engine.publish_on_after_reply(ctx)
        return

    logger.warning(f"directory listing not allowed: {req.path}")
    _write_plain(ctx, HTTPStatus.FORBIDDEN, "403 Directory listing not allowed")


def _write_plain(ctx: "Context", code: int, message: str) -> None:
    ctx.res.headers.set(HEADER_CONTENT_TYPE, "text/plain; charset=utf-8")
    ctx.res.write_header(code)
    ctx.res.write(message)
    ctx.reply.done()


def write_redirect(res: ResponseWriter, req: Request, location: str, code: int) -> None:
    # header values must stay latin-1; non-ASCII is percent-encoded
    location = quote(location, safe=REDIRECT_SAFE)
    res.headers.set(HEADER_LOCATION, location)
    if req.method in ("GET", "HEAD"):
        res.headers.set(HEADER_CONTENT_TYPE, CONTENT_TYPE_HTML)
    res.write_header(code)
    if req.method == "GET":
        phrase = HTTPStatus(code).phrase
        res.write(f'<a href="{html.escape(location)}">{phrase}</a>.\n')


def _entry_mtime(entry: os.DirEntry) -> float:
    try:
        return entry.stat().st_mtime
    except OSError:
        # dangling symlink
        return entry.stat(follow_symlinks=False).st_mtime


def directory_list(res: ResponseWriter, req: Request, path: Path, datetime_format: str) -> None:
    """Write an HTML index of ``path``, sorted by name."""
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
        rows = []
        for entry in entries:
            name = entry.name + "/" if entry.is_dir() else entry.name
            mtime = datetime.fromtimestamp(_entry_mtime(entry))
            rows.append((name, mtime))
    except OSError as e:
        logger.error(f"Error reading directory {path}: {e}")
        res.write_header(HTTPStatus.INTERNAL_SERVER_ERROR)
        res.write("Error reading directory")
        return

    req_path = html.escape(req.path)
    res.headers.set(HEADER_CONTENT_TYPE, CONTENT_TYPE_HTML)
    res.write("<html>\n")
    res.write(f"<head><title>Listing of {req_path}</title></head>\n")
    res.write("<body bgcolor=\"white\">\n")
    res.write(f"<h1>Listing of {req_path}</h1><hr>\n")
    res.write("<pre><table border=\"0\">\n")
    res.write("<tr><td collapse=\"2\"><a href=\"../\">../</a></td></tr>\n")
    for name, mtime in rows:
        # '?' and '#' in names must stay part of the path
        res.write(
            f"<tr><td><a href=\"{quote(name)}\">{html.escape(name)}</a></td>"
            f"<td width=\"200px\" align=\"right\">{mtime.strftime(datetime_format)}</td></tr>\n"
        )
    res.write("</table></pre>\n")
    res.write("<hr></body>\n")
    res.write("</html>\n")


def serve_content(res: ResponseWriter, req: Request, name: str, modtime: Optional[datetime],
                  content: BinaryIO, size: Optional[int] = None) -> None:
    """Write ``content`` honoring If-Modified-Since, Range and If-Range.

    Content-Type is taken from the writer headers when already present,
    otherwise guessed from ``name``. ``size`` defaults to the length of the
    seekable ``content``.
    """
    if size is None:
        size = content.seek(0, os.SEEK_END)

    if modtime is not None:
        modtime = modtime.replace(microsecond=0)
        res.headers.set("Last-Modified", format_http_date(modtime))

        if req.method in ("GET", "HEAD"):
            since = req.get_if_modified_since()
            if since is not None and modtime <= since:
                res.headers.discard(HEADER_CONTENT_TYPE)
                res.headers.discard(HEADER_CONTENT_LENGTH)
                res.write_header(HTTPStatus.NOT_MODIFIED)
                return

    if HEADER_CONTENT_TYPE not in res.headers:
        res.headers.set(HEADER_CONTENT_TYPE, guess_content_type(name))

    res.headers.set("Accept-Ranges", "bytes")

    start, length = 0, size
    code: int = HTTPStatus.OK
    range_header = req.headers.get("Range")
    if range_header and _if_range_allows(req, modtime):
        ranges = parse_range_header(range_header, size)
        if not ranges:
            res.headers.set("Content-Range", f"bytes */{size}")
            res.headers.set(HEADER_CONTENT_TYPE, "text/plain; charset=utf-8")
            res.write_header(HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE)
            res.write("416 Requested Range Not Satisfiable")
            return

        # TODO: answer multi-range requests with multipart/byteranges
        range_start, range_end = ranges[0]
        start, length = range_start, range_end - range_start + 1
        code = HTTPStatus.PARTIAL_CONTENT
        res.headers.set("Content-Range", f"bytes {range_start}-{range_end}/{size}")

    res.headers.set(HEADER_CONTENT_LENGTH, str(length))
    res.write_header(code)

    if req.method == "HEAD":
        return

    content.seek(start)
    remaining = length
    while remaining > 0:
        chunk = content.read(min(_COPY_CHUNK_SIZE, remaining))
        if not chunk:
            break
        res.write(chunk)
        remaining -= len(chunk)


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name, strict=False)
    if content_type is None:
        return CONTENT_TYPE_OCTET_STREAM
    if content_type.startswith("text/") or content_type in ("application/javascript", "application/json"):
        content_type = f"{content_type}; charset=utf-8"
    return content_type


def parse_range_header(header: str, size: int) -> List[Tuple[int, int]]:
    """Parse a ``bytes=`` Range header into inclusive (start, end) pairs.

    Returns an empty list when the header is malformed or no range is
    satisfiable for a representation of ``size`` bytes.
    """
    if not header.startswith("bytes="):
        return []

    ranges: List[Tuple[int, int]] = []
    for part in header[len("bytes="):].split(","):
        part = part.strip()
        if not part or "-" not in part:
            return []
        first, _, last = part.partition("-")
        try:
            if not first:
                # suffix range: last N bytes
                suffix = int(last)
                if suffix <= 0:
                    continue
                start, end = max(0, size - suffix), size - 1
            else:
                start = int(first)
                end = int(last) if last else size - 1
        except ValueError:
            return []

        if start < 0 or end < start:
            return []
        if start >= size:
            continue
        ranges.append((start, min(end, size - 1)))
    return ranges


def _if_range_allows(req: Request, modtime: Optional[datetime]) -> bool:
    """Apply If-Range: ranges are only honored when the validator still matches."""
    if_range = req.get_if_range()
    if not if_range:
        return True
    if modtime is None or if_range.startswith(("\"", "W/")):
        return False
    return if_range == format_http_date(modtime)
