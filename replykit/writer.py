"""
Buffered response writer handed to the static server and the engine.

The writer collects status, headers and body; the transport adapter
serializes it once the request has been handled.
"""

import gzip
import logging
from http import HTTPStatus
from typing import List, Optional, Tuple

from .models import (
    HEADER_CONTENT_ENCODING,
    HEADER_CONTENT_LENGTH,
    HEADER_VARY,
    MultiValueHeaders,
)

logger = logging.getLogger(__name__)

# Bodies smaller than this are not worth compressing.
GZIP_MIN_SIZE = 256


class ResponseWriter:
    """HTTP response that buffers data and is finalized by the transport."""

    def __init__(self, gzip_level: int = 5):
        self.status_code: int = HTTPStatus.OK
        self.headers = MultiValueHeaders()
        self._body_parts: List[bytes] = []
        self._header_written = False
        self._gzip = False
        self._gzip_level = gzip_level

    @property
    def written(self) -> bool:
        """True once a status has been committed."""
        return self._header_written

    def write_header(self, code: int) -> None:
        """Commit the status code. Later calls are ignored with a warning."""
        if self._header_written:
            logger.warning(f"Response status already written ({int(self.status_code)}), ignoring {int(code)}")
            return
        self.status_code = code
        self._header_written = True

    def write(self, data) -> int:
        """Append body data; commits a 200 status if none was written."""
        if not self._header_written:
            self.write_header(HTTPStatus.OK)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._body_parts.append(bytes(data))
        return len(data)

    def enable_gzip(self) -> None:
        """Compress the body on finalize."""
        self._gzip = True

    @property
    def gzip_enabled(self) -> bool:
        return self._gzip

    def body_bytes(self) -> bytes:
        return b"".join(self._body_parts)

    def finalize(self) -> Tuple[int, List[Tuple[str, str]], bytes]:
        """Return (status, header pairs, body) ready for the wire."""
        body = self.body_bytes()

        no_body = self.status_code in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED) \
            or 100 <= self.status_code < 200
        if no_body:
            body = b""
        elif (self._gzip and len(body) >= GZIP_MIN_SIZE
              and self.status_code != HTTPStatus.PARTIAL_CONTENT
              and HEADER_CONTENT_ENCODING not in self.headers):
            body = gzip.compress(body, compresslevel=self._gzip_level)
            self.headers.set(HEADER_CONTENT_ENCODING, "gzip")
            self.headers.add(HEADER_VARY, "Accept-Encoding")

        if no_body:
            self.headers.discard(HEADER_CONTENT_LENGTH)
        elif HEADER_CONTENT_LENGTH not in self.headers or self.headers.get(HEADER_CONTENT_ENCODING) == "gzip":
            self.headers.set(HEADER_CONTENT_LENGTH, str(len(body)))

        return int(self.status_code), self.headers.items_all(), body

    def header_value(self, name: str) -> Optional[str]:
        return self.headers.get(name)
