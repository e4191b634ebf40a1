"""
Core data models shared by the reply builder, static server and view layer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTENT_DISPOSITION = "Content-Disposition"
HEADER_CONTENT_ENCODING = "Content-Encoding"
HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_LOCATION = "Location"
HEADER_VARY = "Vary"


class MultiValueHeaders:
    """
    Case-insensitive header container that keeps every value of a header.

    Lookups ignore case, the casing used by the first ``add``/``set`` is kept
    for serialization.

    Example::

        headers = MultiValueHeaders()
        headers.add('Set-Cookie', 'a=1')
        headers.add('set-cookie', 'b=2')
        headers.get_all('SET-COOKIE')  # ['a=1', 'b=2']
    """

    def __init__(self, data=None):
        # lowercase name -> [(original name, value), ...]
        self._headers: Dict[str, List[Tuple[str, str]]] = {}

        if data is None:
            return
        if isinstance(data, MultiValueHeaders):
            self._headers = {k: list(v) for k, v in data._headers.items()}
        elif isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, list):
                    for v in value:
                        self.add(key, v)
                else:
                    self.add(key, value)
        else:
            for key, value in data:
                self.add(key, value)

    def add(self, name: str, value: str) -> None:
        """Append a value, keeping the existing ones."""
        self._headers.setdefault(name.lower(), []).append((name, value))

    def set(self, name: str, value: str) -> None:
        """Replace every value of ``name`` with a single value."""
        self._headers[name.lower()] = [(name, value)]

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of ``name`` or ``default``."""
        if not isinstance(name, str):
            return default
        values = self._headers.get(name.lower())
        if values:
            return values[0][1]
        return default

    def get_all(self, name: str) -> List[str]:
        return [value for _, value in self._headers.get(name.lower(), [])]

    def discard(self, name: str) -> None:
        """Remove ``name`` if present."""
        self._headers.pop(name.lower(), None)

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __delitem__(self, name: str) -> None:
        if not isinstance(name, str) or name.lower() not in self._headers:
            raise KeyError(name)
        del self._headers[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        for values in self._headers.values():
            yield values[0][0]

    def __len__(self) -> int:
        return len(self._headers)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MultiValueHeaders):
            return self._headers == other._headers
        if isinstance(other, dict):
            return self.to_dict() == other
        return NotImplemented

    def keys(self) -> List[str]:
        return list(self)

    def items(self) -> List[Tuple[str, str]]:
        """Return (name, first value) pairs."""
        return [(values[0][0], values[0][1]) for values in self._headers.values()]

    def items_all(self) -> List[Tuple[str, str]]:
        """Return every (name, value) pair, duplicates included."""
        result: List[Tuple[str, str]] = []
        for values in self._headers.values():
            result.extend(values)
        return result

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def copy(self) -> "MultiValueHeaders":
        return MultiValueHeaders(self)

    def __repr__(self) -> str:
        return f"MultiValueHeaders({self.items_all()!r})"


@dataclass
class Request:
    """An incoming HTTP request as seen by the response layer.

    The transport fills this in; the routing layer adds ``path_params``.
    """

    method: str
    path: str
    headers: Union[Dict[str, str], MultiValueHeaders] = field(default_factory=MultiValueHeaders)
    scheme: str = "http"
    host: str = ""
    query_params: Dict[str, str] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)
        self.method = self.method.upper()
        if not self.host:
            self.host = self.headers.get("Host", "")

    def path_value(self, name: str) -> str:
        """Return a path parameter captured by the router, or ""."""
        return self.path_params.get(name, "")

    def query_value(self, name: str) -> str:
        return self.query_params.get(name, "")

    def get_accept_encoding(self) -> str:
        return self.headers.get("Accept-Encoding", "")

    def accepts_gzip(self) -> bool:
        encodings = [e.strip().split(";")[0] for e in self.get_accept_encoding().split(",")]
        return "gzip" in encodings

    def get_if_modified_since(self) -> Optional[datetime]:
        """Parse If-Modified-Since as a UTC datetime, None when absent or invalid."""
        return _parse_http_date(self.headers.get("If-Modified-Since"))

    def get_if_range(self) -> Optional[str]:
        return self.headers.get("If-Range")


@dataclass
class StaticRoute:
    """Static route descriptor supplied by the routing layer.

    Exactly one of ``file`` and ``dir`` is set. ``file`` is relative to the
    application's ``static`` directory, ``dir`` to the application base
    directory.
    """

    name: str
    path: str
    dir: str = ""
    file: str = ""
    list_dir: bool = False

    def is_file(self) -> bool:
        return bool(self.file)


def format_http_date(value: datetime) -> str:
    """Format a datetime as an IMF-fixdate ("Mon, 01 Jan 2024 00:00:00 GMT")."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%a, %d %b %Y %H:%M:%S GMT")


def _parse_http_date(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
