"""
Application configuration for the response layer.

Configuration is a small pydantic model tree addressed with dotted keys
(``view.engine``, ``render.default``, ...). It can be built from a nested
mapping or from ``REPLYKIT_*`` environment variables.
"""

import logging
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "REPLYKIT_"

CONTENT_TYPE_HTML = "text/html; charset=utf-8"
CONTENT_TYPE_JSON = "application/json; charset=utf-8"
CONTENT_TYPE_XML = "application/xml; charset=utf-8"
CONTENT_TYPE_TEXT = "text/plain; charset=utf-8"
CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"

_RENDER_DEFAULTS = {
    "html": CONTENT_TYPE_HTML,
    "xml": CONTENT_TYPE_XML,
    "json": CONTENT_TYPE_JSON,
    "text": CONTENT_TYPE_TEXT,
}


class _Section(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")


class ViewConfig(_Section):
    """``view.*`` settings."""

    engine: str = Field("jinja", description="Registered view engine name")
    ext: str = Field(".html", description="Template file extension")
    case_sensitive: bool = Field(False, description="Keep controller/action case in template paths")
    default_layout: bool = Field(True, description="Apply master<ext> when no layout is given")


class RenderConfig(_Section):
    """``render.*`` settings."""

    default: Optional[str] = Field(None, description="html, xml, json or text")
    pretty: bool = Field(False, description="Indent JSON and XML output")


class FormatConfig(_Section):
    """``format.*`` settings."""

    datetime: str = Field("%Y-%m-%d %H:%M:%S", description="strftime format used by listings")


class GzipConfig(_Section):
    """``gzip.*`` settings."""

    enable: bool = True
    level: int = Field(5, ge=1, le=9)


class AppConfig(_Section):
    """Root configuration object."""

    profile: str = "dev"
    view: ViewConfig = Field(default_factory=ViewConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    format: FormatConfig = Field(default_factory=FormatConfig)
    gzip: GzipConfig = Field(default_factory=GzipConfig)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None) -> "AppConfig":
        """Build a config from a nested mapping such as ``{"view": {"engine": "jinja"}}``."""
        return cls.model_validate(dict(data or {}))

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Build a config from environment variables.

        ``REPLYKIT_VIEW_CASE_SENSITIVE=true`` sets ``view.case_sensitive``,
        ``REPLYKIT_PROFILE=prod`` sets ``profile``. Unknown variables are
        ignored with a debug message.
        """
        environ = os.environ if environ is None else environ
        config = cls()
        for name, value in environ.items():
            if not name.startswith(prefix):
                continue
            key = _env_name_to_key(name[len(prefix):].lower())
            if key is None:
                logger.debug(f"Ignoring unknown config variable {name}")
                continue
            config.set_string(key, value)
        return config

    @property
    def is_prod(self) -> bool:
        return self.profile == "prod"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at a dotted key, or ``default`` when unknown."""
        node: Any = self
        for part in key.split("."):
            if not isinstance(node, BaseModel) or part not in type(node).model_fields:
                return default
            node = getattr(node, part)
        return node

    def set_string(self, key: str, value: str) -> None:
        """Assign a dotted key from its string form; pydantic coerces the type.

        Raises:
            KeyError: the key does not exist
            pydantic.ValidationError: the value does not fit the field
        """
        *sections, leaf = key.split(".")
        node: Any = self
        for part in sections:
            if part not in type(node).model_fields:
                raise KeyError(key)
            node = getattr(node, part)
        if not isinstance(node, BaseModel) or leaf not in type(node).model_fields:
            raise KeyError(key)
        setattr(node, leaf, value)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def default_content_type(config: Optional[AppConfig]) -> Optional[str]:
    """Content type configured by ``render.default``; None when unset or unknown."""
    if config is None or not config.render.default:
        return None
    return _RENDER_DEFAULTS.get(config.render.default.lower())


def _env_name_to_key(name: str) -> Optional[str]:
    fields = AppConfig.model_fields
    if name in fields and name not in _SECTIONS:
        return name
    section, _, leaf = name.partition("_")
    if section in _SECTIONS and leaf in _SECTIONS[section].model_fields:
        return f"{section}.{leaf}"
    return None


_SECTIONS = {
    "view": ViewConfig,
    "render": RenderConfig,
    "format": FormatConfig,
    "gzip": GzipConfig,
}
