"""
Response layer for web applications: a fluent reply builder, body renderers,
a static file server and convention based HTML views.

Controllers describe responses through ``Reply``; the ``Engine`` writes them
to a buffered ``ResponseWriter`` which the ASGI adapter sends to the client.
"""

from http import HTTPStatus

from .config import AppConfig, default_content_type
from .content_renderers import (
    BinaryRenderer,
    ContentRenderer,
    HTMLRenderer,
    JSONRenderer,
    TextRenderer,
    XMLRenderer,
)
from .engine import Context, Engine
from .exceptions import (
    DuplicateEngineError,
    NilEngineError,
    RegistryLockedError,
    RenderError,
    ReplyKitError,
    StaticFileNotFoundError,
    TemplateEngineNotFoundError,
    ViewError,
    ViewResolutionError,
)
from .models import MultiValueHeaders, Request, StaticRoute
from .reply import Reply, make_cookie
from .server import ASGIAdapter, create_asgi_app
from .servers import HypercornDriver, ServerDriver, UvicornDriver, serve
from .views import JinjaViewEngine, ViewEngine, ViewRegistry, ViewResolver, init_view_engine
from .writer import ResponseWriter

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    "AppConfig",
    "default_content_type",
    "HTTPStatus",
    "Reply",
    "make_cookie",
    "Request",
    "StaticRoute",
    "MultiValueHeaders",
    "ResponseWriter",
    "Context",
    "Engine",
    "ContentRenderer",
    "JSONRenderer",
    "XMLRenderer",
    "TextRenderer",
    "BinaryRenderer",
    "HTMLRenderer",
    "ViewEngine",
    "JinjaViewEngine",
    "ViewRegistry",
    "ViewResolver",
    "init_view_engine",
    "ASGIAdapter",
    "create_asgi_app",
    "ServerDriver",
    "UvicornDriver",
    "HypercornDriver",
    "serve",
    "ReplyKitError",
    "StaticFileNotFoundError",
    "RenderError",
    "ViewError",
    "TemplateEngineNotFoundError",
    "DuplicateEngineError",
    "NilEngineError",
    "RegistryLockedError",
    "ViewResolutionError",
]
