"""
The response writing stage.

``Engine`` owns the application wide pieces (config, view engine, hooks)
and turns a finished ``Reply`` into status, headers and body on a
``ResponseWriter``. ``Context`` carries everything for one request.
"""

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from . import static
from .config import CONTENT_TYPE_HTML, CONTENT_TYPE_OCTET_STREAM, AppConfig, default_content_type
from .content_renderers import BinaryRenderer
from .exceptions import RenderError
from .models import HEADER_CONTENT_TYPE, Request, StaticRoute
from .reply import Reply
from .views import DIR_VIEWS, ViewEngine, ViewRegistry, ViewResolver, init_view_engine
from .writer import ResponseWriter

logger = logging.getLogger(__name__)

Hook = Callable[["Context"], None]

NOT_FOUND_PAGE = (
    "<!DOCTYPE html>\n"
    "<html>\n"
    "<head><title>404 Not Found</title></head>\n"
    "<body><h1>404 Not Found</h1></body>\n"
    "</html>\n"
)


@dataclass
class Context:
    """Per-request state handed to controllers and hooks."""

    req: Request
    res: ResponseWriter
    reply: Reply = field(default_factory=Reply)
    route: Optional[StaticRoute] = None
    controller: str = ""
    action: str = ""
    view_args: Dict[str, Any] = field(default_factory=dict)

    def add_view_arg(self, key: str, value: Any) -> "Context":
        """Make ``value`` available to the template as ``key``."""
        self.view_args[key] = value
        return self


class Engine:
    """Writes replies for one application.

    Args:
        config: application configuration
        registry: view engines and template functions; locked once serving starts
        base_dir: application base directory holding ``static/`` and ``views/``
        view_engine: optional externally managed view engine
    """

    def __init__(self, config: Optional[AppConfig] = None, registry: Optional[ViewRegistry] = None,
                 base_dir: Union[str, Path] = ".", view_engine: Optional[ViewEngine] = None):
        from . import __version__

        self.config = config if config is not None else AppConfig()
        self.registry = registry if registry is not None else ViewRegistry()
        self.base_dir = Path(base_dir)
        self._pre_reply_hooks: List[Hook] = []
        self._after_reply_hooks: List[Hook] = []
        self.not_found_handler: Optional[Hook] = None

        engine = init_view_engine(self.base_dir / DIR_VIEWS, self.config, self.registry, view_engine)
        self.view_resolver = ViewResolver(engine, self.config, view_engine is not None, __version__)

    @property
    def view_engine(self) -> Optional[ViewEngine]:
        return self.view_resolver.view_engine

    # Hooks

    def on_pre_reply(self, hook: Hook) -> Hook:
        """Register ``hook`` to run just before a reply is written.

        Usable as a decorator.
        """
        self._pre_reply_hooks.append(hook)
        return hook

    def on_after_reply(self, hook: Hook) -> Hook:
        """Register ``hook`` to run once a reply has been written."""
        self._after_reply_hooks.append(hook)
        return hook

    def publish_on_pre_reply(self, ctx: Context) -> None:
        for hook in self._pre_reply_hooks:
            hook(ctx)

    def publish_on_after_reply(self, ctx: Context) -> None:
        for hook in self._after_reply_hooks:
            hook(ctx)

    # Request handling

    def new_context(self, request: Request, route: Optional[StaticRoute] = None,
                    controller: str = "", action: str = "") -> Context:
        return Context(
            req=request,
            res=ResponseWriter(gzip_level=self.config.gzip.level),
            route=route,
            controller=controller,
            action=action,
        )

    def serve_static(self, ctx: Context) -> None:
        """Serve ``ctx.route``; see ``replykit.static.serve_static``."""
        static.serve_static(self, ctx)

    def resolve_view(self, ctx: Context) -> None:
        self.view_resolver.resolve_view(ctx)

    def apply_gzip(self, ctx: Context) -> None:
        """Enable compression when config, reply and client all allow it."""
        if self.config.gzip.enable and ctx.reply.gzip and ctx.req.accepts_gzip():
            ctx.res.enable_gzip()

    def write_headers(self, ctx: Context) -> None:
        for name, value in ctx.reply.headers.items_all():
            ctx.res.headers.add(name, value)

    def handle_not_found(self, ctx: Context) -> None:
        """Write the 404 response, through ``not_found_handler`` when set."""
        if self.not_found_handler is not None:
            self.not_found_handler(ctx)
            if ctx.reply.is_done or ctx.res.written:
                return
            self.write_reply(ctx)
            return

        res = ctx.res
        res.headers.set(HEADER_CONTENT_TYPE, CONTENT_TYPE_HTML)
        res.write_header(HTTPStatus.NOT_FOUND)
        res.write(NOT_FOUND_PAGE)
        ctx.reply.done()

    def write_reply(self, ctx: Context) -> None:
        """Write ``ctx.reply`` onto ``ctx.res``.

        Replies already marked done (static files, hand written responses)
        are left untouched.
        """
        reply, res = ctx.reply, ctx.res
        if reply.is_done:
            return

        if reply.is_redirect:
            self.write_headers(ctx)
            self._write_cookies(ctx)
            self.publish_on_pre_reply(ctx)
            static.write_redirect(res, ctx.req, reply.redirect_url, reply.status_code)
            reply.done()
            self.publish_on_after_reply(ctx)
            return

        if not reply.is_content_type_set():
            content_type = default_content_type(self.config)
            if content_type is None and isinstance(reply.renderer, BinaryRenderer):
                content_type = self._detect_content_type(reply.renderer)
            if content_type is not None:
                reply.set_content_type(content_type)

        self.resolve_view(ctx)

        if reply.renderer is not None:
            body = BytesIO()
            try:
                reply.renderer.render(body, ctx.req, pretty=self.config.render.pretty)
            except RenderError as e:
                logger.error(f"Render response body error: {e}", exc_info=True)
                self._write_render_failure(ctx)
                return
            reply.body = body

        if reply.content_type:
            res.headers.set(HEADER_CONTENT_TYPE, reply.content_type)
        self.write_headers(ctx)
        self._write_cookies(ctx)
        self.apply_gzip(ctx)

        self.publish_on_pre_reply(ctx)
        res.write_header(reply.status_code)
        if reply.body is not None:
            res.write(reply.body.getvalue())
        reply.done()
        self.publish_on_after_reply(ctx)

    def _detect_content_type(self, renderer: BinaryRenderer) -> str:
        if renderer.path is not None:
            return static.guess_content_type(renderer.path.name)
        return CONTENT_TYPE_OCTET_STREAM

    def _write_cookies(self, ctx: Context) -> None:
        for cookie in ctx.reply.cookies:
            ctx.res.headers.add("Set-Cookie", cookie.OutputString())

    def _write_render_failure(self, ctx: Context) -> None:
        res = ctx.res
        res.headers.set(HEADER_CONTENT_TYPE, "text/plain; charset=utf-8")
        res.write_header(HTTPStatus.INTERNAL_SERVER_ERROR)
        res.write("500 Internal Server Error")
        ctx.reply.done()
