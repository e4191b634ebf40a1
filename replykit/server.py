"""
ASGI adapter for replykit applications.

The adapter builds a ``Request`` from the ASGI scope, hands a fresh
``Context`` to the application handler, lets the engine write the reply
and sends the buffered response back to the ASGI server.
"""

import inspect
import logging
import urllib.parse
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .engine import Context, Engine
from .exceptions import StaticFileNotFoundError
from .models import MultiValueHeaders, Request

logger = logging.getLogger(__name__)

Handler = Callable[[Context], Union[None, Awaitable[None]]]


class ASGIAdapter:
    """
    ASGI application wrapping an ``Engine`` and a request handler.

    The handler receives the request ``Context``; it fills in ``ctx.reply``
    or serves a static route through ``engine.serve_static(ctx)``. It may be
    a plain function or a coroutine function.
    """

    def __init__(self, engine: Engine, handler: Handler):
        self.engine = engine
        self.handler = handler
        engine.registry.lock()

    async def __call__(self, scope: Dict[str, Any], receive, send):
        """ASGI application entry point."""
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = await self._asgi_to_request(scope, receive)
        ctx = self.engine.new_context(request)

        try:
            result = self.handler(ctx)
            if inspect.isawaitable(result):
                await result
            self.engine.write_reply(ctx)
        except StaticFileNotFoundError:
            self.engine.handle_not_found(ctx)
        except Exception:
            logger.error(f"Unhandled error while serving {request.method} {request.path}", exc_info=True)
            if not ctx.res.written:
                ctx.res.headers.set("Content-Type", "text/plain; charset=utf-8")
                ctx.res.write_header(HTTPStatus.INTERNAL_SERVER_ERROR)
                ctx.res.write("500 Internal Server Error")

        await self._send_response(ctx, send)

    async def _lifespan(self, receive, send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _asgi_to_request(self, scope: Dict[str, Any], receive) -> Request:
        """Convert the ASGI scope to a ``Request``; the body is drained and ignored."""
        headers = MultiValueHeaders()
        for header_name, header_value in scope.get("headers", []):
            headers.add(header_name.decode("latin-1"), header_value.decode("latin-1"))

        query_string = scope.get("query_string", b"").decode("utf-8")
        query_params = dict(urllib.parse.parse_qsl(query_string)) if query_string else {}

        host = headers.get("Host", "")
        if not host and scope.get("server"):
            server_host, server_port = scope["server"]
            host = f"{server_host}:{server_port}"

        more_body = True
        while more_body:
            message = await receive()
            more_body = message.get("more_body", False)

        return Request(
            method=scope["method"],
            path=scope["path"],
            headers=headers,
            scheme=scope.get("scheme", "http"),
            host=host,
            query_params=query_params,
        )

    async def _send_response(self, ctx: Context, send):
        status, header_items, body = ctx.res.finalize()
        if ctx.req.method == "HEAD":
            body = b""

        await send({
            "type": "http.response.start",
            "status": status,
            "headers": [[name.encode("latin-1"), value.encode("latin-1")] for name, value in header_items],
        })
        await send({
            "type": "http.response.body",
            "body": body,
        })


def create_asgi_app(engine: Engine, handler: Handler,
                    not_found_handler: Optional[Callable[[Context], None]] = None) -> ASGIAdapter:
    """
    Create an ASGI application.

    Args:
        engine: The engine writing replies
        handler: Called with the ``Context`` of every HTTP request
        not_found_handler: Replaces the built-in 404 page

    Returns:
        An ASGI-compatible application
    """
    if not_found_handler is not None:
        engine.not_found_handler = not_found_handler
    return ASGIAdapter(engine, handler)
