#!/usr/bin/env python3
"""
Site Server Example for replykit

Serves an application directory laid out as::

    <base>/static/...            files served under /static/
    <base>/views/layouts/master.html
    <base>/views/pages/app/index.html

together with a small JSON API, using Uvicorn or Hypercorn.

Run with:
    python examples/site_server_example.py --base-dir ./mysite
    python examples/site_server_example.py --base-dir ./mysite --server hypercorn --http-version http2
"""

import argparse
import logging
import sys

from replykit import AppConfig, Engine, StaticRoute, ViewRegistry, serve

STATIC = StaticRoute(name="static", path="/static/*filepath", dir="static", list_dir=True)


def create_handler(engine: Engine):
    """Route requests to the static server, the API or the home page."""
    visits = {"count": 0}

    def handler(ctx):
        path = ctx.req.path
        if path.startswith("/static/"):
            ctx.route = STATIC
            ctx.req.path_params["filepath"] = path[len("/static/"):]
            engine.serve_static(ctx)
            return

        if path == "/api/visits":
            ctx.reply.json(visits)
            return

        if path == "/":
            visits["count"] += 1
            ctx.controller, ctx.action = "AppController", "Index"
            ctx.add_view_arg("visits", visits["count"])
            ctx.reply.html({"title": "replykit"})
            return

        if path == "/old-home":
            ctx.reply.redirect("/")
            return

        ctx.reply.not_found().text("No route for %s", path)

    return handler


def main():
    """Parse arguments and start the server."""
    parser = argparse.ArgumentParser(description="replykit site server")
    parser.add_argument("--base-dir", default=".", help="Application directory (default: .)")
    parser.add_argument("--server", choices=["uvicorn", "hypercorn"], default="uvicorn",
                        help="HTTP server to use (default: uvicorn)")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")
    parser.add_argument("--http-version", choices=["http1", "http2", "http3"], default="http1",
                        help="HTTP version (default: http1)")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"], default="info",
                        help="Log level (default: info)")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    engine = Engine(AppConfig.from_env(), ViewRegistry(), args.base_dir)
    try:
        serve(engine, create_handler(engine), server=args.server, host=args.host, port=args.port,
              http_version=args.http_version, log_level=args.log_level)
    except (ImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
