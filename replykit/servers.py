"""
HTTP server drivers for replykit applications.

Drivers run an ``ASGIAdapter`` on Uvicorn or Hypercorn.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from .engine import Engine
from .server import Handler, create_asgi_app

logger = logging.getLogger(__name__)


class ServerDriver(ABC):
    """Base class for HTTP server drivers."""

    http_versions = ("http1", "http2")

    def __init__(self, engine: Engine, handler: Handler, host: str = "127.0.0.1", port: int = 8000,
                 http_version: str = "http1"):
        """
        Initialize the server driver.

        Args:
            engine: The engine writing replies
            handler: Request handler called with each ``Context``
            host: Host to bind to
            port: Port to bind to
            http_version: HTTP version to use
        """
        if http_version not in self.http_versions:
            raise ValueError(f"http_version must be one of: {', '.join(self.http_versions)}")
        self.host = host
        self.port = port
        self.http_version = http_version
        self.asgi_app = create_asgi_app(engine, handler)

    @abstractmethod
    def run(self, **kwargs):
        """Run the server."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the server implementation is installed."""
        pass

    def _warn_without_tls(self, ssl_keyfile: Optional[str], ssl_certfile: Optional[str]) -> None:
        if self.http_version == "http2" and not (ssl_keyfile and ssl_certfile):
            logger.warning("HTTP/2 typically requires HTTPS. Consider providing ssl_keyfile and ssl_certfile.")


class UvicornDriver(ServerDriver):
    """Uvicorn server driver."""

    def is_available(self) -> bool:
        try:
            import uvicorn  # noqa: F401
            return True
        except ImportError:
            return False

    def run(self,
            log_level: str = "info",
            workers: int = 1,
            ssl_keyfile: Optional[str] = None,
            ssl_certfile: Optional[str] = None,
            **kwargs):
        """
        Run the Uvicorn server.

        Args:
            log_level: Logging level
            workers: Number of worker processes
            ssl_keyfile: SSL key file for HTTPS
            ssl_certfile: SSL certificate file for HTTPS
            **kwargs: Additional Uvicorn configuration options
        """
        if not self.is_available():
            raise ImportError("Uvicorn is not installed. Install with: pip install 'replykit[server]'")

        import uvicorn

        config_kwargs = {
            "host": self.host,
            "port": self.port,
            "log_level": log_level,
            "workers": workers,
            **kwargs,
        }
        if ssl_keyfile and ssl_certfile:
            config_kwargs.update({"ssl_keyfile": ssl_keyfile, "ssl_certfile": ssl_certfile})
        self._warn_without_tls(ssl_keyfile, ssl_certfile)

        logger.info(f"Starting Uvicorn server on {self.host}:{self.port} ({self.http_version.upper()})")
        uvicorn.run(self.asgi_app, **config_kwargs)


class HypercornDriver(ServerDriver):
    """Hypercorn server driver, with HTTP/2 and HTTP/3 support."""

    http_versions = ("http1", "http2", "http3")

    def is_available(self) -> bool:
        try:
            import hypercorn  # noqa: F401
            return True
        except ImportError:
            return False

    def run(self,
            log_level: str = "info",
            workers: int = 1,
            ssl_keyfile: Optional[str] = None,
            ssl_certfile: Optional[str] = None,
            **kwargs):
        """
        Run the Hypercorn server.

        Raises:
            ValueError: HTTP/3 was requested without certificates
        """
        if not self.is_available():
            raise ImportError("Hypercorn is not installed. Install with: pip install 'replykit[server]'")

        import hypercorn.asyncio
        from hypercorn import Config

        config = Config()
        config.bind = [f"{self.host}:{self.port}"]
        config.workers = workers
        config.loglevel = log_level.upper()

        if self.http_version == "http3" and not (ssl_keyfile and ssl_certfile):
            raise ValueError("HTTP/3 requires SSL certificates (ssl_keyfile and ssl_certfile)")
        if ssl_keyfile and ssl_certfile:
            config.keyfile = ssl_keyfile
            config.certfile = ssl_certfile
            if self.http_version == "http3":
                config.quic_bind = [f"{self.host}:{self.port}"]
        self._warn_without_tls(ssl_keyfile, ssl_certfile)

        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)

        logger.info(f"Starting Hypercorn server on {self.host}:{self.port} ({self.http_version.upper()})")
        asyncio.run(hypercorn.asyncio.serve(self.asgi_app, config))


def serve(engine: Engine,
          handler: Handler,
          server: str = "uvicorn",
          host: str = "127.0.0.1",
          port: int = 8000,
          http_version: str = "http1",
          **kwargs) -> None:
    """
    Serve an application with the specified HTTP server.

    Raises:
        ValueError: If an invalid server or http_version is specified
        ImportError: If the specified server is not installed
    """
    driver: Union[UvicornDriver, HypercornDriver]
    if server == "uvicorn":
        driver = UvicornDriver(engine, handler, host, port, http_version)
    elif server == "hypercorn":
        driver = HypercornDriver(engine, handler, host, port, http_version)
    else:
        raise ValueError(f"Unknown server: {server}. Supported servers: uvicorn, hypercorn")

    driver.run(**kwargs)
