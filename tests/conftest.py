"""
Pytest configuration and shared fixtures.

``app_dir`` builds a small application tree::

    static/css/site.css, static/img/logo.png, static/robots.txt
    assets/readme.txt, assets/docs/guide.txt
    views/layouts/master.html, views/pages/app/index.html
"""

import pytest

from replykit import AppConfig, Engine, Request, ViewRegistry


def pytest_configure(config):
    """Configure pytest-anyio to use only asyncio backend (trio not installed)."""
    config.option.anyio_backends = ["asyncio"]


MASTER_LAYOUT = "<html><head><title>{{ title }}</title></head><body>{{ body }}</body></html>"
INDEX_PAGE = "<h1>Hello {{ name }}</h1><p>{{ Scheme }}://{{ Host }}{{ RequestPath }}</p>"


@pytest.fixture
def app_dir(tmp_path):
    static = tmp_path / "static"
    (static / "css").mkdir(parents=True)
    (static / "img").mkdir()
    (static / "css" / "site.css").write_text("body { color: black; }\n" * 40)
    (static / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 600)
    (static / "robots.txt").write_text("User-agent: *\n")

    assets = tmp_path / "assets"
    (assets / "docs").mkdir(parents=True)
    (assets / "readme.txt").write_text("0123456789")
    (assets / "docs" / "guide.txt").write_text("guide")

    views = tmp_path / "views"
    (views / "layouts").mkdir(parents=True)
    (views / "pages" / "app").mkdir(parents=True)
    (views / "layouts" / "master.html").write_text(MASTER_LAYOUT)
    (views / "pages" / "app" / "index.html").write_text(INDEX_PAGE)
    return tmp_path


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def engine(app_dir, config):
    return Engine(config, ViewRegistry(), app_dir)


@pytest.fixture
def make_request():
    """Build a Request with a default Host header."""
    def _make(method="GET", path="/", headers=None, **kwargs):
        headers = dict(headers or {})
        headers.setdefault("Host", "localhost:8080")
        return Request(method=method, path=path, headers=headers, **kwargs)
    return _make
