"""
View engines, the view registry and convention based template resolution.

Templates live below the application's ``views`` directory::

    views/
      layouts/master.html
      pages/app/index.html
      common/header.html

Every template is addressed by its path relative to ``views`` with the
separators replaced by underscores, e.g. ``pages_app_index.html``.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

from jinja2 import BaseLoader, Environment, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .config import AppConfig
from .content_renderers import HTMLRenderer
from .exceptions import (
    DuplicateEngineError,
    NilEngineError,
    RegistryLockedError,
    TemplateEngineNotFoundError,
    ViewResolutionError,
)

if TYPE_CHECKING:
    from .engine import Context

logger = logging.getLogger(__name__)

DIR_VIEWS = "views"
DIR_PAGES = "pages"
DIR_LAYOUTS = "layouts"
TEMPLATE_DIRS = (DIR_LAYOUTS, DIR_PAGES, "common")

CONTROLLER_SUFFIX = "Controller"


def template_key(path: str) -> str:
    """``pages/app/index.html`` -> ``pages_app_index.html``."""
    return path.replace(os.sep, "/").strip("/").replace("/", "_")


def controller_view_path(controller: str, action: str, ext: str = ".html",
                         case_sensitive: bool = False, filename: str = "") -> Tuple[str, str]:
    """Return (directory, template name) for a controller action.

    ``AppController`` / ``Index`` / ``.html`` gives ``("pages/app", "index.html")``.
    A ``filename`` replaces the action name; one starting with ``/`` is taken
    relative to ``pages`` instead of the controller directory.
    """
    if filename.startswith("/"):
        directory, name = os.path.split(filename.lstrip("/"))
        tmpl_path = "/".join(p for p in (DIR_PAGES, directory) if p)
    else:
        name = filename or f"{action}{ext}"
        tmpl_path = "/".join([DIR_PAGES] + _controller_parts(controller))

    if not case_sensitive:
        tmpl_path, name = tmpl_path.lower(), name.lower()
    return tmpl_path, name


def _controller_parts(controller: str) -> list:
    parts = [p for p in controller.replace(".", "/").split("/") if p]
    if parts and parts[-1].endswith(CONTROLLER_SUFFIX) and parts[-1] != CONTROLLER_SUFFIX:
        parts[-1] = parts[-1][:-len(CONTROLLER_SUFFIX)]
    return parts


class ViewTemplate:
    """A resolved page template, optionally wrapped in a layout.

    The page is rendered first and handed to the layout as ``body``.
    """

    def __init__(self, page: Template, layout: Optional[Template] = None):
        self.page = page
        self.layout = layout

    @property
    def name(self) -> str:
        return self.page.name or ""

    def render(self, view_args: Mapping[str, Any]) -> str:
        output = self.page.render(view_args)
        if self.layout is None:
            return output
        return self.layout.render({**view_args, "body": Markup(output)})

    def __repr__(self) -> str:
        layout = self.layout.name if self.layout is not None else None
        return f"ViewTemplate(name={self.name!r}, layout={layout!r})"


class ViewEngine(ABC):
    """Interface of a view engine registered in the ``ViewRegistry``."""

    @abstractmethod
    def init(self, base_dir: Path, config: AppConfig, template_funcs: Mapping[str, Callable]) -> None:
        """Load templates from ``base_dir`` (the ``views`` directory)."""
        pass

    @abstractmethod
    def get(self, layout: str, path: str, name: str) -> Any:
        """Return the template for ``path``/``name`` inside ``layout``.

        Raises:
            ViewResolutionError: the page or the layout does not exist
        """
        pass


class _ViewsLoader(BaseLoader):
    """Serves templates by underscore key from the views directory."""

    def __init__(self, base_dir: Path, case_sensitive: bool):
        self.base_dir = base_dir
        self.case_sensitive = case_sensitive
        self.files: Dict[str, Path] = {}
        for sub in TEMPLATE_DIRS:
            root = base_dir / sub
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.is_file():
                    key = template_key(path.relative_to(base_dir).as_posix())
                    self.files[key if case_sensitive else key.lower()] = path

    def get_source(self, environment: Environment, template: str):
        key = template if self.case_sensitive else template.lower()
        path = self.files.get(key)
        if path is None:
            raise TemplateNotFound(template)
        mtime = path.stat().st_mtime
        source = path.read_text(encoding="utf-8")
        return source, str(path), lambda: path.exists() and path.stat().st_mtime == mtime

    def list_templates(self):
        return sorted(self.files)


class JinjaViewEngine(ViewEngine):
    """Default view engine backed by Jinja2."""

    def __init__(self):
        self.env: Optional[Environment] = None
        self.base_dir: Optional[Path] = None
        self.case_sensitive = False

    def init(self, base_dir: Path, config: AppConfig, template_funcs: Mapping[str, Callable]) -> None:
        self.base_dir = Path(base_dir)
        self.case_sensitive = config.view.case_sensitive
        self.env = Environment(
            loader=_ViewsLoader(self.base_dir, self.case_sensitive),
            autoescape=select_autoescape(["html", "htm", "xml"]),
        )
        self.env.globals.update(template_funcs)
        self.env.filters.update(template_funcs)

    def get(self, layout: str, path: str, name: str) -> ViewTemplate:
        if self.env is None:
            raise ViewResolutionError(f"{path}/{name}")

        page = self._load(template_key(f"{path}/{name}"))
        layout_tmpl = self._load(template_key(f"{DIR_LAYOUTS}/{layout}")) if layout else None
        return ViewTemplate(page, layout_tmpl)

    def _load(self, key: str) -> Template:
        try:
            return self.env.get_template(key)
        except TemplateNotFound as e:
            raise ViewResolutionError(key, e)

    @property
    def templates(self):
        return self.env.list_templates() if self.env is not None else []


class ViewRegistry:
    """Process-wide registry of view engines and template functions.

    Built once at startup and handed to the ``Engine``; ``lock()`` is called
    when serving starts, after which the registry is read-only.
    """

    def __init__(self, register_defaults: bool = True):
        self._engines: Dict[str, ViewEngine] = {}
        self._template_funcs: Dict[str, Callable] = {}
        self._locked = False
        if register_defaults:
            self.add_engine("jinja", JinjaViewEngine())

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def _check_unlocked(self, what: str) -> None:
        if self._locked:
            raise RegistryLockedError(f"view: registry is locked, cannot add {what}")

    def add_engine(self, name: str, engine: Optional[ViewEngine]) -> None:
        """Register ``engine`` under ``name``.

        Raises:
            DuplicateEngineError: ``name`` is already registered
            NilEngineError: ``engine`` is None
            RegistryLockedError: serving has started
        """
        self._check_unlocked(f"engine '{name}'")
        if name in self._engines:
            raise DuplicateEngineError(name)
        if engine is None:
            raise NilEngineError()
        self._engines[name] = engine

    def get_engine(self, name: str) -> Optional[ViewEngine]:
        return self._engines.get(name)

    def add_template_func(self, funcs: Mapping[str, Callable]) -> None:
        """Add functions available to templates; existing names are kept."""
        self._check_unlocked("template functions")
        for name, func in funcs.items():
            if name in self._template_funcs:
                logger.warning(f"Template function '{name}' already added, skipping")
                continue
            self._template_funcs[name] = func

    @property
    def template_funcs(self) -> Dict[str, Callable]:
        return dict(self._template_funcs)


def init_view_engine(view_dir: Path, config: AppConfig, registry: ViewRegistry,
                     engine: Optional[ViewEngine] = None) -> Optional[ViewEngine]:
    """Initialize the application's view engine.

    Returns None when ``view_dir`` does not exist. A supplied ``engine`` is
    used as is instead of the configured one.

    Raises:
        TemplateEngineNotFoundError: ``view.engine`` names no registered engine
    """
    view_dir = Path(view_dir)
    if not view_dir.is_dir():
        logger.warning(f"Views directory does not exist, view engine disabled: {view_dir}")
        return None

    if engine is None:
        engine = registry.get_engine(config.view.engine)
        if engine is None:
            raise TemplateEngineNotFoundError(config.view.engine)
    else:
        logger.info(f"Using external view engine {type(engine).__name__}")

    engine.init(view_dir, config, registry.template_funcs)
    return engine


DEFAULT_TEMPLATE = ViewTemplate(Environment(autoescape=True).from_string(
    "<!DOCTYPE html>\n"
    "<html>\n"
    "<head><title>{{ ViewNotFound }}</title></head>\n"
    "<body><h2>{{ ViewNotFound }}</h2></body>\n"
    "</html>\n"
))


class ViewResolver:
    """Attaches the conventional template to HTML replies."""

    def __init__(self, view_engine: Optional[ViewEngine], config: AppConfig,
                 is_external: bool = False, version: str = ""):
        self.view_engine = view_engine
        self.config = config
        self.is_external = is_external
        self.version = version

    @property
    def default_layout(self) -> str:
        return f"master{self.config.view.ext}"

    def resolve_view(self, ctx: "Context") -> None:
        """Pick the template for an HTML reply; never fails the request.

        A missing template is logged and replaced by ``DEFAULT_TEMPLATE`` with
        ``ViewNotFound`` set, so the original controller outcome stays visible.
        """
        reply = ctx.reply
        if self.view_engine is None or not reply.is_html():
            return

        if reply.renderer is None:
            reply.renderer = HTMLRenderer()
        renderer = reply.renderer
        if not isinstance(renderer, HTMLRenderer):
            return

        if not renderer.layout and self.config.view.default_layout:
            renderer.layout = self.default_layout

        for key, value in ctx.view_args.items():
            renderer.view_args.setdefault(key, value)

        req = ctx.req
        renderer.view_args["Scheme"] = req.scheme
        renderer.view_args["Host"] = req.host
        renderer.view_args["RequestPath"] = req.path
        renderer.view_args["FrameworkVersion"] = self.version

        case_sensitive = self.config.view.case_sensitive or self.is_external
        tmpl_path, tmpl_name = controller_view_path(
            ctx.controller, ctx.action, self.config.view.ext, case_sensitive, renderer.filename)

        try:
            renderer.template = self.view_engine.get(renderer.layout, tmpl_path, tmpl_name)
        except ViewResolutionError as e:
            tmpl_file = f"{DIR_VIEWS}/{tmpl_path}/{tmpl_name}"
            if not case_sensitive:
                tmpl_file = tmpl_file.lower()
            logger.error(f"template not found: {tmpl_file} ({e})")

            if self.config.is_prod:
                renderer.view_args["ViewNotFound"] = "View Not Found"
            else:
                renderer.view_args["ViewNotFound"] = f"View Not Found: {tmpl_file}"
            renderer.layout = ""
            renderer.template = DEFAULT_TEMPLATE
