"""
Custom exceptions for replykit.
"""


class ReplyKitError(Exception):
    """Base exception for replykit errors."""

    pass


class StaticFileNotFoundError(ReplyKitError):
    """Raised when a static route resolves to a path that does not exist.

    The static server does not write a response for this case; the caller's
    not-found handler does.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"file not found: {path}")


class RenderError(ReplyKitError):
    """Raised when a renderer fails to produce the response body."""

    def __init__(self, message="Failed to render response body", original_exception=None):
        self.message = message
        self.original_exception = original_exception
        super().__init__(self.message)


class ViewError(ReplyKitError):
    """Base exception for view engine setup and lookup errors."""

    pass


class TemplateEngineNotFoundError(ViewError):
    """Raised when the configured view engine name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"view: named engine not found: {name}")


class DuplicateEngineError(ViewError):
    """Raised when a view engine name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"view: engine name '{name}' is already added, skip it")


class NilEngineError(ViewError):
    """Raised when ``None`` is registered as a view engine."""

    def __init__(self):
        super().__init__("view: engine value is None")


class RegistryLockedError(ViewError):
    """Raised when the view registry is modified after serving started."""

    pass


class ViewResolutionError(ViewError):
    """Raised by view engines when a template cannot be found."""

    def __init__(self, path: str, original_exception=None):
        self.path = path
        self.original_exception = original_exception
        super().__init__(f"view: template not found: {path}")
