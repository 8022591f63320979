# python
"""
treeserve/errors.py
Exception types shared by the resolver, walker and configuration loader.
"""
from typing import Optional


class TreeServeError(Exception):
    """Base class for treeserve errors."""


class PathRejected(TreeServeError):
    """
    A request path that cannot name anything: a `.`/`..` segment, a join that
    escapes its filesystem root, or a category descent that ran out of tree.
    """

    def __init__(self, segments, reason: str = "path rejected"):
        self.segments = list(segments)
        self.reason = reason
        super().__init__(f"{reason}: /{'/'.join(self.segments)}")


class ProbeFailed(OSError):
    """Raised when a filesystem probe fails where the caller cannot embed the error. Subclass of OSError."""

    def __init__(self, path: str, original: Optional[Exception] = None):
        self.path = path
        self.original = original
        errno = getattr(original, "errno", None)
        detail = getattr(original, "strerror", None) or str(original)
        message = f"probe failed for {path}: {detail}"
        if errno is None:
            super().__init__(message)
        else:
            super().__init__(errno, message)

    @property
    def not_found(self) -> bool:
        return isinstance(self.original, (FileNotFoundError, NotADirectoryError))


class ConfigurationConflict(TreeServeError):
    """Two configured types claim the same file extension."""

    def __init__(self, extension: str, existing: str, conflicting: str):
        self.extension = extension
        self.existing = existing
        self.conflicting = conflicting
        super().__init__(
            f"Multiple types for extension {extension}: {existing}, {conflicting}"
        )


class ConfigError(TreeServeError):
    """Settings file could not be parsed or failed validation."""

    def __init__(self, message: str, excerpt: str = "", path: str = ""):
        self.excerpt = excerpt
        self.path = path
        text = message if not path else f"{path}: {message}"
        if excerpt:
            text = f"{text}\n{excerpt}"
        super().__init__(text)
