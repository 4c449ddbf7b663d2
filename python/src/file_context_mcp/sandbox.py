"""
Path sandbox.

Every filesystem access goes through a PathSandbox, which canonicalizes the
path (resolving symlinks and ``..``) and checks it against the configured
roots. The sandbox is passed around as an object so callers and tests can
substitute their own.
"""

from pathlib import Path

from .errors import AccessDenied, NoFileRoots, NotADirectory, PathDoesNotExist, PathInvalid


MAX_PATH_LENGTH = 4096


class PathSandbox:
    """Validates paths against a fixed set of canonical root directories."""

    def __init__(self, roots: list[Path] | list[str]):
        self._roots: list[Path] = []
        for root in roots:
            canonical = Path(root).expanduser().resolve()
            if canonical not in self._roots:
                self._roots.append(canonical)

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def default_root(self) -> Path:
        """First configured root, used when a tool gets no path."""
        if not self._roots:
            raise NoFileRoots()
        return self._roots[0]

    def is_allowed(self, canonical: Path) -> bool:
        """Check an already-canonical path against the roots."""
        if not self._roots:
            return True
        return any(canonical == root or canonical.is_relative_to(root) for root in self._roots)

    def validate_path(self, path: str | Path) -> Path:
        """
        Canonicalize an existing path and make sure it lives under a root.

        Raises:
            PathInvalid: malformed path (empty, too long, NUL bytes)
            PathDoesNotExist: path cannot be resolved
            AccessDenied: canonical path is outside every root
        """
        raw = str(path)
        if not raw:
            raise PathInvalid("Invalid path: empty path")
        if len(raw) > MAX_PATH_LENGTH:
            raise PathInvalid(f"Invalid path: too long ({len(raw)} > {MAX_PATH_LENGTH})")
        if "\x00" in raw:
            raise PathInvalid("Invalid path: contains null bytes")

        try:
            canonical = Path(raw).expanduser().resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise PathDoesNotExist(raw, str(e)) from e

        if not self.is_allowed(canonical):
            raise AccessDenied(str(canonical))

        return canonical

    def validate_directory(self, path: str | Path) -> Path:
        canonical = self.validate_path(path)
        if not canonical.is_dir():
            raise NotADirectory(str(canonical))
        return canonical

    def resolve_root(self, path: str | Path | None) -> Path:
        """Resolve a tool's starting directory, defaulting to the first root."""
        if path is None or path == "":
            return self.default_root()
        return self.validate_directory(path)
