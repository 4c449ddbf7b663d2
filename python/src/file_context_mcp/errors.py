"""
Error taxonomy for the file-context server.

Every error carries a machine-readable ``reason`` so tool responses can report
failures without parsing messages:

- Fatal for a run: PathInvalid (and subclasses) on the starting root,
  SkillUnavailable, GenerationFailed / DecisionInvalid, RunCancelled, RunTimedOut
- Local to one action: the same path errors plus InvalidRegexPattern and
  InvalidGlobPattern, caught by the executor and written to the action log
"""

from typing import Any


class FileContextError(Exception):
    """Base class for all errors raised by this package."""

    reason = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"reason": self.reason, "message": self.message}


class InvalidArguments(FileContextError):
    """Raised when tool arguments are missing or malformed."""

    reason = "invalid_arguments"


class PathInvalid(FileContextError):
    """Raised when a path cannot be used."""

    reason = "path_invalid"


class AccessDenied(PathInvalid):
    reason = "access_denied"

    def __init__(self, path: str):
        super().__init__(f"Access denied: '{path}' is outside allowed roots")
        self.path = path


class PathDoesNotExist(PathInvalid):
    reason = "path_not_found"

    def __init__(self, path: str, details: str = ""):
        message = f"Path does not exist: '{path}'"
        if details:
            message += f" ({details})"
        super().__init__(message)
        self.path = path


class NotADirectory(PathInvalid):
    reason = "not_a_directory"

    def __init__(self, path: str):
        super().__init__(f"Path is not a directory: {path}")
        self.path = path


class NotAFile(PathInvalid):
    reason = "not_a_file"

    def __init__(self, path: str):
        super().__init__(f"Path is not a file: {path}")
        self.path = path


class NoFileRoots(PathInvalid):
    reason = "no_file_roots"

    def __init__(self):
        super().__init__("No file roots configured")


class InvalidRegexPattern(FileContextError):
    reason = "invalid_regex"

    def __init__(self, details: str):
        super().__init__(f"Invalid regex pattern: {details}")


class InvalidGlobPattern(FileContextError):
    reason = "invalid_glob"

    def __init__(self, details: str):
        super().__init__(f"Invalid glob pattern: {details}")


class SkillUnavailable(FileContextError):
    """Raised when the reasoning skill text is missing or empty."""

    reason = "skill_unavailable"


class GenerationFailed(FileContextError):
    """Raised when the decision oracle call fails."""

    reason = "generation_failed"


class DecisionInvalid(GenerationFailed):
    """Raised when the oracle response does not match the decision shape."""

    reason = "decision_invalid"


class RunCancelled(FileContextError):
    reason = "cancelled"


class RunTimedOut(FileContextError):
    reason = "timeout"


class FileReadFailed(FileContextError):
    """Raised when a file exists but cannot be read as UTF-8 text."""

    reason = "read_failed"

    def __init__(self, path: str, details: str):
        super().__init__(f"Failed to read file '{path}': {details}")
        self.path = path
