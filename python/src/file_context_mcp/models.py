"""
Decision and action shapes exchanged with the reasoning oracle.

The oracle answers with a JSON object matching DECISION_SCHEMA. Each entry of
``next_actions`` is tagged by ``action_type`` and parsed into one of the four
frozen action dataclasses. Anything that does not fit the shape raises
DecisionInvalid, which aborts the run.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .errors import DecisionInvalid


@dataclass(frozen=True)
class ReadFiles:
    paths: tuple[str, ...]

    action_type = "read_files"


@dataclass(frozen=True)
class Grep:
    pattern: str
    path: Optional[str] = None
    glob: Optional[str] = None

    action_type = "grep"


@dataclass(frozen=True)
class ListDirectory:
    path: str
    depth: Optional[int] = None

    action_type = "list_directory"


@dataclass(frozen=True)
class GlobSearch:
    pattern: str
    path: Optional[str] = None

    action_type = "glob_search"


Action = Union[ReadFiles, Grep, ListDirectory, GlobSearch]

ACTION_TYPES = ("read_files", "grep", "list_directory", "glob_search")


@dataclass
class Decision:
    """One oracle verdict: either complete, or a list of further actions."""
    analysis: str
    is_complete: bool
    next_actions: list[Action] = field(default_factory=list)
    final_result: Optional[str] = None

    def answer(self) -> str:
        """Final answer for a completed decision, falling back to the analysis."""
        return self.final_result or self.analysis

    @classmethod
    def from_dict(cls, data: Any) -> "Decision":
        if not isinstance(data, dict):
            raise DecisionInvalid(f"Decision must be a JSON object, got {type(data).__name__}")

        analysis = data.get("analysis")
        if not isinstance(analysis, str):
            raise DecisionInvalid("Decision field 'analysis' must be a string")

        is_complete = data.get("is_complete")
        if not isinstance(is_complete, bool):
            raise DecisionInvalid("Decision field 'is_complete' must be a boolean")

        raw_actions = data.get("next_actions")
        if raw_actions is None:
            raw_actions = []
        if not isinstance(raw_actions, list):
            raise DecisionInvalid("Decision field 'next_actions' must be an array")

        final_result = data.get("final_result")
        if final_result is not None and not isinstance(final_result, str):
            raise DecisionInvalid("Decision field 'final_result' must be a string")

        return cls(
            analysis=analysis,
            is_complete=is_complete,
            next_actions=[parse_action(item) for item in raw_actions],
            final_result=final_result,
        )


def _require_str(data: dict, key: str, action_type: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise DecisionInvalid(f"Action '{action_type}' requires string field '{key}'")
    return value


def _optional_str(data: dict, key: str, action_type: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise DecisionInvalid(f"Action '{action_type}' field '{key}' must be a string")
    return value


def parse_action(data: Any) -> Action:
    """Parse one tagged action object."""
    if not isinstance(data, dict):
        raise DecisionInvalid(f"Action must be a JSON object, got {type(data).__name__}")

    action_type = data.get("action_type")

    if action_type == "read_files":
        paths = data.get("paths")
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise DecisionInvalid("Action 'read_files' requires 'paths' as an array of strings")
        return ReadFiles(paths=tuple(paths))

    if action_type == "grep":
        return Grep(
            pattern=_require_str(data, "pattern", action_type),
            path=_optional_str(data, "path", action_type),
            glob=_optional_str(data, "glob", action_type),
        )

    if action_type == "list_directory":
        depth = data.get("depth")
        if depth is not None and (isinstance(depth, bool) or not isinstance(depth, int) or depth < 0):
            raise DecisionInvalid("Action 'list_directory' field 'depth' must be a non-negative integer")
        return ListDirectory(path=_require_str(data, "path", action_type), depth=depth)

    if action_type == "glob_search":
        return GlobSearch(
            pattern=_require_str(data, "pattern", action_type),
            path=_optional_str(data, "path", action_type),
        )

    raise DecisionInvalid(
        f"Unknown action_type {action_type!r}; expected one of {', '.join(ACTION_TYPES)}"
    )


def describe_action(action: Action) -> str:
    """Short human-readable label, used in logs."""
    if isinstance(action, ReadFiles):
        return f"read_files({', '.join(action.paths)})"
    if isinstance(action, Grep):
        return f"grep({action.pattern!r}, path={action.path}, glob={action.glob})"
    if isinstance(action, ListDirectory):
        return f"list_directory({action.path}, depth={action.depth})"
    if isinstance(action, GlobSearch):
        return f"glob_search({action.pattern!r}, path={action.path})"
    raise TypeError(f"Unknown action: {action!r}")


DECISION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "analysis": {
            "type": "string",
            "description": "Current understanding and reasoning",
        },
        "is_complete": {
            "type": "boolean",
            "description": "Whether enough context has been gathered",
        },
        "next_actions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action_type": {
                        "type": "string",
                        "enum": list(ACTION_TYPES),
                    },
                    "paths": {"type": "array", "items": {"type": "string"}},
                    "pattern": {"type": "string"},
                    "path": {"type": "string"},
                    "glob": {"type": "string"},
                    "depth": {"type": "integer"},
                },
                "required": ["action_type"],
            },
        },
        "final_result": {
            "type": "string",
            "description": "Final synthesized result when is_complete is true",
        },
    },
    "required": ["analysis", "is_complete", "next_actions"],
}
