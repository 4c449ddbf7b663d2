"""
File Context MCP Server

An MCP server that gathers filesystem context for a natural-language question
about a codebase.

THE KEY IDEA:
- A model decides, one iteration at a time, what to look at next
- The server runs those reads, searches and listings inside a path sandbox
- Everything gathered is folded into one context the model sees next time
- Iterations and context size are bounded, so every call returns an answer

Standalone read-only tools (read_file, grep, glob, list_files) share the same
sandbox and filesystem primitives.
"""

__version__ = "1.0.0"

from .server import main, create_server
from .reasoning import Budget, ReasoningLoop, ReasoningResult
from .executor import ActionExecutor
from .context import AccumulatedContext
from .oracle import DecisionOracle, OpenAIDecisionOracle
from .sandbox import PathSandbox
from .skills import SkillLoader

__all__ = [
    "main",
    "create_server",
    "Budget",
    "ReasoningLoop",
    "ReasoningResult",
    "ActionExecutor",
    "AccumulatedContext",
    "DecisionOracle",
    "OpenAIDecisionOracle",
    "PathSandbox",
    "SkillLoader",
]
