"""
Configuration for the File Context MCP Server

Environment Variables:
- OPENROUTER_API_KEY: Required for the reasoning oracle (OpenAI-compatible API)
- FILE_CONTEXT_API_BASE_URL: API base URL (default: https://openrouter.ai/api/v1)
- FILE_CONTEXT_MODEL: Model used for reasoning decisions
- FILE_ROOT: Comma-separated list of directories the tools may access
  (default: current working directory)
- FILE_CONTEXT_SKILLS_DIR: Extra directory searched for skill files
- FILE_CONTEXT_MAX_ITERATIONS: Default reasoning iterations (default: 5, max: 10)
- FILE_CONTEXT_MAX_CONTEXT_TOKENS: Estimated token budget for gathered context

OpenRouter:
- Uses OpenAI-compatible API at https://openrouter.ai/api/v1
- The model must support JSON-schema structured output
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


# Default model (OpenRouter model ID)
DEFAULT_MODEL = "google/gemini-2.5-flash-lite"

# Hard ceiling for reasoning iterations; requests above it are clamped
MAX_ITERATIONS_LIMIT = 10
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_MAX_CONTEXT_TOKENS = 100_000

# Action limits
MAX_FILE_CONTENT_CHARS = 50_000
MAX_SEARCH_MATCHES = 100
INITIAL_TREE_DEPTH = 3
DEFAULT_LIST_DEPTH = 2
GREP_MAX_DEPTH = 10
SEARCH_LINE_TRUNCATE = 200

# Standalone tool limits
DEFAULT_LINE_OFFSET = 1
DEFAULT_LINE_LIMIT = 2000
MAX_LINE_DISPLAY_LENGTH = 2000
MAX_GREP_MATCHES = 500
MAX_GREP_FILES = 5000
MAX_GLOB_RESULTS = 100
MAX_LIST_FILES_DEPTH = 5

SKILL_ID = "file_context_reasoning"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def parse_file_roots(value: str | None) -> list[Path]:
    """
    Parse a comma-separated FILE_ROOT value into canonical directories.

    Missing or non-directory entries are dropped. When no value is given the
    current working directory is used.
    """
    if value:
        candidates = [Path(part.strip()) for part in value.split(",") if part.strip()]
    else:
        candidates = [Path.cwd()]

    roots = []
    for candidate in candidates:
        try:
            canonical = candidate.expanduser().resolve(strict=True)
        except OSError:
            continue
        if canonical.is_dir() and canonical not in roots:
            roots.append(canonical)
    return roots


@dataclass
class FileContextConfig:
    """Configuration for context gathering."""

    # API Configuration (OpenRouter)
    api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    api_base_url: str = field(
        default_factory=lambda: os.getenv("FILE_CONTEXT_API_BASE_URL", "https://openrouter.ai/api/v1")
    )
    model: str = field(default_factory=lambda: os.getenv("FILE_CONTEXT_MODEL", DEFAULT_MODEL))
    max_output_tokens: int = field(
        default_factory=lambda: int(os.getenv("FILE_CONTEXT_MAX_OUTPUT_TOKENS", "4096"))
    )
    request_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("FILE_CONTEXT_REQUEST_TIMEOUT", "120"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("FILE_CONTEXT_MAX_RETRIES", "3"))
    )

    # Sandbox
    file_roots: list[Path] = field(
        default_factory=lambda: parse_file_roots(os.getenv("FILE_ROOT"))
    )
    skills_dir: str | None = field(
        default_factory=lambda: os.getenv("FILE_CONTEXT_SKILLS_DIR") or None
    )

    # Reasoning budget
    default_max_iterations: int = field(
        default_factory=lambda: int(os.getenv("FILE_CONTEXT_MAX_ITERATIONS", str(DEFAULT_MAX_ITERATIONS)))
    )
    max_context_tokens: int = field(
        default_factory=lambda: int(os.getenv("FILE_CONTEXT_MAX_CONTEXT_TOKENS", str(DEFAULT_MAX_CONTEXT_TOKENS)))
    )
    max_file_content_chars: int = MAX_FILE_CONTENT_CHARS
    max_search_matches: int = MAX_SEARCH_MATCHES
    initial_tree_depth: int = INITIAL_TREE_DEPTH

    # Gather the actions of one iteration concurrently (folded in order)
    parallel_actions: bool = field(
        default_factory=lambda: _env_bool("FILE_CONTEXT_PARALLEL_ACTIONS", "true")
    )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.api_key:
            errors.append("OPENROUTER_API_KEY environment variable not set")

        if not self.file_roots:
            errors.append("No usable file roots (check FILE_ROOT)")

        if self.max_output_tokens < 1:
            errors.append("max_output_tokens must be positive")

        if self.max_context_tokens < 1:
            errors.append("max_context_tokens must be positive")

        if not 1 <= self.default_max_iterations <= MAX_ITERATIONS_LIMIT:
            errors.append(f"default_max_iterations must be between 1 and {MAX_ITERATIONS_LIMIT}")

        return errors


@dataclass
class ServerConfig:
    """Configuration for the MCP server."""

    name: str = "file-context"
    version: str = "1.0.0"
    description: str = (
        "MCP server exposing sandboxed file tools and an iterative, "
        "model-driven context gathering tool"
    )

    # Upper bound for a single file_context call
    operation_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("FILE_CONTEXT_OPERATION_TIMEOUT", "300"))
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("FILE_CONTEXT_LOG_LEVEL", "INFO").upper()
    )


def get_config() -> tuple[FileContextConfig, ServerConfig]:
    """Get configuration instances."""
    return FileContextConfig(), ServerConfig()
