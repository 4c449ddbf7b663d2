"""
Pytest configuration and fixtures for File Context MCP tests.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from file_context_mcp.config import FileContextConfig, ServerConfig
from file_context_mcp.executor import ActionExecutor
from file_context_mcp.models import Decision
from file_context_mcp.sandbox import PathSandbox
from file_context_mcp.skills import SkillLoader


class ScriptedOracle:
    """
    DecisionOracle fake that replays a fixed script.

    Each item is a Decision (returned) or an Exception (raised). Once the
    script runs out the last item is repeated.
    """

    def __init__(self, script: list[Any], delay: float = 0.0):
        assert script, "script must not be empty"
        self.script = list(script)
        self.delay = delay
        self.calls: list[tuple[str, str, dict]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def decide(self, system_prompt: str, user_prompt: str, output_shape: dict) -> Decision:
        self.calls.append((system_prompt, user_prompt, output_shape))
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


def complete(final_result: str | None = "Done", analysis: str = "Enough context") -> Decision:
    return Decision(analysis=analysis, is_complete=True, next_actions=[], final_result=final_result)


def incomplete(*actions, analysis: str = "Need more context") -> Decision:
    return Decision(analysis=analysis, is_complete=False, next_actions=list(actions))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files (canonical path)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def outside_dir() -> Generator[Path, None, None]:
    """A second directory that is never part of the sandbox."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir).resolve()
        (path / "secret.txt").write_text("top secret\n")
        yield path


@pytest.fixture
def project(temp_dir: Path) -> Path:
    """Create a small sample project."""
    (temp_dir / "src" / "utils").mkdir(parents=True)
    (temp_dir / "docs").mkdir()
    (temp_dir / ".git").mkdir()

    (temp_dir / "README.md").write_text("# Sample Project\n\nA project used in tests.\n")
    (temp_dir / "config.json").write_text('{\n    "name": "sample",\n    "debug": true\n}\n')
    (temp_dir / "src" / "main.py").write_text(
        "import sys\n"
        "\n"
        "def main():\n"
        "    print('hello')\n"
        "    return 0\n"
    )
    (temp_dir / "src" / "utils" / "helpers.py").write_text(
        "def helper():\n"
        "    return 42\n"
    )
    (temp_dir / "docs" / "guide.md").write_text("# Guide\n\nCall main() to start.\n")
    (temp_dir / ".git" / "config").write_text("def hidden_match():\n")
    (temp_dir / "logo.png").write_text("def fake_binary_match():\n")

    return temp_dir


@pytest.fixture
def config(project: Path) -> FileContextConfig:
    """Create a test configuration rooted at the sample project."""
    return FileContextConfig(
        api_key="test-api-key",
        model="test/model",
        max_retries=3,
        file_roots=[project],
        skills_dir=None,
        default_max_iterations=5,
        max_context_tokens=100_000,
        parallel_actions=True,
    )


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(operation_timeout_seconds=30, log_level="DEBUG")


@pytest.fixture
def sandbox(project: Path) -> PathSandbox:
    return PathSandbox([project])


@pytest.fixture
def executor(sandbox: PathSandbox, config: FileContextConfig) -> ActionExecutor:
    return ActionExecutor(sandbox, config)


@pytest.fixture
def skill_loader() -> SkillLoader:
    return SkillLoader()


@pytest.fixture
def skill_text() -> str:
    return "You gather context about a codebase. Answer with a JSON decision."
