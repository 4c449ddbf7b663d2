"""
Tests for the ReasoningLoop.

Tests cover:
- Immediate completion
- Access-denied reads that do not abort the run
- Iteration exhaustion and budget clamping
- Local regex failures
- Context-limit stop, cancellation and fatal errors
"""

import asyncio
from pathlib import Path

import pytest

from conftest import ScriptedOracle, complete, incomplete
from file_context_mcp.config import FileContextConfig
from file_context_mcp.errors import (
    AccessDenied,
    DecisionInvalid,
    GenerationFailed,
    NotADirectory,
    RunCancelled,
    SkillUnavailable,
)
from file_context_mcp.executor import ActionExecutor
from file_context_mcp.models import DECISION_SCHEMA, Grep, ReadFiles
from file_context_mcp.reasoning import Budget, ReasoningLoop, build_user_prompt
from file_context_mcp.context import AccumulatedContext
from file_context_mcp.sandbox import PathSandbox


@pytest.fixture
def loop(sandbox: PathSandbox, config: FileContextConfig) -> ReasoningLoop:
    return ReasoningLoop(sandbox, config)


class TestScenarios:
    """End-to-end runs against a scripted oracle."""

    @pytest.mark.asyncio
    async def test_immediate_completion(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([complete("The project prints hello.")])

        result = await loop.run("What does it do?", None, Budget(), skill_text, oracle, executor)

        assert result.final_text == "The project prints hello."
        assert result.iterations == 1
        assert result.stop_reason == "complete"
        assert oracle.call_count == 1
        assert result.context.actions_taken == [f"Listed directory: {project}"]
        assert "src/" in result.context.directory_tree

    @pytest.mark.asyncio
    async def test_access_denied_read_continues(
        self, loop, executor, project: Path, outside_dir: Path, skill_text: str
    ):
        secret = str(outside_dir / "secret.txt")
        oracle = ScriptedOracle([
            incomplete(ReadFiles(paths=(secret,))),
            complete("Could not read the secret."),
        ])

        result = await loop.run("Read the secret", None, Budget(), skill_text, oracle, executor)

        assert result.final_text == "Could not read the secret."
        assert oracle.call_count == 2
        assert result.context.file_contents == []
        failures = [a for a in result.context.actions_taken if a.startswith(f"Failed to read {secret}")]
        assert len(failures) == 1
        assert "Access denied" in failures[0]
        # The second prompt shows the failure to the oracle
        assert "Access denied" in oracle.calls[1][1]

    @pytest.mark.asyncio
    async def test_max_iterations_reached(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([incomplete()])

        result = await loop.run("Anything", None, Budget(max_iterations=5), skill_text, oracle, executor)

        assert oracle.call_count == 5
        assert result.iterations == 5
        assert result.stop_reason == "max_iterations"
        assert result.final_text.startswith(
            "Reached maximum iterations (5). Current understanding:\n\n## Directory Structure"
        )
        assert result.final_text.endswith(result.context.render())

    @pytest.mark.asyncio
    async def test_invalid_regex_is_local(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([incomplete(Grep(pattern="(")), complete("ok")])

        result = await loop.run("Search", None, Budget(), skill_text, oracle, executor)

        assert result.final_text == "ok"
        assert result.context.search_results == []
        assert any(a.startswith("Grep failed for (:") for a in result.context.actions_taken)


class TestBudget:
    """Tests for iteration and context budgets."""

    @pytest.mark.parametrize("requested,expected", [
        (None, 5), (0, 0), (-3, 0), (1, 1), (7, 7), (10, 10), (50, 10),
    ])
    def test_clamping(self, requested, expected):
        assert Budget.clamped(requested).max_iterations == expected

    @pytest.mark.asyncio
    async def test_oracle_calls_capped_at_limit(self, loop, executor, skill_text: str):
        oracle = ScriptedOracle([incomplete()])

        result = await loop.run("q", None, Budget.clamped(50), skill_text, oracle, executor)

        assert oracle.call_count == 10
        assert result.final_text.startswith("Reached maximum iterations (10).")

    @pytest.mark.asyncio
    async def test_zero_budget_skips_oracle(self, loop, executor, skill_text: str):
        oracle = ScriptedOracle([incomplete()])

        result = await loop.run("q", None, Budget.clamped(0), skill_text, oracle, executor)

        assert oracle.call_count == 0
        assert result.iterations == 0
        assert result.stop_reason == "max_iterations"
        assert result.final_text.startswith("Reached maximum iterations (0). Current understanding:\n\n")

    @pytest.mark.asyncio
    async def test_context_limit_stops_before_calling_oracle(self, loop, executor, skill_text: str):
        oracle = ScriptedOracle([complete("never used")])

        result = await loop.run("q", None, Budget(max_iterations=5, max_context_tokens=1), skill_text, oracle, executor)

        assert oracle.call_count == 0
        assert result.iterations == 0
        assert result.stop_reason == "context_limit"
        assert result.final_text.startswith("Context limit reached after 1 iterations. Current understanding:\n\n")

    @pytest.mark.asyncio
    async def test_context_limit_after_reads(self, loop, executor, project: Path, skill_text: str):
        (project / "big.txt").write_text("word " * 2000)
        oracle = ScriptedOracle([incomplete(ReadFiles(paths=("big.txt",)))])
        budget = Budget(max_iterations=5, max_context_tokens=1000)

        result = await loop.run("q", None, budget, skill_text, oracle, executor)

        assert oracle.call_count == 1
        assert result.final_text.startswith("Context limit reached after 2 iterations.")

    @pytest.mark.asyncio
    async def test_context_never_shrinks(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([
            incomplete(ReadFiles(paths=("README.md",))),
            incomplete(Grep(pattern="def")),
            incomplete(ReadFiles(paths=("missing.py",))),
            complete("done"),
        ])

        await loop.run("q", None, Budget(), skill_text, oracle, executor)

        # Every prompt embeds the full render; the "k of N" line has constant width here
        sizes = [len(prompt) for _, prompt, _ in oracle.calls]
        assert sizes == sorted(sizes)

    @pytest.mark.asyncio
    async def test_completion_stops_actions(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([
            incomplete(ReadFiles(paths=("README.md",))),
            complete("done"),
            incomplete(ReadFiles(paths=("src/main.py",))),
        ])

        result = await loop.run("q", None, Budget(), skill_text, oracle, executor)

        assert oracle.call_count == 2
        assert len(result.context.actions_taken) == 2

    @pytest.mark.asyncio
    async def test_empty_completion_uses_exhaustion_text(self, loop, executor, skill_text: str):
        oracle = ScriptedOracle([complete(final_result=None, analysis="")])

        result = await loop.run("q", None, Budget(max_iterations=3), skill_text, oracle, executor)

        assert result.final_text.startswith("Reached maximum iterations (3).")


class TestPrompts:
    """Tests for what the oracle receives."""

    @pytest.mark.asyncio
    async def test_oracle_inputs(self, loop, executor, skill_text: str):
        oracle = ScriptedOracle([complete()])

        await loop.run("Where is main?", None, Budget(max_iterations=3), skill_text, oracle, executor)

        system_prompt, user_prompt, shape = oracle.calls[0]
        assert system_prompt == skill_text
        assert shape is DECISION_SCHEMA
        assert user_prompt.startswith("## Query\nWhere is main?\n\n## Iteration\n1 of 3\n\n## Accumulated Context\n")
        assert user_prompt.endswith("Respond with valid JSON matching the schema.")

    def test_build_user_prompt_embeds_render(self):
        context = AccumulatedContext()
        context.log_action("Listed directory: /x")

        prompt = build_user_prompt("q", context, 2, 4)

        assert "## Iteration\n2 of 4" in prompt
        assert context.render() in prompt


class TestFatalErrors:
    """Errors that abort the run."""

    @pytest.mark.asyncio
    async def test_empty_skill(self, loop, executor):
        with pytest.raises(SkillUnavailable):
            await loop.run("q", None, Budget(), "   \n", ScriptedOracle([complete()]), executor)

    @pytest.mark.asyncio
    async def test_root_outside_sandbox(self, loop, executor, outside_dir: Path, skill_text: str):
        oracle = ScriptedOracle([complete()])

        with pytest.raises(AccessDenied):
            await loop.run("q", str(outside_dir), Budget(), skill_text, oracle, executor)

        assert oracle.call_count == 0

    @pytest.mark.asyncio
    async def test_root_is_a_file(self, loop, executor, project: Path, skill_text: str):
        with pytest.raises(NotADirectory):
            await loop.run("q", str(project / "README.md"), Budget(), skill_text, ScriptedOracle([complete()]), executor)

    @pytest.mark.asyncio
    async def test_starting_subdirectory(self, loop, executor, project: Path, skill_text: str):
        oracle = ScriptedOracle([incomplete(ReadFiles(paths=("main.py",))), complete("ok")])

        result = await loop.run("q", str(project / "src"), Budget(), skill_text, oracle, executor)

        assert result.context.actions_taken[0] == f"Listed directory: {project / 'src'}"
        assert [f.path for f in result.context.file_contents] == ["main.py"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        GenerationFailed("AI reasoning failed: boom"),
        DecisionInvalid("Decision field 'analysis' must be a string"),
    ])
    async def test_oracle_failure_aborts(self, loop, executor, skill_text: str, error):
        oracle = ScriptedOracle([incomplete(), error])

        with pytest.raises(GenerationFailed):
            await loop.run("q", None, Budget(), skill_text, oracle, executor)

        assert oracle.call_count == 2

    @pytest.mark.asyncio
    async def test_cancel_event(self, loop, executor, skill_text: str):
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(RunCancelled):
            await loop.run("q", None, Budget(), skill_text, ScriptedOracle([complete()]), executor, cancel)
