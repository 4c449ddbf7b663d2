"""
Budget-bounded reasoning loop.

Each iteration renders the accumulated context, asks the oracle whether that is
enough to answer the query, and either stops with the answer or runs the
actions the oracle proposed. The loop always terminates: after at most
``budget.max_iterations`` oracle calls, or earlier when the context grows past
``budget.max_context_tokens``.

Failure handling:
- Bad starting root, empty skill, oracle failure, cancellation: fatal, raised
- Failed actions: recorded in the context's action log, the loop continues
- Budget exhaustion: not an error, the answer is the current understanding
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from .config import (
    DEFAULT_MAX_CONTEXT_TOKENS,
    DEFAULT_MAX_ITERATIONS,
    MAX_ITERATIONS_LIMIT,
    FileContextConfig,
)
from .context import AccumulatedContext
from .errors import RunCancelled, SkillUnavailable
from .executor import ActionExecutor
from .fs_tools import build_directory_tree
from .models import DECISION_SCHEMA, describe_action
from .oracle import DecisionOracle
from .sandbox import PathSandbox

logger = logging.getLogger(__name__)


STOP_COMPLETE = "complete"
STOP_CONTEXT_LIMIT = "context_limit"
STOP_MAX_ITERATIONS = "max_iterations"


@dataclass(frozen=True)
class Budget:
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS

    @classmethod
    def clamped(
        cls,
        max_iterations: int | None = None,
        max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
    ) -> "Budget":
        """Build a budget with max_iterations clamped to 0..MAX_ITERATIONS_LIMIT."""
        if max_iterations is None:
            max_iterations = DEFAULT_MAX_ITERATIONS
        return cls(
            max_iterations=max(0, min(max_iterations, MAX_ITERATIONS_LIMIT)),
            max_context_tokens=max_context_tokens,
        )


@dataclass
class ReasoningResult:
    final_text: str
    context: AccumulatedContext
    iterations: int
    stop_reason: str


def build_user_prompt(query: str, context: AccumulatedContext, iteration: int, max_iterations: int) -> str:
    return f"""## Query
{query}

## Iteration
{iteration} of {max_iterations}

## Accumulated Context
{context.render()}

Based on the above context, analyze what you know and decide:
1. If you have enough information to answer the query comprehensively, set is_complete=true and provide final_result
2. If you need more context, specify next_actions to gather it

Respond with valid JSON matching the schema."""


class ReasoningLoop:
    """Drives iterate, decide, act for one query at a time."""

    def __init__(self, sandbox: PathSandbox, config: FileContextConfig | None = None):
        self.sandbox = sandbox
        self.config = config or FileContextConfig()

    async def run(
        self,
        query: str,
        starting_root: str | Path | None,
        budget: Budget,
        skill_text: str,
        oracle: DecisionOracle,
        executor: ActionExecutor,
        cancel_event: asyncio.Event | None = None,
    ) -> ReasoningResult:
        """
        Gather context for ``query`` and return the final answer.

        Raises:
            PathInvalid: the starting root is unusable (or no roots configured)
            SkillUnavailable: ``skill_text`` is empty
            GenerationFailed: the oracle failed or returned an invalid decision
            RunCancelled: ``cancel_event`` was set between iterations
        """
        root = self.sandbox.resolve_root(starting_root)

        if not skill_text or not skill_text.strip():
            raise SkillUnavailable("Skill not found or empty")

        start_time = time.perf_counter()
        logger.info(f"[LOOP] Starting context gathering in {root} (max {budget.max_iterations} iterations)")

        context = AccumulatedContext()
        initial = await asyncio.to_thread(build_directory_tree, root, self.config.initial_tree_depth)
        context.set_initial_tree(initial.text)
        context.log_action(f"Listed directory: {root}")

        final_text = ""
        stop_reason = STOP_MAX_ITERATIONS
        oracle_calls = 0

        for iteration in range(1, budget.max_iterations + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"[LOOP] Cancelled before iteration {iteration}")
                raise RunCancelled(f"Context gathering cancelled after {oracle_calls} iterations")

            tokens = context.estimated_tokens()
            if tokens > budget.max_context_tokens:
                logger.warning(
                    f"[LOOP] Context too large ({tokens} > {budget.max_context_tokens} tokens), forcing completion"
                )
                final_text = (
                    f"Context limit reached after {iteration} iterations. "
                    f"Current understanding:\n\n{context.render()}"
                )
                stop_reason = STOP_CONTEXT_LIMIT
                break

            logger.debug(f"[LOOP] Iteration {iteration}/{budget.max_iterations} (~{tokens} tokens)")
            prompt = build_user_prompt(query, context, iteration, budget.max_iterations)

            oracle_calls += 1
            decision = await oracle.decide(skill_text, prompt, DECISION_SCHEMA)
            logger.debug(f"[LOOP] Analysis: {decision.analysis[:200]}")

            if decision.is_complete:
                final_text = decision.answer()
                stop_reason = STOP_COMPLETE
                break

            if decision.next_actions:
                logger.info(
                    f"[LOOP] Iteration {iteration}: "
                    f"{', '.join(describe_action(a) for a in decision.next_actions)}"
                )
            await executor.execute_all(decision.next_actions, root, context)

        if not final_text:
            final_text = (
                f"Reached maximum iterations ({budget.max_iterations}). "
                f"Current understanding:\n\n{context.render()}"
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"[LOOP] Completed context gathering: {oracle_calls} oracle calls, "
            f"stop={stop_reason}, {len(context.actions_taken)} actions, {elapsed_ms:.0f}ms"
        )

        return ReasoningResult(
            final_text=final_text,
            context=context,
            iterations=oracle_calls,
            stop_reason=stop_reason,
        )
