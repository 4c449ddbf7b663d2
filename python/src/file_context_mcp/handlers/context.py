"""
file_context Tool Handler.

Validates the request, loads the reasoning skill and runs the ReasoningLoop
under the server's per-call timeout. The result is returned as the final text
plus a structured payload carrying the context summary and a markdown report.
"""

import asyncio
import logging
from typing import Any, Callable

from ..config import SKILL_ID
from ..errors import RunTimedOut
from ..executor import ActionExecutor
from ..reasoning import Budget, ReasoningLoop, ReasoningResult
from ..responses import ToolResult
from .arguments import optional_int, optional_path, validate_query

logger = logging.getLogger(__name__)


def build_report(query: str, result: ReasoningResult) -> str:
    return (
        f"# File Context Analysis\n\n## Query\n{query}\n\n"
        f"## Result\n{result.final_text}\n\n"
        f"## Context Gathered\n{result.context.render()}"
    )


async def handle_file_context(
    arguments: dict[str, Any],
    get_instances: Callable,
) -> ToolResult:
    """
    Handle file_context tool call.

    Raises FileContextError subclasses for every failure; the server turns
    them into error responses.
    """
    config, server_config, sandbox, skill_loader, oracle = get_instances()

    query = validate_query(arguments)
    path = optional_path(arguments)
    requested = optional_int(arguments, "max_iterations", config.default_max_iterations)
    budget = Budget.clamped(requested, config.max_context_tokens)

    if budget.max_iterations != requested:
        logger.info(f"max_iterations {requested} clamped to {budget.max_iterations}")

    skill_text = skill_loader.load_skill(SKILL_ID)

    loop = ReasoningLoop(sandbox, config)
    executor = ActionExecutor(sandbox, config)
    timeout = server_config.operation_timeout_seconds

    try:
        result = await asyncio.wait_for(
            loop.run(query, path, budget, skill_text, oracle, executor),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise RunTimedOut(f"Context gathering timed out after {timeout:.0f}s") from e

    return ToolResult(
        text=result.final_text,
        structured={
            "query": query,
            "final_result": result.final_text,
            "context_summary": result.context.summary(),
            "iterations": result.iterations,
            "stop_reason": result.stop_reason,
            "report": build_report(query, result),
        },
    )
