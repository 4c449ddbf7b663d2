"""
Action executor for the reasoning loop.

Runs the actions proposed by the oracle (read files, grep, list a directory,
glob) against the sandboxed filesystem and folds each outcome into the
accumulated context. Failures never escape: they become action-log entries so
a single bad action cannot abort the loop.

Execution is split in two phases:
- gather: filesystem work, safe to run concurrently for one iteration
- fold: append the outcome to the context, always in proposal order
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import aiofiles

from .config import DEFAULT_LIST_DEPTH, MAX_LIST_FILES_DEPTH, FileContextConfig
from .context import AccumulatedContext, FileContent, SearchResult
from .fs_tools import build_directory_tree, cap_content, compile_regex, glob_paths, grep_tree
from .models import Action, GlobSearch, Grep, ListDirectory, ReadFiles, describe_action
from .sandbox import PathSandbox

logger = logging.getLogger(__name__)


@dataclass
class ActionOutcome:
    """Everything one action contributes to the context."""
    files: list[FileContent] = field(default_factory=list)
    search_result: Optional[SearchResult] = None
    listing: Optional[tuple[str, str]] = None
    log: list[str] = field(default_factory=list)


class ActionExecutor:
    """Executes oracle-proposed actions inside a PathSandbox."""

    def __init__(self, sandbox: PathSandbox, config: FileContextConfig | None = None):
        self.sandbox = sandbox
        self.config = config or FileContextConfig()

    @staticmethod
    def resolve(root: Path, path_str: str) -> Path:
        """Relative paths are taken from the run's root; absolute paths as-is."""
        path = Path(path_str)
        return path if path.is_absolute() else root / path

    async def execute(self, action: Action, root: Path, context: AccumulatedContext) -> None:
        """Run one action and fold its outcome into ``context``."""
        outcome = await self.gather(action, root)
        self.fold(outcome, context)

    async def execute_all(
        self,
        actions: Sequence[Action],
        root: Path,
        context: AccumulatedContext,
    ) -> None:
        """
        Run a batch of actions.

        With ``parallel_actions`` enabled the gather phase runs concurrently;
        outcomes are still folded in the order the actions were proposed.
        """
        if self.config.parallel_actions and len(actions) > 1:
            outcomes = await asyncio.gather(*(self.gather(action, root) for action in actions))
            for outcome in outcomes:
                self.fold(outcome, context)
            return

        for action in actions:
            await self.execute(action, root, context)

    @staticmethod
    def fold(outcome: ActionOutcome, context: AccumulatedContext) -> None:
        for file in outcome.files:
            context.add_file(file)
        if outcome.listing is not None:
            context.add_directory_listing(*outcome.listing)
        if outcome.search_result is not None:
            context.add_search_result(outcome.search_result)
        for entry in outcome.log:
            context.log_action(entry)

    async def gather(self, action: Action, root: Path) -> ActionOutcome:
        """Perform the filesystem work for one action. Never raises."""
        logger.debug(f"[ACTION] {describe_action(action)}")
        try:
            if isinstance(action, ReadFiles):
                return await self._read_files(action, root)
            if isinstance(action, Grep):
                return await self._grep(action, root)
            if isinstance(action, ListDirectory):
                return await self._list_directory(action, root)
            if isinstance(action, GlobSearch):
                return await self._glob_search(action, root)
            return ActionOutcome(log=[f"Unsupported action: {action!r}"])
        except Exception as e:
            logger.warning(f"[ACTION] {describe_action(action)} failed unexpectedly: {e}")
            return ActionOutcome(log=[f"Action failed: {describe_action(action)}: {e}"])

    # =========================================================================
    # Per-variant handlers
    # =========================================================================

    async def _read_files(self, action: ReadFiles, root: Path) -> ActionOutcome:
        outcome = ActionOutcome()

        for path_str in action.paths:
            try:
                validated = self.sandbox.validate_path(self.resolve(root, path_str))
                content = await self._read_text(validated)
            except Exception as e:
                logger.warning(f"[ACTION] Failed to read {path_str}: {e}")
                outcome.log.append(f"Failed to read {path_str}: {e}")
                continue

            capped, truncated = cap_content(content, self.config.max_file_content_chars)
            outcome.files.append(FileContent(path=path_str, content=capped, truncated=truncated))
            outcome.log.append(f"Read file: {path_str}")

        return outcome

    @staticmethod
    async def _read_text(path: Path) -> str:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            return await f.read()

    async def _grep(self, action: Grep, root: Path) -> ActionOutcome:
        search_path = self.resolve(root, action.path) if action.path else root

        try:
            validated = self.sandbox.validate_path(search_path)
            regex = compile_regex(action.pattern)
            result = await asyncio.to_thread(
                grep_tree,
                validated,
                regex,
                glob=action.glob,
                max_matches=self.config.max_search_matches,
                sandbox=self.sandbox,
            )
        except Exception as e:
            logger.warning(f"[ACTION] Grep failed for {action.pattern}: {e}")
            return ActionOutcome(log=[f"Grep failed for {action.pattern}: {e}"])

        return ActionOutcome(
            search_result=SearchResult(
                query=action.pattern,
                matches=[m.to_context_line() for m in result.matches],
            ),
            log=[f"Searched for: {action.pattern}"],
        )

    async def _list_directory(self, action: ListDirectory, root: Path) -> ActionOutcome:
        depth = DEFAULT_LIST_DEPTH if action.depth is None else action.depth
        depth = min(depth, MAX_LIST_FILES_DEPTH)

        try:
            validated = self.sandbox.validate_directory(self.resolve(root, action.path))
            listing = await asyncio.to_thread(build_directory_tree, validated, depth)
        except Exception as e:
            logger.warning(f"[ACTION] Cannot list {action.path}: {e}")
            return ActionOutcome(log=[f"Cannot list {action.path}: {e}"])

        return ActionOutcome(
            listing=(action.path, listing.text),
            log=[f"Listed directory: {action.path}"],
        )

    async def _glob_search(self, action: GlobSearch, root: Path) -> ActionOutcome:
        search_path = self.resolve(root, action.path) if action.path else root

        try:
            validated = self.sandbox.validate_path(search_path)
            matches = await asyncio.to_thread(
                glob_paths,
                validated,
                action.pattern,
                max_results=self.config.max_search_matches,
                sandbox=self.sandbox,
            )
        except Exception as e:
            logger.warning(f"[ACTION] Glob failed for {action.pattern}: {e}")
            return ActionOutcome(log=[f"Glob failed for {action.pattern}: {e}"])

        return ActionOutcome(
            search_result=SearchResult(
                query=f"glob:{action.pattern}",
                matches=[str(path) for path in matches],
            ),
            log=[f"Glob search: {action.pattern}"],
        )
