"""
Accumulated context for one reasoning run.

An append-only buffer: directory listings, file contents, search results and a
log of every action taken. It renders itself to the markdown blob sent to the
oracle and estimates its own size from that rendering.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FileContent:
    path: str
    content: str
    truncated: bool = False


@dataclass
class SearchResult:
    query: str
    matches: list[str] = field(default_factory=list)


@dataclass
class AccumulatedContext:
    directory_tree: str = ""
    file_contents: list[FileContent] = field(default_factory=list)
    search_results: list[SearchResult] = field(default_factory=list)
    actions_taken: list[str] = field(default_factory=list)

    def set_initial_tree(self, tree: str) -> None:
        self.directory_tree = tree

    def add_directory_listing(self, path: str, tree: str) -> None:
        self.directory_tree += f"\n\n### {path}\n{tree}"

    def add_file(self, file: FileContent) -> None:
        self.file_contents.append(file)

    def add_search_result(self, result: SearchResult) -> None:
        self.search_results.append(result)

    def log_action(self, description: str) -> None:
        self.actions_taken.append(description)

    def render(self) -> str:
        """Render the context as markdown, one section per kind of entry."""
        parts: list[str] = []

        if self.directory_tree:
            parts.append("## Directory Structure\n\n```\n")
            parts.append(self.directory_tree)
            parts.append("\n```\n\n")

        if self.file_contents:
            parts.append("## File Contents\n\n")
            for file in self.file_contents:
                parts.append(f"### {file.path}\n\n")
                if file.truncated:
                    parts.append("*(truncated)*\n\n")
                parts.append("```\n")
                parts.append(file.content)
                parts.append("\n```\n\n")

        if self.search_results:
            parts.append("## Search Results\n\n")
            for result in self.search_results:
                parts.append(f"### Search: `{result.query}`\n\n")
                for match_line in result.matches:
                    parts.append(f"- {match_line}\n")
                parts.append("\n")

        if self.actions_taken:
            parts.append("## Actions Taken\n\n")
            for i, action in enumerate(self.actions_taken, 1):
                parts.append(f"{i}. {action}\n")
            parts.append("\n")

        return "".join(parts)

    def estimated_tokens(self) -> int:
        # Coarse estimate: ~4 characters per token
        return len(self.render()) // 4

    def summary(self) -> dict[str, Any]:
        return {
            "files_read": [f.path for f in self.file_contents],
            "searches": [r.query for r in self.search_results],
            "actions_taken": list(self.actions_taken),
            "estimated_tokens": self.estimated_tokens(),
        }
