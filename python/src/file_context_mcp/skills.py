"""
Skill loading.

A skill is the markdown system prompt that drives the reasoning oracle. Skills
are looked up as ``<skill_id>.md``, first in an optional configured directory,
then among the skills packaged with this module.
"""

import logging
from pathlib import Path

from .errors import SkillUnavailable

logger = logging.getLogger(__name__)

PACKAGED_SKILLS_DIR = Path(__file__).parent / "bundled_skills"


class SkillLoader:
    """Loads and caches skill texts."""

    def __init__(self, skills_dir: str | Path | None = None):
        self.search_dirs: list[Path] = []
        if skills_dir:
            self.search_dirs.append(Path(skills_dir).expanduser())
        self.search_dirs.append(PACKAGED_SKILLS_DIR)
        self._cache: dict[str, str] = {}

    def find_skill(self, skill_id: str) -> Path | None:
        for directory in self.search_dirs:
            candidate = directory / f"{skill_id}.md"
            if candidate.is_file():
                return candidate
        return None

    def load_skill(self, skill_id: str) -> str:
        """
        Return the text of ``skill_id``.

        Raises:
            SkillUnavailable: no skill file exists, it is unreadable, or empty
        """
        if skill_id in self._cache:
            logger.debug(f"Loading skill '{skill_id}' from cache")
            return self._cache[skill_id]

        if not skill_id or "/" in skill_id or "\\" in skill_id:
            raise SkillUnavailable(f"Invalid skill id: '{skill_id}'")

        path = self.find_skill(skill_id)
        if path is None:
            logger.error(f"Skill '{skill_id}' not found in {[str(d) for d in self.search_dirs]}")
            raise SkillUnavailable(f"Skill '{skill_id}' not found or empty")

        try:
            content = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise SkillUnavailable(f"Failed to load skill '{skill_id}': {e}") from e

        if not content:
            raise SkillUnavailable(f"Skill '{skill_id}' not found or empty")

        logger.debug(f"Loaded skill '{skill_id}' from {path}")
        self._cache[skill_id] = content
        return content

    def clear_cache(self) -> None:
        self._cache.clear()
