from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

logger = logging.getLogger(__name__)


def _clean_ids(values: Any) -> List[int]:
    if not isinstance(values, list):
        return []
    ids = set()
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number) and number.is_integer():
            ids.add(int(number))
    return sorted(ids)


@dataclass(frozen=True)
class LearningProgress:
    completed_levels: List[int] = field(default_factory=list)
    completed_theory_levels: List[int] = field(default_factory=list)

    def mark_level_completed(self, level_id: int) -> "LearningProgress":
        if level_id in self.completed_levels:
            return self
        return LearningProgress(sorted([*self.completed_levels, level_id]), list(self.completed_theory_levels))

    def mark_theory_level_completed(self, level_id: int) -> "LearningProgress":
        if level_id in self.completed_theory_levels:
            return self
        return LearningProgress(list(self.completed_levels), sorted([*self.completed_theory_levels, level_id]))

    def to_dict(self) -> dict:
        return {
            "completed_levels": list(self.completed_levels),
            "completed_theory_levels": list(self.completed_theory_levels),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LearningProgress":
        if not isinstance(data, dict):
            return cls()
        return cls(_clean_ids(data.get("completed_levels")), _clean_ids(data.get("completed_theory_levels")))


class ProgressStore:
    """JSON file holding one learner's completed practice and theory levels.

    An unreadable or corrupt file is treated as empty progress so a bad save never
    locks the learner out of the map.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> LearningProgress:
        if not self.path.exists():
            return LearningProgress()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable progress file %s: %s", self.path, exc)
            return LearningProgress()
        return LearningProgress.from_dict(data)

    def save(self, progress: LearningProgress) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(progress.to_dict(), indent=2), encoding="utf-8")
        logger.debug("Saved progress to %s", self.path)

    def mark_level_completed(self, level_id: int) -> LearningProgress:
        current = self.load()
        updated = current.mark_level_completed(level_id)
        if updated is not current:
            self.save(updated)
        return updated

    def mark_theory_level_completed(self, level_id: int) -> LearningProgress:
        current = self.load()
        updated = current.mark_theory_level_completed(level_id)
        if updated is not current:
            self.save(updated)
        return updated

    def reset(self) -> LearningProgress:
        progress = LearningProgress()
        self.save(progress)
        return progress
