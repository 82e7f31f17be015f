from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from continuum.errors import LevelConfigError
from continuum.levels import DATA_DIR, _list, _number, _required, world_progress

logger = logging.getLogger(__name__)

DEFAULT_THEORY_LEVELS_PATH = DATA_DIR / "theory_levels.json"


@dataclass(frozen=True)
class TheoryLevel:
    """A written lesson with a practice problem; completion is self-reported."""

    id: int
    world: int
    title: str
    concept: str
    lesson: str
    problem: str
    map_position: Optional[Tuple[float, float]] = None
    requires: Tuple[int, ...] = ()


def _text(data: Dict[str, Any], key: str, level_id=None) -> str:
    value = _required(data, key, level_id)
    if not isinstance(value, str):
        raise LevelConfigError(f"field '{key}' must be text, got {value!r}", level_id)
    return value


def parse_theory_level(data: Dict[str, Any]) -> TheoryLevel:
    if not isinstance(data, dict):
        raise LevelConfigError(f"theory level record must be an object, got {data!r}")
    level_id = data.get("id")
    missing = [key for key in ("id", "world", "title", "concept", "lesson", "problem") if key not in data]
    if missing:
        raise LevelConfigError(f"theory level is missing {', '.join(missing)}", level_id)
    if not isinstance(level_id, int) or isinstance(level_id, bool):
        raise LevelConfigError(f"theory level id must be an integer, got {level_id!r}")

    map_position = data.get("map_position")
    return TheoryLevel(
        id=level_id,
        world=int(_number(data["world"], "world", level_id)),
        title=_text(data, "title", level_id),
        concept=_text(data, "concept", level_id),
        lesson=_text(data, "lesson", level_id),
        problem=_text(data, "problem", level_id),
        map_position=(
            tuple(
                _number(_required(map_position, axis, level_id), f"map_position.{axis}", level_id)
                for axis in "xy"
            )
            if map_position
            else None
        ),
        requires=tuple(int(_number(req, "requires", level_id)) for req in _list(data, "requires", level_id)),
    )


def parse_theory_levels(records: Sequence[Dict[str, Any]]) -> List[TheoryLevel]:
    levels = [parse_theory_level(record) for record in records]
    seen = set()
    for level in levels:
        if level.id in seen:
            raise LevelConfigError("duplicate theory level id", level.id)
        seen.add(level.id)
    return levels


def load_theory_levels(path: Path | str | None = None) -> List[TheoryLevel]:
    path = Path(path) if path is not None else DEFAULT_THEORY_LEVELS_PATH
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LevelConfigError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise LevelConfigError(f"{path} must contain a list of theory levels")
    levels = parse_theory_levels(records)
    logger.debug("Loaded %d theory levels from %s", len(levels), path)
    return levels


def get_theory_level_by_id(levels: Iterable[TheoryLevel], level_id: int) -> Optional[TheoryLevel]:
    return next((level for level in levels if level.id == level_id), None)


def theory_world_progress(
    levels: Iterable[TheoryLevel], world: int, completed_ids: Iterable[int]
) -> Tuple[int, int]:
    return world_progress(levels, world, completed_ids)
