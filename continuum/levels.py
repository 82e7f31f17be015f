from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from continuum.errors import LevelConfigError, LevelNotFoundError
from continuum.kinematics import (
    ParamKey,
    Point3,
    RobotParams,
    compute_tip_position,
    distance3,
    sample_robot_points,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_LEVELS_PATH = DATA_DIR / "levels.json"

# Denser than the display default so thin obstacles are less likely to slip between samples.
COLLISION_SAMPLES = 28


@dataclass(frozen=True)
class Obstacle:
    x: float
    y: float
    z: float
    radius: float

    @property
    def center(self) -> Point3:
        return Point3(self.x, self.y, self.z)


@dataclass(frozen=True)
class ParamRangeRule:
    key: ParamKey
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class TipTargetRule:
    point: Point3
    threshold: float


@dataclass(frozen=True)
class LevelRules:
    tip_target: Optional[TipTargetRule] = None
    param_ranges: Tuple[ParamRangeRule, ...] = ()
    avoid_obstacles: bool = False


@dataclass(frozen=True)
class LevelConfig:
    id: int
    world: int
    title: str
    initial_params: RobotParams
    rules: LevelRules = field(default_factory=LevelRules)
    concept: str = ""
    goal: str = ""
    challenge: str = ""
    map_position: Optional[Tuple[float, float]] = None
    target: Optional[Point3] = None
    obstacles: Tuple[Obstacle, ...] = ()
    requires: Tuple[int, ...] = ()


@dataclass
class LevelCheck:
    label: str
    passed: bool
    detail: str


@dataclass
class LevelEvaluation:
    passed: bool
    checks: List[LevelCheck] = field(default_factory=list)
    tip_distance: Optional[float] = None

    def failed_labels(self) -> List[str]:
        return [check.label for check in self.checks if not check.passed]


def points_hit_obstacle(points: Iterable[Point3], obstacle: Obstacle) -> bool:
    center = obstacle.center
    return any(distance3(point, center) <= obstacle.radius for point in points)


def _range_value(level: LevelConfig, rule: ParamRangeRule, params: RobotParams) -> float:
    try:
        return params.get(rule.key)
    except ValueError as exc:
        raise LevelConfigError(f"unknown parameter key {rule.key!r} in range rule", level.id) from exc


def evaluate_level(level: LevelConfig, params: RobotParams) -> LevelEvaluation:
    """Run the level's rule checks against ``params`` and aggregate them.

    Checks are reported in a fixed order: parameter ranges, tip target, obstacle
    clearance. Rules missing from the level are skipped and never count as failures,
    so a level without rules always passes.
    """

    checks: List[LevelCheck] = []
    passed = True
    tip_distance: Optional[float] = None
    rules = level.rules

    for rule in rules.param_ranges:
        value = _range_value(level, rule, params)
        min_pass = rule.min is None or value >= rule.min
        max_pass = rule.max is None or value <= rule.max
        ok = min_pass and max_pass
        key = ParamKey(rule.key).value
        checks.append(LevelCheck(label=f"{key} range", passed=ok, detail=f"Current {key}={value:.2f}"))
        passed = passed and ok

    if rules.tip_target is not None:
        tip = compute_tip_position(params)
        tip_distance = distance3(tip, rules.tip_target.point)
        ok = tip_distance <= rules.tip_target.threshold
        checks.append(
            LevelCheck(
                label="Tip to target",
                passed=ok,
                detail=f"Distance {tip_distance:.3f}m (<= {rules.tip_target.threshold:.3f}m)",
            )
        )
        passed = passed and ok

    if rules.avoid_obstacles and level.obstacles:
        points = sample_robot_points(params, COLLISION_SAMPLES)
        collision = any(points_hit_obstacle(points, obstacle) for obstacle in level.obstacles)
        ok = not collision
        checks.append(
            LevelCheck(
                label="Obstacle clearance",
                passed=ok,
                detail="No sampled collision points" if ok else "Collision detected with obstacle volume",
            )
        )
        passed = passed and ok

    logger.debug("Level %s evaluated: passed=%s checks=%d", level.id, passed, len(checks))
    return LevelEvaluation(passed=passed, checks=checks, tip_distance=tip_distance)


def check_message(level: LevelConfig, evaluation: LevelEvaluation) -> str:
    if evaluation.passed:
        return f"Level {level.id} complete. Next level unlocked."
    return f"Not passed yet. Fix: {', '.join(evaluation.failed_labels())}."


# ---------------------------------------------------------------------------
# Level table loading
# ---------------------------------------------------------------------------


def _required(data: Dict[str, Any], key: str, level_id=None) -> Any:
    if not isinstance(data, dict):
        raise LevelConfigError(f"expected an object with field '{key}', got {data!r}", level_id)
    if key not in data:
        raise LevelConfigError(f"missing required field '{key}'", level_id)
    return data[key]


def _list(data: Dict[str, Any], key: str, level_id=None) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise LevelConfigError(f"field '{key}' must be a list, got {value!r}", level_id)
    return value


def _number(value: Any, name: str, level_id=None) -> float:
    if isinstance(value, bool):
        raise LevelConfigError(f"field '{name}' must be a number, got {value!r}", level_id)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise LevelConfigError(f"field '{name}' must be a number, got {value!r}", level_id) from exc


def _optional_number(data: Dict[str, Any], key: str, level_id=None) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    return _number(value, key, level_id)


def _point(data: Dict[str, Any], name: str, level_id=None) -> Point3:
    if not isinstance(data, dict):
        raise LevelConfigError(f"field '{name}' must be an object with x, y, z", level_id)
    return Point3(*(_number(_required(data, axis, level_id), f"{name}.{axis}", level_id) for axis in "xyz"))


def _params(data: Dict[str, Any], level_id=None) -> RobotParams:
    if not isinstance(data, dict):
        raise LevelConfigError("field 'initial_params' must be an object", level_id)
    unknown = set(data) - {key.value for key in ParamKey}
    if unknown:
        raise LevelConfigError(f"unknown parameter(s) {sorted(unknown)} in initial_params", level_id)
    values = {
        key.value: _number(_required(data, key.value, level_id), key.value, level_id) for key in ParamKey
    }
    return RobotParams(**values)


def _param_key(value: Any, level_id=None) -> ParamKey:
    try:
        return ParamKey(value)
    except ValueError as exc:
        allowed = ", ".join(key.value for key in ParamKey)
        raise LevelConfigError(f"unknown parameter key {value!r}; expected one of {allowed}", level_id) from exc


def _rules(data: Dict[str, Any], level_id=None) -> LevelRules:
    if not isinstance(data, dict):
        raise LevelConfigError("field 'rules' must be an object", level_id)
    avoid_obstacles = data.get("avoid_obstacles")
    if avoid_obstacles is not None and not isinstance(avoid_obstacles, bool):
        raise LevelConfigError(f"field 'avoid_obstacles' must be true or false, got {avoid_obstacles!r}", level_id)

    tip_target = None
    if data.get("tip_target") is not None:
        raw = data["tip_target"]
        tip_target = TipTargetRule(
            point=_point(_required(raw, "point", level_id), "tip_target.point", level_id),
            threshold=_number(_required(raw, "threshold", level_id), "tip_target.threshold", level_id),
        )

    ranges = []
    for raw in _list(data, "param_ranges", level_id):
        ranges.append(
            ParamRangeRule(
                key=_param_key(_required(raw, "key", level_id), level_id),
                min=_optional_number(raw, "min", level_id),
                max=_optional_number(raw, "max", level_id),
            )
        )

    return LevelRules(
        tip_target=tip_target,
        param_ranges=tuple(ranges),
        avoid_obstacles=bool(avoid_obstacles),
    )


def parse_level(data: Dict[str, Any]) -> LevelConfig:
    """Build a LevelConfig from one JSON record, rejecting malformed content up front."""

    if not isinstance(data, dict):
        raise LevelConfigError(f"level record must be an object, got {data!r}")
    level_id = data.get("id")
    if not isinstance(level_id, int) or isinstance(level_id, bool):
        raise LevelConfigError(f"level id must be an integer, got {level_id!r}")

    target = data.get("target")
    map_position = data.get("map_position")
    obstacles = tuple(
        Obstacle(
            *(_number(_required(raw, axis, level_id), f"obstacle.{axis}", level_id) for axis in "xyz"),
            radius=_number(_required(raw, "radius", level_id), "obstacle.radius", level_id),
        )
        for raw in _list(data, "obstacles", level_id)
    )

    return LevelConfig(
        id=level_id,
        world=int(_number(_required(data, "world", level_id), "world", level_id)),
        title=str(_required(data, "title", level_id)),
        concept=data.get("concept", ""),
        goal=data.get("goal", ""),
        challenge=data.get("challenge", ""),
        map_position=(
            tuple(
                _number(_required(map_position, axis, level_id), f"map_position.{axis}", level_id)
                for axis in "xy"
            )
            if map_position
            else None
        ),
        initial_params=_params(_required(data, "initial_params", level_id), level_id),
        target=_point(target, "target", level_id) if target is not None else None,
        obstacles=obstacles,
        rules=_rules(data["rules"] if data.get("rules") is not None else {}, level_id),
        requires=tuple(int(_number(req, "requires", level_id)) for req in _list(data, "requires", level_id)),
    )


def parse_levels(records: Sequence[Dict[str, Any]]) -> List[LevelConfig]:
    levels = [parse_level(record) for record in records]
    seen = set()
    for level in levels:
        if level.id in seen:
            raise LevelConfigError("duplicate level id", level.id)
        seen.add(level.id)
    return levels


def load_levels(path: Path | str | None = None) -> List[LevelConfig]:
    path = Path(path) if path is not None else DEFAULT_LEVELS_PATH
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise LevelConfigError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(records, list):
        raise LevelConfigError(f"{path} must contain a list of levels")
    levels = parse_levels(records)
    logger.debug("Loaded %d levels from %s", len(levels), path)
    return levels


# ---------------------------------------------------------------------------
# Progression
# ---------------------------------------------------------------------------


def get_level_by_id(levels: Iterable[LevelConfig], level_id: int) -> Optional[LevelConfig]:
    return next((level for level in levels if level.id == level_id), None)


def require_level(levels: Iterable[LevelConfig], level_id: int) -> LevelConfig:
    level = get_level_by_id(levels, level_id)
    if level is None:
        raise LevelNotFoundError(level_id)
    return level


def is_level_unlocked(level, completed_ids: Iterable[int]) -> bool:
    """A level (practice or theory) is unlocked once every level it requires is completed."""

    completed = set(completed_ids)
    return all(required in completed for required in level.requires)


def world_progress(levels: Iterable[Any], world: int, completed_ids: Iterable[int]) -> Tuple[int, int]:
    completed = set(completed_ids)
    in_world = [level for level in levels if level.world == world]
    done = sum(1 for level in in_world if level.id in completed)
    return done, len(in_world)


def next_unlocked_level(levels: Iterable[LevelConfig], completed_ids: Iterable[int]) -> Optional[LevelConfig]:
    completed = set(completed_ids)
    for level in levels:
        if level.id not in completed and is_level_unlocked(level, completed):
            return level
    return None
