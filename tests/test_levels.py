"""Unit tests for continuum/levels.py — rule evaluation, level loading and progression."""

import json
import math

import pytest

from continuum.errors import LevelConfigError, LevelNotFoundError
from continuum.kinematics import ParamKey, Point3, RobotParams, compute_tip_position, distance3
from continuum.levels import (
    COLLISION_SAMPLES,
    LevelConfig,
    LevelRules,
    Obstacle,
    ParamRangeRule,
    TipTargetRule,
    check_message,
    evaluate_level,
    get_level_by_id,
    is_level_unlocked,
    load_levels,
    next_unlocked_level,
    parse_level,
    parse_levels,
    points_hit_obstacle,
    require_level,
    world_progress,
)

STRAIGHT = RobotParams(kappa1=0.0, phi1=0.0, L1=0.5, kappa2=0.0, phi2=0.0, L2=0.5)
REACH = RobotParams(kappa1=1.5, phi1=0.0, L1=0.6, kappa2=1.5, phi2=0.0, L2=0.6)


def make_level(rules=None, obstacles=(), target=None, level_id=1, requires=()):
    return LevelConfig(
        id=level_id,
        world=1,
        title="Test level",
        initial_params=STRAIGHT,
        rules=rules or LevelRules(),
        obstacles=tuple(obstacles),
        target=target,
        requires=tuple(requires),
    )


def level_record(**overrides):
    record = {
        "id": 1,
        "world": 1,
        "title": "Record",
        "initial_params": {"kappa1": 0.4, "phi1": 0, "L1": 0.55, "kappa2": 0, "phi2": 0, "L2": 0.1},
        "rules": {"param_ranges": [{"key": "kappa1", "min": 4.0}]},
        "requires": [],
    }
    record.update(overrides)
    return record


# ---------------------------------------------------------------------------
# Tests — evaluate_level: aggregation
# ---------------------------------------------------------------------------

class TestNoRules:
    def test_empty_rules_pass_with_no_checks(self):
        result = evaluate_level(make_level(), REACH)
        assert result.passed is True
        assert result.checks == []
        assert result.tip_distance is None

    def test_obstacles_without_avoid_flag_are_ignored(self):
        level = make_level(obstacles=[Obstacle(0.0, 0.0, 0.5, 0.2)])
        result = evaluate_level(level, STRAIGHT)
        assert result.passed is True
        assert result.checks == []

    def test_avoid_flag_without_obstacles_is_skipped(self):
        result = evaluate_level(make_level(LevelRules(avoid_obstacles=True)), STRAIGHT)
        assert result.passed is True
        assert result.checks == []


# ---------------------------------------------------------------------------
# Tests — parameter ranges
# ---------------------------------------------------------------------------

class TestParamRanges:
    def _level(self, *rules):
        return make_level(LevelRules(param_ranges=tuple(rules)))

    def test_below_min_fails(self):
        params = RobotParams(3.99, 0.0, 0.5, 0.0, 0.0, 0.5)
        result = evaluate_level(self._level(ParamRangeRule(ParamKey.KAPPA1, min=4.0)), params)
        assert result.passed is False
        assert result.checks[0].label == "kappa1 range"
        assert result.checks[0].passed is False
        assert result.checks[0].detail == "Current kappa1=3.99"

    def test_min_boundary_is_inclusive(self):
        params = RobotParams(4.0, 0.0, 0.5, 0.0, 0.0, 0.5)
        result = evaluate_level(self._level(ParamRangeRule(ParamKey.KAPPA1, min=4.0)), params)
        assert result.passed is True
        assert result.checks[0].detail == "Current kappa1=4.00"

    def test_max_boundary_is_inclusive(self):
        params = RobotParams(0.0, 0.0, 0.5, 0.2, 0.0, 0.5)
        result = evaluate_level(self._level(ParamRangeRule(ParamKey.KAPPA2, max=0.2)), params)
        assert result.passed is True

    def test_both_bounds_must_hold(self):
        rule = ParamRangeRule(ParamKey.PHI1, min=80, max=110)
        assert evaluate_level(self._level(rule), RobotParams(4.0, 95.0, 0.5, 0, 0, 0.1)).passed
        assert not evaluate_level(self._level(rule), RobotParams(4.0, 79.0, 0.5, 0, 0, 0.1)).passed
        assert not evaluate_level(self._level(rule), RobotParams(4.0, 111.0, 0.5, 0, 0, 0.1)).passed

    def test_one_check_per_rule_in_order(self):
        level = self._level(
            ParamRangeRule(ParamKey.KAPPA1, min=2.0),
            ParamRangeRule(ParamKey.L2, min=0.45),
        )
        result = evaluate_level(level, RobotParams(2.5, 0.0, 0.5, 0.0, 0.0, 0.3))
        assert [check.label for check in result.checks] == ["kappa1 range", "L2 range"]
        assert [check.passed for check in result.checks] == [True, False]
        assert result.passed is False

    def test_string_keys_are_accepted(self):
        result = evaluate_level(self._level(ParamRangeRule("L1", min=0.75)), STRAIGHT)
        assert result.checks[0].label == "L1 range"
        assert result.passed is False

    def test_unknown_key_is_a_configuration_error(self):
        with pytest.raises(LevelConfigError, match="kappa3"):
            evaluate_level(self._level(ParamRangeRule("kappa3", min=1.0)), STRAIGHT)

    def test_nan_parameter_fails_the_range(self):
        params = RobotParams(float("nan"), 0.0, 0.5, 0.0, 0.0, 0.5)
        result = evaluate_level(self._level(ParamRangeRule(ParamKey.KAPPA1, min=4.0)), params)
        assert result.passed is False


# ---------------------------------------------------------------------------
# Tests — tip target
# ---------------------------------------------------------------------------

class TestTipTarget:
    # Both segments share one bending plane, so the tip sits on a single arc with
    # theta = 1.8 rad and radius 1/1.5 m: (0.818135, 0, 0.649232).
    REFERENCE_DISTANCE = 0.509370

    def _level(self, threshold=0.12):
        target = Point3(0.35, 0.0, 0.85)
        return make_level(LevelRules(tip_target=TipTargetRule(target, threshold)), target=target)

    def test_reference_distance(self):
        result = evaluate_level(self._level(), REACH)
        assert result.tip_distance == pytest.approx(self.REFERENCE_DISTANCE, abs=1e-5)
        assert result.passed is False
        assert result.checks[0].label == "Tip to target"
        assert result.checks[0].detail == "Distance 0.509m (<= 0.120m)"

    def test_reference_matches_closed_form(self):
        theta = 1.5 * 1.2
        tip = Point3((1 - math.cos(theta)) / 1.5, 0.0, math.sin(theta) / 1.5)
        expected = distance3(tip, Point3(0.35, 0.0, 0.85))
        assert evaluate_level(self._level(), REACH).tip_distance == pytest.approx(expected, rel=1e-12)

    def test_passes_within_threshold(self):
        result = evaluate_level(self._level(threshold=0.6), REACH)
        assert result.passed is True

    def test_threshold_is_inclusive(self):
        tip = compute_tip_position(REACH)
        level = make_level(LevelRules(tip_target=TipTargetRule(tip, 0.0)))
        result = evaluate_level(level, REACH)
        assert result.tip_distance == 0.0
        assert result.passed is True

    def test_tip_distance_only_set_with_target_rule(self):
        level = make_level(LevelRules(param_ranges=(ParamRangeRule(ParamKey.L1, min=0.1),)))
        assert evaluate_level(level, REACH).tip_distance is None


# ---------------------------------------------------------------------------
# Tests — obstacle clearance
# ---------------------------------------------------------------------------

class TestObstacles:
    RULES = LevelRules(avoid_obstacles=True)

    def test_straight_robot_through_obstacle_fails(self):
        level = make_level(self.RULES, obstacles=[Obstacle(0.0, 0.0, 0.5, 0.05)])
        result = evaluate_level(level, STRAIGHT)
        assert result.passed is False
        assert result.checks[0].label == "Obstacle clearance"
        assert result.checks[0].detail == "Collision detected with obstacle volume"

    def test_far_obstacle_passes(self):
        level = make_level(self.RULES, obstacles=[Obstacle(100.0, 100.0, 100.0, 0.5)])
        result = evaluate_level(level, STRAIGHT)
        assert result.passed is True
        assert result.checks[0].detail == "No sampled collision points"

    def test_any_obstacle_collision_fails(self):
        obstacles = [Obstacle(100.0, 100.0, 100.0, 0.5), Obstacle(0.05, 0.0, 0.9, 0.1)]
        assert evaluate_level(make_level(self.RULES, obstacles=obstacles), STRAIGHT).passed is False

    def test_surface_contact_counts_as_collision(self):
        # Straight backbone samples land at multiples of 0.5 / 28 m along z.
        step = 0.5 / COLLISION_SAMPLES
        obstacle = Obstacle(0.5, 0.0, 10 * step, 0.5)
        assert points_hit_obstacle([Point3(0.0, 0.0, 10 * step)], obstacle)

    def test_points_hit_obstacle_misses(self):
        assert not points_hit_obstacle([Point3(0.0, 0.0, 0.0), Point3(0.0, 0.0, 1.0)], Obstacle(1.0, 1.0, 1.0, 0.5))

    def test_checks_keep_fixed_order(self):
        target = Point3(0.0, 0.0, 1.0)
        rules = LevelRules(
            tip_target=TipTargetRule(target, 0.01),
            param_ranges=(ParamRangeRule(ParamKey.L1, min=0.5),),
            avoid_obstacles=True,
        )
        level = make_level(rules, obstacles=[Obstacle(1.0, 1.0, 1.0, 0.1)], target=target)
        result = evaluate_level(level, STRAIGHT)
        assert [check.label for check in result.checks] == ["L1 range", "Tip to target", "Obstacle clearance"]
        assert result.passed is True
        assert result.tip_distance == pytest.approx(0.0)


class TestCheckMessage:
    def test_pass_message(self):
        level = make_level(level_id=4)
        assert check_message(level, evaluate_level(level, STRAIGHT)) == "Level 4 complete. Next level unlocked."

    def test_failure_lists_labels(self):
        level = make_level(
            LevelRules(param_ranges=(ParamRangeRule(ParamKey.KAPPA1, min=4.0), ParamRangeRule(ParamKey.L2, min=0.9)))
        )
        message = check_message(level, evaluate_level(level, STRAIGHT))
        assert message == "Not passed yet. Fix: kappa1 range, L2 range."


# ---------------------------------------------------------------------------
# Tests — level loading
# ---------------------------------------------------------------------------

class TestParseLevel:
    def test_parses_full_record(self):
        level = parse_level(
            level_record(
                target={"x": 0.27, "y": -0.19, "z": 0.69},
                obstacles=[{"x": 0.15, "y": -0.02, "z": 0.5, "radius": 0.11}],
                map_position={"x": 69, "y": 10},
                rules={
                    "tip_target": {"point": {"x": 0.27, "y": -0.19, "z": 0.69}, "threshold": 0.12},
                    "avoid_obstacles": True,
                    "param_ranges": [{"key": "kappa1", "max": 6.5}],
                },
                requires=[9],
            )
        )
        assert level.target == Point3(0.27, -0.19, 0.69)
        assert level.obstacles == (Obstacle(0.15, -0.02, 0.5, 0.11),)
        assert level.map_position == (69.0, 10.0)
        assert level.rules.tip_target.threshold == 0.12
        assert level.rules.avoid_obstacles is True
        assert level.rules.param_ranges == (ParamRangeRule(ParamKey.KAPPA1, None, 6.5),)
        assert level.requires == (9,)

    def test_unknown_range_key_rejected_at_load(self):
        with pytest.raises(LevelConfigError, match="unknown parameter key"):
            parse_level(level_record(rules={"param_ranges": [{"key": "theta1", "min": 1}]}))

    def test_unknown_initial_param_rejected(self):
        params = {"kappa1": 1, "phi1": 0, "L1": 0.5, "kappa2": 0, "phi2": 0, "L2": 0.5, "kappa3": 1}
        with pytest.raises(LevelConfigError, match="kappa3"):
            parse_level(level_record(initial_params=params))

    def test_missing_initial_param_rejected(self):
        with pytest.raises(LevelConfigError, match="L2"):
            parse_level(level_record(initial_params={"kappa1": 1, "phi1": 0, "L1": 0.5, "kappa2": 0, "phi2": 0}))

    def test_non_numeric_threshold_rejected(self):
        rules = {"tip_target": {"point": {"x": 0, "y": 0, "z": 1}, "threshold": "close"}}
        with pytest.raises(LevelConfigError, match="threshold"):
            parse_level(level_record(rules=rules))

    def test_rules_must_be_an_object(self):
        with pytest.raises(LevelConfigError, match="rules"):
            parse_level(level_record(rules=[{"avoid_obstacles": True}]))

    def test_non_mapping_obstacle_rejected(self):
        with pytest.raises(LevelConfigError, match="radius|x"):
            parse_level(level_record(obstacles=[0.5]))

    def test_non_mapping_range_rejected(self):
        with pytest.raises(LevelConfigError, match="key"):
            parse_level(level_record(rules={"param_ranges": ["kappa1"]}))

    def test_obstacles_must_be_a_list(self):
        with pytest.raises(LevelConfigError, match="obstacles"):
            parse_level(level_record(obstacles=5))

    def test_non_mapping_record_rejected(self):
        with pytest.raises(LevelConfigError):
            parse_level([1, 2, 3])

    @pytest.mark.parametrize("value", ["false", 0, 1, "yes"])
    def test_avoid_obstacles_must_be_boolean(self, value):
        with pytest.raises(LevelConfigError, match="avoid_obstacles"):
            parse_level(level_record(rules={"avoid_obstacles": value}))

    def test_avoid_obstacles_absent_or_null_is_off(self):
        assert parse_level(level_record(rules={"avoid_obstacles": None})).rules.avoid_obstacles is False
        assert parse_level(level_record(rules={})).rules.avoid_obstacles is False

    def test_missing_rules_means_no_checks(self):
        record = level_record()
        del record["rules"]
        level = parse_level(record)
        assert level.rules == LevelRules()

    def test_id_must_be_integer(self):
        with pytest.raises(LevelConfigError):
            parse_level(level_record(id="one"))

    def test_duplicate_ids_rejected(self):
        with pytest.raises(LevelConfigError, match="duplicate"):
            parse_levels([level_record(), level_record()])

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "levels.json"
        path.write_text(json.dumps([level_record(), level_record(id=2, requires=[1])]))
        levels = load_levels(path)
        assert [level.id for level in levels] == [1, 2]

    def test_invalid_json_file(self, tmp_path):
        path = tmp_path / "levels.json"
        path.write_text("{not json")
        with pytest.raises(LevelConfigError):
            load_levels(path)


class TestBundledLevels:
    @pytest.fixture(scope="class")
    def levels(self):
        return load_levels()

    def test_ten_levels_across_two_worlds(self, levels):
        assert [level.id for level in levels] == list(range(1, 11))
        assert {level.world for level in levels} == {1, 2}

    def test_requirements_reference_existing_levels(self, levels):
        ids = {level.id for level in levels}
        for level in levels:
            assert set(level.requires) <= ids

    def test_first_level_does_not_pass_at_start(self, levels):
        level = require_level(levels, 1)
        result = evaluate_level(level, level.initial_params)
        assert result.passed is False
        assert [check.passed for check in result.checks] == [False, True]

    def test_capstone_runs_every_check(self, levels):
        level = require_level(levels, 10)
        result = evaluate_level(level, level.initial_params)
        assert [check.label for check in result.checks] == [
            "kappa1 range",
            "kappa2 range",
            "Tip to target",
            "Obstacle clearance",
        ]
        assert result.tip_distance is not None


# ---------------------------------------------------------------------------
# Tests — progression
# ---------------------------------------------------------------------------

class TestProgression:
    LEVELS = [
        make_level(level_id=1),
        make_level(level_id=2, requires=[1]),
        LevelConfig(id=3, world=2, title="World two", initial_params=STRAIGHT, requires=(2,)),
    ]

    def test_unlock_requires_all_prerequisites(self):
        level = make_level(level_id=5, requires=[3, 4])
        assert not is_level_unlocked(level, [3])
        assert is_level_unlocked(level, [4, 3])

    def test_level_without_requirements_is_unlocked(self):
        assert is_level_unlocked(self.LEVELS[0], [])

    def test_world_progress(self):
        assert world_progress(self.LEVELS, 1, [1]) == (1, 2)
        assert world_progress(self.LEVELS, 2, [1, 2]) == (0, 1)
        assert world_progress(self.LEVELS, 9, [1]) == (0, 0)

    def test_next_unlocked_level(self):
        assert next_unlocked_level(self.LEVELS, []).id == 1
        assert next_unlocked_level(self.LEVELS, [1]).id == 2
        assert next_unlocked_level(self.LEVELS, [1, 2, 3]) is None

    def test_lookup(self):
        assert get_level_by_id(self.LEVELS, 2).id == 2
        assert get_level_by_id(self.LEVELS, 42) is None
        with pytest.raises(LevelNotFoundError):
            require_level(self.LEVELS, 42)
