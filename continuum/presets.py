from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

from continuum.kinematics import ParamKey, RobotParams, sample_workspace_points

MAX_EXPLORER_SEGMENTS = 6


@dataclass(frozen=True)
class SliderRange:
    min: float
    max: float
    step: float
    label: str
    unit: str

    def clamp(self, value: float) -> float:
        return min(self.max, max(self.min, value))


@dataclass(frozen=True)
class Preset:
    name: str
    icon: str
    params: RobotParams


DEFAULT_PARAMS = RobotParams(kappa1=2.0, phi1=0.0, L1=0.55, kappa2=0.0, phi2=0.0, L2=0.5)

PRESETS: List[Preset] = [
    Preset("Home", "🏠", RobotParams(0.0, 0.0, 0.5, 0.0, 0.0, 0.5)),
    Preset("Reach Forward", "⬆️", RobotParams(1.5, 0.0, 0.8, 0.5, 0.0, 0.8)),
    Preset("Curve Left", "⬅️", RobotParams(5.0, 90.0, 0.6, 3.0, 90.0, 0.4)),
    Preset("S-Bend", "〰️", RobotParams(4.0, 0.0, 0.5, 4.0, 180.0, 0.5)),
    Preset("Avoid Obstacle", "🛡️", RobotParams(6.0, 45.0, 0.4, 3.0, 270.0, 0.7)),
]

SLIDER_CONFIG: Dict[str, SliderRange] = {
    "kappa": SliderRange(0.0, 10.0, 0.1, "Curvature", "1/m"),
    "phi": SliderRange(0.0, 360.0, 1.0, "Bend Direction", "deg"),
    "L": SliderRange(0.1, 1.0, 0.01, "Length", "m"),
}


def slider_for(key: ParamKey | str) -> SliderRange:
    """Slider range for a parameter name such as ``kappa2`` or ``L1``."""

    return SLIDER_CONFIG[ParamKey(key).value[:-1]]


def clamp_params(params: RobotParams) -> RobotParams:
    return replace(params, **{key.value: slider_for(key).clamp(params.get(key)) for key in ParamKey})


def workspace_bounds(segment_count: int = 2) -> List[Tuple[Tuple[float, float], ...]]:
    kappa, phi, length = SLIDER_CONFIG["kappa"], SLIDER_CONFIG["phi"], SLIDER_CONFIG["L"]
    return [((kappa.min, kappa.max), (phi.min, phi.max), (length.min, length.max))] * segment_count


def generate_workspace_cloud(
    clouds: Dict[int, np.ndarray],
    segment_count: int,
    samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Sample a tip cloud for the given segment count and cache it under that count."""

    clouds[segment_count] = sample_workspace_points(workspace_bounds(segment_count), samples=samples, rng=rng)
    return clouds[segment_count]


def workspace_cloud(clouds: Dict[int, np.ndarray], segment_count: int) -> np.ndarray:
    return clouds.get(segment_count, np.empty((0, 3)))


def get_preset(name: str) -> Preset:
    for preset in PRESETS:
        if preset.name == name:
            return preset
    raise KeyError(name)
