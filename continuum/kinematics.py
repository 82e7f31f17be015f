from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

STRAIGHT_TOLERANCE = 1e-6
DEFAULT_SAMPLES_PER_SEGMENT = 24


class ParamKey(str, Enum):
    KAPPA1 = "kappa1"
    PHI1 = "phi1"
    L1 = "L1"
    KAPPA2 = "kappa2"
    PHI2 = "phi2"
    L2 = "L2"


@dataclass(frozen=True)
class Point3:
    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_array(cls, values: Sequence[float]) -> "Point3":
        return cls(float(values[0]), float(values[1]), float(values[2]))


ORIGIN = Point3(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Segment:
    kappa: float
    phi: float
    length: float


@dataclass(frozen=True)
class RobotParams:
    """Control vector of the two-segment robot.

    Curvatures are in 1/m, bend directions in degrees and arc lengths in metres.
    Values are not validated; non-finite inputs simply propagate into the geometry.
    """

    kappa1: float
    phi1: float
    L1: float
    kappa2: float
    phi2: float
    L2: float

    def get(self, key: ParamKey | str) -> float:
        key = ParamKey(key)
        if key is ParamKey.KAPPA1:
            return self.kappa1
        if key is ParamKey.PHI1:
            return self.phi1
        if key is ParamKey.L1:
            return self.L1
        if key is ParamKey.KAPPA2:
            return self.kappa2
        if key is ParamKey.PHI2:
            return self.phi2
        return self.L2

    def segments(self) -> Tuple[Segment, Segment]:
        return (
            Segment(self.kappa1, self.phi1, self.L1),
            Segment(self.kappa2, self.phi2, self.L2),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "RobotParams":
        return cls(**{key.value: float(data[key.value]) for key in ParamKey})


def identity() -> np.ndarray:
    return np.eye(4)


def segment_transform(kappa: float, phi_deg: float, arc_length: float) -> np.ndarray:
    """Homogeneous transform after travelling ``arc_length`` along one constant-curvature arc.

    The segment starts along its local +z axis. ``phi_deg`` rotates the bending plane
    about that axis, and the arc bends toward the rotated x axis. Below
    ``STRAIGHT_TOLERANCE`` the segment is treated as a straight rod.
    """

    t = np.eye(4)
    if abs(kappa) < STRAIGHT_TOLERANCE:
        t[2, 3] = arc_length
        return t

    phi = math.radians(phi_deg)
    c_phi, s_phi = math.cos(phi), math.sin(phi)
    theta = kappa * arc_length
    c, s = math.cos(theta), math.sin(theta)

    t[:3, :3] = np.array(
        [
            [c_phi * c_phi * (c - 1) + 1, c_phi * s_phi * (c - 1), c_phi * s],
            [c_phi * s_phi * (c - 1), s_phi * s_phi * (c - 1) + 1, s_phi * s],
            [-c_phi * s, -s_phi * s, c],
        ]
    )
    t[:3, 3] = [c_phi * (1 - c) / kappa, s_phi * (1 - c) / kappa, s / kappa]
    return t


def compose_transforms(transforms: Iterable[np.ndarray]) -> np.ndarray:
    """Multiply transforms in chain order; later segments live in the frame of earlier ones."""

    result = np.eye(4)
    for t in transforms:
        result = result @ t
    return result


def transform_point(transform: np.ndarray, point: Point3 = ORIGIN) -> Point3:
    return Point3.from_array(transform[:3, :3] @ point.as_array() + transform[:3, 3])


def segment_frames(segments: Sequence[Segment]) -> List[np.ndarray]:
    """Accumulated base frame of every segment, followed by the tip frame."""

    frames: List[np.ndarray] = [np.eye(4)]
    for segment in segments:
        frames.append(frames[-1] @ segment_transform(segment.kappa, segment.phi, segment.length))
    return frames


def sample_backbone(
    segments: Sequence[Segment], samples_per_segment: int = DEFAULT_SAMPLES_PER_SEGMENT
) -> List[Point3]:
    """Sample the backbone from the origin through every segment.

    Each sample recomputes the partial-arc transform from the segment's base frame,
    since intermediate arc points are not an interpolation of the end transform.
    Returns ``1 + len(segments) * samples_per_segment`` points.
    """

    points: List[Point3] = [ORIGIN]
    base = np.eye(4)
    for segment in segments:
        for i in range(1, samples_per_segment + 1):
            s = segment.length * i / samples_per_segment
            points.append(transform_point(base @ segment_transform(segment.kappa, segment.phi, s)))
        base = base @ segment_transform(segment.kappa, segment.phi, segment.length)
    return points


def sample_robot_points(
    params: RobotParams, samples_per_segment: int = DEFAULT_SAMPLES_PER_SEGMENT
) -> List[Point3]:
    return sample_backbone(params.segments(), samples_per_segment)


def tip_transform(params: RobotParams) -> np.ndarray:
    return segment_frames(params.segments())[-1]


def compute_tip_position(params: RobotParams) -> Point3:
    return sample_robot_points(params, 1)[-1]


def distance3(a: Point3, b: Point3) -> float:
    dx = a.x - b.x
    dy = a.y - b.y
    dz = a.z - b.z
    return math.sqrt(dx * dx + dy * dy + dz * dz)


def points_to_array(points: Sequence[Point3]) -> np.ndarray:
    if not points:
        return np.empty((0, 3))
    return np.array([[p.x, p.y, p.z] for p in points], dtype=float)


def sample_workspace_points(
    bounds: Sequence[Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float]]],
    samples: int = 800,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Generate a cloud of reachable tip positions within per-segment parameter bounds.

    ``bounds`` holds one ``((kappa_min, kappa_max), (phi_min, phi_max), (L_min, L_max))``
    entry per segment. Parameters are drawn uniformly and pushed through forward
    kinematics, giving a coarse picture of the workspace around a target.
    """

    if rng is None:
        rng = np.random.default_rng()

    mins = np.array([lo for segment in bounds for lo, _ in segment], dtype=float)
    maxs = np.array([hi for segment in bounds for _, hi in segment], dtype=float)

    draws = rng.uniform(mins, maxs, size=(max(1, samples), len(mins)))
    points = []
    for row in draws:
        segments = [Segment(*row[i : i + 3]) for i in range(0, len(row), 3)]
        points.append(segment_frames(segments)[-1][:3, 3])
    return np.array(points)
