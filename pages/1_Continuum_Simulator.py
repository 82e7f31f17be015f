import json
import logging
import math
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import streamlit as st
from scipy.spatial import ConvexHull, QhullError

from continuum.config import configure_logging, get_settings
from continuum.errors import ContinuumLearnError
from continuum.kinematics import (
    Point3,
    RobotParams,
    Segment,
    distance3,
    points_to_array,
    sample_backbone,
    segment_frames,
)
from continuum.levels import (
    LevelConfig,
    check_message,
    evaluate_level,
    get_level_by_id,
    is_level_unlocked,
    load_levels,
)
from continuum.presets import (
    DEFAULT_PARAMS,
    MAX_EXPLORER_SEGMENTS,
    PRESETS,
    SLIDER_CONFIG,
    generate_workspace_cloud,
    workspace_cloud,
)
from continuum.progress import ProgressStore

logger = logging.getLogger(__name__)

SEGMENT_COLORS = ["#ff6d4d", "#4dd8ff", "#ffb347", "#9b59b6", "#2ca02c", "#e377c2"]
EXTRA_SEGMENT = Segment(kappa=0.0, phi=0.0, length=0.55)


def slider_key(prefix: str, name: str, index: int) -> str:
    return f"{prefix}_{name}{index}"


def apply_segments(prefix: str, segments: Sequence[Segment]) -> None:
    for idx, segment in enumerate(segments, start=1):
        st.session_state[slider_key(prefix, "kappa", idx)] = float(segment.kappa)
        st.session_state[slider_key(prefix, "phi", idx)] = float(segment.phi)
        st.session_state[slider_key(prefix, "L", idx)] = float(segment.length)


def segment_sliders(prefix: str, count: int, defaults: Sequence[Segment]) -> List[Segment]:
    segments: List[Segment] = []
    for idx in range(1, count + 1):
        default = defaults[idx - 1] if idx - 1 < len(defaults) else EXTRA_SEGMENT
        st.sidebar.markdown(f"**Segment {idx}**")
        values = {}
        for name, default_value in (("kappa", default.kappa), ("phi", default.phi), ("L", default.length)):
            cfg = SLIDER_CONFIG[name]
            key = slider_key(prefix, name, idx)
            st.session_state.setdefault(key, float(default_value))
            values[name] = st.sidebar.slider(
                f"{cfg.label} {name}{idx} ({cfg.unit})",
                min_value=cfg.min,
                max_value=cfg.max,
                step=cfg.step,
                key=key,
            )
        segments.append(Segment(values["kappa"], values["phi"], values["L"]))
    return segments


def sphere_surface(center: np.ndarray, radius: float, resolution: int = 18) -> go.Surface:
    u = np.linspace(0.0, 2 * np.pi, resolution)
    v = np.linspace(0.0, np.pi, resolution)
    x = center[0] + radius * np.outer(np.cos(u), np.sin(v))
    y = center[1] + radius * np.outer(np.sin(u), np.sin(v))
    z = center[2] + radius * np.outer(np.ones_like(u), np.cos(v))
    return go.Surface(
        x=x,
        y=y,
        z=z,
        opacity=0.35,
        showscale=False,
        colorscale=[[0, "#d62728"], [1, "#d62728"]],
        name="Obstacle",
    )


def build_backbone_traces(
    points: np.ndarray,
    samples_per_segment: int,
    segment_count: int,
    target: Optional[np.ndarray] = None,
) -> List[go.Scatter3d]:
    traces = [
        go.Scatter3d(
            x=[0.0],
            y=[0.0],
            z=[0.0],
            mode="markers",
            marker=dict(size=6, color="#2ca02c"),
            name="Base",
        )
    ]

    for idx in range(segment_count):
        chunk = points[idx * samples_per_segment : (idx + 1) * samples_per_segment + 1]
        color = SEGMENT_COLORS[idx % len(SEGMENT_COLORS)]
        traces.append(
            go.Scatter3d(
                x=chunk[:, 0],
                y=chunk[:, 1],
                z=chunk[:, 2],
                mode="lines",
                line=dict(width=9, color=color),
                name=f"Segment {idx + 1}",
            )
        )

    tip = points[-1]
    traces.append(
        go.Scatter3d(
            x=[tip[0]],
            y=[tip[1]],
            z=[tip[2]],
            mode="markers",
            marker=dict(size=7, color="#6a0dad"),
            name="Tip",
        )
    )

    if target is not None:
        traces.append(
            go.Scatter3d(
                x=[target[0]],
                y=[target[1]],
                z=[target[2]],
                mode="markers",
                marker=dict(size=6, color="#d62728", symbol="diamond"),
                name="Target",
            )
        )
    return traces


def render_robot_plot(
    points: np.ndarray,
    samples_per_segment: int,
    segment_count: int,
    level: Optional[LevelConfig] = None,
) -> go.Figure:
    target = level.target.as_array() if level is not None and level.target is not None else None
    fig = go.Figure(data=build_backbone_traces(points, samples_per_segment, segment_count, target))

    extents = [points, np.zeros((1, 3))]
    if target is not None:
        extents.append(target.reshape(1, 3))
    if level is not None:
        for obstacle in level.obstacles:
            center = obstacle.center.as_array()
            fig.add_trace(sphere_surface(center, obstacle.radius))
            extents.append(np.vstack([center - obstacle.radius, center + obstacle.radius]))

    all_points = np.vstack(extents)
    x_min, x_max = all_points[:, 0].min(), all_points[:, 0].max()
    y_min, y_max = all_points[:, 1].min(), all_points[:, 1].max()
    z_min, z_max = all_points[:, 2].min(), all_points[:, 2].max()
    pad = 0.1 * max(x_max - x_min, y_max - y_min, z_max - z_min, 1e-3)
    fig.update_layout(
        scene=dict(
            xaxis_title="X (m)",
            yaxis_title="Y (m)",
            zaxis_title="Z (m)",
            xaxis=dict(range=[x_min - pad, x_max + pad]),
            yaxis=dict(range=[y_min - pad, y_max + pad]),
            zaxis=dict(range=[z_min - pad, z_max + pad]),
            aspectmode="cube",
        ),
        height=600,
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01),
        title=f"Backbone ({segment_count} segment{'s' if segment_count != 1 else ''})",
        uirevision="robot-view",
    )
    return fig


def render_workspace(cloud_points: np.ndarray, tip: np.ndarray, target: Optional[np.ndarray]) -> go.Figure:
    cloud_fig = go.Figure()

    hull_added = False
    if len(cloud_points) >= 4:
        try:
            hull = ConvexHull(cloud_points)
            cloud_fig.add_trace(
                go.Mesh3d(
                    x=cloud_points[:, 0],
                    y=cloud_points[:, 1],
                    z=cloud_points[:, 2],
                    i=hull.simplices[:, 0],
                    j=hull.simplices[:, 1],
                    k=hull.simplices[:, 2],
                    color="#7f7f7f",
                    opacity=0.4,
                    name="Workspace envelope",
                    flatshading=True,
                )
            )
            hull_added = True
        except QhullError:
            st.warning("Workspace surface could not be generated (degenerate sample); showing markers instead.")

    if not hull_added and len(cloud_points) > 0:
        cloud_fig.add_trace(
            go.Scatter3d(
                x=cloud_points[:, 0],
                y=cloud_points[:, 1],
                z=cloud_points[:, 2],
                mode="markers",
                marker=dict(size=2, color="rgba(100,100,100,0.45)"),
                name="Workspace samples",
            )
        )

    cloud_fig.add_trace(
        go.Scatter3d(x=[tip[0]], y=[tip[1]], z=[tip[2]], mode="markers", marker=dict(size=7, color="#6a0dad"), name="Tip")
    )
    if target is not None:
        cloud_fig.add_trace(
            go.Scatter3d(
                x=[target[0]], y=[target[1]], z=[target[2]], mode="markers", marker=dict(size=6, color="#d62728"), name="Target"
            )
        )
    cloud_fig.update_layout(
        scene=dict(aspectmode="data", xaxis_title="X", yaxis_title="Y", zaxis_title="Z"),
        height=500,
        title="Reachable tip envelope (slider ranges)",
        uirevision="workspace-view",
    )
    return cloud_fig


def choose_level(levels: List[LevelConfig], completed: List[int]) -> Optional[LevelConfig]:
    query_level = st.query_params.get("level")
    if query_level is not None and "active_level" not in st.session_state:
        try:
            st.session_state.active_level = int(query_level)
        except ValueError:
            st.warning(f"Ignoring unknown level '{query_level}' in the URL.")

    unlocked = [level for level in levels if is_level_unlocked(level, completed) or level.id in completed]
    options = [None] + [level.id for level in unlocked]
    active_id = st.session_state.get("active_level")
    if active_id not in options:
        active_id = None

    def _label(level_id):
        if level_id is None:
            return "Free explorer"
        level = get_level_by_id(levels, level_id)
        mark = "✅ " if level_id in completed else ""
        return f"{mark}Level {level.id}: {level.title}"

    selected = st.sidebar.selectbox("Mode", options, index=options.index(active_id), format_func=_label)
    st.session_state.active_level = selected
    return get_level_by_id(levels, selected) if selected is not None else None


def main():
    settings = get_settings()
    configure_logging(settings)

    st.title("Continuum Robot Simulator")
    st.caption(
        "Each segment bends as a circular arc: curvature κ (1/m), bend direction φ (deg) and arc length L (m). "
        "Later segments start from the tip frame of the one before."
    )

    if "progress_store" not in st.session_state:
        st.session_state.progress_store = ProgressStore(settings.progress_path)
    store: ProgressStore = st.session_state.progress_store

    try:
        levels = load_levels(settings.levels_path)
    except (ContinuumLearnError, OSError) as exc:
        st.error(f"Level content could not be loaded: {exc}")
        levels = []

    progress = store.load()
    level = choose_level(levels, progress.completed_levels)

    st.sidebar.header("Robot setup")
    if level is not None:
        prefix = f"level{level.id}"
        segment_count = 2
        defaults = level.initial_params.segments()
        st.sidebar.button(
            "Reset to level start", on_click=apply_segments, args=(prefix, defaults), use_container_width=True
        )
    else:
        prefix = "explorer"
        segment_count = st.sidebar.number_input(
            "Segments", min_value=1, max_value=MAX_EXPLORER_SEGMENTS, value=2, step=1
        )
        defaults = DEFAULT_PARAMS.segments()
        preset_cols = st.sidebar.columns(2)
        for idx, preset in enumerate(PRESETS):
            preset_cols[idx % 2].button(
                f"{preset.icon} {preset.name}",
                on_click=apply_segments,
                args=(prefix, preset.params.segments()),
                use_container_width=True,
            )

    segments = segment_sliders(prefix, int(segment_count), defaults)
    samples = settings.display_samples_per_segment
    points = points_to_array(sample_backbone(segments, samples))
    tip = points[-1]
    frames = segment_frames(segments)

    if level is not None:
        st.subheader(f"Level {level.id}: {level.title}")
        st.markdown(level.concept)
        st.info(f"**Goal:** {level.goal}  \n**Challenge:** {level.challenge}")

    fig = render_robot_plot(points, samples, int(segment_count), level)
    st.plotly_chart(fig, use_container_width=True, config={"scrollZoom": True})

    col_tip, col_len, col_bend = st.columns(3)
    col_tip.metric("Tip (x, y, z) m", f"({tip[0]:.3f}, {tip[1]:.3f}, {tip[2]:.3f})")
    col_len.metric("Total arc length (m)", f"{sum(s.length for s in segments):.2f}")
    col_bend.metric("Total bend angle (deg)", f"{math.degrees(sum(abs(s.kappa) * s.length for s in segments)):.1f}")

    with st.expander("Tip pose (homogeneous transform)"):
        st.write(np.round(frames[-1], 4))

    evaluation = None
    if level is not None:
        params = RobotParams(
            kappa1=segments[0].kappa,
            phi1=segments[0].phi,
            L1=segments[0].length,
            kappa2=segments[1].kappa,
            phi2=segments[1].phi,
            L2=segments[1].length,
        )
        if level.target is not None:
            st.caption(f"Live distance to target: {distance3(level.target, Point3.from_array(tip)):.3f} m")

        if st.button("Check", type="primary"):
            try:
                evaluation = evaluate_level(level, params)
            except ContinuumLearnError as exc:
                st.error(str(exc))
            else:
                message = check_message(level, evaluation)
                if evaluation.passed:
                    store.mark_level_completed(level.id)
                    logger.info("Level %s completed", level.id)
                    st.success(message)
                else:
                    st.error(message)
                st.dataframe(
                    pd.DataFrame([vars(check) for check in evaluation.checks], columns=["label", "passed", "detail"]),
                    hide_index=True,
                    use_container_width=True,
                )

    st.subheader("Workspace envelope")
    clouds = st.session_state.setdefault("workspace_clouds", {})
    if st.button("Generate workspace cloud", help="Sample random parameters within the slider ranges."):
        generate_workspace_cloud(clouds, int(segment_count), settings.workspace_samples)
    cloud_points = workspace_cloud(clouds, int(segment_count))
    if len(cloud_points) and cloud_points.shape[1] == 3:
        target = level.target.as_array() if level is not None and level.target is not None else None
        st.plotly_chart(render_workspace(cloud_points, tip, target), use_container_width=True)

    st.subheader("Download report")
    report = {
        "level": level.id if level is not None else None,
        "segments": [vars(segment) for segment in segments],
        "tip": tip.tolist(),
        "tip_transform": frames[-1].tolist(),
        "backbone": points.tolist(),
        "evaluation": (
            {
                "passed": evaluation.passed,
                "checks": [vars(check) for check in evaluation.checks],
                "tip_distance": evaluation.tip_distance,
            }
            if evaluation is not None
            else None
        ),
    }
    st.download_button("Download JSON report", data=json.dumps(report, indent=2), file_name="continuum_report.json")


if __name__ == "__main__":
    main()
