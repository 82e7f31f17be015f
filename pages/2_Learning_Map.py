"""
Learning map: practice levels grouped by world, unlocked one after another.
"""

from typing import List

import plotly.graph_objects as go
import streamlit as st

from continuum.config import configure_logging, get_settings
from continuum.errors import ContinuumLearnError
from continuum.levels import (
    LevelConfig,
    get_level_by_id,
    is_level_unlocked,
    load_levels,
    next_unlocked_level,
    world_progress,
)
from continuum.progress import ProgressStore

WORLD_NAMES = {1: "World 1: Single and Paired Segments", 2: "World 2: Redundancy and Singularities"}


def level_status(level: LevelConfig, completed: List[int]) -> str:
    if level.id in completed:
        return "completed"
    if is_level_unlocked(level, completed):
        return "unlocked"
    return "locked"


def render_map(levels: List[LevelConfig], completed: List[int]) -> go.Figure:
    colors = {"completed": "#2ca02c", "unlocked": "#1f77b4", "locked": "#7f7f7f"}
    fig = go.Figure()

    for level in levels:
        if level.map_position is None:
            continue
        for required_id in level.requires:
            required = get_level_by_id(levels, required_id)
            if required is None or required.map_position is None:
                continue
            fig.add_trace(
                go.Scatter(
                    x=[required.map_position[0], level.map_position[0]],
                    y=[required.map_position[1], level.map_position[1]],
                    mode="lines",
                    line=dict(color="#c7c7c7", width=2, dash="dot"),
                    hoverinfo="skip",
                    showlegend=False,
                )
            )

    placed = [level for level in levels if level.map_position is not None]
    statuses = [level_status(level, completed) for level in placed]
    fig.add_trace(
        go.Scatter(
            x=[level.map_position[0] for level in placed],
            y=[level.map_position[1] for level in placed],
            mode="markers+text",
            text=[str(level.id) for level in placed],
            textposition="middle center",
            textfont=dict(color="white"),
            marker=dict(size=30, color=[colors[status] for status in statuses]),
            hovertext=[f"{level.title} ({status})" for level, status in zip(placed, statuses)],
            hoverinfo="text",
            showlegend=False,
        )
    )
    fig.update_layout(
        xaxis=dict(visible=False, range=[0, 100]),
        yaxis=dict(visible=False, range=[0, 100]),
        height=520,
        margin=dict(l=0, r=0, t=10, b=0),
    )
    return fig


def open_level(level_id: int) -> None:
    st.session_state.active_level = level_id
    st.switch_page("pages/1_Continuum_Simulator.py")


settings = get_settings()
configure_logging(settings)

st.title("Learning Map")
st.write("Clear each level in the simulator to unlock the next one. Checks run on the live robot shape.")

if "progress_store" not in st.session_state:
    st.session_state.progress_store = ProgressStore(settings.progress_path)
store: ProgressStore = st.session_state.progress_store

try:
    levels = load_levels(settings.levels_path)
except (ContinuumLearnError, OSError) as exc:
    st.error(f"Level content could not be loaded: {exc}")
    st.stop()

completed = store.load().completed_levels

up_next = next_unlocked_level(levels, completed)
if up_next is not None:
    st.info(f"Up next: Level {up_next.id}: {up_next.title}")
    if st.button("Continue", type="primary"):
        open_level(up_next.id)
else:
    st.success("All practice levels completed.")

map_col, list_col = st.columns([3, 2])
with map_col:
    st.plotly_chart(render_map(levels, completed), use_container_width=True)

with list_col:
    for world in sorted({level.world for level in levels}):
        done, total = world_progress(levels, world, completed)
        st.subheader(WORLD_NAMES.get(world, f"World {world}"))
        st.progress(done / total if total else 0.0, text=f"{done}/{total} completed")
        for level in (lvl for lvl in levels if lvl.world == world):
            status = level_status(level, completed)
            icon = {"completed": "✅", "unlocked": "▶️", "locked": "🔒"}[status]
            if st.button(
                f"{icon} Level {level.id}: {level.title}",
                key=f"open_{level.id}",
                disabled=status == "locked",
                use_container_width=True,
            ):
                open_level(level.id)

if st.button("Reset progress"):
    store.reset()
    st.rerun()
