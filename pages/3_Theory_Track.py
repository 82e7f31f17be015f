import streamlit as st

from continuum.config import configure_logging, get_settings
from continuum.errors import ContinuumLearnError
from continuum.levels import is_level_unlocked
from continuum.progress import ProgressStore
from continuum.theory import load_theory_levels, theory_world_progress

settings = get_settings()
configure_logging(settings)

st.title("Theory Track")
st.write(
    "Short lessons on the math behind the simulator: arc geometry, bending-plane rotation, "
    "transform stacking, and constraint-aware control."
)

if "progress_store" not in st.session_state:
    st.session_state.progress_store = ProgressStore(settings.progress_path)
store: ProgressStore = st.session_state.progress_store

try:
    lessons = load_theory_levels(settings.theory_levels_path)
except (ContinuumLearnError, OSError) as exc:
    st.error(f"Theory content could not be loaded: {exc}")
    st.stop()

completed = store.load().completed_theory_levels

for world in sorted({lesson.world for lesson in lessons}):
    done, total = theory_world_progress(lessons, world, completed)
    st.subheader(f"World {world}")
    st.progress(done / total if total else 0.0, text=f"{done}/{total} lessons completed")

    for lesson in (item for item in lessons if item.world == world):
        unlocked = is_level_unlocked(lesson, completed)
        finished = lesson.id in completed
        icon = "✅" if finished else ("📘" if unlocked else "🔒")
        with st.expander(f"{icon} {lesson.id}. {lesson.title}", expanded=unlocked and not finished):
            if not unlocked:
                st.caption("Complete the previous lesson to unlock this one.")
                continue
            st.markdown(f"*{lesson.concept}*")
            st.markdown(lesson.lesson)
            st.markdown(f"**Problem.** {lesson.problem}")
            st.text_area("Your reasoning", key=f"answer_{lesson.id}", height=120)
            if not finished and st.button("Mark lesson complete", key=f"complete_{lesson.id}"):
                store.mark_theory_level_completed(lesson.id)
                st.rerun()
