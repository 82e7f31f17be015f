import streamlit as st

from continuum.config import configure_logging

configure_logging()

st.set_page_config(
    page_title="Continuum Learn",
    page_icon="🐙",
    layout="wide",
)

st.title("Continuum Learn")
st.write(
    "Learn continuum-robot kinematics by bending a two-segment constant-curvature robot and clearing level challenges."
)

st.markdown(
    """
    Use the sidebar to navigate between pages:
    - **Continuum Simulator**: Drive curvature, bend direction, and length for up to six segments, or load a level and press *Check*.
    - **Learning Map**: Worlds 1 and 2 practice levels; each level unlocks the next once its checks pass.
    - **Theory Track**: Worlds 3 and 4 lessons on arc geometry, transform stacking, Jacobians, and constrained control.
    - **Curvature Formulas**: The symbolic single-segment transform, its straight-line limit, and why segment order matters.

    Built with reference to Webster & Jones' review of [constant-curvature continuum robots](https://doi.org/10.1177/0278364910368147)
    and the usual [homogeneous transform](https://automaticaddison.com/homogeneous-transformation-matrices-using-denavit-hartenberg/) conventions.
    """
)

st.info(
    "Level checks are geometric: parameter ranges, tip-to-target distance, and obstacle clearance sampled along the backbone."
)
