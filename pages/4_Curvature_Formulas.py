import numpy as np
import streamlit as st
import sympy as sp

from continuum.kinematics import compose_transforms, segment_transform

st.title("Constant-Curvature Formulas")
st.write(
    "A quick reference for the single-segment transform, its straight-line limit, and how segments stack."
)
st.markdown(
    "References: [Continuum robot kinematics (Webster & Jones)](https://doi.org/10.1177/0278364910368147) | "
    "[Homogeneous transformation matrices](https://automaticaddison.com/homogeneous-transformation-matrices-using-denavit-hartenberg/)"
)

kappa, s, phi = sp.symbols("kappa s phi", real=True)
theta = kappa * s


def rot_z(angle):
    return sp.Matrix([[sp.cos(angle), -sp.sin(angle), 0], [sp.sin(angle), sp.cos(angle), 0], [0, 0, 1]])


def rot_y(angle):
    return sp.Matrix([[sp.cos(angle), 0, sp.sin(angle)], [0, 1, 0], [-sp.sin(angle), 0, sp.cos(angle)]])


rotation_expr = sp.simplify(rot_z(phi) * rot_y(theta) * rot_z(-phi))
translation_expr = rot_z(phi) * sp.Matrix([(1 - sp.cos(theta)) / kappa, 0, sp.sin(theta) / kappa])
straight_limit = translation_expr.applyfunc(lambda expr: sp.limit(expr, kappa, 0))

with st.expander("Single-segment transform", expanded=True):
    st.latex(r"T(\kappa, \phi, s) = \begin{bmatrix} R & p \\ 0 & 1 \end{bmatrix}, \quad \theta = \kappa s")
    st.latex(r"R = R_z(\phi)\, R_y(\theta)\, R_z(-\phi) = " + sp.latex(rotation_expr))
    st.latex(r"p = " + sp.latex(sp.simplify(translation_expr)))
    st.markdown(
        "φ turns the bending plane about the segment's forward (z) axis; the arc then sweeps θ within that plane."
    )

with st.expander("Straight-line limit"):
    st.latex(r"\lim_{\kappa \to 0} p = " + sp.latex(straight_limit))
    st.markdown(
        "The simulator switches to a pure translation along z when |κ| < 10⁻⁶, which matches this limit."
    )

with st.expander("Segment transform calculator"):
    col_k, col_p, col_s = st.columns(3)
    kappa_value = col_k.number_input("κ (1/m)", 0.0, 10.0, 1.5, 0.1)
    phi_value = col_p.number_input("φ (deg)", 0.0, 360.0, 0.0, 1.0)
    length_value = col_s.number_input("L (m)", 0.0, 1.0, 0.6, 0.01)

    numeric = segment_transform(kappa_value, phi_value, length_value)
    st.write("Homogeneous transform:")
    st.write(np.round(numeric, 5))

    if abs(kappa_value) > 0:
        subs = {kappa: kappa_value, s: length_value, phi: np.radians(phi_value)}
        symbolic_tip = np.array(translation_expr.subs(subs).evalf(), dtype=float).ravel()
        st.caption(f"Symbolic tip for comparison: {np.round(symbolic_tip, 5)}")

with st.expander("Order matters: T₁T₂ vs T₂T₁"):
    col_a, col_b = st.columns(2)
    with col_a:
        st.markdown("**Segment A**")
        a = (
            st.number_input("κ_A", 0.0, 10.0, 3.0, 0.1),
            st.number_input("φ_A", 0.0, 360.0, 0.0, 1.0),
            st.number_input("L_A", 0.0, 1.0, 0.5, 0.01),
        )
    with col_b:
        st.markdown("**Segment B**")
        b = (
            st.number_input("κ_B", 0.0, 10.0, 2.0, 0.1),
            st.number_input("φ_B", 0.0, 360.0, 90.0, 1.0),
            st.number_input("L_B", 0.0, 1.0, 0.4, 0.01),
        )

    t_a, t_b = segment_transform(*a), segment_transform(*b)
    tip_ab = compose_transforms([t_a, t_b])[:3, 3]
    tip_ba = compose_transforms([t_b, t_a])[:3, 3]
    st.write(f"Tip of A then B: {np.round(tip_ab, 4)}")
    st.write(f"Tip of B then A: {np.round(tip_ba, 4)}")
    st.write(f"Difference: {np.linalg.norm(tip_ab - tip_ba):.4f} m")

st.info(
    "Each later segment is expressed in the tip frame of the previous one, so the world-frame tip is "
    "the ordered product of segment transforms."
)
