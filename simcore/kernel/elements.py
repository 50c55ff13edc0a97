# simcore/kernel/elements.py
"""
TRIANGLE ELEMENT MATRICES
=========================

PURPOSE:
--------
Element-level matrices for the 3-node triangle, the only element the mesh
generator produces. Coordinates are 3D: a triangle may sit anywhere in
space, so its area comes from a cross product rather than a 2D determinant.

REFERENCE FORMULAS:
-------------------
These are simplified (lumped, constant-coefficient) matrices. They are the
reference behavior of the engine and must not be "improved", or results
stop matching existing models.

    area          A = ½ |(p1 − p0) × (p2 − p0)|

    stiffness     6×6,  k_ii = E·A/12,   k_ij = 0.3 · E·A/12
    mass          6×6,  m_ii = ρ·A/3,    m_ij = 0
    conductivity  3×3,  c_ii = 2·k·A/6,  c_ij = k·A/6
    capacity      3×3,  C_ii = ρ·cp·A/3, C_ij = 0

The gradient operator (triangle_gradients) is the standard linear-triangle
one and drives post-processing (strain, heat flux) and the fluid pressure
Laplacian.
"""

import numpy as np


# Ratio of off-diagonal to diagonal entries in the reference stiffness
STIFFNESS_COUPLING = 0.3

STRUCTURAL_LOCAL_SIZE = 6
THERMAL_LOCAL_SIZE = 3


def triangle_area(p0, p1, p2) -> float:
    """
    Area of a triangle in 3D from its corner positions.

    >>> triangle_area([0, 0, 0], [1, 0, 0], [0, 1, 0])
    0.5
    """
    e1 = np.asarray(p1, dtype=float) - np.asarray(p0, dtype=float)
    e2 = np.asarray(p2, dtype=float) - np.asarray(p0, dtype=float)
    return 0.5 * float(np.linalg.norm(np.cross(e1, e2)))


def triangle_normal(p0, p1, p2) -> np.ndarray:
    """Unit normal (right-hand rule on p0→p1→p2); zero for degenerate triangles."""
    e1 = np.asarray(p1, dtype=float) - np.asarray(p0, dtype=float)
    e2 = np.asarray(p2, dtype=float) - np.asarray(p0, dtype=float)
    n = np.cross(e1, e2)
    norm = np.linalg.norm(n)
    if norm <= 0.0:
        return np.zeros(3)
    return n / norm


def structural_stiffness(area: float, E: float) -> np.ndarray:
    """Reference 6×6 triangle stiffness."""
    diag = E * area / 12.0
    k = np.full((STRUCTURAL_LOCAL_SIZE, STRUCTURAL_LOCAL_SIZE), STIFFNESS_COUPLING * diag)
    np.fill_diagonal(k, diag)
    return k


def structural_mass(area: float, density: float) -> np.ndarray:
    """Reference 6×6 lumped triangle mass."""
    return np.eye(STRUCTURAL_LOCAL_SIZE) * (density * area / 3.0)


def thermal_conductivity(area: float, k: float) -> np.ndarray:
    """Reference 3×3 triangle conductivity."""
    base = k * area / 6.0
    c = np.full((THERMAL_LOCAL_SIZE, THERMAL_LOCAL_SIZE), base)
    np.fill_diagonal(c, 2.0 * base)
    return c


def thermal_capacity(area: float, density: float, specific_heat: float) -> np.ndarray:
    """Reference 3×3 lumped triangle capacity."""
    return np.eye(THERMAL_LOCAL_SIZE) * (density * specific_heat * area / 3.0)


def triangle_gradients(p0, p1, p2) -> np.ndarray:
    """
    Gradients of the linear shape functions N0, N1, N2.

    For a triangle with unit normal n and area A, the gradient of N_i is

        ∇N_i = n × (p_k − p_j) / (2A)      for (i, j, k) cyclic

    which lies in the triangle's plane. Any field interpolated linearly
    from nodal values f_i has gradient Σ f_i ∇N_i.

    Returns:
        G : np.ndarray, shape (3, 3)
            Row i is ∇N_i. All zeros for a degenerate triangle.
    """
    pts = [np.asarray(p, dtype=float) for p in (p0, p1, p2)]
    n = np.cross(pts[1] - pts[0], pts[2] - pts[0])
    twice_area = np.linalg.norm(n)
    if twice_area <= 0.0:
        return np.zeros((3, 3))
    n_hat = n / twice_area

    G = np.zeros((3, 3))
    for i in range(3):
        j = (i + 1) % 3
        k = (i + 2) % 3
        G[i] = np.cross(n_hat, pts[k] - pts[j]) / twice_area
    return G


def laplacian_triangle(coords: np.ndarray, coefficient: float) -> np.ndarray:
    """
    Linear-triangle Laplacian  K_ij = coefficient · A · ∇N_i · ∇N_j.

    Each row sums to zero (constant fields carry no flux).
    """
    p0, p1, p2 = coords
    G = triangle_gradients(p0, p1, p2)
    area = triangle_area(p0, p1, p2)
    return coefficient * area * (G @ G.T)
