# simcore/kernel/modal.py
"""
Modal analysis: natural frequencies and mode shapes from (K, M).

A result can hold fewer modes than requested for two reasons: too few
active DOFs (rank), or a degenerate spectrum whose repeated eigenvalues
are reported as one frequency.
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np
from scipy.linalg import eigh

from ..config import CONFIG


@dataclass(frozen=True)
class ModalSolution:
    """
    frequencies_hz : strictly ascending natural frequencies (Hz)
    mode_shapes    : (ndof, n_modes), zero at inactive DOFs, mass-normalised
    active_dofs    : DOF indices the eigenproblem was solved on
    requested_modes: number of modes asked for
    """
    frequencies_hz: np.ndarray
    mode_shapes: np.ndarray
    active_dofs: np.ndarray
    requested_modes: int

    @property
    def n_modes(self) -> int:
        return len(self.frequencies_hz)

    @property
    def partial(self) -> bool:
        """
        Fewer modes than requested: the active DOFs were too few, or
        repeated eigenvalues were merged into one frequency.
        """
        return self.n_modes < self.requested_modes


def active_dofs(M: np.ndarray, fixed_dofs: Iterable[int] = ()) -> np.ndarray:
    """DOFs that are not fixed and carry mass."""
    fixed = set(fixed_dofs)
    diag = np.diag(M)
    return np.array([i for i in range(M.shape[0]) if i not in fixed and diag[i] > 0.0],
                    dtype=int)


def natural_frequencies(
    K: np.ndarray,
    M: np.ndarray,
    num_modes: int,
    fixed_dofs: Iterable[int] = (),
    merge_rtol: float = None,
) -> ModalSolution:
    """
    Compute the lowest natural frequencies and mode shapes.

    Solves the generalized eigenvalue problem K·φ = ω²·M·φ on the active
    DOFs (not fixed, positive mass) with a dense symmetric solver, which is
    deterministic.

    Eigenvalues that coincide within merge_rtol (relative) describe one
    natural frequency with several shapes; they are reported once, so the
    returned frequencies are strictly ascending. The mode count is
    therefore at most min(num_modes, number of active DOFs) and can be
    lower; that is a partial result, not a failure.

    Args:
        K: Global stiffness matrix
        M: Global mass matrix
        num_modes: Number of modes requested (>= 1)
        fixed_dofs: Constrained DOF indices to exclude
        merge_rtol: Relative tolerance for merging repeated eigenvalues

    Returns:
        ModalSolution
    """
    if num_modes < 1:
        raise ValueError(f"num_modes must be >= 1, got {num_modes}")
    merge_rtol = CONFIG.mode_merge_rtol if merge_rtol is None else merge_rtol
    ndof = K.shape[0]

    free = active_dofs(M, fixed_dofs)
    if len(free) == 0:
        return ModalSolution(
            frequencies_hz=np.zeros(0),
            mode_shapes=np.zeros((ndof, 0)),
            active_dofs=free,
            requested_modes=num_modes,
        )

    Kff = K[np.ix_(free, free)]
    Mff = M[np.ix_(free, free)]

    # Symmetrise against round-off; eigh reads one triangle only
    Kff = 0.5 * (Kff + Kff.T)
    Mff = 0.5 * (Mff + Mff.T)

    eigenvalues, eigenvectors = eigh(Kff, Mff)

    # Clamp tiny negatives (rigid-body modes) to zero
    eigenvalues = np.maximum(eigenvalues, 0.0)

    keep = []
    for i, lam in enumerate(eigenvalues):
        if keep:
            prev = eigenvalues[keep[-1]]
            if lam - prev <= merge_rtol * max(abs(lam), abs(prev), 1e-300):
                continue
        keep.append(i)
        if len(keep) == num_modes:
            break

    omega = np.sqrt(eigenvalues[keep])
    frequencies_hz = omega / (2.0 * np.pi)

    shapes = np.zeros((ndof, len(keep)))
    shapes[free, :] = eigenvectors[:, keep]

    return ModalSolution(
        frequencies_hz=frequencies_hz,
        mode_shapes=shapes,
        active_dofs=free,
        requested_modes=num_modes,
    )


def _influence_vector(ndof: int, direction: int, dof_per_node: int) -> np.ndarray:
    r = np.zeros(ndof)
    r[direction::dof_per_node] = 1.0
    return r


def participation_factors(
    solution: ModalSolution,
    M: np.ndarray,
    direction: int = 2,
    dof_per_node: int = 3,
) -> np.ndarray:
    """
    Modal participation factor Γ = φᵀ·M·r / φᵀ·M·φ for a unit ground
    motion along ``direction`` (0=x, 1=y, 2=z).
    """
    r = _influence_vector(M.shape[0], direction, dof_per_node)
    factors = np.zeros(solution.n_modes)
    for mode in range(solution.n_modes):
        phi = solution.mode_shapes[:, mode]
        m_star = phi @ M @ phi
        if m_star > 0:
            factors[mode] = (phi @ M @ r) / m_star
    return factors


def effective_modal_mass(
    solution: ModalSolution,
    M: np.ndarray,
    direction: int = 2,
    dof_per_node: int = 3,
) -> np.ndarray:
    """Effective mass (φᵀ·M·r)² / φᵀ·M·φ mobilised by each mode."""
    r = _influence_vector(M.shape[0], direction, dof_per_node)
    eff_mass = np.zeros(solution.n_modes)
    for mode in range(solution.n_modes):
        phi = solution.mode_shapes[:, mode]
        m_star = phi @ M @ phi
        if m_star > 0:
            eff_mass[mode] = (phi @ M @ r) ** 2 / m_star
    return eff_mass
