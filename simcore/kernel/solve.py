# simcore/kernel/solve.py
"""Linear system solvers: Gaussian elimination (direct) and conjugate gradient (iterative)."""

import logging
from dataclasses import dataclass

import numpy as np

from ..config import CONFIG
from ..errors import SingularSystemError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CGResult:
    x: np.ndarray
    iterations: int
    residual: float
    converged: bool


@dataclass(frozen=True)
class LinearSolution:
    """Solution vector plus the convergence record the result stores."""
    x: np.ndarray
    converged: bool
    iterations: int
    residual: float


def gaussian_elimination(A: np.ndarray, b: np.ndarray, pivot_tol: float = None) -> np.ndarray:
    """
    Solve A·x = b by Gaussian elimination with partial (row-max) pivoting.

    Args:
        A: Square matrix (n x n), not modified
        b: Right-hand side (n,), not modified
        pivot_tol: Relative pivot threshold; a pivot with
            |a| <= pivot_tol * (largest |entry| of its original row)
            counts as zero, as does any pivot of an all-zero row

    Returns:
        x: Solution vector (n,)

    Raises:
        SingularSystemError: If a pivot is numerically zero
        ValueError: If shapes are inconsistent
    """
    pivot_tol = CONFIG.pivot_tolerance if pivot_tol is None else pivot_tol
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    n = A.shape[0]
    if A.shape != (n, n) or b.shape != (n,):
        raise ValueError(f"Incompatible system: A{A.shape}, b{b.shape}")
    if n == 0:
        return np.zeros(0)

    # Augmented matrix [A | b]
    aug = np.hstack([A, b.reshape(-1, 1)])
    # Per-row scale: a penalised row and a plain row live on very different scales
    row_scale = np.max(np.abs(A), axis=1)

    # Forward elimination
    for i in range(n):
        max_row = i + int(np.argmax(np.abs(aug[i:, i])))
        pivot = abs(aug[max_row, i])
        if pivot == 0.0 or pivot <= pivot_tol * row_scale[max_row]:
            raise SingularSystemError(
                f"Singular system: zero pivot in column {i} "
                f"(|pivot|={pivot:.2e}). Check boundary conditions.",
                row=i,
            )
        if max_row != i:
            aug[[i, max_row]] = aug[[max_row, i]]
            row_scale[[i, max_row]] = row_scale[[max_row, i]]

        factors = aug[i + 1:, i] / aug[i, i]
        aug[i + 1:, i:] -= np.outer(factors, aug[i, i:])

    # Back substitution
    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (aug[i, n] - aug[i, i + 1:n] @ x[i + 1:]) / aug[i, i]

    return x


def conjugate_gradient(A: np.ndarray, b: np.ndarray, tol: float = 1e-6,
                       max_iterations: int = 1000) -> CGResult:
    """
    Unpreconditioned conjugate gradient for symmetric positive-definite A.

    Starts from x = 0 with r = p = b and stops when ||r|| < tol or after
    max_iterations steps. Running out of iterations is not an error: the
    result reports converged=False with the last iterate and residual.

    A non-positive curvature p·A·p (A not positive definite) also stops the
    iteration with converged=False.
    """
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    n = b.shape[0]
    if A.shape != (n, n):
        raise ValueError(f"Incompatible system: A{A.shape}, b{b.shape}")

    x = np.zeros(n)
    r = b.copy()
    p = r.copy()
    rs_old = float(r @ r)
    residual = float(np.sqrt(rs_old))

    if residual < tol:
        return CGResult(x=x, iterations=0, residual=residual, converged=True)

    for iteration in range(1, max_iterations + 1):
        Ap = A @ p
        curvature = float(p @ Ap)
        if curvature <= 0.0:
            logger.warning("CG breakdown at iteration %d (p·Ap=%.3e)", iteration, curvature)
            return CGResult(x=x, iterations=iteration - 1, residual=residual, converged=False)

        alpha = rs_old / curvature
        x = x + alpha * p
        r = r - alpha * Ap

        rs_new = float(r @ r)
        residual = float(np.sqrt(rs_new))
        if residual < tol:
            return CGResult(x=x, iterations=iteration, residual=residual, converged=True)

        p = r + (rs_new / rs_old) * p
        rs_old = rs_new

    return CGResult(x=x, iterations=max_iterations, residual=residual, converged=False)


def solve_system(A: np.ndarray, b: np.ndarray, settings, pivot_tol: float = None) -> LinearSolution:
    """
    Solve A·x = b with the strategy named by ``settings.solver``.

    'direct' uses Gaussian elimination (one "iteration", residual ||A·x − b||);
    'iterative' and 'modal' use conjugate gradient with the settings'
    tolerance and iteration cap.
    """
    if settings.solver == 'direct':
        x = gaussian_elimination(A, b, pivot_tol)
        residual = float(np.linalg.norm(A @ x - b))
        logger.debug("Direct solve: n=%d residual=%.3e", len(b), residual)
        return LinearSolution(x=x, converged=True, iterations=1, residual=residual)

    cg = conjugate_gradient(A, b, settings.convergence_tolerance, settings.max_iterations)
    logger.debug("CG solve: n=%d iterations=%d residual=%.3e converged=%s",
                 len(b), cg.iterations, cg.residual, cg.converged)
    if not cg.converged:
        logger.warning("CG did not converge in %d iterations (residual=%.3e)",
                       cg.iterations, cg.residual)
    return LinearSolution(x=cg.x, converged=cg.converged, iterations=cg.iterations,
                          residual=cg.residual)
