# simcore/analysis.py
"""
ANALYSIS PIPELINES
==================

Four pipelines share one state machine:

    IDLE → ASSEMBLING → BOUNDARY_APPLIED → SOLVING → POST_PROCESSING → COMPLETED
                      (any non-terminal state) → FAILED

Each run_* function receives a mesh SNAPSHOT (the engine deep-copies the
mesh under its lock before calling) and returns a complete, immutable
SimulationResult. Nothing here touches the result store: committing is the
caller's job, so a failed or cancelled run leaves no trace.

Cancellation is cooperative. If a threading.Event is passed and gets set,
the next state transition raises AnalysisCancelled.

    structural  K → loads/supports → u → element stress → max |u|,
                max von Mises, safety factor, strain energy
    thermal     K, C → temperatures/fluxes → T (steady or backward Euler)
                → element heat flux → max T
    modal       K, M → supports → eigenpairs → natural frequencies
    fluid       pressure Laplacian → pressures/inflows → p → velocities
"""

import logging
import math
import threading
from enum import Enum
from typing import List, Optional

import numpy as np

from .config import CONFIG, EngineConfig
from .errors import AnalysisCancelled
from .kernel.assemble import (
    assemble_mass,
    assemble_pressure_laplacian,
    assemble_stiffness,
    assemble_thermal,
    material_value,
)
from .kernel.boundary import (
    apply_fluid_bcs,
    apply_structural_bcs,
    apply_thermal_bcs,
    fixed_structural_dofs,
)
from .kernel.modal import natural_frequencies
from .kernel.solve import solve_system
from .model import (
    GlobalResult,
    Mesh,
    NodeResult,
    ElementResult,
    SimulationResult,
    SimulationSettings,
)
from .post import (
    fluid_velocities,
    strain_energy,
    structural_element_results,
    thermal_element_results,
)


logger = logging.getLogger(__name__)


class AnalysisState(str, Enum):
    IDLE = 'idle'
    ASSEMBLING = 'assembling'
    BOUNDARY_APPLIED = 'boundary_applied'
    SOLVING = 'solving'
    POST_PROCESSING = 'post_processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


_NEXT_STATE = {
    AnalysisState.IDLE: AnalysisState.ASSEMBLING,
    AnalysisState.ASSEMBLING: AnalysisState.BOUNDARY_APPLIED,
    AnalysisState.BOUNDARY_APPLIED: AnalysisState.SOLVING,
    AnalysisState.SOLVING: AnalysisState.POST_PROCESSING,
    AnalysisState.POST_PROCESSING: AnalysisState.COMPLETED,
}

TERMINAL_STATES = (AnalysisState.COMPLETED, AnalysisState.FAILED)


class AnalysisRun:
    """
    Tracks one pipeline's progress through the state machine.

    Used as a context manager: an exception inside the block moves the run
    to FAILED and propagates.
    """

    def __init__(self, kind: str, mesh_id: str = '', cancel_event: Optional[threading.Event] = None):
        self.kind = kind
        self.mesh_id = mesh_id
        self.cancel_event = cancel_event
        self.state = AnalysisState.IDLE
        self.history: List[AnalysisState] = [AnalysisState.IDLE]

    def advance(self, target: AnalysisState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"{self.kind} run already {self.state.value}")
        if _NEXT_STATE[self.state] is not target:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {target.value}")
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise AnalysisCancelled(f"{self.kind} analysis on {self.mesh_id} cancelled "
                                    f"before {target.value}")
        self.state = target
        self.history.append(target)
        logger.debug("%s analysis on %s: %s", self.kind, self.mesh_id, target.value)

    def fail(self) -> None:
        if self.state not in TERMINAL_STATES:
            self.state = AnalysisState.FAILED
            self.history.append(AnalysisState.FAILED)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.fail()
            if issubclass(exc_type, AnalysisCancelled):
                logger.info("%s", exc)
            else:
                logger.debug("%s analysis on %s: failed (%s)", self.kind, self.mesh_id, exc_type.__name__)
        return False


def _vec(values) -> tuple:
    return tuple(float(v) for v in values)


def _note_ignored_flags(settings: SimulationSettings) -> None:
    if settings.nonlinear or settings.large_deformation:
        logger.debug("nonlinear/large_deformation flags accepted; linear formulation used")


# =============================================================================
# Structural
# =============================================================================

def run_structural(mesh: Mesh, settings: SimulationSettings, result_id: str,
                   config: EngineConfig = CONFIG,
                   cancel_event: Optional[threading.Event] = None) -> SimulationResult:
    """
    Linear static analysis.

    Safety factor = yield strength of the most-stressed element's material
    ÷ max von Mises stress (inf when nothing is stressed).
    """
    _note_ignored_flags(settings)
    with AnalysisRun('structural', mesh.id, cancel_event) as run:
        run.advance(AnalysisState.ASSEMBLING)
        mesh.validate()
        K = assemble_stiffness(mesh, config)

        run.advance(AnalysisState.BOUNDARY_APPLIED)
        K_bc, F = apply_structural_bcs(mesh, K, config.penalty)

        run.advance(AnalysisState.SOLVING)
        solution = solve_system(K_bc, F, settings, config.pivot_tolerance)

        run.advance(AnalysisState.POST_PROCESSING)
        u = solution.x.reshape(-1, 3)
        element_results = structural_element_results(mesh, u, config)
        node_results = {
            node_id: NodeResult(displacement=_vec(u[i]))
            for i, node_id in enumerate(mesh.nodes)
        }

        max_displacement = float(np.max(np.linalg.norm(u, axis=1))) if len(u) else 0.0
        max_stress = 0.0
        governing = None
        for element_id, er in element_results.items():
            if governing is None or er.stress.von_mises > max_stress:
                max_stress = er.stress.von_mises
                governing = element_id

        if governing is not None:
            material = mesh.element_material(mesh.elements[governing])
            yield_strength = material_value(material, 'yield_strength', config.default_yield_strength)
        else:
            yield_strength = config.default_yield_strength
        safety_factor = yield_strength / max_stress if max_stress > 0.0 else math.inf

        result = SimulationResult(
            id=result_id,
            type='structural',
            converged=solution.converged,
            iterations=solution.iterations,
            residual=solution.residual,
            node_results=node_results,
            element_results=element_results,
            global_results=GlobalResult(
                max_stress=max_stress,
                max_displacement=max_displacement,
                total_energy=strain_energy(K, solution.x),
                safety_factor=safety_factor,
            ),
            settings=settings,
        )
        run.advance(AnalysisState.COMPLETED)
    return result


# =============================================================================
# Thermal
# =============================================================================

def run_thermal(mesh: Mesh, settings: SimulationSettings, result_id: str,
                config: EngineConfig = CONFIG,
                cancel_event: Optional[threading.Event] = None) -> SimulationResult:
    """
    Steady conduction, or backward-Euler transient when settings carry both
    time_step and total_time:

        (C/Δt + K) Tⁿ⁺¹ = (C/Δt) Tⁿ + Q,   T⁰ = initial_temperature

    A transient run counts as converged only if every step converged; its
    iteration count is the sum over steps.
    """
    _note_ignored_flags(settings)
    with AnalysisRun('thermal', mesh.id, cancel_event) as run:
        run.advance(AnalysisState.ASSEMBLING)
        mesh.validate()
        K, C = assemble_thermal(mesh, config)

        run.advance(AnalysisState.BOUNDARY_APPLIED)
        K_bc, Q = apply_thermal_bcs(mesh, K, config.penalty)

        run.advance(AnalysisState.SOLVING)
        if settings.is_transient:
            dt = settings.time_step
            A = C / dt + K_bc
            T = np.full(mesh.n_nodes, float(settings.initial_temperature))
            converged = True
            iterations = 0
            residual = 0.0
            for step in range(settings.n_time_steps):
                if cancel_event is not None and cancel_event.is_set():
                    raise AnalysisCancelled(f"thermal analysis on {mesh.id} cancelled at step {step}")
                solution = solve_system(A, C @ T / dt + Q, settings, config.pivot_tolerance)
                T = solution.x
                converged = converged and solution.converged
                iterations += solution.iterations
                residual = solution.residual
            logger.debug("Transient thermal: %d steps of %.3g s", settings.n_time_steps, dt)
        else:
            solution = solve_system(K_bc, Q, settings, config.pivot_tolerance)
            T = solution.x
            converged = solution.converged
            iterations = solution.iterations
            residual = solution.residual

        run.advance(AnalysisState.POST_PROCESSING)
        element_results = thermal_element_results(mesh, T, config)
        node_results = {
            node_id: NodeResult(temperature=float(T[i]))
            for i, node_id in enumerate(mesh.nodes)
        }

        result = SimulationResult(
            id=result_id,
            type='thermal',
            converged=converged,
            iterations=iterations,
            residual=residual,
            node_results=node_results,
            element_results=element_results,
            global_results=GlobalResult(
                max_temperature=float(np.max(T)) if len(T) else None,
            ),
            settings=settings,
        )
        run.advance(AnalysisState.COMPLETED)
    return result


# =============================================================================
# Modal
# =============================================================================

def run_modal(mesh: Mesh, settings: SimulationSettings, result_id: str,
              config: EngineConfig = CONFIG,
              cancel_event: Optional[threading.Event] = None) -> SimulationResult:
    """
    Natural frequencies of the structure. DOFs held by displacement
    conditions are excluded from the eigenproblem; fewer modes than
    requested is reported as a partial result, not a failure.
    """
    with AnalysisRun('modal', mesh.id, cancel_event) as run:
        run.advance(AnalysisState.ASSEMBLING)
        mesh.validate()
        K = assemble_stiffness(mesh, config)
        M = assemble_mass(mesh, config)

        run.advance(AnalysisState.BOUNDARY_APPLIED)
        fixed = fixed_structural_dofs(mesh)

        run.advance(AnalysisState.SOLVING)
        modal = natural_frequencies(K, M, settings.num_modes, fixed, config.mode_merge_rtol)

        run.advance(AnalysisState.POST_PROCESSING)
        # Eigen-residual on the DOFs the eigenproblem was solved on
        active = modal.active_dofs
        residual = 0.0
        for mode, f in enumerate(modal.frequencies_hz):
            phi = modal.mode_shapes[:, mode]
            lam = (2.0 * np.pi * f) ** 2
            r = (K @ phi - lam * (M @ phi))[active]
            residual = max(residual, float(np.linalg.norm(r)))

        if modal.partial:
            logger.warning("Modal analysis on %s: %d of %d requested modes available",
                           mesh.id, modal.n_modes, modal.requested_modes)

        result = SimulationResult(
            id=result_id,
            type='modal',
            converged=True,
            iterations=1,
            residual=residual,
            node_results={},
            element_results={},
            global_results=GlobalResult(
                natural_frequencies=_vec(modal.frequencies_hz),
                mode_shapes=tuple(_vec(modal.mode_shapes[:, m]) for m in range(modal.n_modes)),
                requested_modes=modal.requested_modes,
            ),
            settings=settings,
        )
        run.advance(AnalysisState.COMPLETED)
    return result


# =============================================================================
# Fluid
# =============================================================================

def run_fluid(mesh: Mesh, settings: SimulationSettings, result_id: str,
              config: EngineConfig = CONFIG,
              cancel_event: Optional[threading.Event] = None) -> SimulationResult:
    """
    Simplified depth-averaged flow: solve the pressure Laplacian
    ∇·(∇p/μ) = −s, then v = −∇p/μ per element, averaged to nodes.
    Prescribed (vector) velocities override the computed nodal velocity.
    """
    _note_ignored_flags(settings)
    with AnalysisRun('fluid', mesh.id, cancel_event) as run:
        run.advance(AnalysisState.ASSEMBLING)
        mesh.validate()
        L = assemble_pressure_laplacian(mesh, config)

        run.advance(AnalysisState.BOUNDARY_APPLIED)
        L_bc, S, prescribed = apply_fluid_bcs(mesh, L, config.penalty)

        run.advance(AnalysisState.SOLVING)
        solution = solve_system(L_bc, S, settings, config.pivot_tolerance)
        p = solution.x

        run.advance(AnalysisState.POST_PROCESSING)
        element_v, nodal_v = fluid_velocities(mesh, p, config)
        for idx, v in prescribed.items():
            nodal_v[idx] = v

        node_results = {
            node_id: NodeResult(velocity=_vec(nodal_v[i]), pressure=float(p[i]))
            for i, node_id in enumerate(mesh.nodes)
        }
        element_results = {
            element_id: ElementResult(velocity=_vec(v))
            for element_id, v in element_v.items()
        }

        result = SimulationResult(
            id=result_id,
            type='fluid',
            converged=solution.converged,
            iterations=solution.iterations,
            residual=solution.residual,
            node_results=node_results,
            element_results=element_results,
            global_results=GlobalResult(
                max_velocity=float(np.max(np.linalg.norm(nodal_v, axis=1))) if len(p) else None,
                max_pressure=float(np.max(p)) if len(p) else None,
            ),
            settings=settings,
        )
        run.advance(AnalysisState.COMPLETED)
    return result


PIPELINES = {
    'structural': run_structural,
    'thermal': run_thermal,
    'modal': run_modal,
    'fluid': run_fluid,
}
