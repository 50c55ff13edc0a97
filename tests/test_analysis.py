# tests/test_analysis.py
"""
ANALYSIS PIPELINE TESTS
=======================

Each pipeline takes a mesh snapshot and returns a complete result. The
meshes here are single triangles whose answers can be worked out by hand.

Structural matrices only occupy the first six DOFs (nodes 0 and 1), so
every structural test holds node 2 with a fixed support.
"""

import math
import threading

import numpy as np
import pytest
from numpy.testing import assert_allclose

from simcore.analysis import AnalysisRun, AnalysisState, run_fluid, run_modal, run_structural, run_thermal
from simcore.errors import AnalysisCancelled, MaterialNotFoundError, SingularSystemError
from simcore.mesh import generate_mesh
from simcore.model import MaterialProperties, default_settings
from simcore.registry import (
    add_boundary_condition,
    add_material,
    assign_material,
    fixed_support,
    imposed_temperature,
    point_force,
)


SOFT_E = 1e6
SOFT_YIELD = 2e5


def right_triangle():
    return generate_mesh([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2], mesh_id='mesh_1')


def soft_plate():
    """Right triangle in a soft material so the penalty dominates its stiffness."""
    mesh = right_triangle()
    add_material(mesh, 'Foam', 'structural',
                 MaterialProperties(youngs_modulus=SOFT_E, poissons_ratio=0.25,
                                    density=100.0, yield_strength=SOFT_YIELD),
                 material_id='material_1')
    assign_material(mesh, ['element_0'], 'material_1')
    return mesh


def displacement(result, node_id):
    return np.array(result.node_results[node_id].displacement)


# =============================================================================
# State machine
# =============================================================================

def test_run_walks_every_state():
    run = AnalysisRun('structural')
    for state in (AnalysisState.ASSEMBLING, AnalysisState.BOUNDARY_APPLIED,
                  AnalysisState.SOLVING, AnalysisState.POST_PROCESSING, AnalysisState.COMPLETED):
        run.advance(state)
    assert run.history[0] is AnalysisState.IDLE
    assert run.state is AnalysisState.COMPLETED


def test_run_rejects_skipped_state():
    run = AnalysisRun('thermal')
    with pytest.raises(RuntimeError, match="Illegal transition"):
        run.advance(AnalysisState.SOLVING)


def test_run_fails_on_exception():
    with pytest.raises(ZeroDivisionError):
        with AnalysisRun('modal') as run:
            run.advance(AnalysisState.ASSEMBLING)
            1 / 0
    assert run.state is AnalysisState.FAILED
    with pytest.raises(RuntimeError, match="already failed"):
        run.advance(AnalysisState.BOUNDARY_APPLIED)


def test_cancelled_event_stops_pipeline():
    mesh = soft_plate()
    fixed_support(mesh, ['node_2'], bc_id='bc_1')
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(AnalysisCancelled):
        run_structural(mesh, default_settings('structural'), 'result_1', cancel_event=cancel)


# =============================================================================
# Structural
# =============================================================================

def test_fixed_support_holds_node():
    free = soft_plate()
    fixed_support(free, ['node_2'], bc_id='bc_1')
    point_force(free, ['node_1'], (0.0, -10.0, 0.0), bc_id='bc_2')

    held = soft_plate()
    fixed_support(held, ['node_2'], bc_id='bc_1')
    point_force(held, ['node_1'], (0.0, -10.0, 0.0), bc_id='bc_2')
    fixed_support(held, ['node_0'], bc_id='bc_3')

    settings = default_settings('structural')
    r_free = run_structural(free, settings, 'result_1')
    r_held = run_structural(held, settings, 'result_2')

    loaded = np.linalg.norm(displacement(r_held, 'node_1'))
    assert np.linalg.norm(displacement(r_free, 'node_0')) > 1e-2 * loaded
    assert np.linalg.norm(displacement(r_held, 'node_0')) < 1e-6 * loaded
    assert np.linalg.norm(displacement(r_held, 'node_2')) < 1e-6 * loaded


def test_loaded_node_matches_hand_solution():
    mesh = soft_plate()
    fixed_support(mesh, ['node_0', 'node_2'], bc_id='bc_1')
    point_force(mesh, ['node_1'], (0.0, -10.0, 0.0), bc_id='bc_2')

    result = run_structural(mesh, default_settings('structural'), 'result_1')

    d = SOFT_E * 0.5 / 12.0
    K11 = d * (0.7 * np.eye(3) + 0.3 * np.ones((3, 3)))
    expected = np.linalg.solve(K11, [0.0, -10.0, 0.0])
    assert_allclose(displacement(result, 'node_1'), expected, rtol=1e-6)

    assert result.converged
    assert result.iterations == 1
    assert result.global_results.max_displacement == pytest.approx(np.linalg.norm(expected), rel=1e-6)
    assert result.global_results.total_energy > 0.0


def test_safety_factor_uses_governing_material_yield():
    mesh = soft_plate()
    fixed_support(mesh, ['node_0', 'node_2'], bc_id='bc_1')
    point_force(mesh, ['node_1'], (5.0, 0.0, 0.0), bc_id='bc_2')

    g = run_structural(mesh, default_settings('structural'), 'result_1').global_results

    assert g.max_stress > 0.0
    assert g.safety_factor == pytest.approx(SOFT_YIELD / g.max_stress)


def test_unloaded_structure_has_infinite_safety_factor():
    mesh = soft_plate()
    fixed_support(mesh, ['node_2'], bc_id='bc_1')

    g = run_structural(mesh, default_settings('structural'), 'result_1').global_results

    assert g.max_stress == 0.0
    assert math.isinf(g.safety_factor)


def test_unsupported_structure_is_singular():
    mesh = right_triangle()
    point_force(mesh, ['node_1'], (1.0, 0.0, 0.0), bc_id='bc_1')
    with pytest.raises(SingularSystemError):
        run_structural(mesh, default_settings('structural'), 'result_1')


def test_unresolved_material_fails_run():
    mesh = right_triangle()
    mesh.elements['element_0'].material_id = 'material_404'
    with pytest.raises(MaterialNotFoundError):
        run_structural(mesh, default_settings('structural'), 'result_1')


# =============================================================================
# Thermal
# =============================================================================

def thermal_plate():
    """T = 100(1 − x − y): every node prescribed."""
    mesh = right_triangle()
    imposed_temperature(mesh, ['node_0'], 100.0, bc_id='bc_1')
    imposed_temperature(mesh, ['node_1', 'node_2'], 0.0, bc_id='bc_2')
    return mesh


def test_steady_thermal():
    result = run_thermal(thermal_plate(), default_settings('thermal', solver='direct'), 'result_1')

    assert result.node_results['node_0'].temperature == pytest.approx(100.0, rel=1e-9)
    assert result.global_results.max_temperature == pytest.approx(100.0, rel=1e-9)
    assert_allclose(result.element_results['element_0'].heat_flux, [5000.0, 5000.0, 0.0], rtol=1e-6)


def test_heat_flux_reflects_rebound_conductivity():
    mesh = thermal_plate()
    add_material(mesh, 'Copper', 'thermal', MaterialProperties(thermal_conductivity=401.0),
                 material_id='material_1')
    assign_material(mesh, ['element_0'], 'material_1')

    result = run_thermal(mesh, default_settings('thermal', solver='direct'), 'result_1')

    assert_allclose(result.element_results['element_0'].heat_flux, [40100.0, 40100.0, 0.0], rtol=1e-6)


def test_iterative_thermal_reports_convergence_in_band():
    settings = default_settings('thermal', max_iterations=0)
    result = run_thermal(thermal_plate(), settings, 'result_1')

    assert result.converged is False
    assert result.iterations == 0
    assert result.residual > 0.0


def test_transient_single_step_barely_moves_free_nodes():
    mesh = right_triangle()
    imposed_temperature(mesh, ['node_0'], 100.0, bc_id='bc_1')
    settings = default_settings('thermal', solver='direct', time_step=1.0, total_time=1.0,
                                initial_temperature=20.0)

    result = run_thermal(mesh, settings, 'result_1')

    # Capacity ρ·cp·A/3 ≈ 6e5 J/K against conductance ≈ 4 W/K
    assert result.node_results['node_0'].temperature == pytest.approx(100.0, rel=1e-5)
    assert result.node_results['node_2'].temperature == pytest.approx(20.0, abs=0.01)
    assert result.iterations == 1


def test_transient_counts_every_step():
    mesh = right_triangle()
    imposed_temperature(mesh, ['node_0'], 100.0, bc_id='bc_1')
    settings = default_settings('thermal', solver='direct', time_step=0.25, total_time=1.0)

    result = run_thermal(mesh, settings, 'result_1')

    assert settings.n_time_steps == 4
    assert result.iterations == 4
    assert result.converged


# =============================================================================
# Modal
# =============================================================================

def test_modal_reports_partial_result():
    result = run_modal(right_triangle(), default_settings('modal', num_modes=10), 'result_1')
    g = result.global_results

    assert len(g.natural_frequencies) == 2
    assert g.requested_modes == 10
    assert result.partial
    assert np.all(np.diff(g.natural_frequencies) > 0)
    assert len(g.mode_shapes) == 2
    assert len(g.mode_shapes[0]) == 9
    assert result.residual < 1e-3 * max(g.natural_frequencies) ** 2


def test_modal_respects_supports():
    mesh = right_triangle()
    fixed_support(mesh, ['node_0'], bc_id='bc_1')
    result = run_modal(mesh, default_settings('modal', num_modes=1), 'result_1')

    g = result.global_results
    assert len(g.natural_frequencies) == 1
    assert not result.partial
    assert_allclose(g.mode_shapes[0][:3], 0.0)


# =============================================================================
# Fluid
# =============================================================================

def channel():
    """p = 100 at node 0, 0 at node 1; node 2 free."""
    mesh = right_triangle()
    add_boundary_condition(mesh, 'pressure', ['node_0'], 100.0, bc_id='bc_1')
    add_boundary_condition(mesh, 'pressure', ['node_1'], 0.0, bc_id='bc_2')
    return mesh


def test_fluid_pressure_and_velocity():
    result = run_fluid(channel(), default_settings('fluid', solver='direct'), 'result_1')

    # Free node 2 settles at the pressure of node 0: p = 100(1 − x)
    assert result.node_results['node_2'].pressure == pytest.approx(100.0, rel=1e-6)
    # v = −∇p / μ with μ = 1e-3 Pa·s
    assert_allclose(result.element_results['element_0'].velocity, [1e5, 0.0, 0.0], rtol=1e-6, atol=1e-3)
    assert result.global_results.max_pressure == pytest.approx(100.0, rel=1e-6)
    assert result.global_results.max_velocity == pytest.approx(1e5, rel=1e-6)


def test_prescribed_velocity_overrides_node():
    mesh = channel()
    add_boundary_condition(mesh, 'velocity', ['node_2'], (0.0, 0.0, 1.0), bc_id='bc_3')

    result = run_fluid(mesh, default_settings('fluid', solver='direct'), 'result_1')

    assert result.node_results['node_2'].velocity == (0.0, 0.0, 1.0)
    assert result.node_results['node_1'].velocity[0] == pytest.approx(1e5, rel=1e-6)


def test_fluid_without_conditions_is_gauge_pinned():
    result = run_fluid(right_triangle(), default_settings('fluid', solver='direct'), 'result_1')
    assert all(nr.pressure == pytest.approx(0.0, abs=1e-9) for nr in result.node_results.values())


def test_results_are_read_only():
    result = run_fluid(channel(), default_settings('fluid', solver='direct'), 'result_1')
    with pytest.raises(TypeError):
        result.node_results['node_9'] = None
