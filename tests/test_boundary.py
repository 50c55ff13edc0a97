# tests/test_boundary.py
"""
BOUNDARY CONDITION APPLICATION TESTS
====================================

Loads go into the right-hand side; prescribed values go in by penalty
(K[i, i] += P, f[i] += P·u_i). The input matrix is never modified.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from simcore.kernel.assemble import assemble_pressure_laplacian, assemble_stiffness, assemble_thermal
from simcore.kernel.boundary import (
    add_penalty,
    apply_fluid_bcs,
    apply_structural_bcs,
    apply_thermal_bcs,
    fixed_structural_dofs,
    nodal_area_vectors,
)
from simcore.mesh import generate_mesh
from simcore.registry import (
    add_boundary_condition,
    fixed_support,
    imposed_temperature,
    point_force,
    uniform_pressure,
)


PENALTY = 1e12


def right_triangle():
    """Unit right triangle in the xy-plane, normal +z, area 0.5."""
    return generate_mesh([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2])


def test_add_penalty():
    K = np.eye(2)
    f = np.zeros(2)
    add_penalty(K, f, 1, 3.0, PENALTY)
    assert K[1, 1] == 1.0 + PENALTY
    assert f[1] == 3.0 * PENALTY


def test_nodal_area_vectors():
    vectors = nodal_area_vectors(right_triangle())
    assert_allclose(vectors, [[0, 0, 0.5 / 3]] * 3)


def test_point_force_into_load_vector():
    mesh = right_triangle()
    point_force(mesh, ['node_1'], (10.0, 0.0, -5.0))
    K = assemble_stiffness(mesh)

    K_mod, F = apply_structural_bcs(mesh, K, PENALTY)

    assert_allclose(F, [0, 0, 0, 10.0, 0, -5.0, 0, 0, 0])
    assert_allclose(K_mod, K)


def test_axis_force():
    mesh = right_triangle()
    add_boundary_condition(mesh, 'force', ['node_2'], -4.0, direction='y')
    _, F = apply_structural_bcs(mesh, assemble_stiffness(mesh), PENALTY)
    assert F[7] == -4.0
    assert np.count_nonzero(F) == 1


def test_pressure_pushes_against_normal():
    mesh = right_triangle()
    uniform_pressure(mesh, ['node_0'], 6.0)
    _, F = apply_structural_bcs(mesh, assemble_stiffness(mesh), PENALTY)

    # 6 Pa × tributary area 1/6 m², opposite the +z normal
    assert_allclose(F[:3], [0.0, 0.0, -1.0])
    assert_allclose(F[3:], 0.0)


def test_fixed_support_penalises_diagonal():
    mesh = right_triangle()
    fixed_support(mesh, ['node_2'])
    K = assemble_stiffness(mesh)
    K_before = K.copy()

    K_mod, F = apply_structural_bcs(mesh, K, PENALTY)

    assert_allclose(K, K_before)
    assert_allclose(np.diag(K_mod)[6:], np.diag(K)[6:] + PENALTY)
    assert_allclose(np.diag(K_mod)[:6], np.diag(K)[:6])
    assert_allclose(F, 0.0)
    assert fixed_structural_dofs(mesh) == [6, 7, 8]


def test_prescribed_displacement_component():
    mesh = right_triangle()
    add_boundary_condition(mesh, 'displacement', ['node_1'], 0.002, direction='x')
    K_mod, F = apply_structural_bcs(mesh, assemble_stiffness(mesh), PENALTY)

    assert F[3] == pytest.approx(0.002 * PENALTY)
    assert fixed_structural_dofs(mesh) == [3]


def test_conditions_on_foreign_nodes_are_ignored():
    mesh = right_triangle()
    point_force(mesh, ['node_1', 'node_2'], (1.0, 0.0, 0.0))
    # node_2 disappears; the condition still names it
    mesh.nodes.pop('node_2')
    mesh.elements.clear()

    _, F = apply_structural_bcs(mesh, np.zeros((6, 6)), PENALTY)
    assert_allclose(F, [0, 0, 0, 1.0, 0, 0])


def test_thermal_dirichlet_and_flux():
    mesh = right_triangle()
    imposed_temperature(mesh, ['node_0'], 100.0)
    add_boundary_condition(mesh, 'heat_flux', ['node_1'], 25.0)
    K, _ = assemble_thermal(mesh)

    K_mod, Q = apply_thermal_bcs(mesh, K, PENALTY)

    assert K_mod[0, 0] == pytest.approx(K[0, 0] + PENALTY)
    assert Q[0] == pytest.approx(100.0 * PENALTY)
    assert Q[1] == 25.0
    assert Q[2] == 0.0


def test_fluid_gauge_pin_without_pressure_condition():
    mesh = right_triangle()
    L = assemble_pressure_laplacian(mesh)
    L_mod, S, prescribed = apply_fluid_bcs(mesh, L, PENALTY)

    assert L_mod[0, 0] == pytest.approx(L[0, 0] + PENALTY)
    assert_allclose(np.diag(L_mod)[1:], np.diag(L)[1:])
    assert prescribed == {}


def test_fluid_pressure_and_velocity_conditions():
    mesh = right_triangle()
    add_boundary_condition(mesh, 'pressure', ['node_1'], 50.0)
    add_boundary_condition(mesh, 'velocity', ['node_2'], 0.3)
    add_boundary_condition(mesh, 'velocity', ['node_0'], (1.0, 0.0, 0.0))
    L = assemble_pressure_laplacian(mesh)

    L_mod, S, prescribed = apply_fluid_bcs(mesh, L, PENALTY)

    # No gauge pin when a pressure is prescribed
    assert L_mod[0, 0] == pytest.approx(L[0, 0])
    assert S[1] == pytest.approx(50.0 * PENALTY)
    assert S[2] == pytest.approx(0.3 * 0.5 / 3)
    assert_allclose(prescribed[0], [1.0, 0.0, 0.0])
