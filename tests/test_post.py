# tests/test_post.py
"""
POST-PROCESSING TESTS
=====================

Linear fields on the unit right triangle have exact gradients, so the
element quantities can be checked against hand calculations:

    u = (ε·x, 0, 0)   →  εxx = ε,  von Mises σ = 2μ·ε
    T = 100(1 − x − y) → q = k·(100, 100, 0)
    p = x             →  v = (−1/μ, 0, 0)
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from simcore.errors import AssemblyError
from simcore.mesh import generate_mesh
from simcore.model import GlobalResult, MaterialProperties, NodeResult, SimulationResult, StressState, ElementResult
from simcore.post import (
    element_results_frame,
    fluid_velocities,
    lame_parameters,
    node_results_frame,
    stress_state,
    structural_element_results,
    thermal_element_results,
    von_mises,
)
from simcore.registry import add_material, assign_material


E = 200e9
NU = 0.3


def right_triangle():
    return generate_mesh([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2])


def test_lame_parameters():
    lam, mu = lame_parameters(E, NU)
    assert mu == pytest.approx(E / 2.6)
    assert lam == pytest.approx(E * 0.3 / (1.3 * 0.4))


def test_lame_rejects_incompressible():
    with pytest.raises(ValueError, match="Poisson"):
        lame_parameters(E, 0.5)


def test_von_mises_uniaxial_and_shear():
    uniaxial = np.diag([250e6, 0.0, 0.0])
    assert von_mises(uniaxial) == pytest.approx(250e6)

    shear = np.zeros((3, 3))
    shear[0, 1] = shear[1, 0] = 100.0
    assert von_mises(shear) == pytest.approx(100.0 * math.sqrt(3.0))


def test_principal_stresses_descending():
    sigma = np.array([[2.0, 1.0, 0.0], [1.0, 2.0, 0.0], [0.0, 0.0, -1.0]])
    state = stress_state(sigma)
    assert_allclose(state.principal, [3.0, 1.0, -1.0], atol=1e-12)
    assert state.components == (2.0, 2.0, -1.0, 1.0, 0.0, 0.0)


def test_uniaxial_strain_stress():
    mesh = right_triangle()
    eps = 1e-3
    u = np.array([[0.0, 0.0, 0.0], [eps, 0.0, 0.0], [0.0, 0.0, 0.0]])

    results = structural_element_results(mesh, u)
    stress = results['element_0'].stress
    lam, mu = lame_parameters(E, NU)

    assert stress.components[0] == pytest.approx((lam + 2 * mu) * eps)
    assert stress.components[1] == pytest.approx(lam * eps)
    assert stress.von_mises == pytest.approx(2 * mu * eps)
    assert results['element_0'].strain_von_mises == pytest.approx(eps)


def test_rigid_translation_is_stress_free():
    mesh = right_triangle()
    u = np.tile([1e-3, -2e-3, 5e-4], (3, 1))
    stress = structural_element_results(mesh, u)['element_0'].stress
    assert stress.von_mises == pytest.approx(0.0, abs=1e-3)


def test_invalid_poisson_ratio_is_assembly_error():
    mesh = right_triangle()
    add_material(mesh, 'Rubber', 'structural', MaterialProperties(poissons_ratio=0.5),
                 material_id='material_1')
    assign_material(mesh, ['element_0'], 'material_1')
    with pytest.raises(AssemblyError, match="material_1"):
        structural_element_results(mesh, np.zeros((3, 3)))


def test_heat_flux_follows_conductivity():
    mesh = right_triangle()
    T = np.array([100.0, 0.0, 0.0])

    steel = thermal_element_results(mesh, T)['element_0']
    assert_allclose(steel.heat_flux, [5000.0, 5000.0, 0.0])
    assert steel.temperature == pytest.approx(100.0 / 3.0)

    add_material(mesh, 'Copper', 'thermal', MaterialProperties(thermal_conductivity=401.0),
                 material_id='material_1')
    assign_material(mesh, ['element_0'], 'material_1')
    copper = thermal_element_results(mesh, T)['element_0']
    assert_allclose(copper.heat_flux, [40100.0, 40100.0, 0.0])


def test_darcy_velocity():
    mesh = right_triangle()
    p = np.array([0.0, 1.0, 0.0])

    element_v, nodal_v = fluid_velocities(mesh, p)

    assert_allclose(element_v['element_0'], [-1e3, 0.0, 0.0])
    assert_allclose(nodal_v, [[-1e3, 0.0, 0.0]] * 3)


def make_result():
    return SimulationResult(
        id='result_1',
        type='structural',
        converged=True,
        iterations=1,
        residual=0.0,
        node_results={
            'node_0': NodeResult(displacement=(3.0, 4.0, 0.0)),
            'node_1': NodeResult(displacement=(0.0, 0.0, 0.0)),
        },
        element_results={
            'element_0': ElementResult(stress=StressState(10.0, (10.0, 0.0, 0.0),
                                                          (10.0, 0.0, 0.0, 0.0, 0.0, 0.0))),
        },
        global_results=GlobalResult(max_displacement=5.0, max_stress=10.0),
    )


def test_node_results_frame():
    frame = node_results_frame(make_result())
    assert list(frame.index) == ['node_0', 'node_1']
    assert frame.loc['node_0', 'u_mag'] == pytest.approx(5.0)
    assert 'temperature' not in frame.columns


def test_element_results_frame():
    frame = element_results_frame(make_result())
    assert frame.loc['element_0', 'von_mises'] == 10.0
    assert frame.loc['element_0', 's1'] == 10.0
