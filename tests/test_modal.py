# tests/test_modal.py
"""
MODAL ANALYSIS TESTS
====================

For a single steel triangle the reference matrices give closed-form
eigenvalues. With d = E·A/12 and m = ρ·A/3:

    K (6×6) = d·(0.7·I + 0.3·J),  M = m·I
    ω² = 0.7·d/m (five-fold)  and  2.5·d/m

Repeated eigenvalues are one natural frequency, so at most two distinct
frequencies exist however many modes are requested.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from simcore.kernel.assemble import assemble_mass, assemble_stiffness
from simcore.kernel.modal import effective_modal_mass, natural_frequencies, participation_factors
from simcore.mesh import generate_mesh


E = 200e9
RHO = 7850.0
AREA = 0.5


def frequency(factor):
    """f = √(factor · d/m) / 2π with d/m = 3E / (12ρ)."""
    return np.sqrt(factor * E / (4.0 * RHO)) / (2.0 * np.pi)


def triangle_matrices():
    mesh = generate_mesh([0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2])
    return assemble_stiffness(mesh), assemble_mass(mesh)


def test_closed_form_frequencies():
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=10)

    assert_allclose(modal.frequencies_hz, [frequency(0.7), frequency(2.5)], rtol=1e-8)
    assert modal.requested_modes == 10
    assert modal.partial


def test_count_never_exceeds_request_or_active_dofs():
    K, M = triangle_matrices()
    for requested in (1, 2, 5, 20):
        modal = natural_frequencies(K, M, num_modes=requested)
        assert modal.n_modes <= requested
        assert modal.n_modes <= len(modal.active_dofs)
        assert modal.mode_shapes.shape == (9, modal.n_modes)


def test_frequencies_strictly_ascending():
    K, M = triangle_matrices()
    freqs = natural_frequencies(K, M, num_modes=6).frequencies_hz
    assert np.all(np.diff(freqs) > 0)


def test_degenerate_spectrum_is_partial_with_enough_dofs():
    # Six active DOFs but only two distinct eigenvalues
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=6)
    assert len(modal.active_dofs) == 6
    assert modal.n_modes == 2
    assert modal.partial


def test_massless_dofs_are_excluded():
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=3)
    # Node 2 carries no mass under the simplified placement
    assert modal.active_dofs.tolist() == [0, 1, 2, 3, 4, 5]
    assert_allclose(modal.mode_shapes[6:], 0.0)


def test_fixed_dofs_change_the_spectrum():
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=10, fixed_dofs=[0, 1, 2])

    # 3×3 block d·(0.7·I + 0.3·J): eigenvalues 0.7·d (twice) and 1.6·d
    assert_allclose(modal.frequencies_hz, [frequency(0.7), frequency(1.6)], rtol=1e-8)
    assert_allclose(modal.mode_shapes[:3], 0.0)


def test_everything_fixed_gives_no_modes():
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=4, fixed_dofs=range(9))
    assert modal.n_modes == 0
    assert modal.partial


def test_invalid_mode_count():
    K, M = triangle_matrices()
    with pytest.raises(ValueError, match="num_modes"):
        natural_frequencies(K, M, num_modes=0)


def test_uniform_mode_mobilises_two_thirds_of_element_mass():
    K, M = triangle_matrices()
    modal = natural_frequencies(K, M, num_modes=2)
    m = RHO * AREA / 3.0

    # Second mode is the uniform translation of all six active DOFs: two of
    # them (node 0 x, node 1 x) move along x
    eff = effective_modal_mass(modal, M, direction=0)
    assert eff[1] == pytest.approx(2.0 * m / 3.0, rel=1e-8)

    gamma = participation_factors(modal, M, direction=0)
    assert abs(gamma[1]) == pytest.approx(2.0 * m / np.sqrt(6.0 * m), rel=1e-8)
