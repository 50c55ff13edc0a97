# tests/test_config.py
"""Configuration, settings and material catalog."""

import pytest
from pydantic import ValidationError

from simcore.catalog import DEFAULT_MATERIAL_ID, MATERIAL_LIBRARY, default_material, library_material
from simcore.config import CONFIG, EngineConfig
from simcore.model import SimulationSettings, default_settings


def test_default_config():
    assert CONFIG.penalty == 1e12
    assert CONFIG.max_workers >= 1


def test_overrides_return_a_copy():
    config = CONFIG.with_overrides(penalty=1e8)
    assert config.penalty == 1e8
    assert CONFIG.penalty == 1e12


@pytest.mark.parametrize("field, value", [
    ('penalty', 0.0),
    ('pivot_tolerance', -1.0),
    ('max_workers', 0),
])
def test_invalid_config_rejected(field, value):
    with pytest.raises(ValueError, match=field):
        EngineConfig(**{field: value})


@pytest.mark.parametrize("analysis_type, solver", [
    ('structural', 'direct'),
    ('thermal', 'iterative'),
    ('modal', 'modal'),
    ('fluid', 'iterative'),
])
def test_default_settings_per_analysis(analysis_type, solver):
    settings = default_settings(analysis_type)
    assert settings.type == analysis_type
    assert settings.solver == solver
    assert settings.convergence_tolerance == 1e-6
    assert settings.max_iterations == 1000


def test_default_settings_unknown_type():
    with pytest.raises(ValueError, match="Unknown analysis type"):
        default_settings('acoustic')


def test_settings_validation():
    with pytest.raises(ValidationError):
        SimulationSettings(convergence_tolerance=0.0)
    with pytest.raises(ValidationError):
        SimulationSettings(solver='multigrid')
    with pytest.raises(ValidationError):
        SimulationSettings(num_modes=0)


def test_transient_step_count():
    assert not default_settings('thermal').is_transient
    settings = default_settings('thermal', time_step=0.1, total_time=1.0)
    assert settings.is_transient
    assert settings.n_time_steps == 10
    assert default_settings('thermal', time_step=0.3, total_time=1.0).n_time_steps == 4


def test_settings_are_immutable():
    settings = default_settings('structural')
    with pytest.raises(ValidationError):
        settings.solver = 'iterative'


def test_default_material():
    material = default_material()
    assert material.id == DEFAULT_MATERIAL_ID
    assert material.type == 'structural'
    assert material.properties.youngs_modulus == 200e9
    assert material.properties.poissons_ratio == 0.3
    assert material.properties.density == 7850.0


def test_library_lookup():
    name, material_type, props = library_material('water')
    assert name == 'Water'
    assert material_type == 'fluid'
    assert props.viscosity == pytest.approx(1e-3)


def test_library_unknown_key_lists_choices():
    with pytest.raises(KeyError, match="steel_1018"):
        library_material('unobtainium')


def test_library_types_are_valid():
    for name, material_type, props in MATERIAL_LIBRARY.values():
        assert material_type in ('structural', 'thermal', 'fluid')
        if material_type == 'structural':
            assert props.youngs_modulus > 0
            assert -1.0 < props.poissons_ratio < 0.5
