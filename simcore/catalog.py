"""
CATALOG: MATERIAL PRESETS
=========================

PURPOSE:
--------
Instead of typing E=200e9, k=50, cp=460 into every analysis, this module
keeps a library of common engineering materials that can be added to a
mesh by key:

    name, mat_type, props = library_material('aluminum_6061')
    material_id = engine.add_material(mesh_id, name, mat_type, props)

It also defines the built-in DEFAULT MATERIAL that the mesh generator
attaches to every new mesh. Elements reference it until a material is
explicitly assigned.

Values are room-temperature handbook figures; good enough for the
simplified element formulas this engine uses.
"""

from typing import Dict, Tuple

from .config import CONFIG
from .model import MaterialProperties, MaterialProperty


DEFAULT_MATERIAL_ID = 'default_material'


def default_material() -> MaterialProperty:
    """The built-in structural steel every generated mesh starts with."""
    return MaterialProperty(
        id=DEFAULT_MATERIAL_ID,
        name='Steel',
        type='structural',
        properties=MaterialProperties(
            youngs_modulus=CONFIG.default_youngs_modulus,
            poissons_ratio=CONFIG.default_poissons_ratio,
            density=CONFIG.default_density,
            yield_strength=CONFIG.default_yield_strength,
            thermal_conductivity=CONFIG.default_thermal_conductivity,
            specific_heat=CONFIG.default_specific_heat,
            thermal_expansion=12e-6,
        ),
    )


# key -> (display name, domain, properties)
MATERIAL_LIBRARY: Dict[str, Tuple[str, str, MaterialProperties]] = {
    # Metals
    'steel_1018': ('Low Carbon Steel (1018)', 'structural', MaterialProperties(
        youngs_modulus=200e9, poissons_ratio=0.29, density=7850, yield_strength=370e6,
        thermal_conductivity=51.9, specific_heat=486, thermal_expansion=11.7e-6,
    )),
    'aluminum_6061': ('Aluminum 6061-T6', 'structural', MaterialProperties(
        youngs_modulus=68.9e9, poissons_ratio=0.33, density=2700, yield_strength=276e6,
        ultimate_strength=310e6, thermal_conductivity=167, specific_heat=896,
        thermal_expansion=23.6e-6,
    )),
    'titanium_grade2': ('Titanium Grade 2', 'structural', MaterialProperties(
        youngs_modulus=103e9, poissons_ratio=0.34, density=4500, yield_strength=275e6,
        ultimate_strength=345e6, thermal_conductivity=16.4, specific_heat=523,
        thermal_expansion=8.6e-6,
    )),
    # Polymers
    'abs_plastic': ('ABS Plastic', 'structural', MaterialProperties(
        youngs_modulus=2.3e9, poissons_ratio=0.35, density=1050, yield_strength=40e6,
        thermal_conductivity=0.25, specific_heat=1386, thermal_expansion=90e-6,
    )),
    'nylon_66': ('Nylon 66', 'structural', MaterialProperties(
        youngs_modulus=2.9e9, poissons_ratio=0.39, density=1140, yield_strength=80e6,
        thermal_conductivity=0.25, specific_heat=1670, thermal_expansion=80e-6,
    )),
    # Composites / mineral
    'carbon_fiber': ('Carbon Fiber Composite', 'structural', MaterialProperties(
        youngs_modulus=150e9, poissons_ratio=0.3, density=1600, yield_strength=1500e6,
        thermal_conductivity=7.0, specific_heat=800, thermal_expansion=0.5e-6,
    )),
    'concrete': ('Concrete', 'structural', MaterialProperties(
        youngs_modulus=30e9, poissons_ratio=0.2, density=2400, yield_strength=30e6,
        thermal_conductivity=1.7, specific_heat=880, thermal_expansion=10e-6,
    )),
    # Thermal-only
    'copper': ('Copper', 'thermal', MaterialProperties(
        density=8960, thermal_conductivity=401, specific_heat=385, thermal_expansion=16.5e-6,
    )),
    # Fluids
    'water': ('Water', 'fluid', MaterialProperties(
        density=1000, thermal_conductivity=0.6, specific_heat=4182,
        viscosity=1.0e-3, compressibility=4.6e-10,
    )),
    'air': ('Air', 'fluid', MaterialProperties(
        density=1.225, thermal_conductivity=0.026, specific_heat=1005,
        viscosity=1.81e-5, compressibility=1.0e-5,
    )),
}


def library_material(key: str) -> Tuple[str, str, MaterialProperties]:
    """
    Look up a preset by key.

    Returns:
        (name, type, properties), ready for add_material

    Raises:
        KeyError: if the key is not in MATERIAL_LIBRARY
    """
    try:
        return MATERIAL_LIBRARY[key]
    except KeyError:
        raise KeyError(
            f"Unknown material '{key}'. Available: {sorted(MATERIAL_LIBRARY)}"
        ) from None
