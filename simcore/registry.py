# simcore/registry.py
"""
Boundary condition and material registry.

Append-only mutators that attach conditions and materials to a Mesh. They
take the new record's id from the caller; the engine generates ids and
serialises calls per mesh.
"""

from typing import Iterable, Optional, Sequence, Union

import numpy as np

from .errors import InvalidGeometryError
from .model import (
    BC_DIRECTIONS,
    BC_TYPES,
    MATERIAL_TYPES,
    BoundaryCondition,
    MaterialProperties,
    MaterialProperty,
    Mesh,
)


# Condition types whose value must be a single number
SCALAR_ONLY = ('temperature', 'heat_flux', 'pressure')


def _normalise_value(bc_type: str, value) -> Union[float, tuple]:
    if isinstance(value, dict):
        value = (value.get('x', 0.0), value.get('y', 0.0), value.get('z', 0.0))
    ndim = np.ndim(value)
    if ndim == 0:
        return float(value)
    if ndim != 1:
        raise ValueError(f"{bc_type} value must be a scalar or a 3-vector, got {ndim} dimensions")
    components = tuple(float(v) for v in value)
    if len(components) != 3:
        raise ValueError(f"{bc_type} vector value must have 3 components, got {len(components)}")
    if bc_type in SCALAR_ONLY:
        raise ValueError(f"{bc_type} condition takes a scalar value")
    return components


def add_boundary_condition(
    mesh: Mesh,
    bc_type: str,
    node_ids: Sequence[str],
    value,
    direction: Optional[str] = None,
    bc_id: str = 'bc',
) -> BoundaryCondition:
    """
    Append a boundary condition to ``mesh``.

    Displacement conditions also raise the targeted nodes' translational
    constraint flags (the ones they prescribe).

    Raises:
        ValueError: unknown type or direction, or a value of the wrong shape
        InvalidGeometryError: a node id the mesh does not own
    """
    if bc_type not in BC_TYPES:
        raise ValueError(f"Unknown boundary condition type '{bc_type}'. Expected one of {BC_TYPES}")
    if direction not in BC_DIRECTIONS:
        raise ValueError(f"Unknown direction '{direction}'. Expected one of {BC_DIRECTIONS}")

    node_ids = tuple(node_ids)
    missing = [nid for nid in node_ids if nid not in mesh.nodes]
    if missing:
        raise InvalidGeometryError(f"Mesh {mesh.id} has no nodes {missing}")

    bc = BoundaryCondition(
        id=bc_id,
        type=bc_type,
        node_ids=node_ids,
        value=_normalise_value(bc_type, value),
        direction=direction,
    )
    mesh.boundary_conditions.append(bc)

    if bc_type == 'displacement':
        axes = {'x': [0], 'y': [1], 'z': [2]}.get(direction, [0, 1, 2])
        if bc.is_vector:
            axes = [0, 1, 2]
        for nid in node_ids:
            for axis in axes:
                mesh.nodes[nid].constraints[axis] = True

    return bc


def fixed_support(mesh: Mesh, node_ids: Sequence[str], bc_id: str = 'bc') -> BoundaryCondition:
    """Zero displacement in x, y and z."""
    return add_boundary_condition(mesh, 'displacement', node_ids, (0.0, 0.0, 0.0), bc_id=bc_id)


def point_force(mesh: Mesh, node_ids: Sequence[str], force, bc_id: str = 'bc') -> BoundaryCondition:
    """Force vector (x, y, z) applied at each node."""
    return add_boundary_condition(mesh, 'force', node_ids, force, bc_id=bc_id)


def uniform_pressure(mesh: Mesh, node_ids: Sequence[str], pressure: float,
                     bc_id: str = 'bc') -> BoundaryCondition:
    """Scalar pressure acting along the surface normal."""
    return add_boundary_condition(mesh, 'pressure', node_ids, pressure, direction='normal', bc_id=bc_id)


def imposed_temperature(mesh: Mesh, node_ids: Sequence[str], temperature: float,
                        bc_id: str = 'bc') -> BoundaryCondition:
    return add_boundary_condition(mesh, 'temperature', node_ids, temperature, bc_id=bc_id)


def add_material(
    mesh: Mesh,
    name: str,
    material_type: str,
    properties: Union[MaterialProperties, dict],
    material_id: str = 'material',
) -> MaterialProperty:
    """
    Append a material to ``mesh``. ``properties`` may be a
    MaterialProperties or a dict of its field names.
    """
    if material_type not in MATERIAL_TYPES:
        raise ValueError(f"Unknown material type '{material_type}'. Expected one of {MATERIAL_TYPES}")
    if isinstance(properties, dict):
        properties = MaterialProperties(**properties)
    material = MaterialProperty(id=material_id, name=name, type=material_type, properties=properties)
    mesh.materials[material_id] = material
    return material


def assign_material(mesh: Mesh, element_ids: Iterable[str], material_id: str) -> bool:
    """
    Rebind elements to a material.

    Unknown element ids are skipped. Returns False, changing nothing, when
    the material is unknown or when none of the ids names an element of
    the mesh; otherwise rebinds the present elements and returns True.
    """
    if material_id not in mesh.materials:
        return False
    present = [eid for eid in element_ids if eid in mesh.elements]
    if not present:
        return False
    for eid in present:
        mesh.elements[eid].material_id = material_id
    return True
