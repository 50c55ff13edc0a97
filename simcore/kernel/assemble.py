# simcore/kernel/assemble.py
"""
ASSEMBLY: Global Matrix Assembly
================================

PURPOSE:
--------
Builds the dense global matrices of each analysis by summing element-local
contributions:

    structural   K (stiffness), M (mass)       3 DOF/node, 3N × 3N
    thermal      K (conductivity), C (capacity) 1 unknown/node, N × N
    fluid        L (pressure Laplacian)         1 unknown/node, N × N

The scatter-add itself (assemble_global_K) does not care what the element
is. It takes (dof_map, ke) pairs. What differs per analysis is the DOF map:

    - thermal / fluid: the element's node indices (row i → i-th node)
    - structural: the reference simplified placement, see kernel/dof.py

Materials are resolved strictly: an element whose material id the mesh
does not own raises MaterialNotFoundError. Missing individual properties
(e.g. a thermal material without a Young's modulus) fall back to the
engine defaults in config.py.
"""

from typing import List, Tuple

import numpy as np

from ..config import CONFIG, EngineConfig
from ..errors import AssemblyError
from ..model import Element, MaterialProperty, Mesh
from .dof import STRUCTURAL_DOF, DOFManager
from .elements import (
    laplacian_triangle,
    structural_mass,
    structural_stiffness,
    thermal_capacity,
    thermal_conductivity,
    triangle_area,
)


Contribution = Tuple[List[int], np.ndarray]


def assemble_global_K(ndof: int, contributions: List[Contribution]) -> np.ndarray:
    """
    Scatter-add element matrices into a dense global matrix.

    ALGORITHM:
    ----------
    K = zeros(ndof × ndof)
    for each (dof_map, ke):
        for each (a, b):
            K[dof_map[a], dof_map[b]] += ke[a, b]

    Entries whose global index falls outside the matrix are dropped (the
    simplified structural placement can point past the end of very small
    meshes).
    """
    K = np.zeros((ndof, ndof), dtype=float)

    for dof_map, ke in contributions:
        n_element_dofs = len(dof_map)
        assert ke.shape == (n_element_dofs, n_element_dofs), \
            f"Element ke shape {ke.shape} doesn't match dof_map length {n_element_dofs}"

        for a in range(n_element_dofs):
            ia = dof_map[a]
            if ia >= ndof:
                continue
            for b in range(n_element_dofs):
                ib = dof_map[b]
                if ib >= ndof:
                    continue
                K[ia, ib] += ke[a, b]

    return K


def material_value(material: MaterialProperty, name: str, default: float) -> float:
    """A material property, or ``default`` if the material leaves it out."""
    value = getattr(material.properties, name)
    return default if value is None else float(value)


def element_geometry(mesh: Mesh, element: Element, node_index: dict) -> Tuple[List[int], np.ndarray]:
    """
    Node indices and coordinates (3×3) of a triangle element.

    Raises:
        AssemblyError: unsupported element type, wrong node count or a node
            id the mesh does not own
    """
    if element.type != 'triangle':
        raise AssemblyError(
            f"Element {element.id}: only triangle elements are supported, got '{element.type}'"
        )
    if len(element.node_ids) != 3:
        raise AssemblyError(
            f"Element {element.id} references {len(element.node_ids)} nodes, expected 3"
        )
    indices = []
    for node_id in element.node_ids:
        if node_id not in node_index:
            raise AssemblyError(f"Element {element.id} references missing node {node_id}")
        indices.append(node_index[node_id])

    coords = np.array([mesh.nodes[nid].position for nid in element.node_ids])
    return indices, coords


def element_areas(mesh: Mesh) -> dict:
    """Area of every element, keyed by element id."""
    node_index = mesh.node_index()
    areas = {}
    for element in mesh.elements.values():
        _, coords = element_geometry(mesh, element, node_index)
        areas[element.id] = triangle_area(*coords)
    return areas


# =============================================================================
# Structural
# =============================================================================

def assemble_stiffness(mesh: Mesh, config: EngineConfig = CONFIG,
                       dof: DOFManager = STRUCTURAL_DOF) -> np.ndarray:
    """Global structural stiffness, 3N × 3N, using the simplified placement."""
    node_index = mesh.node_index()
    contributions = []
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        _, coords = element_geometry(mesh, element, node_index)
        E = material_value(material, 'youngs_modulus', config.default_youngs_modulus)
        ke = structural_stiffness(triangle_area(*coords), E)
        contributions.append((dof.simplified_dof_map(ke.shape[0]), ke))
    return assemble_global_K(dof.ndof(mesh.n_nodes), contributions)


def assemble_mass(mesh: Mesh, config: EngineConfig = CONFIG,
                  dof: DOFManager = STRUCTURAL_DOF) -> np.ndarray:
    """Global lumped structural mass, 3N × 3N, using the simplified placement."""
    node_index = mesh.node_index()
    contributions = []
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        _, coords = element_geometry(mesh, element, node_index)
        rho = material_value(material, 'density', config.default_density)
        me = structural_mass(triangle_area(*coords), rho)
        contributions.append((dof.simplified_dof_map(me.shape[0]), me))
    return assemble_global_K(dof.ndof(mesh.n_nodes), contributions)


# =============================================================================
# Thermal
# =============================================================================

def assemble_thermal(mesh: Mesh, config: EngineConfig = CONFIG) -> Tuple[np.ndarray, np.ndarray]:
    """
    Global conductivity and capacity matrices, N × N.

    Row/column i of an element matrix goes to the i-th referenced node.
    """
    node_index = mesh.node_index()
    k_contributions = []
    c_contributions = []
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        indices, coords = element_geometry(mesh, element, node_index)
        area = triangle_area(*coords)

        k = material_value(material, 'thermal_conductivity', config.default_thermal_conductivity)
        rho = material_value(material, 'density', config.default_density)
        cp = material_value(material, 'specific_heat', config.default_specific_heat)

        k_contributions.append((indices, thermal_conductivity(area, k)))
        c_contributions.append((indices, thermal_capacity(area, rho, cp)))

    n = mesh.n_nodes
    return assemble_global_K(n, k_contributions), assemble_global_K(n, c_contributions)


# =============================================================================
# Fluid
# =============================================================================

def element_viscosity(material: MaterialProperty, config: EngineConfig = CONFIG) -> float:
    mu = material_value(material, 'viscosity', config.default_viscosity)
    if mu <= 0.0:
        raise AssemblyError(f"Material {material.id} has non-positive viscosity {mu}")
    return mu


def assemble_pressure_laplacian(mesh: Mesh, config: EngineConfig = CONFIG) -> np.ndarray:
    """
    Global pressure operator for depth-averaged (Hele-Shaw / Darcy) flow.

    Each element contributes the linear-triangle Laplacian with mobility
    1/μ, so that  L p = s  balances the nodal sources s.
    """
    node_index = mesh.node_index()
    contributions = []
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        indices, coords = element_geometry(mesh, element, node_index)
        mu = element_viscosity(material, config)
        contributions.append((indices, laplacian_triangle(coords, 1.0 / mu)))
    return assemble_global_K(mesh.n_nodes, contributions)
