# simcore/kernel/boundary.py
"""
Boundary condition application.

Neumann conditions (force, pressure, heat_flux, velocity inflow) are summed
into the right-hand side at the targeted DOF / node indices.

Dirichlet conditions (displacement, temperature, fluid pressure) use the
penalty method. For each constrained index i with prescribed value u_i:

    K[i, i] += penalty
    f[i]    += penalty * u_i

The solution at i is then u_i with error O(K_natural / penalty). The
penalty (CONFIG.penalty, 1e12 by default) must dominate the natural scale
of K while staying far from overflow.

None of the functions here modify their inputs: K is copied and the
load vector is freshly allocated.
"""

from typing import Dict, Tuple

import numpy as np

from ..config import CONFIG
from ..model import BoundaryCondition, Mesh
from .dof import STRUCTURAL_DOF
from .elements import triangle_area, triangle_normal


AXES = {'x': 0, 'y': 1, 'z': 2}


def add_penalty(K: np.ndarray, f: np.ndarray, index: int, value: float, penalty: float) -> None:
    """Penalty-enforce K·u = f at one index (in place)."""
    K[index, index] += penalty
    f[index] += penalty * value


def add_nodal_load(F: np.ndarray, node_index: int, load_vector, dof_per_node: int = 3) -> None:
    """
    Add a nodal load to the global load vector (in place).

    >>> F = np.zeros(6)
    >>> add_nodal_load(F, 1, [10.0, 0.0, -5.0])
    >>> F.tolist()
    [0.0, 0.0, 0.0, 10.0, 0.0, -5.0]
    """
    base = dof_per_node * node_index
    for i, val in enumerate(load_vector):
        F[base + i] += val


def nodal_area_vectors(mesh: Mesh) -> np.ndarray:
    """
    Area-weighted nodal normals, shape (n_nodes, 3).

    Each triangle gives a third of its area times its unit normal to each of
    its nodes. For a flat patch the vector's length is the node's tributary
    area. Nodes outside every element get a zero vector.
    """
    node_index = mesh.node_index()
    result = np.zeros((mesh.n_nodes, 3))
    for element in mesh.elements.values():
        if len(element.node_ids) != 3 or any(nid not in node_index for nid in element.node_ids):
            continue
        coords = [mesh.nodes[nid].position for nid in element.node_ids]
        weighted = triangle_normal(*coords) * (triangle_area(*coords) / 3.0)
        for nid in element.node_ids:
            result[node_index[nid]] += weighted
    return result


def _unit(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v)
    return v / norm if norm > 0.0 else np.zeros(3)


def _targets(bc: BoundaryCondition, node_index: Dict[str, int]):
    """Node indices a condition applies to, skipping ids the mesh does not own."""
    return [node_index[nid] for nid in bc.node_ids if nid in node_index]


# =============================================================================
# Structural
# =============================================================================

def apply_structural_bcs(mesh: Mesh, K: np.ndarray, penalty: float = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fold force, pressure and displacement conditions into K and F.

    Conventions:
    - force: (x, y, z) vector, or a scalar along 'x'/'y'/'z', or along the
      unit nodal normal for 'normal' / no direction
    - pressure: scalar; nodal force = −p × area-weighted normal (pushes
      against the wound normal), or −p × tributary area along an axis
    - displacement: (x, y, z) prescribes all three DOF; a scalar with an
      axis prescribes that DOF only, otherwise all three

    Returns:
        (K_mod, F): a penalised copy of K and the load vector (3N,)
    """
    penalty = CONFIG.penalty if penalty is None else penalty
    dof = STRUCTURAL_DOF
    node_index = mesh.node_index()
    K_mod = K.copy()
    F = np.zeros(dof.ndof(mesh.n_nodes))
    area_vectors = None

    for bc in mesh.boundary_conditions:
        if bc.type in ('force', 'pressure'):
            if area_vectors is None:
                area_vectors = nodal_area_vectors(mesh)
            for idx in _targets(bc, node_index):
                add_nodal_load(F, idx, _nodal_force(bc, area_vectors[idx]), dof.dof_per_node)

    # Dirichlet after Neumann, as the penalty only touches the diagonal
    for bc in mesh.boundary_conditions:
        if bc.type != 'displacement':
            continue
        for idx in _targets(bc, node_index):
            for local_dof, value in _prescribed_components(bc):
                add_penalty(K_mod, F, dof.idx(idx, local_dof), value, penalty)

    return K_mod, F


def _nodal_force(bc: BoundaryCondition, area_vector: np.ndarray) -> np.ndarray:
    if bc.type == 'force':
        if bc.is_vector:
            return np.asarray(bc.value, dtype=float)
        if bc.direction in AXES:
            force = np.zeros(3)
            force[AXES[bc.direction]] = float(bc.value)
            return force
        return float(bc.value) * _unit(area_vector)

    # pressure
    p = float(bc.value)
    if bc.direction in AXES:
        force = np.zeros(3)
        force[AXES[bc.direction]] = -p * np.linalg.norm(area_vector)
        return force
    return -p * area_vector


def _prescribed_components(bc: BoundaryCondition):
    if bc.is_vector:
        return list(enumerate(float(v) for v in bc.value))
    if bc.direction in AXES:
        return [(AXES[bc.direction], float(bc.value))]
    return [(d, float(bc.value)) for d in range(3)]


def fixed_structural_dofs(mesh: Mesh):
    """Global DOF indices constrained by displacement conditions, sorted."""
    node_index = mesh.node_index()
    fixed = set()
    for bc in mesh.boundary_conditions:
        if bc.type != 'displacement':
            continue
        for idx in _targets(bc, node_index):
            for local_dof, _ in _prescribed_components(bc):
                fixed.add(STRUCTURAL_DOF.idx(idx, local_dof))
    return sorted(fixed)


# =============================================================================
# Thermal
# =============================================================================

def apply_thermal_bcs(mesh: Mesh, K: np.ndarray, penalty: float = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Fold temperature (Dirichlet) and heat_flux (Neumann) conditions into
    the conductivity matrix and heat vector.

    Returns:
        (K_mod, Q): a penalised copy of K and the heat vector (N,)
    """
    penalty = CONFIG.penalty if penalty is None else penalty
    node_index = mesh.node_index()
    K_mod = K.copy()
    Q = np.zeros(mesh.n_nodes)

    for bc in mesh.boundary_conditions:
        if bc.type == 'temperature':
            for idx in _targets(bc, node_index):
                add_penalty(K_mod, Q, idx, float(bc.value), penalty)
        elif bc.type == 'heat_flux':
            for idx in _targets(bc, node_index):
                Q[idx] += float(bc.value)

    return K_mod, Q


# =============================================================================
# Fluid
# =============================================================================

def apply_fluid_bcs(mesh: Mesh, L: np.ndarray,
                    penalty: float = None) -> Tuple[np.ndarray, np.ndarray, Dict[int, np.ndarray]]:
    """
    Fold pressure and velocity conditions into the pressure system.

    - pressure: Dirichlet on the nodal pressure (penalty)
    - velocity, scalar: normal inflow speed; adds speed × tributary area as
      a nodal source
    - velocity, (x, y, z): prescribes the reported nodal velocity

    The pressure operator only fixes pressure up to a constant, so when no
    pressure condition exists the first node is pinned to 0 (gauge). Nodes
    that belong to no element are pinned to 0 as well.

    Returns:
        (L_mod, S, prescribed): penalised copy of L, source vector (N,),
        and {node_index: velocity vector} for prescribed velocities
    """
    penalty = CONFIG.penalty if penalty is None else penalty
    node_index = mesh.node_index()
    L_mod = L.copy()
    S = np.zeros(mesh.n_nodes)
    prescribed: Dict[int, np.ndarray] = {}
    has_pressure = False
    area_vectors = None

    for bc in mesh.boundary_conditions:
        if bc.type == 'pressure':
            for idx in _targets(bc, node_index):
                add_penalty(L_mod, S, idx, float(bc.value), penalty)
                has_pressure = True
        elif bc.type == 'velocity':
            if bc.is_vector:
                for idx in _targets(bc, node_index):
                    prescribed[idx] = np.asarray(bc.value, dtype=float)
            else:
                if area_vectors is None:
                    area_vectors = nodal_area_vectors(mesh)
                for idx in _targets(bc, node_index):
                    S[idx] += float(bc.value) * np.linalg.norm(area_vectors[idx])

    for idx in range(mesh.n_nodes):
        if L[idx, idx] == 0.0:
            add_penalty(L_mod, S, idx, 0.0, penalty)

    if not has_pressure and mesh.n_nodes > 0:
        add_penalty(L_mod, S, 0, 0.0, penalty)

    return L_mod, S, prescribed
