# simcore/mesh.py
"""
MESH GENERATION: Geometry Buffer → Mesh
=======================================

The geometry collaborator hands over two flat arrays:

    positions = [x0, y0, z0, x1, y1, z1, ...]   (vertex triples)
    indices   = [a0, b0, c0, a1, b1, c1, ...]   (triangle triples)

generate_mesh() turns them into a Mesh with one Node per vertex and one
triangle Element per index triple, every element bound to the built-in
default material. element_size is recorded for future refinement density
control; the base generation policy does not use it.

refine_mesh() produces an independent deep copy of a mesh (nodes,
elements, conditions and materials). It never touches the source.

Quality metrics (triangle_quality, mesh_quality) and nearest_node() help
callers check input geometry and place boundary conditions by position.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .catalog import DEFAULT_MATERIAL_ID, default_material
from .errors import InvalidGeometryError
from .kernel.elements import triangle_area
from .model import Element, Mesh, Node


logger = logging.getLogger(__name__)


def _as_flat_array(values, name: str, dtype) -> np.ndarray:
    try:
        arr = np.asarray(values, dtype=dtype)
    except (TypeError, ValueError) as e:
        raise InvalidGeometryError(f"{name} buffer is not numeric: {e}") from e
    return arr.reshape(-1)


def generate_mesh(
    positions: Sequence[float],
    indices: Optional[Sequence[int]],
    element_size: float = 1.0,
    mesh_id: str = 'mesh',
) -> Mesh:
    """
    Build a triangle mesh from flat vertex and index buffers.

    Parameters:
    -----------
    positions : flat sequence of floats, length 3·N
    indices : flat sequence of ints, length 3·M, or None
    element_size : float
        Stored on the mesh; not used by the base generation policy
    mesh_id : str
        Id of the new mesh

    Returns:
    --------
    Mesh with N nodes (node_0 … node_{N-1}) and M triangle elements
    (element_0 … element_{M-1}), holding the default material.

    Raises:
    -------
    InvalidGeometryError
        If indices is None, a buffer length is not a multiple of 3, an
        index is out of range or a coordinate is not finite.
    """
    if indices is None:
        raise InvalidGeometryError("Geometry must have indices for mesh generation")
    if positions is None:
        raise InvalidGeometryError("Geometry must have vertex positions")

    pos = _as_flat_array(positions, 'positions', float)
    idx = _as_flat_array(indices, 'indices', float)

    if pos.size % 3 != 0:
        raise InvalidGeometryError(f"positions length {pos.size} is not a multiple of 3")
    if idx.size % 3 != 0:
        raise InvalidGeometryError(f"indices length {idx.size} is not a multiple of 3")
    if not np.all(np.isfinite(pos)):
        raise InvalidGeometryError("positions contain non-finite values")
    if idx.size and (not np.all(np.isfinite(idx)) or np.any(idx != np.floor(idx))):
        raise InvalidGeometryError("indices must be integers")

    n_vertices = pos.size // 3
    idx = idx.astype(np.int64)
    if idx.size and (idx.min() < 0 or idx.max() >= n_vertices):
        raise InvalidGeometryError(
            f"index out of range: buffer references [{idx.min()}, {idx.max()}] "
            f"but only {n_vertices} vertices exist"
        )

    coords = pos.reshape(-1, 3)
    nodes = {}
    for i, (x, y, z) in enumerate(coords):
        node = Node(id=f'node_{i}', x=float(x), y=float(y), z=float(z))
        nodes[node.id] = node

    elements = {}
    for j, (a, b, c) in enumerate(idx.reshape(-1, 3)):
        element = Element(
            id=f'element_{j}',
            type='triangle',
            node_ids=[f'node_{a}', f'node_{b}', f'node_{c}'],
            material_id=DEFAULT_MATERIAL_ID,
        )
        elements[element.id] = element

    material = default_material()
    mesh = Mesh(
        id=mesh_id,
        nodes=nodes,
        elements=elements,
        materials={material.id: material},
        element_size=float(element_size),
    )
    logger.info("Generated mesh %s: %d nodes, %d elements", mesh_id, len(nodes), len(elements))
    return mesh


def refine_mesh(mesh: Mesh, factor: float, mesh_id: str) -> Mesh:
    """
    Independent deep copy of ``mesh`` under a new id.

    The copy shares nothing with the source: later edits to either mesh
    (conditions, materials, element bindings) do not affect the other.
    """
    if factor <= 0:
        raise ValueError(f"refinement factor must be positive, got {factor}")
    refined = Mesh(
        id=mesh_id,
        nodes=copy.deepcopy(mesh.nodes),
        elements=copy.deepcopy(mesh.elements),
        boundary_conditions=copy.deepcopy(mesh.boundary_conditions),
        materials=copy.deepcopy(mesh.materials),
        element_size=mesh.element_size,
        refinement_factor=mesh.refinement_factor * float(factor),
    )
    logger.info("Refined mesh %s -> %s (factor %s)", mesh.id, mesh_id, factor)
    return refined


# =============================================================================
# Quality and lookup
# =============================================================================

@dataclass(frozen=True)
class MeshQuality:
    """
    min_quality / mean_quality : min edge ÷ max edge per element (1 = equilateral)
    mean_aspect_ratio          : mean of 1 / quality over valid elements
    skewness                   : mean of (1 − quality)
    total_area                 : sum of element areas
    n_degenerate               : elements with zero area
    """
    min_quality: float
    mean_quality: float
    mean_aspect_ratio: float
    skewness: float
    total_area: float
    n_degenerate: int


def triangle_quality(p0, p1, p2) -> float:
    """Shortest edge over longest edge; 0 for degenerate triangles."""
    pts = [np.asarray(p, dtype=float) for p in (p0, p1, p2)]
    edges = [np.linalg.norm(pts[1] - pts[0]),
             np.linalg.norm(pts[2] - pts[1]),
             np.linalg.norm(pts[0] - pts[2])]
    longest = max(edges)
    if longest <= 0.0 or triangle_area(*pts) <= 0.0:
        return 0.0
    return float(min(edges) / longest)


def mesh_quality(mesh: Mesh) -> MeshQuality:
    qualities = []
    total_area = 0.0
    n_degenerate = 0
    for element in mesh.elements.values():
        coords = [mesh.nodes[nid].position for nid in element.node_ids[:3]]
        area = triangle_area(*coords)
        total_area += area
        q = triangle_quality(*coords)
        if q == 0.0:
            n_degenerate += 1
        qualities.append(q)

    valid = [q for q in qualities if q > 0.0]
    if not valid:
        return MeshQuality(0.0, 0.0, 0.0, 1.0 if qualities else 0.0, total_area, n_degenerate)

    return MeshQuality(
        min_quality=min(qualities),
        mean_quality=float(np.mean(qualities)),
        mean_aspect_ratio=float(np.mean([1.0 / q for q in valid])),
        skewness=float(np.mean([1.0 - q for q in qualities])),
        total_area=total_area,
        n_degenerate=n_degenerate,
    )


def nearest_node(mesh: Mesh, point) -> str:
    """Id of the node closest to ``point`` (x, y, z)."""
    if not mesh.nodes:
        raise InvalidGeometryError(f"Mesh {mesh.id} has no nodes")
    target = np.asarray(point, dtype=float).reshape(3)
    distances = np.linalg.norm(mesh.coordinates() - target, axis=1)
    return list(mesh.nodes)[int(np.argmin(distances))]
