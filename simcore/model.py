# simcore/model.py
"""
MODEL DEFINITIONS: Mesh, Nodes, Elements, Conditions, Materials, Results
========================================================================

PURPOSE:
--------
This module defines the passive data structures the engine works on:

- Node: a point in 3D space with a 6-slot DOF vector and constraint flags
- Element: a cell referencing nodes by id and a material by id
- BoundaryCondition: a load or constraint applied to a list of node ids
- MaterialProperty: named property set interpreted per analysis
- Mesh: owns all four collections
- SimulationSettings: validated run parameters (pydantic)
- SimulationResult: the immutable outcome of a completed analysis

The numerical code never looks nodes up by id inside inner loops. Assembly
works on node INDICES (position in the mesh's node order), which
Mesh.node_index() provides.
"""

import math
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, model_validator

from .errors import AssemblyError, MaterialNotFoundError


ELEMENT_TYPES = ('tetrahedron', 'hexahedron', 'triangle', 'quad')
BC_TYPES = ('force', 'displacement', 'temperature', 'heat_flux', 'pressure', 'velocity')
BC_DIRECTIONS = (None, 'x', 'y', 'z', 'normal')
MATERIAL_TYPES = ('structural', 'thermal', 'fluid')
ANALYSIS_TYPES = ('structural', 'thermal', 'modal', 'fluid')
SOLVER_KINDS = ('direct', 'iterative', 'modal')

# Number of nodes each element type references
NODES_PER_ELEMENT = {'triangle': 3, 'quad': 4, 'tetrahedron': 4, 'hexahedron': 8}

Vector3 = Tuple[float, float, float]
BCValue = Union[float, Vector3]


# =============================================================================
# Mesh entities
# =============================================================================

@dataclass
class Node:
    """
    A mesh vertex.

    Each node carries 6 DOF slots (ux, uy, uz, rx, ry, rz) and 6 matching
    constraint flags. Only the translational slots are exercised by the
    analyses; rotations are kept for data compatibility.
    """
    id: str
    x: float
    y: float
    z: float
    dof: List[float] = field(default_factory=lambda: [0.0] * 6)
    constraints: List[bool] = field(default_factory=lambda: [False] * 6)

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass
class Element:
    """A mesh cell; node_ids order defines the local DOF order."""
    id: str
    type: str
    node_ids: List[str]
    material_id: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BoundaryCondition:
    """
    A load or constraint on a set of nodes.

    value is a scalar (temperature, heat flux, pressure, or a force/velocity
    component along ``direction``) or an (x, y, z) vector.
    """
    id: str
    type: str
    node_ids: Tuple[str, ...]
    value: BCValue
    direction: Optional[str] = None

    @property
    def is_vector(self) -> bool:
        return isinstance(self.value, tuple)


@dataclass(frozen=True)
class MaterialProperties:
    """Optional material constants; each analysis reads the ones it needs."""
    youngs_modulus: Optional[float] = None      # Pa
    poissons_ratio: Optional[float] = None
    density: Optional[float] = None             # kg/m³
    yield_strength: Optional[float] = None      # Pa
    ultimate_strength: Optional[float] = None   # Pa
    thermal_conductivity: Optional[float] = None  # W/m·K
    specific_heat: Optional[float] = None       # J/kg·K
    thermal_expansion: Optional[float] = None   # 1/K
    viscosity: Optional[float] = None           # Pa·s
    compressibility: Optional[float] = None     # 1/Pa


@dataclass(frozen=True)
class MaterialProperty:
    id: str
    name: str
    type: str
    properties: MaterialProperties


@dataclass
class Mesh:
    """
    A simulation mesh. Owns its nodes, elements, boundary conditions and
    materials. Nodes, elements and materials are dicts keyed by id (insertion
    ordered); boundary conditions are kept in the order they were added.
    """
    id: str
    nodes: Dict[str, Node] = field(default_factory=dict)
    elements: Dict[str, Element] = field(default_factory=dict)
    boundary_conditions: List[BoundaryCondition] = field(default_factory=list)
    materials: Dict[str, MaterialProperty] = field(default_factory=dict)
    element_size: float = 1.0
    refinement_factor: float = 1.0

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_elements(self) -> int:
        return len(self.elements)

    def node_index(self) -> Dict[str, int]:
        """Map node id -> position in node order (the global node index)."""
        return {node_id: i for i, node_id in enumerate(self.nodes)}

    def coordinates(self) -> np.ndarray:
        """Node positions, shape (n_nodes, 3), in node order."""
        if not self.nodes:
            return np.zeros((0, 3), dtype=float)
        return np.array([[n.x, n.y, n.z] for n in self.nodes.values()], dtype=float)

    def material(self, material_id: str) -> MaterialProperty:
        try:
            return self.materials[material_id]
        except KeyError:
            raise MaterialNotFoundError(material_id) from None

    def element_material(self, element: Element) -> MaterialProperty:
        return self.material(element.material_id)

    def validate(self) -> None:
        """
        Check the cross-reference invariants.

        Raises:
            AssemblyError: an element has the wrong node count or references
                a node the mesh does not own
            MaterialNotFoundError: an element's material id is unresolved
        """
        for element in self.elements.values():
            expected = NODES_PER_ELEMENT.get(element.type)
            if expected is None:
                raise AssemblyError(f"Element {element.id} has unknown type '{element.type}'")
            if len(element.node_ids) != expected:
                raise AssemblyError(
                    f"Element {element.id} ({element.type}) references "
                    f"{len(element.node_ids)} nodes, expected {expected}"
                )
            for node_id in element.node_ids:
                if node_id not in self.nodes:
                    raise AssemblyError(f"Element {element.id} references missing node {node_id}")
            self.material(element.material_id)


# =============================================================================
# Settings
# =============================================================================

class SimulationSettings(BaseModel):
    """Validated parameters for one analysis run."""
    type: Literal['structural', 'thermal', 'modal', 'fluid'] = 'structural'
    solver: Literal['direct', 'iterative', 'modal'] = 'direct'
    convergence_tolerance: float = Field(1e-6, gt=0.0, description="Residual norm target")
    max_iterations: int = Field(1000, ge=0, description="Iterative solver cap")
    time_step: Optional[float] = Field(None, gt=0.0, description="Transient step (s)")
    total_time: Optional[float] = Field(None, gt=0.0, description="Transient duration (s)")
    nonlinear: bool = False
    large_deformation: bool = False
    num_modes: int = Field(10, ge=1, description="Modes requested by modal analysis")
    initial_temperature: float = Field(0.0, description="Transient start temperature")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_time_stepping(self):
        if self.time_step is not None and self.total_time is not None:
            if self.time_step > self.total_time:
                raise ValueError("time_step must not exceed total_time")
        return self

    @property
    def is_transient(self) -> bool:
        return self.time_step is not None and self.total_time is not None

    @property
    def n_time_steps(self) -> int:
        if not self.is_transient:
            return 0
        # Small tolerance so 1.0 / 0.1 does not round up to 11 steps
        return max(1, math.ceil(self.total_time / self.time_step - 1e-9))


_DEFAULT_SETTINGS = {
    'structural': dict(type='structural', solver='direct'),
    'thermal': dict(type='thermal', solver='iterative'),
    'modal': dict(type='modal', solver='modal', num_modes=10),
    'fluid': dict(type='fluid', solver='iterative'),
}


def default_settings(analysis_type: str, **overrides) -> SimulationSettings:
    """Per-analysis default settings, with optional overrides."""
    if analysis_type not in _DEFAULT_SETTINGS:
        raise ValueError(
            f"Unknown analysis type '{analysis_type}'. Expected one of {ANALYSIS_TYPES}"
        )
    params = dict(_DEFAULT_SETTINGS[analysis_type])
    params.update(overrides)
    params['type'] = analysis_type
    return SimulationSettings(**params)


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class StressState:
    von_mises: float
    principal: Vector3                          # (s1, s2, s3), descending
    components: Tuple[float, float, float, float, float, float]  # xx, yy, zz, xy, yz, xz


@dataclass(frozen=True)
class NodeResult:
    displacement: Optional[Vector3] = None
    velocity: Optional[Vector3] = None
    temperature: Optional[float] = None
    pressure: Optional[float] = None


@dataclass(frozen=True)
class ElementResult:
    stress: Optional[StressState] = None
    strain_von_mises: Optional[float] = None
    temperature: Optional[float] = None
    heat_flux: Optional[Vector3] = None
    velocity: Optional[Vector3] = None


@dataclass(frozen=True)
class GlobalResult:
    max_stress: Optional[float] = None
    max_displacement: Optional[float] = None
    max_temperature: Optional[float] = None
    total_energy: Optional[float] = None
    safety_factor: Optional[float] = None
    natural_frequencies: Optional[Tuple[float, ...]] = None
    mode_shapes: Optional[Tuple[Tuple[float, ...], ...]] = None
    requested_modes: Optional[int] = None
    max_velocity: Optional[float] = None
    max_pressure: Optional[float] = None


class VisualizationHandle:
    """
    Attachment slot a renderer fills from a result's fields.

    The core never renders; it only tracks whether something is attached so
    that removing a result can detach it.
    """

    def __init__(self):
        self._obj = None

    @property
    def attached(self) -> bool:
        return self._obj is not None

    @property
    def obj(self):
        return self._obj

    def attach(self, obj) -> None:
        self._obj = obj

    def detach(self):
        obj, self._obj = self._obj, None
        return obj


@dataclass(frozen=True)
class SimulationResult:
    id: str
    type: str
    converged: bool
    iterations: int
    residual: float
    node_results: Mapping[str, NodeResult]
    element_results: Mapping[str, ElementResult]
    global_results: GlobalResult
    settings: Optional[SimulationSettings] = None
    timestamp: float = field(default_factory=time.time)
    visualization: VisualizationHandle = field(default_factory=VisualizationHandle, compare=False)

    def __post_init__(self):
        # Freeze the mappings: stored results must not change
        object.__setattr__(self, 'node_results', MappingProxyType(dict(self.node_results)))
        object.__setattr__(self, 'element_results', MappingProxyType(dict(self.element_results)))

    @property
    def partial(self) -> bool:
        """
        True for modal results that returned fewer modes than requested,
        either from too few active DOFs or from repeated frequencies that
        were reported once.
        """
        g = self.global_results
        if g.requested_modes is None or g.natural_frequencies is None:
            return False
        return len(g.natural_frequencies) < g.requested_modes
