# simcore - Triangulated-mesh physics simulation core
"""
SIMCORE: A Finite-Element Simulation Core
=========================================

This package provides:
- Mesh generation from flat vertex/index buffers
- Boundary conditions and materials attached per mesh
- Structural, thermal (steady and transient), modal and fluid analyses
- An id-keyed result store with explicit lifecycle

ARCHITECTURE:
-------------
    kernel/         Numerical core (DOF indexing, assembly, BCs, solvers, eigen)
    model.py        Mesh, nodes, elements, conditions, settings, results
    catalog.py      Default material and material presets
    mesh.py         Mesh generation, refinement copies, quality metrics
    registry.py     Boundary condition and material mutators
    post.py         Stress, heat flux and velocity from nodal solutions
    analysis.py     The four analysis pipelines and their state machine
    results.py      ResultStore
    engine.py       SimulationEngine facade (ids, locking, worker pool)
"""

import logging

from .config import CONFIG, EngineConfig
from .engine import AnalysisJob, SimulationEngine
from .errors import (
    AnalysisCancelled,
    AssemblyError,
    ConvergenceFailure,
    InvalidGeometryError,
    MaterialNotFoundError,
    MeshNotFoundError,
    ResultNotFoundError,
    SimulationError,
    SingularSystemError,
    raise_for_convergence,
)
from .model import MaterialProperties, SimulationResult, SimulationSettings, default_settings

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
