# simcore/engine.py
"""
SIMULATION ENGINE: The Public Facade
====================================

PURPOSE:
--------
SimulationEngine is the one object callers talk to. It owns:

- the mesh registry (mesh id -> Mesh) with one lock per mesh
- the ResultStore
- id counters (one per prefix: mesh, bc, material, result)
- a ThreadPoolExecutor that runs analyses off the caller's thread

Everything crosses the boundary by id. Callers never hold a reference to
an internal Mesh: get_mesh() returns a deep copy.

HOW AN ANALYSIS RUNS:
---------------------
1. submit_analysis() resolves the settings and takes a deep-copy SNAPSHOT
   of the mesh under its lock, on the caller's thread. Later registry
   writes cannot leak into the run.
2. The pipeline (simcore.analysis) runs on a worker thread against the
   snapshot and returns a complete SimulationResult.
3. The result is committed to the store only if the job was not
   cancelled. Commit and cancel share a lock, so exactly one of them wins.

run_*_analysis() are the blocking forms: submit, then wait for the id.

    engine = SimulationEngine()
    mesh_id = engine.generate_mesh(positions, indices)
    engine.add_fixed_support(mesh_id, ['node_0'])
    engine.add_force(mesh_id, ['node_2'], (0.0, -1000.0, 0.0))
    result = engine.get_result(engine.run_structural_analysis(mesh_id))
"""

import copy
import itertools
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Union

from . import registry
from .analysis import PIPELINES
from .catalog import library_material
from .config import CONFIG, EngineConfig
from .errors import AnalysisCancelled, MeshNotFoundError
from .mesh import MeshQuality, generate_mesh, mesh_quality, nearest_node, refine_mesh
from .model import (
    ANALYSIS_TYPES,
    MaterialProperties,
    Mesh,
    SimulationResult,
    SimulationSettings,
    default_settings,
)
from .results import ResultStore


logger = logging.getLogger(__name__)

SettingsLike = Union[SimulationSettings, dict, None]


class AnalysisJob:
    """
    Handle on a submitted analysis.

    result() blocks until the run finishes and returns the committed result
    id, or raises whatever the run raised (AnalysisCancelled when it was
    cancelled mid-run).
    """

    def __init__(self, kind: str, mesh_id: str, result_id: str, commit_lock: threading.Lock):
        self.kind = kind
        self.mesh_id = mesh_id
        self.result_id = result_id
        self.cancel_event = threading.Event()
        self._commit_lock = commit_lock
        self._committed = False
        self._future: Optional[Future] = None

    def start(self, executor: Executor, fn, *args) -> 'AnalysisJob':
        """Submit ``fn(self, *args)`` to ``executor``; returns self."""
        self._future = executor.submit(fn, self, *args)
        return self

    def commit(self, store: ResultStore, result: SimulationResult) -> None:
        """
        Store ``result`` unless the job was cancelled. Shares the commit
        lock with cancel(), so exactly one of the two wins.

        Raises:
            AnalysisCancelled: cancel() got there first
        """
        with self._commit_lock:
            if self.cancel_event.is_set():
                raise AnalysisCancelled(f"{self.kind} analysis {self.result_id} cancelled before commit")
            store.add(result)
            self._committed = True

    def cancel(self) -> bool:
        """
        Abandon the run. Returns False if its result was already committed;
        otherwise nothing will ever be written for this job.
        """
        with self._commit_lock:
            if self._committed:
                return False
            self.cancel_event.set()
        if self._future is not None:
            self._future.cancel()
        return True

    def cancelled(self) -> bool:
        return self.cancel_event.is_set() and not self._committed

    def committed(self) -> bool:
        return self._committed

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> str:
        if self._future is None:
            raise RuntimeError(f"{self.kind} analysis {self.result_id} was never started")
        return self._future.result(timeout)


class SimulationEngine:
    """Mesh registry, result store and analysis scheduler."""

    def __init__(self, config: EngineConfig = CONFIG, max_workers: Optional[int] = None):
        self.config = config
        self._meshes: Dict[str, Mesh] = {}
        self._mesh_locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        self._results = ResultStore()
        self._counters: Dict[str, itertools.count] = {}
        self._counter_lock = threading.Lock()
        self._commit_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or config.max_workers,
            thread_name_prefix='simcore',
        )

    # -------------------------------------------------------------------------
    # Ids and lookups
    # -------------------------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        with self._counter_lock:
            counter = self._counters.setdefault(prefix, itertools.count(1))
            return f'{prefix}_{next(counter)}'

    def _lookup(self, mesh_id: str):
        with self._registry_lock:
            try:
                return self._meshes[mesh_id], self._mesh_locks[mesh_id]
            except KeyError:
                raise MeshNotFoundError(mesh_id) from None

    def _register(self, mesh: Mesh) -> str:
        with self._registry_lock:
            self._meshes[mesh.id] = mesh
            self._mesh_locks[mesh.id] = threading.RLock()
        return mesh.id

    # -------------------------------------------------------------------------
    # Meshes
    # -------------------------------------------------------------------------

    def generate_mesh(self, positions, indices, element_size: float = 1.0) -> str:
        """Build a mesh from flat geometry buffers; returns its id."""
        mesh = generate_mesh(positions, indices, element_size, mesh_id=self._next_id('mesh'))
        return self._register(mesh)

    def refine_mesh(self, mesh_id: str, factor: float = 2.0) -> str:
        """Independent copy of a mesh under a fresh id."""
        mesh, lock = self._lookup(mesh_id)
        with lock:
            refined = refine_mesh(mesh, factor, mesh_id=self._next_id('mesh'))
        return self._register(refined)

    def get_mesh(self, mesh_id: str) -> Mesh:
        """Deep copy of a registered mesh."""
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return copy.deepcopy(mesh)

    def remove_mesh(self, mesh_id: str) -> bool:
        with self._registry_lock:
            removed = self._meshes.pop(mesh_id, None)
            self._mesh_locks.pop(mesh_id, None)
        return removed is not None

    def mesh_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._meshes)

    def mesh_quality(self, mesh_id: str) -> MeshQuality:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return mesh_quality(mesh)

    def nearest_node(self, mesh_id: str, point) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return nearest_node(mesh, point)

    # -------------------------------------------------------------------------
    # Boundary conditions and materials
    # -------------------------------------------------------------------------

    def add_boundary_condition(self, mesh_id: str, bc_type: str, node_ids: Sequence[str],
                               value, direction: Optional[str] = None) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            bc = registry.add_boundary_condition(mesh, bc_type, node_ids, value, direction,
                                                 bc_id=self._next_id('bc'))
        return bc.id

    def add_fixed_support(self, mesh_id: str, node_ids: Sequence[str]) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return registry.fixed_support(mesh, node_ids, bc_id=self._next_id('bc')).id

    def add_force(self, mesh_id: str, node_ids: Sequence[str], force) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return registry.point_force(mesh, node_ids, force, bc_id=self._next_id('bc')).id

    def add_pressure(self, mesh_id: str, node_ids: Sequence[str], pressure: float) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return registry.uniform_pressure(mesh, node_ids, pressure, bc_id=self._next_id('bc')).id

    def add_temperature(self, mesh_id: str, node_ids: Sequence[str], temperature: float) -> str:
        mesh, lock = self._lookup(mesh_id)
        with lock:
            return registry.imposed_temperature(mesh, node_ids, temperature,
                                                bc_id=self._next_id('bc')).id

    def add_material(self, mesh_id: str, name: str, material_type: str = 'structural',
                     properties: Union[MaterialProperties, dict, None] = None) -> str:
        mesh, lock = self._lookup(mesh_id)
        if properties is None:
            properties = MaterialProperties()
        with lock:
            material = registry.add_material(mesh, name, material_type, properties,
                                             material_id=self._next_id('material'))
        return material.id

    def add_library_material(self, mesh_id: str, key: str) -> str:
        """Add a preset from the material catalog; returns the new material id."""
        name, material_type, properties = library_material(key)
        return self.add_material(mesh_id, name, material_type, properties)

    def assign_material(self, mesh_id: str, element_ids: Iterable[str], material_id: str) -> bool:
        """Rebind elements; False when the mesh or material is unknown or no element matched."""
        try:
            mesh, lock = self._lookup(mesh_id)
        except MeshNotFoundError:
            return False
        with lock:
            return registry.assign_material(mesh, list(element_ids), material_id)

    # -------------------------------------------------------------------------
    # Analyses
    # -------------------------------------------------------------------------

    def _resolve_settings(self, kind: str, settings: SettingsLike) -> SimulationSettings:
        if settings is None:
            return default_settings(kind)
        if isinstance(settings, dict):
            return default_settings(kind, **settings)
        if settings.type != kind:
            return settings.model_copy(update={'type': kind})
        return settings

    def submit_analysis(self, kind: str, mesh_id: str, settings: SettingsLike = None) -> AnalysisJob:
        """
        Schedule an analysis on the worker pool.

        The mesh snapshot is taken before this returns, so registry writes
        made afterwards do not affect the run.

        Raises:
            ValueError: unknown analysis kind or invalid settings
            MeshNotFoundError: unknown mesh id
        """
        if kind not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis type '{kind}'. Expected one of {ANALYSIS_TYPES}")
        resolved = self._resolve_settings(kind, settings)
        mesh, lock = self._lookup(mesh_id)
        with lock:
            snapshot = copy.deepcopy(mesh)

        job = AnalysisJob(kind, mesh_id, self._next_id('result'), self._commit_lock)
        job.start(self._executor, self._execute, snapshot, resolved)
        logger.debug("Submitted %s analysis %s on %s", kind, job.result_id, mesh_id)
        return job

    def _execute(self, job: AnalysisJob, snapshot: Mesh, settings: SimulationSettings) -> str:
        pipeline = PIPELINES[job.kind]
        try:
            result = pipeline(snapshot, settings, job.result_id,
                              config=self.config, cancel_event=job.cancel_event)
        except AnalysisCancelled:
            raise
        except Exception:
            logger.exception("%s analysis %s on %s failed", job.kind, job.result_id, job.mesh_id)
            raise

        job.commit(self._results, result)
        if not result.converged:
            logger.warning("%s analysis %s did not converge (residual=%.3e after %d iterations)",
                           job.kind, job.result_id, result.residual, result.iterations)
        return result.id

    def _run(self, kind: str, mesh_id: str, settings: SettingsLike) -> str:
        return self.submit_analysis(kind, mesh_id, settings).result()

    def run_structural_analysis(self, mesh_id: str, settings: SettingsLike = None) -> str:
        return self._run('structural', mesh_id, settings)

    def run_thermal_analysis(self, mesh_id: str, settings: SettingsLike = None) -> str:
        return self._run('thermal', mesh_id, settings)

    def run_modal_analysis(self, mesh_id: str, settings: SettingsLike = None,
                           num_modes: Optional[int] = None) -> str:
        """Natural frequencies; ``num_modes`` overrides the settings' count."""
        if num_modes is not None:
            resolved = self._resolve_settings('modal', settings)
            settings = SimulationSettings(**{**resolved.model_dump(), 'num_modes': num_modes})
        return self._run('modal', mesh_id, settings)

    def run_fluid_analysis(self, mesh_id: str, settings: SettingsLike = None) -> str:
        return self._run('fluid', mesh_id, settings)

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def get_result(self, result_id: str) -> Optional[SimulationResult]:
        """The stored result, or None."""
        return self._results.get(result_id)

    def get_all_results(self) -> List[SimulationResult]:
        return self._results.all()

    def remove_result(self, result_id: str) -> bool:
        return self._results.remove(result_id)

    @property
    def results(self) -> ResultStore:
        return self._results

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
