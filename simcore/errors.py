# simcore/errors.py
"""Error taxonomy for mesh generation, assembly, solving and result lookup."""


class SimulationError(RuntimeError):
    """Base class for every error raised by the simulation core."""
    pass


class InvalidGeometryError(SimulationError, ValueError):
    """Raised when a geometry buffer or node reference is malformed."""
    pass


class _LookupFailure(SimulationError, KeyError):
    kind = "Object"

    def __init__(self, object_id):
        self.object_id = object_id
        super().__init__(f"{self.kind} {object_id} not found")

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return self.args[0]


class MeshNotFoundError(_LookupFailure):
    """Raised when a mesh id is unknown."""
    kind = "Mesh"


class MaterialNotFoundError(_LookupFailure):
    """Raised when an element references a material the mesh does not own."""
    kind = "Material"


class ResultNotFoundError(_LookupFailure):
    """Raised when a result id is unknown."""
    kind = "Result"


class SingularSystemError(SimulationError):
    """Raised when the direct solver meets a numerically zero pivot."""

    def __init__(self, message: str, row: int = -1):
        self.row = row
        super().__init__(message)


class AssemblyError(SimulationError):
    """Raised when an element/material cross-reference is malformed."""
    pass


class ConvergenceFailure(SimulationError):
    """
    Iterative solve exhausted its iterations.

    The engine records non-convergence in-band (``converged=False`` on the
    result) and never raises this itself; callers that prefer an exception
    use ``raise_for_convergence``.
    """

    def __init__(self, result_id: str, iterations: int, residual: float):
        self.result_id = result_id
        self.iterations = iterations
        self.residual = residual
        super().__init__(
            f"Result {result_id} did not converge after {iterations} iterations "
            f"(residual={residual:.2e})"
        )


class AnalysisCancelled(SimulationError):
    """Raised inside a worker when its analysis was cancelled."""
    pass


def raise_for_convergence(result) -> None:
    """Raise ConvergenceFailure if ``result`` did not converge."""
    if not result.converged:
        raise ConvergenceFailure(result.id, result.iterations, result.residual)
