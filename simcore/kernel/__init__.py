# simcore/kernel - Numerical core
"""
KERNEL: THE NUMERICAL FOUNDATION
================================

Everything here works on plain numpy arrays plus a Mesh:

- dof.py        (node, local DOF) → global index, and the reference
                simplified placement used by structural assembly
- elements.py   triangle area, reference element matrices, gradients
- assemble.py   scatter-add of element matrices into dense global ones
- boundary.py   Neumann loads and penalty Dirichlet constraints
- solve.py      Gaussian elimination and conjugate gradient
- modal.py      generalized eigenproblem (K, M)

The analysis pipelines in simcore/analysis.py sequence these.
"""

from .dof import DOFManager, STRUCTURAL_DOF
from .solve import gaussian_elimination, conjugate_gradient, solve_system, CGResult, LinearSolution
from .modal import natural_frequencies, ModalSolution

__all__ = [
    'DOFManager', 'STRUCTURAL_DOF',
    'gaussian_elimination', 'conjugate_gradient', 'solve_system', 'CGResult', 'LinearSolution',
    'natural_frequencies', 'ModalSolution',
]
