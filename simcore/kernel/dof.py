# simcore/kernel/dof.py
"""
DOF MANAGER: Degree of Freedom Indexing
=======================================

PURPOSE:
--------
Maps (node_index, local_dof) to global DOF indices. The structural
analyses use 3 translational DOF per node (ux, uy, uz); the thermal and
fluid analyses use 1 scalar unknown per node and index the node directly.

TWO PLACEMENT RULES:
--------------------
1. Per-node scatter (element_dof_map): the textbook rule. Local DOF d of
   the element's k-th node goes to  dof_per_node * node_index[k] + d.
   Used to read per-node results out of the solution vector and to place
   boundary-condition loads.

2. Simplified placement (simplified_index): the reference rule for
   displacement-based element matrices. Local index i goes to

       (i // dof_per_node) * dof_per_node + (i % dof_per_node)

   which does NOT consult the element's node list. Every 6×6 triangle
   matrix therefore lands in the leading 6×6 block of the global matrix.
   Results must stay compatible with existing models built on this
   convention, so the assembler uses it unchanged.

USAGE:
------
    dof = DOFManager(dof_per_node=3)
    dof.idx(2, 1)                 # → 7
    dof.element_dof_map([0, 4])   # → [0, 1, 2, 12, 13, 14]
    dof.simplified_dof_map(6)     # → [0, 1, 2, 3, 4, 5]
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class DOFManager:
    """
    Degree-of-freedom indexing for a fixed number of DOF per node.

    Attributes:
    -----------
    dof_per_node : int
        3 for structural (ux, uy, uz), 1 for scalar fields
    """
    dof_per_node: int

    def idx(self, node_index: int, local_dof: int) -> int:
        """Global index of a node's local DOF."""
        return self.dof_per_node * node_index + local_dof

    def ndof(self, n_nodes: int) -> int:
        """Total DOF count (size of the global matrices)."""
        return self.dof_per_node * n_nodes

    def node_dofs(self, node_index: int) -> List[int]:
        """All global DOF indices of one node."""
        base = self.dof_per_node * node_index
        return list(range(base, base + self.dof_per_node))

    def element_dof_map(self, node_indices: List[int]) -> List[int]:
        """
        Per-node scatter map for an element.

        >>> DOFManager(3).element_dof_map([2, 5])
        [6, 7, 8, 15, 16, 17]
        """
        result = []
        for node_index in node_indices:
            result.extend(self.node_dofs(node_index))
        return result

    def simplified_index(self, local_index: int) -> int:
        """Reference placement of a local matrix index (see module docstring)."""
        dpn = self.dof_per_node
        return (local_index // dpn) * dpn + (local_index % dpn)

    def simplified_dof_map(self, n_local: int) -> List[int]:
        return [self.simplified_index(i) for i in range(n_local)]


STRUCTURAL_DOF = DOFManager(dof_per_node=3)   # ux, uy, uz
