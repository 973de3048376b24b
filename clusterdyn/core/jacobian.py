"""
Jacobian support: per-evaluation scratch buffers and the sparsity pattern.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import scipy.sparse as sp


@dataclass
class PartialsContext:
    """Dense scratch buffers for one Jacobian evaluation.

    ``values`` receives the partials of a reactant (or a group's l0 row),
    ``he_values`` and ``v_values`` those of a group's first-moment rows. A
    context must not be shared between concurrent evaluations.
    """

    dof: int
    values: np.ndarray = field(init=False)
    he_values: np.ndarray = field(init=False)
    v_values: np.ndarray = field(init=False)

    def __post_init__(self):
        if self.dof <= 0:
            raise ValueError(f"Degrees of freedom must be positive, got {self.dof}")
        self.values = np.zeros(self.dof)
        self.he_values = np.zeros(self.dof)
        self.v_values = np.zeros(self.dof)

    def zero(self, columns: List[int]) -> None:
        """Zero the given columns of every buffer."""
        self.values[columns] = 0.0
        self.he_values[columns] = 0.0
        self.v_values[columns] = 0.0

    def reset(self) -> None:
        self.values.fill(0.0)
        self.he_values.fill(0.0)
        self.v_values.fill(0.0)


@dataclass
class SparsityPattern:
    """CSR row offsets and column indices of the network Jacobian."""

    indptr: np.ndarray
    indices: np.ndarray

    @classmethod
    def from_fill_map(cls, fill_map: Dict[int, List[int]], dof: int) -> "SparsityPattern":
        """Create the pattern from a row -> columns diagonal fill."""
        indptr = np.zeros(dof + 1, dtype=int)
        indices = []
        for row in range(dof):
            columns = sorted(fill_map.get(row, []))
            indices.extend(columns)
            indptr[row + 1] = indptr[row] + len(columns)
        return cls(indptr=indptr, indices=np.array(indices, dtype=int))

    @property
    def dof(self) -> int:
        return len(self.indptr) - 1

    @property
    def nnz(self) -> int:
        return len(self.indices)

    def allocate_values(self) -> np.ndarray:
        return np.zeros(self.nnz)

    def to_csr(self, values: np.ndarray) -> sp.csr_matrix:
        """Build a sparse Jacobian from values written in pattern order."""
        return sp.csr_matrix((values, self.indices, self.indptr), shape=(self.dof, self.dof))
