# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Dict, Union
import numpy as np
import scipy.sparse as sp
from GridStateEngine.basic_structures import Vec, Logger
from GridStateEngine.Utils.NumericalMethods.sparse_solve import LdltFactorization


class SelectedInverse:
    """
    Entries of the inverse of a symmetric matrix restricted to the pattern of its factors
    (Takahashi recurrence). Any entry outside that pattern is computed with column solves.

    For the symmetric factorization P A P^T = L D L^T, with U~ = D^-1 U, the inverse Z verifies

        Z = D^-1 L^-1 + (I - U~) Z

    so for i <= j: Z_ij = delta_ij / d_i - sum_{k > i} U~_ik Z_kj, which only needs
    entries already computed when i runs from the last row to the first.
    """

    def __init__(self, A: sp.csc_matrix, name: str = "gain matrix", logger: Union[Logger, None] = None):
        """
        :param A: symmetric positive definite matrix
        :param name: name of the matrix for the error messages
        :param logger: Logger
        """
        self.logger = logger if logger is not None else Logger()
        self.name = name
        self.n = A.shape[0]

        self.factorization = LdltFactorization(A, name)
        lu = self.factorization.lu

        self.perm = lu.perm_r
        self.z: Dict[int, Dict[int, float]] = dict()
        self._columns: Dict[int, Vec] = dict()

        # the symmetric recurrence is only valid for a symmetric permutation
        self.valid = np.array_equal(lu.perm_r[lu.perm_c], np.arange(self.n))

        if self.valid:
            self.valid = self._takahashi(lu.U.tocsr())

        if not self.valid:
            self.logger.add_warning("Sparse inverse not available, using column solves", device=name)

    def _takahashi(self, U: sp.csr_matrix) -> bool:
        """
        Run the recurrence on the upper factor
        :param U: upper factor in CSR format
        :return: success?
        """
        d = U.diagonal()
        if np.any(d == 0.0):
            return False

        z = self.z
        for i in range(self.n - 1, -1, -1):
            a, b = U.indptr[i], U.indptr[i + 1]
            cols = U.indices[a:b]
            vals = U.data[a:b] / d[i]
            mask = cols > i
            cols = cols[mask]
            vals = vals[mask]

            row = dict()
            z[i] = row

            # off diagonal entries of the row, j descending
            for j in sorted(cols, reverse=True):
                acc = 0.0
                for k, u_ik in zip(cols, vals):
                    val = self._z(k, j)
                    if val is None:
                        return False
                    acc -= u_ik * val
                row[int(j)] = acc

            acc = 1.0 / d[i]
            for k, u_ik in zip(cols, vals):
                acc -= u_ik * row[int(k)]
            row[i] = acc

        return True

    def _z(self, k: int, j: int) -> Union[float, None]:
        """
        Get a computed entry of the permuted inverse using the symmetry
        """
        if k > j:
            k, j = j, k
        return self.z.get(int(k), dict()).get(int(j), None)

    def _column(self, j: int) -> Vec:
        """
        Column j of the inverse by a direct solve
        """
        col = self._columns.get(j, None)
        if col is None:
            e = np.zeros(self.n)
            e[j] = 1.0
            col = self.factorization.solve(e)
            self._columns[j] = col
        return col

    def value(self, a: int, b: int) -> float:
        """
        Entry (a, b) of the inverse in the original ordering
        :param a: row
        :param b: column
        :return: value
        """
        if self.valid:
            val = self._z(self.perm[a], self.perm[b])
            if val is not None:
                return val

        return float(self._column(b)[a])

    def diagonal(self) -> Vec:
        """
        Diagonal of the inverse
        """
        return np.array([self.value(i, i) for i in range(self.n)])

    def quadratic_diagonal(self, H: sp.csr_matrix) -> Vec:
        """
        Compute diag(H A^-1 H^T) using only the entries of the inverse coupled by the rows of H
        :param H: matrix with as many columns as A
        :return: vector with one entry per row of H
        """
        H = sp.csr_matrix(H)
        c = np.zeros(H.shape[0])
        missing = 0
        for r in range(H.shape[0]):
            a, b = H.indptr[r], H.indptr[r + 1]
            cols = H.indices[a:b]
            vals = H.data[a:b]
            acc = 0.0
            for ci, vi in zip(cols, vals):
                for cj, vj in zip(cols, vals):
                    val = self._z(self.perm[ci], self.perm[cj]) if self.valid else None
                    if val is None:
                        missing += 1
                        val = float(self._column(cj)[ci])
                    acc += vi * vj * val
            c[r] = acc

        if missing and self.valid:
            self.logger.add_warning("Sparse inverse entries missing, using column solves",
                                    device=self.name, value=missing)
        return c
