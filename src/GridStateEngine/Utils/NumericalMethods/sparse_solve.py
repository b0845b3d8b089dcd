# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from typing import Union
import scipy.sparse as sp
from scipy.sparse.linalg import splu
from scipy.linalg import qr, qr_multiply, solve_triangular
from GridStateEngine.basic_structures import Vec, Mat
from GridStateEngine.enumerations import FactorizationType
from GridStateEngine.exceptions import SingularMatrixError

# pivots below this value (relative to the largest one) are considered zero in the QR paths
QR_ZERO_PIVOT = 1e-12


class Factorization:
    """
    Factorized matrix, able to solve A x = b for many right hand sides
    """

    def __init__(self, A: sp.csc_matrix, name: str):
        """
        :param A: matrix to factorize
        :param name: name of the matrix, used in the error messages
        """
        self.name = name
        self.shape = A.shape

    def solve(self, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
        """
        Solve A x = b
        :param b: right hand side
        :return: x
        """
        raise NotImplementedError()


class EmptyFactorization(Factorization):
    """
    Factorization of a 0x0 matrix (i.e. a system with only the slack, or without PQ buses)
    """

    def solve(self, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
        return np.zeros_like(b, dtype=float)


class LuFactorization(Factorization):
    """
    SuperLU factorization
    """

    def __init__(self, A: sp.csc_matrix, name: str = "matrix", symmetric: bool = False):
        """
        :param A: matrix to factorize
        :param name: name of the matrix
        :param symmetric: use the symmetric mode (diagonal pivoting, symmetric ordering)
        """
        Factorization.__init__(self, A, name)

        if A.shape[0] != A.shape[1]:
            raise SingularMatrixError(name, "is not square and cannot be LU factorized")

        try:
            if symmetric:
                self.lu = splu(sp.csc_matrix(A),
                               permc_spec='MMD_AT_PLUS_A',
                               diag_pivot_thresh=0.0,
                               options=dict(SymmetricMode=True))
            else:
                self.lu = splu(sp.csc_matrix(A))
        except RuntimeError as e:
            raise SingularMatrixError(name, "is singular and cannot be factorized ({})".format(e))

        if np.any(~np.isfinite(self.lu.U.diagonal())):
            raise SingularMatrixError(name)

    def solve(self, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
        return self.lu.solve(b)


class LdltFactorization(LuFactorization):
    """
    Symmetric factorization A = L D L^T, computed by SuperLU in symmetric mode
    (U = D L^T when the diagonal pivots are kept)
    """

    def __init__(self, A: sp.csc_matrix, name: str = "matrix"):
        LuFactorization.__init__(self, A, name, symmetric=True)

    @property
    def D(self) -> Vec:
        """
        Diagonal of the factorization
        """
        return self.lu.U.diagonal()


class QrFactorization(Factorization):
    """
    QR factorization of a square matrix
    """

    def __init__(self, A: sp.csc_matrix, name: str = "matrix"):
        Factorization.__init__(self, A, name)

        Ad = A.toarray() if sp.issparse(A) else np.asarray(A)
        self.Q, self.R = qr(Ad, mode='economic')

        d = np.abs(np.diag(self.R))
        if len(d) and (d.min() <= QR_ZERO_PIVOT * max(d.max(), 1.0) or A.shape[0] != A.shape[1]):
            raise SingularMatrixError(name)

    def solve(self, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
        return solve_triangular(self.R, self.Q.T @ b)


def factorize(A: sp.csc_matrix,
              factorization: FactorizationType = FactorizationType.LU,
              name: str = "matrix") -> Factorization:
    """
    Factorize a sparse matrix
    :param A: square matrix
    :param factorization: FactorizationType
    :param name: name of the matrix for the error messages
    :return: Factorization
    """
    if A.shape[0] == 0 and A.shape[1] == 0:
        return EmptyFactorization(A, name)

    if factorization == FactorizationType.LU:
        return LuFactorization(A, name)

    elif factorization == FactorizationType.LDLt:
        return LdltFactorization(A, name)

    elif factorization == FactorizationType.QR:
        return QrFactorization(A, name)

    else:
        raise Exception('Unrecognized factorization ' + str(factorization))


def qr_least_squares(A: Union[sp.csc_matrix, Mat], b: Vec, name: str = "matrix") -> Vec:
    """
    Solve min ||A x - b|| with the orthogonal factorization A = Q R,
    applying Q^T to b without forming Q
    :param A: tall matrix (m x n, m >= n)
    :param b: right hand side (m)
    :param name: name of the matrix for the error messages
    :return: x (n)
    """
    Ad = A.toarray() if sp.issparse(A) else np.asarray(A)

    if Ad.shape[0] < Ad.shape[1]:
        raise SingularMatrixError(name, "has fewer rows than columns")

    qtb, R = qr_multiply(Ad, b, mode='right')

    d = np.abs(np.diag(R))
    if len(d) and d.min() <= QR_ZERO_PIVOT * max(d.max(), 1.0):
        raise SingularMatrixError(name, "is rank deficient")

    return solve_triangular(R, qtb)
