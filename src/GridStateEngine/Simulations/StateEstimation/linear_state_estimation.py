# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Union
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Logger, Vec, IntVec
from GridStateEngine.enumerations import StateEstimationMethod, FactorizationType, MIPSolvers
from GridStateEngine.exceptions import OrthogonalMethodError
from GridStateEngine.Devices.measurement import MeasurementTemplate
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Utils.NumericalMethods.sparse_solve import factorize, qr_least_squares, Factorization
from GridStateEngine.Simulations.StateEstimation.state_estimator import StateEstimator
from GridStateEngine.Simulations.StateEstimation.lav import solve_lav


def stack_rows(blocks: List[sp.csr_matrix], ncols: int) -> sp.csr_matrix:
    """
    Stack row blocks, skipping the empty ones
    :param blocks: list of sparse matrices with ncols columns
    :param ncols: number of columns
    :return: csr_matrix
    """
    blocks = [b for b in blocks if b.shape[0] > 0]
    if len(blocks) == 0:
        return sp.csr_matrix((0, ncols))
    return sp.csr_matrix(sp.vstack(blocks, format='csr'))


class MeasurementModel:
    """
    Linear measurement model z = H x + e, with cov(e) = W^-1
    """

    def __init__(self, nstate: int):
        """
        :param nstate: number of state variables (columns of H)
        """
        self.nstate = nstate
        self.H: sp.csr_matrix = sp.csr_matrix((0, nstate))

        # precision matrix triplets
        self.w_i: List[int] = list()
        self.w_j: List[int] = list()
        self.w_val: List[float] = list()

        self.variances: List[float] = list()
        self.row_devices: List[MeasurementTemplate] = list()

        self.correlated = False

    @property
    def nrows(self) -> int:
        return len(self.row_devices)

    def add_rows(self, device: MeasurementTemplate, variance: float, nrows: int = 1) -> None:
        """
        Add independent rows of one device
        """
        for _ in range(nrows):
            i = self.nrows
            self.w_i.append(i)
            self.w_j.append(i)
            self.w_val.append(1.0 / variance)
            self.variances.append(variance)
            self.row_devices.append(device)

    def add_pair(self, device: MeasurementTemplate, v_re: float, v_im: float, w: float) -> None:
        """
        Add the two rows of a phasor with the covariance [[v_re, w], [w, v_im]]
        """
        i = self.nrows
        if w == 0.0:
            self.add_rows(device, v_re)
            self.add_rows(device, v_im)
            return

        det = v_re * v_im - w * w
        self.w_i += [i, i, i + 1, i + 1]
        self.w_j += [i, i + 1, i, i + 1]
        self.w_val += [v_im / det, -w / det, -w / det, v_re / det]
        self.variances += [v_re, v_im]
        self.row_devices += [device, device]
        self.correlated = True

    def get_W(self) -> sp.csc_matrix:
        """
        Precision matrix
        """
        n = self.nrows
        return sp.csc_matrix((self.w_val, (self.w_i, self.w_j)), shape=(n, n))


class LinearStateEstimator(StateEstimator):
    """
    Weighted least squares and least absolute value estimators of linear models.

    The concrete models provide the rows (build_model), the means (build_means),
    the estimated state columns (state_columns) and how to store the solution (set_state).

    WLS with the normal equations:

        G = H^T W H
        G x = H^T W z

    WLS with the orthogonal method (W must be diagonal):

        W^1/2 H = Q R
        R x = Q^T W^1/2 z

    LAV: linear program of the absolute residuals
    """

    def __init__(self,
                 measurements: MeasurementSet,
                 method: StateEstimationMethod = StateEstimationMethod.WLS,
                 factorization: FactorizationType = FactorizationType.LU,
                 mip_solver: MIPSolvers = MIPSolvers.HIGHS,
                 correlated_pmu: bool = False,
                 logger: Union[Logger, None] = None):
        """
        :param measurements: MeasurementSet
        :param method: WLS, ORTHOGONAL or LAV
        :param factorization: factorization of the gain matrix
        :param mip_solver: LP solver of the LAV method
        :param correlated_pmu: keep the rectangular covariance of every PMU
        :param logger: Logger
        """
        StateEstimator.__init__(self,
                                measurements=measurements,
                                method=method,
                                factorization=factorization,
                                mip_solver=mip_solver,
                                correlated_pmu=correlated_pmu,
                                logger=logger)

        self.H: Union[sp.csr_matrix, None] = None
        self.correlated = False
        self.gain_factorization: Union[Factorization, None] = None
        self.x: Vec = np.zeros(0)

    def state_columns(self) -> IntVec:
        """
        Columns of H that are estimated (the rest are fixed references)
        """
        raise NotImplementedError()

    def build_model(self) -> MeasurementModel:
        """
        Rows and weights of the in-service measurements
        """
        raise NotImplementedError()

    def build_means(self) -> Vec:
        """
        Measurement means free of the constant terms, in the row order of build_model
        """
        raise NotImplementedError()

    def set_state(self, x: Vec) -> None:
        """
        Store the estimated state
        :param x: solution of the estimated columns
        """
        raise NotImplementedError()

    def build(self) -> None:
        """
        Build H, W and, for the normal equations, factorize the gain matrix
        """
        rebuild = self.model_key is not None

        self.collect_measurements()
        mdl = self.build_model()

        self.H = mdl.H
        self.H_red = sp.csc_matrix(mdl.H[:, self.state_columns()])
        self.W = mdl.get_W()
        self.variances = np.array(mdl.variances, dtype=float)
        self.row_devices = mdl.row_devices
        self.correlated = mdl.correlated

        if self.method == StateEstimationMethod.WLS:
            G = sp.csc_matrix(self.H_red.T @ self.W @ self.H_red)
            self.gain_factorization = factorize(G, self.factorization, "gain matrix")
        else:
            self.gain_factorization = None

        self.model_key = self.get_model_key()

        if rebuild:
            self.logger.add_info("Measurement model rebuilt after a network or measurement change",
                                 device=self.name, value=mdl.nrows)

    def solve_wls(self, z: Vec) -> Vec:
        """
        Normal equations
        """
        rhs = self.H_red.T @ (self.W @ z)
        return self.gain_factorization.solve(rhs)

    def solve_orthogonal(self, z: Vec) -> Vec:
        """
        Orthogonal factorization of the scaled Jacobian
        """
        if self.correlated:
            raise OrthogonalMethodError()

        sqrt_w = np.sqrt(self.W.diagonal())
        Hs = sp.diags(sqrt_w) @ self.H_red
        return qr_least_squares(Hs, sqrt_w * z, name="scaled measurement Jacobian")

    def solve_lav(self, z: Vec) -> Vec:
        """
        Least absolute value linear program
        """
        return solve_lav(self.H_red, z, solver_type=self.mip_solver, name=self.name, logger=self.logger)

    def solve(self) -> None:
        """
        Estimate the state with the current measured values
        """
        if not self.model_is_valid():
            self.build()

        z = self.build_means()

        if self.method == StateEstimationMethod.WLS:
            x = self.solve_wls(z)
        elif self.method == StateEstimationMethod.ORTHOGONAL:
            x = self.solve_orthogonal(z)
        elif self.method == StateEstimationMethod.LAV:
            x = self.solve_lav(z)
        else:
            raise Exception('Unsupported state estimation method ' + str(self.method))

        self.x = x
        self.residual = z - self.H_red @ x
        self.set_state(x)

        self.solved = True
        self.converged = True
        self.iterations = 1
        self.error = 0.0
