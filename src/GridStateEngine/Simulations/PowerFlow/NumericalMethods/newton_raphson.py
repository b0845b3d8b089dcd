# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple, Union
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Logger, Vec, CxVec, IntVec, CscMat
from GridStateEngine.enumerations import SolverType, FactorizationType
from GridStateEngine.exceptions import RectangularJacobianError
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Simulations.Derivatives.matpower_derivatives import dSbus_dV
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.power_flow_solver import PowerFlowSolver
from GridStateEngine.Utils.NumericalMethods.sparse_solve import factorize
from GridStateEngine.Utils.NumericalMethods.common import block_max_abs


def AC_jacobian(Ybus: CscMat, V: CxVec, pvpq: IntVec, pq: IntVec) -> CscMat:
    """
    Compute the power flow Jacobian
        J = | dP/dVa[pvpq, pvpq]   dP/dVm[pvpq, pq] |
            | dQ/dVa[pq, pvpq]     dQ/dVm[pq, pq]   |
    :param Ybus: nodal admittance matrix
    :param V: complex voltages
    :param pvpq: non-slack buses
    :param pq: demand buses
    :return: Jacobian (csc)
    """
    dS_dVa, dS_dVm = dSbus_dV(Ybus, V)

    n = Ybus.shape[0]

    # full block matrix, then keep the rows / columns of the state
    Jfull = sp.bmat([[dS_dVa.real, dS_dVm.real],
                     [dS_dVa.imag, dS_dVm.imag]], format="csr")

    idx = np.r_[pvpq, n + pq].astype(int)

    return Jfull[idx, :][:, idx].tocsc()


def compute_power(Ybus: CscMat, V: CxVec) -> CxVec:
    """
    Compute the power injections from the voltages
    :param Ybus: nodal admittance matrix
    :param V: complex voltages
    :return: S = V · conj(Ybus · V)
    """
    return V * np.conj(Ybus @ V)


class NewtonRaphsonPowerFlow(PowerFlowSolver):
    """
    Newton-Raphson in polar coordinates.
    The state is the angle of every non-slack bus and the magnitude of every demand bus.
    The Jacobian depends on the state, so it is built and factorized at every step.
    """
    method = SolverType.NR

    def __init__(self,
                 system: PowerSystem,
                 factorization: FactorizationType = FactorizationType.LU,
                 logger: Union[Logger, None] = None):
        """
        :param system: PowerSystem
        :param factorization: LU (default) or QR
        :param logger: Logger
        """
        PowerFlowSolver.__init__(self, system=system, factorization=factorization, logger=logger)

        # mismatch vector f(x) = [dP(pvpq), dQ(pq)]
        self.f: Vec = np.zeros(len(self.pvpq) + len(self.pq))

    def mismatch(self) -> Tuple[float, float]:
        """
        Compute the mismatch calc - specified,
        active power on the non-slack buses and reactive power on the demand buses
        :return: max active power mismatch, max reactive power mismatch
        """
        Ybus = self.system.get_ac_model().Ybus
        dS = compute_power(Ybus, self.V) - self.system.get_Sbus()

        npvpq = len(self.pvpq)
        self.f = np.r_[dS[self.pvpq].real, dS[self.pq].imag]
        self.mismatch_valid = True

        return block_max_abs(self.f[:npvpq]), block_max_abs(self.f[npvpq:])

    def solve(self) -> None:
        """
        Solve J dx = f and update the state with x = x - dx
        """
        if not self.mismatch_valid:
            self.mismatch()

        Ybus = self.system.get_ac_model().Ybus
        J = AC_jacobian(Ybus, self.V, self.pvpq, self.pq)

        if J.shape[0] != J.shape[1]:
            raise RectangularJacobianError(J.shape[0], J.shape[1])

        dx = factorize(J, self.factorization, "Jacobian").solve(self.f)

        npvpq = len(self.pvpq)
        self.Va[self.pvpq] -= dx[:npvpq]
        self.Vm[self.pq] -= dx[npvpq:]
        self._update_voltage()

        self.mismatch_valid = False
        self.iterations += 1
