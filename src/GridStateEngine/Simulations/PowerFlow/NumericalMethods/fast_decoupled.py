# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple, Union
import numpy as np

from GridStateEngine.basic_structures import Logger, Vec
from GridStateEngine.enumerations import SolverType, FactorizationType, ModelChange
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.power_flow_solver import PowerFlowSolver
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import compute_power
from GridStateEngine.Utils.NumericalMethods.sparse_solve import factorize, Factorization
from GridStateEngine.Utils.NumericalMethods.common import block_max_abs


class FastDecoupledPowerFlow(PowerFlowSolver):
    """
    Fast decoupled power flow.
    B1 and B2 are built and factorized once; every step solves

        B1 · dVa = dP / Vm   on the non-slack buses
        B2 · dVm = dQ / Vm   on the demand buses

    updating the angles first and the magnitudes with the reactive mismatch of the new angles.
    """

    def __init__(self,
                 system: PowerSystem,
                 bx: bool = False,
                 factorization: FactorizationType = FactorizationType.LU,
                 logger: Union[Logger, None] = None):
        """
        :param system: PowerSystem
        :param bx: use the BX scheme (otherwise XB)
        :param factorization: LU (default), LDLt or QR
        :param logger: Logger
        """
        self.bx = bx
        self.method = SolverType.FASTDECOUPLED_BX if bx else SolverType.FASTDECOUPLED_XB

        PowerFlowSolver.__init__(self, system=system, factorization=factorization, logger=logger)

        self.B1_factorization: Union[Factorization, None] = None
        self.B2_factorization: Union[Factorization, None] = None

        self.dP: Vec = np.zeros(len(self.pvpq))
        self.dQ: Vec = np.zeros(len(self.pq))

        self.refactorize()

    def refactorize(self) -> None:
        """
        Build B1 and B2 from the current system and factorize them
        """
        fd = self.system.get_fast_decoupled_model(bx=self.bx)
        self.B1_factorization = factorize(fd.get_B1(self.pvpq), self.factorization, "B1 matrix")
        self.B2_factorization = factorize(fd.get_B2(self.pq), self.factorization, "B2 matrix")
        PowerFlowSolver.refactorize(self)

    def invalidate(self) -> None:
        self.B1_factorization = None
        self.B2_factorization = None
        PowerFlowSolver.invalidate(self)

    def _change_keeps_factorization(self, change: ModelChange) -> bool:
        return change not in (ModelChange.BusShunt,
                              ModelChange.BranchAdded,
                              ModelChange.BranchStatus,
                              ModelChange.BranchParameter)

    def _reactive_mismatch(self, S: Union[np.ndarray, None] = None) -> Vec:
        if S is None:
            S = compute_power(self.system.get_ac_model().Ybus, self.V)
        Sbus = self.system.get_Sbus()
        return (S[self.pq].imag - Sbus[self.pq].imag) / self.Vm[self.pq]

    def mismatch(self) -> Tuple[float, float]:
        """
        Decoupled mismatches (calc - specified) / Vm
        :return: max active power mismatch, max reactive power mismatch
        """
        S = compute_power(self.system.get_ac_model().Ybus, self.V)
        Sbus = self.system.get_Sbus()

        self.dP = (S[self.pvpq].real - Sbus[self.pvpq].real) / self.Vm[self.pvpq]
        self.dQ = self._reactive_mismatch(S)

        self.mismatch_valid = True

        return block_max_abs(self.dP), block_max_abs(self.dQ)

    def solve(self) -> None:
        """
        Half iteration on the angles followed by a half iteration on the magnitudes
        """
        self.check_factorization()

        if not self.mismatch_valid:
            self.mismatch()

        dVa = self.B1_factorization.solve(self.dP)
        self.Va[self.pvpq] += dVa
        self._update_voltage()

        self.dQ = self._reactive_mismatch()
        dVm = self.B2_factorization.solve(self.dQ)
        self.Vm[self.pq] += dVm
        self._update_voltage()

        self.mismatch_valid = False
        self.iterations += 1
