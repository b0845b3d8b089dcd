# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple, Union
import numpy as np

from GridStateEngine.basic_structures import Logger
from GridStateEngine.enumerations import SolverType, FactorizationType
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.power_flow_solver import PowerFlowSolver
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import compute_power
from GridStateEngine.Utils.NumericalMethods.common import block_max_abs


class GaussSeidelPowerFlow(PowerFlowSolver):
    """
    Gauss-Seidel power flow.
    The bus voltages are updated in place, bus by bus, so every update already uses
    the latest values of the neighbours. The mismatch is only used to stop.
    """
    method = SolverType.GAUSS

    def __init__(self,
                 system: PowerSystem,
                 factorization: FactorizationType = FactorizationType.LU,
                 logger: Union[Logger, None] = None):
        """
        :param system: PowerSystem
        :param factorization: not used, kept for a uniform constructor
        :param logger: Logger
        """
        PowerFlowSolver.__init__(self, system=system, factorization=factorization, logger=logger)

        self.Vset = self.system.get_voltage_setpoints()

    def update_voltage_setpoints(self) -> None:
        self.Vset = self.system.get_voltage_setpoints()
        PowerFlowSolver.update_voltage_setpoints(self)

    def mismatch(self) -> Tuple[float, float]:
        """
        Active power mismatch on the non-slack buses, reactive power mismatch on the demand buses
        :return: max active power mismatch, max reactive power mismatch
        """
        dS = compute_power(self.system.get_ac_model().Ybus, self.V) - self.system.get_Sbus()

        self.mismatch_valid = True

        return block_max_abs(dS[self.pvpq].real), block_max_abs(dS[self.pq].imag)

    def solve(self) -> None:
        """
        One Gauss-Seidel sweep over the demand buses and then over the generator buses
        """
        Ybus = self.system.get_ac_model().Ybus.tocsr()
        Sbus = self.system.get_Sbus()
        V = self.V
        diag = Ybus.diagonal()

        for i in self.pq:
            a, b = Ybus.indptr[i], Ybus.indptr[i + 1]
            cols = Ybus.indices[a:b]
            I = np.conj(Sbus[i]) / np.conj(V[i]) - np.sum(Ybus.data[a:b] * V[cols])
            V[i] += I / diag[i]

        for i in self.pv:
            a, b = Ybus.indptr[i], Ybus.indptr[i + 1]
            cols = Ybus.indices[a:b]
            I = np.sum(Ybus.data[a:b] * V[cols])
            conj_v = np.conj(V[i])
            injection = Sbus[i].real + 1j * (conj_v * I).imag
            V[i] += (injection / conj_v - I) / diag[i]

        # back to the generator set points, keeping the angle
        V[self.pv] = self.Vset[self.pv] * V[self.pv] / np.abs(V[self.pv])

        self.V = V
        self.Vm = np.abs(V)
        self.Va = np.angle(V)

        self.mismatch_valid = False
        self.iterations += 1
