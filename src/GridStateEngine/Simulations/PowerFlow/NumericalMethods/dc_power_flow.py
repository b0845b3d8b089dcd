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
from GridStateEngine.Utils.NumericalMethods.sparse_solve import factorize, Factorization
from GridStateEngine.Utils.NumericalMethods.common import block_max_abs


class DcPowerFlow(PowerFlowSolver):
    """
    Linear DC power flow

        Bred · Va[pvpq] = P[pvpq] - Pshift[pvpq] - Pshunt[pvpq]

    where Bred is the nodal susceptance matrix without the slack row and column.
    The magnitudes are 1 p.u.; a single solve gives the solution.
    """
    method = SolverType.DC

    def __init__(self,
                 system: PowerSystem,
                 factorization: FactorizationType = FactorizationType.LU,
                 logger: Union[Logger, None] = None):
        """
        :param system: PowerSystem
        :param factorization: LU (default), LDLt or QR
        :param logger: Logger
        """
        PowerFlowSolver.__init__(self, system=system, factorization=factorization, logger=logger)

        self.Vm = np.ones(self.nbus)
        self.Va = np.zeros(self.nbus)
        self.Va[self.slack] = np.angle(self.system.get_voltage_guess()[self.slack])
        self._update_voltage()

        self.Bred_factorization: Union[Factorization, None] = None
        self.rhs: Vec = np.zeros(len(self.pvpq))

        self.refactorize()

    def refactorize(self) -> None:
        """
        Factorize the reduced susceptance matrix of the current system
        """
        dc = self.system.get_dc_model()
        self.Bred_factorization = factorize(dc.get_Bred(self.pvpq), self.factorization, "nodal susceptance matrix")
        PowerFlowSolver.refactorize(self)

    def invalidate(self) -> None:
        self.Bred_factorization = None
        PowerFlowSolver.invalidate(self)

    def _requires_type_conversion(self) -> bool:
        # only the slack matters, generator and demand buses are treated alike
        if self.system.get_bus_number() != self.nbus:
            return True

        vd, _, _ = self.system.get_bus_type_indices()
        if len(vd) != 1 or int(vd[0]) != self.slack:
            return True

        gen_by_bus = self.system.get_generators_by_bus(only_active=True)
        return self.system.buses[self.slack] not in gen_by_bus

    def _change_keeps_factorization(self, change: ModelChange) -> bool:
        return change not in (ModelChange.BranchAdded,
                              ModelChange.BranchStatus,
                              ModelChange.BranchParameter)

    def get_injections(self) -> Vec:
        """
        Net active power per bus, free of the phase shifter and shunt terms
        :return: P - Pshift - Pshunt
        """
        dc = self.system.get_dc_model()
        return self.system.get_Sbus().real - dc.Pshift - dc.Pshunt

    def mismatch(self) -> Tuple[float, float]:
        """
        Residual of the linear system at the current angles (there is no reactive part)
        :return: max active power mismatch, 0
        """
        dc = self.system.get_dc_model()
        P = dc.Bbus @ self.Va
        dP = P[self.pvpq] - self.get_injections()[self.pvpq]
        self.mismatch_valid = True
        return block_max_abs(dP), 0.0

    def solve(self) -> None:
        """
        Direct solution of the angles
        """
        self.check_factorization()

        self.rhs = self.get_injections()[self.pvpq]
        va = self.Bred_factorization.solve(self.rhs)

        slack_angle = np.angle(self.system.get_voltage_guess()[self.slack])
        self.Va = np.zeros(self.nbus)
        self.Va[self.pvpq] = va
        self.Va += slack_angle
        self._update_voltage()

        self.mismatch_valid = False
        self.iterations += 1

    def update_voltage_setpoints(self) -> None:
        self.Va[self.slack] = np.angle(self.system.get_voltage_guess()[self.slack])
        self._update_voltage()

    def reset(self) -> None:
        self.Vm = np.ones(self.nbus)
        self.Va = np.zeros(self.nbus)
        self.Va[self.slack] = np.angle(self.system.get_voltage_guess()[self.slack])
        self._update_voltage()
        self.iterations = 0
        self.mismatch_valid = False
