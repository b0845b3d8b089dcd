# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, Union, Iterable
import numpy as np

from GridStateEngine.basic_structures import Logger, CxVec, Vec, IntVec
from GridStateEngine.enumerations import SolverType, FactorizationType, ModelChange, BusMode
from GridStateEngine.exceptions import ModelReuseError
from GridStateEngine.Devices.power_system import PowerSystem

ChangeInput = Union[ModelChange, Iterable[ModelChange]]


def _as_list(changes: ChangeInput) -> List[ModelChange]:
    if isinstance(changes, ModelChange):
        return [changes]
    return list(changes)


class PowerFlowSolver:
    """
    Common machinery of the power flow methods.

    The solver does not own the iteration loop: the caller alternates
    mismatch() and solve() until the mismatch is small enough or gives up.

    Reusing a solver after the system was modified is an explicit decision:

        - can_reuse(changes) tells if the stored data (factorizations, bus types) are still valid
        - invalidate() drops the factorizations
        - refactorize() builds them again from the current system
        - accept(changes) applies the above rules in one go
    """
    method: SolverType = SolverType.NR

    def __init__(self,
                 system: PowerSystem,
                 factorization: FactorizationType = FactorizationType.LU,
                 logger: Union[Logger, None] = None):
        """
        :param system: PowerSystem
        :param factorization: FactorizationType of the linear systems
        :param logger: Logger
        """
        self.system = system
        self.factorization = factorization
        self.logger = logger if logger is not None else Logger()

        # runs once per solver: the slack bus must be able to balance the system
        self.system.validate_bus_types(logger=self.logger)

        self.bus_types: IntVec = self.system.get_bus_types()
        self.vd, self.pv, self.pq = self.system.get_bus_type_indices()
        self.pvpq = np.r_[self.pv, self.pq]
        self.slack = int(self.vd[0])
        self.nbus = self.system.get_bus_number()

        self.V: CxVec = self.system.get_voltage_guess()
        self.Vm: Vec = np.abs(self.V)
        self.Va: Vec = np.angle(self.V)

        self.iterations = 0

        # is the stored mismatch computed with the current state?
        self.mismatch_valid = False

        # revision of the system used to build the stored factorizations (None: not factorized)
        self.factorized_revision: Union[Tuple[int, int], None] = None

    @property
    def name(self) -> str:
        return str(self.method)

    def _system_revision(self) -> Tuple[int, int]:
        return self.system.model_revision, self.system.shunt_revision

    def _update_voltage(self) -> None:
        self.V = self.Vm * np.exp(1j * self.Va)

    # ------------------------------------------------------------------------------------------------------------------
    # iteration interface
    # ------------------------------------------------------------------------------------------------------------------

    def mismatch(self) -> Tuple[float, float]:
        """
        Compute the mismatch of the current state
        :return: max active power mismatch, max reactive power mismatch
        """
        raise NotImplementedError()

    def solve(self) -> None:
        """
        Perform one update of the state
        """
        raise NotImplementedError()

    def converged(self, tolerance: float) -> bool:
        """
        Check the last mismatch against a tolerance
        :param tolerance: tolerance in p.u.
        :return: bool
        """
        stop_p, stop_q = self.mismatch()
        return stop_p < tolerance and stop_q < tolerance

    # ------------------------------------------------------------------------------------------------------------------
    # reuse interface
    # ------------------------------------------------------------------------------------------------------------------

    def _requires_type_conversion(self) -> bool:
        """
        Would this solver need a different bus classification than the one it was built with?
        """
        if self.system.get_bus_number() != self.nbus:
            return True

        if not np.array_equal(self.system.get_bus_types(), self.bus_types):
            return True

        # a slack without in-service generator would have to be reassigned
        gen_by_bus = self.system.get_generators_by_bus(only_active=True)
        if self.system.buses[self.slack] not in gen_by_bus:
            return True

        # a generator bus whose generators went off-line would become a demand bus
        for i in self.pv:
            if self.system.buses[i] not in gen_by_bus:
                return True

        return False

    def _change_keeps_factorization(self, change: ModelChange) -> bool:
        """
        Does the stored factorization survive this change? (no factorization by default)
        """
        return True

    def can_reuse(self, changes: ChangeInput) -> bool:
        """
        Can this solver keep being used after the given changes were applied to the system?
        :param changes: ModelChange or list of them
        :return: bool
        """
        changes = _as_list(changes)

        if ModelChange.BusAdded in changes or self._requires_type_conversion():
            return False

        return all(self._change_keeps_factorization(c) for c in changes)

    def invalidate(self) -> None:
        """
        Drop the stored factorizations, they will be computed again at the next solve
        """
        self.factorized_revision = None

    def refactorize(self) -> None:
        """
        Build and factorize the matrices from the current system
        """
        self.factorized_revision = self._system_revision()

    def update_voltage_setpoints(self) -> None:
        """
        Apply the current set points to the generator and slack buses
        """
        vset = self.system.get_voltage_setpoints()
        fixed = np.r_[self.vd, self.pv]
        self.Vm[fixed] = vset[fixed]
        if len(self.vd):
            self.Va[self.vd] = np.angle(self.system.get_voltage_guess()[self.vd])
        self._update_voltage()

    def accept(self, changes: ChangeInput) -> bool:
        """
        Apply the reuse rules after the system was updated
        :param changes: ModelChange or list of them (i.e. the return of PowerSystem.update_*)
        :return: True if the factorizations were kept, False if they were invalidated
        """
        changes = _as_list(changes)

        if ModelChange.BusAdded in changes or self._requires_type_conversion():
            raise ModelReuseError(self.name)

        self.mismatch_valid = False

        if ModelChange.VoltageSetpoint in changes:
            self.update_voltage_setpoints()

        if self.can_reuse(changes):
            return True

        self.invalidate()
        return False

    def check_factorization(self) -> None:
        """
        Refactorize if the system changed since the last factorization
        """
        if self.factorized_revision is None:
            self.refactorize()

        elif self.factorized_revision != self._system_revision():
            self.logger.add_info("Network model changed, the matrices were refactorized",
                                 device=self.name,
                                 value=str(self._system_revision()),
                                 expected_value=str(self.factorized_revision))
            self.refactorize()

    def reset(self) -> None:
        """
        Start again from the initial voltage guess
        """
        self.V = self.system.get_voltage_guess()
        self.Vm = np.abs(self.V)
        self.Va = np.angle(self.V)
        self.iterations = 0
        self.mismatch_valid = False

    def get_bus_types(self) -> List[BusMode]:
        """
        Bus types used by this solver
        """
        return [BusMode(t) for t in self.bus_types]
