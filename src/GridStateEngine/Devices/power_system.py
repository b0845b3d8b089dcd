# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List, Union, Tuple
from uuid import uuid4
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Logger, Vec, CxVec, IntVec, BoolVec
from GridStateEngine.enumerations import BusMode, ModelChange
from GridStateEngine.exceptions import LabelError, SlackError, ConfigurationError, BranchDefinitionError
from GridStateEngine.Devices.Substation.bus import Bus
from GridStateEngine.Devices.Branches.branch import Branch
from GridStateEngine.Devices.Injections.generator import Generator
from GridStateEngine.Topology.admittance_matrices import (AdmittanceMatrices, LinearAdmittanceMatrices,
                                                          FastDecoupledAdmittanceMatrices,
                                                          compute_connectivity, compute_admittances,
                                                          compute_linear_admittances,
                                                          compute_fast_decoupled_admittances)

# properties that identify a device and may not be changed through the update functions
_FIXED_PROPERTIES = ('idtag', 'name', 'code')

_BUS_CHANGES = {
    'bus_type': ModelChange.BusType,
    'Pd': ModelChange.Demand,
    'Qd': ModelChange.Demand,
    'Gs': ModelChange.BusShunt,
    'Bs': ModelChange.BusShunt,
    'Vm0': ModelChange.VoltageSetpoint,
    'Va0': ModelChange.VoltageSetpoint,
}


class PowerSystem:
    """
    The PowerSystem is the container of buses, branches and generators.
    Devices are referred to by their label (name), which must be unique per device class.

    Every modification is recorded as a ModelChange and the revision counters are bumped so that
    the numerical models built on top of the system can tell whether they are still valid:

        - model_revision: the series / shunt branch admittances changed (nodal matrix values)
        - pattern_revision: the sparsity pattern of the nodal matrices changed
        - shunt_revision: the bus shunts changed (AC diagonal, DC shunt power)

    .. code:: ipython3

        from GridStateEngine.api import *
        grid = PowerSystem(name="My grid")
        b1 = grid.add_bus(Bus(name="1", is_slack=True))
    """

    def __init__(self, name: str = '', Sbase: float = 100.0, idtag: Union[str, None] = None):
        """
        class constructor
        :param name: name of the system
        :param Sbase: base power in MVA
        :param idtag: unique identifier
        """
        self.name: str = name

        self.idtag: str = uuid4().hex if idtag is None else idtag

        # Base power (MVA)
        self.Sbase: float = Sbase

        self._buses: List[Bus] = list()
        self._branches: List[Branch] = list()
        self._generators: List[Generator] = list()

        # label maps
        self._bus_dict: Dict[str, Bus] = dict()
        self._branch_dict: Dict[str, Branch] = dict()
        self._generator_dict: Dict[str, Generator] = dict()

        self.model_revision: int = 0
        self.pattern_revision: int = 0
        self.shunt_revision: int = 0

        # history of the modifications
        self.changes: List[ModelChange] = list()

        # cached numerical models and the revision they were built with
        self._ac_model: Union[AdmittanceMatrices, None] = None
        self._ac_built: Tuple[int, int] = (-1, -1)
        self._dc_model: Union[LinearAdmittanceMatrices, None] = None
        self._dc_built: Tuple[int, int] = (-1, -1)

        # logger of events
        self.logger: Logger = Logger()

    def __str__(self):
        return str(self.name)

    # ------------------------------------------------------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def buses(self) -> List[Bus]:
        """
        List of buses in insertion order
        """
        return self._buses

    @property
    def branches(self) -> List[Branch]:
        """
        List of branches in insertion order
        """
        return self._branches

    @property
    def generators(self) -> List[Generator]:
        """
        List of generators in insertion order
        """
        return self._generators

    def get_bus_number(self) -> int:
        """
        Number of buses
        """
        return len(self._buses)

    def get_branch_number(self) -> int:
        """
        Number of branches
        """
        return len(self._branches)

    def get_generator_number(self) -> int:
        """
        Number of generators
        """
        return len(self._generators)

    def get_bus(self, label: str) -> Bus:
        """
        Get a bus by label
        :param label: bus name
        :return: Bus
        """
        try:
            return self._bus_dict[label]
        except KeyError:
            raise LabelError(label, "bus")

    def get_branch(self, label: str) -> Branch:
        """
        Get a branch by label
        :param label: branch name
        :return: Branch
        """
        try:
            return self._branch_dict[label]
        except KeyError:
            raise LabelError(label, "branch")

    def get_generator(self, label: str) -> Generator:
        """
        Get a generator by label
        :param label: generator name
        :return: Generator
        """
        try:
            return self._generator_dict[label]
        except KeyError:
            raise LabelError(label, "generator")

    def has_bus(self, bus: Bus) -> bool:
        """
        Is this very bus object part of the system?
        """
        return self._bus_dict.get(bus.name, None) is bus

    def has_branch(self, branch: Branch) -> bool:
        """
        Is this very branch object part of the system?
        """
        return self._branch_dict.get(branch.name, None) is branch

    def get_bus_index_dict(self) -> Dict[Bus, int]:
        """
        Get the bus -> index dictionary
        """
        return {b: i for i, b in enumerate(self._buses)}

    def get_branch_index_dict(self) -> Dict[Branch, int]:
        """
        Get the branch -> index dictionary
        """
        return {b: i for i, b in enumerate(self._branches)}

    def get_bus_names(self) -> List[str]:
        """
        Bus labels in index order
        """
        return [b.name for b in self._buses]

    def get_branch_names(self) -> List[str]:
        """
        Branch labels in index order
        """
        return [b.name for b in self._branches]

    def bus_index(self, label: str) -> int:
        """
        Position of a bus in the numerical arrays
        :param label: bus name
        :return: int
        """
        bus = self.get_bus(label)
        return self._buses.index(bus)

    def branch_index(self, label: str) -> int:
        """
        Position of a branch in the numerical arrays
        :param label: branch name
        :return: int
        """
        branch = self.get_branch(label)
        return self._branches.index(branch)

    # ------------------------------------------------------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------------------------------------------------------

    def add_bus(self, obj: Bus) -> Bus:
        """
        Add a bus
        :param obj: Bus
        :return: the same bus
        """
        if obj.name in self._bus_dict:
            raise LabelError(obj.name, "bus", "has already been defined")

        self._buses.append(obj)
        self._bus_dict[obj.name] = obj
        self._register_change(ModelChange.BusAdded)
        return obj

    def add_branch(self, obj: Branch) -> Branch:
        """
        Add a branch
        :param obj: Branch
        :return: the same branch
        """
        if obj.name in self._branch_dict:
            raise LabelError(obj.name, "branch", "has already been defined")

        for bus in (obj.bus_from, obj.bus_to):
            if not self.has_bus(bus):
                raise LabelError(bus.name, "bus")

        self._branches.append(obj)
        self._branch_dict[obj.name] = obj
        self._register_change(ModelChange.BranchAdded)
        return obj

    def add_generator(self, obj: Generator) -> Generator:
        """
        Add a generator.
        An in-service generator turns a demand bus into a generator bus.
        :param obj: Generator
        :return: the same generator
        """
        if obj.name in self._generator_dict:
            raise LabelError(obj.name, "generator", "has already been defined")

        if not self.has_bus(obj.bus):
            raise LabelError(obj.bus.name, "bus")

        obj.check_cost()

        self._generators.append(obj)
        self._generator_dict[obj.name] = obj
        self._register_change(ModelChange.GeneratorAdded)
        self._check_generator_bus(obj.bus)
        return obj

    # ------------------------------------------------------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------------------------------------------------------

    @staticmethod
    def _set_properties(obj, kwargs) -> None:
        for key, val in kwargs.items():
            if key in _FIXED_PROPERTIES or not obj.is_editable(key):
                raise ConfigurationError("The property {0} of {1} cannot be updated".format(key, obj.name))
            setattr(obj, key, val)

    def update_bus(self, label: str, **kwargs) -> List[ModelChange]:
        """
        Update bus properties
        :param label: bus name
        :param kwargs: property=value
        :return: list of changes applied to the model
        """
        bus = self.get_bus(label)
        self._set_properties(bus, kwargs)

        changes = list()
        for key in kwargs.keys():
            change = _BUS_CHANGES.get(key, None)
            if change is not None and change not in changes:
                changes.append(change)

        for change in changes:
            self._register_change(change)

        return changes

    def update_branch(self, label: str, **kwargs) -> List[ModelChange]:
        """
        Update branch properties
        :param label: branch name
        :param kwargs: property=value
        :return: list of changes applied to the model
        """
        branch = self.get_branch(label)
        self._set_properties(branch, kwargs)
        branch.check_parameters()

        changes = list()
        if 'active' in kwargs:
            changes.append(ModelChange.BranchStatus)
        if len(set(kwargs.keys()) - {'active', 'rate', 'angle_min', 'angle_max'}):
            changes.append(ModelChange.BranchParameter)

        for change in changes:
            self._register_change(change)

        return changes

    def update_generator(self, label: str, **kwargs) -> List[ModelChange]:
        """
        Update generator properties
        :param label: generator name
        :param kwargs: property=value
        :return: list of changes applied to the model
        """
        gen = self.get_generator(label)
        self._set_properties(gen, kwargs)

        if 'cost_model' in kwargs:
            gen.check_cost()

        changes = list()
        if 'active' in kwargs:
            changes.append(ModelChange.GeneratorStatus)
        if 'P' in kwargs or 'Q' in kwargs:
            changes.append(ModelChange.GeneratorOutput)
        if 'vset' in kwargs:
            changes.append(ModelChange.VoltageSetpoint)

        for change in changes:
            self._register_change(change)

        if ModelChange.GeneratorStatus in changes:
            if self._check_generator_bus(gen.bus):
                changes.append(ModelChange.BusType)

        return changes

    def set_generator_cost(self, label: str, cost_model, polynomial=None, piecewise=None) -> None:
        """
        Replace the cost function of a generator
        :param label: generator name
        :param cost_model: CostModel
        :param polynomial: coefficients from the highest to the lowest degree
        :param piecewise: [(P, cost), ...]
        """
        gen = self.get_generator(label)
        old = (gen.cost_model, gen.polynomial, gen.piecewise)
        gen.cost_model = cost_model
        gen.polynomial = list(polynomial) if polynomial is not None else list()
        gen.piecewise = [(float(p), float(c)) for p, c in piecewise] if piecewise is not None else list()
        try:
            gen.check_cost()
        except ConfigurationError:
            gen.cost_model, gen.polynomial, gen.piecewise = old
            raise

    def _register_change(self, change: ModelChange) -> None:
        """
        Record a change and bump the revision counters
        :param change: ModelChange
        """
        self.changes.append(change)

        if change.affects_nodal_values():
            self.model_revision += 1

        if change.affects_nodal_pattern():
            self.pattern_revision += 1

        if change in (ModelChange.BusShunt, ModelChange.BusAdded):
            self.shunt_revision += 1

    # ------------------------------------------------------------------------------------------------------------------
    # Bus types
    # ------------------------------------------------------------------------------------------------------------------

    def get_generators_by_bus(self, only_active: bool = True) -> Dict[Bus, List[Generator]]:
        """
        Group the generators per bus, keeping the insertion order
        :param only_active: consider only the in-service generators
        :return: {Bus: [Generator, ...]}
        """
        data: Dict[Bus, List[Generator]] = dict()
        for gen in self._generators:
            if gen.active or not only_active:
                data.setdefault(gen.bus, list()).append(gen)
        return data

    def _check_generator_bus(self, bus: Bus) -> bool:
        """
        Keep the type of a bus consistent with its generators
        :param bus: Bus
        :return: was the bus type changed?
        """
        n_active = sum(1 for g in self._generators if g.bus is bus and g.active)

        if bus.bus_type == BusMode.PQ_tpe and n_active > 0:
            bus.bus_type = BusMode.PV_tpe
            self.logger.add_info("Demand bus converted to generator bus", device=bus.name,
                                 device_class="Bus", device_property="bus_type",
                                 value=str(BusMode.PV_tpe), expected_value=str(BusMode.PQ_tpe))
            self._register_change(ModelChange.BusType)
            return True

        if bus.bus_type == BusMode.PV_tpe and n_active == 0:
            bus.bus_type = BusMode.PQ_tpe
            self.logger.add_info("Generator bus without in-service generators converted to demand bus",
                                 device=bus.name, device_class="Bus", device_property="bus_type",
                                 value=str(BusMode.PQ_tpe), expected_value=str(BusMode.PV_tpe))
            self._register_change(ModelChange.BusType)
            return True

        return False

    def validate_bus_types(self, logger: Union[Logger, None] = None) -> List[str]:
        """
        Make the bus types consistent before building a power flow model:

            - generator buses without in-service generators become demand buses
            - only the first declared slack bus is kept
            - if the slack bus has no in-service generator, it becomes a demand bus and the
              first generator bus (insertion order) with an in-service generator becomes the slack

        Running it on an already valid system does not change anything.

        :param logger: Logger to record the conversions
        :return: list of labels of the buses whose type changed
        """
        if logger is None:
            logger = self.logger

        changed = list()
        gen_by_bus = self.get_generators_by_bus(only_active=True)

        for bus in self._buses:
            if bus.bus_type == BusMode.PV_tpe and bus not in gen_by_bus:
                bus.bus_type = BusMode.PQ_tpe
                changed.append(bus.name)
                logger.add_info("Generator bus without in-service generators converted to demand bus",
                                device=bus.name, device_class="Bus", device_property="bus_type",
                                value=str(BusMode.PQ_tpe), expected_value=str(BusMode.PV_tpe))

        slack: Union[Bus, None] = None
        for bus in self._buses:
            if bus.bus_type == BusMode.Slack_tpe:
                if slack is None:
                    slack = bus
                else:
                    bus.bus_type = BusMode.PV_tpe if bus in gen_by_bus else BusMode.PQ_tpe
                    changed.append(bus.name)
                    logger.add_warning("Only one slack bus is allowed, the bus was converted",
                                       device=bus.name, device_class="Bus", device_property="bus_type",
                                       value=str(bus.bus_type), expected_value=str(BusMode.Slack_tpe))

        if slack is None or slack not in gen_by_bus:

            if slack is not None:
                slack.bus_type = BusMode.PQ_tpe
                changed.append(slack.name)

            new_slack = None
            for bus in self._buses:
                if bus.bus_type == BusMode.PV_tpe and bus in gen_by_bus:
                    new_slack = bus
                    break

            if new_slack is None:
                raise SlackError()

            new_slack.bus_type = BusMode.Slack_tpe
            changed.append(new_slack.name)
            logger.add_info("The slack bus was reassigned",
                            device=new_slack.name, device_class="Bus", device_property="bus_type",
                            value=new_slack.name, expected_value=slack.name if slack is not None else "")

        for _ in changed:
            self._register_change(ModelChange.BusType)

        return changed

    def get_bus_types(self) -> IntVec:
        """
        Array of bus types (BusMode values)
        """
        return np.array([b.bus_type.value for b in self._buses], dtype=int)

    def get_bus_type_indices(self) -> Tuple[IntVec, IntVec, IntVec]:
        """
        Get the indices of the slack, pv and pq buses
        :return: vd, pv, pq
        """
        types = self.get_bus_types()
        vd = np.where(types == BusMode.Slack_tpe.value)[0]
        pv = np.where(types == BusMode.PV_tpe.value)[0]
        pq = np.where(types == BusMode.PQ_tpe.value)[0]
        return vd, pv, pq

    def get_slack_index(self) -> int:
        """
        Index of the slack bus
        """
        vd, _, _ = self.get_bus_type_indices()
        if len(vd) == 0:
            raise SlackError("The power system has no slack bus")
        return int(vd[0])

    # ------------------------------------------------------------------------------------------------------------------
    # Numerical arrays
    # ------------------------------------------------------------------------------------------------------------------

    def get_Sgen(self) -> CxVec:
        """
        Aggregated in-service generation per bus (p.u.)
        """
        val = np.zeros(self.get_bus_number(), dtype=complex)
        bus_dict = self.get_bus_index_dict()
        for gen in self._generators:
            if gen.active:
                val[bus_dict[gen.bus]] += complex(gen.P, gen.Q)
        return val

    def get_Sd(self) -> CxVec:
        """
        Demand per bus (p.u.)
        """
        return np.array([complex(b.Pd, b.Qd) for b in self._buses], dtype=complex)

    def get_Sbus(self) -> CxVec:
        """
        Specified complex power injection per bus: generation minus demand (p.u.)
        """
        return self.get_Sgen() - self.get_Sd()

    def get_Yshunt_bus(self) -> CxVec:
        """
        Bus shunt admittances (p.u.)
        """
        return np.array([complex(b.Gs, b.Bs) for b in self._buses], dtype=complex)

    def get_voltage_guess(self) -> CxVec:
        """
        Initial voltage: the bus stored values, with the magnitude of the generator and slack buses
        set by their first in-service generator
        :return: array of complex voltages per bus
        """
        vm = np.array([b.Vm0 for b in self._buses], dtype=float)
        va = np.array([b.Va0 for b in self._buses], dtype=float)
        bus_dict = self.get_bus_index_dict()

        for bus, gens in self.get_generators_by_bus(only_active=True).items():
            if bus.bus_type != BusMode.PQ_tpe:
                vm[bus_dict[bus]] = gens[0].vset

        return vm * np.exp(1j * va)

    def get_voltage_setpoints(self) -> Vec:
        """
        Voltage magnitude set point of every bus (p.u.)
        """
        return np.abs(self.get_voltage_guess())

    def get_branch_arrays(self):
        """
        Get the branch data as arrays
        :return: F, T, R, X, G, B, tap_module, tap_angle, active
        """
        bus_dict = self.get_bus_index_dict()
        nbr = self.get_branch_number()
        F = np.zeros(nbr, dtype=int)
        T = np.zeros(nbr, dtype=int)
        R = np.zeros(nbr)
        X = np.zeros(nbr)
        G = np.zeros(nbr)
        B = np.zeros(nbr)
        m = np.ones(nbr)
        tau = np.zeros(nbr)
        active = np.zeros(nbr, dtype=bool)

        for k, br in enumerate(self._branches):
            F[k] = bus_dict[br.bus_from]
            T[k] = bus_dict[br.bus_to]
            R[k] = br.r
            X[k] = br.x
            G[k] = br.g
            B[k] = br.b
            m[k] = br.tap_module
            tau[k] = br.tap_phase
            active[k] = br.active

        return F, T, R, X, G, B, m, tau, active

    # ------------------------------------------------------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def ac_model_dirty(self) -> bool:
        """
        Is the cached AC model outdated?
        """
        return self._ac_model is None or self._ac_built != (self.model_revision, self.shunt_revision)

    @property
    def dc_model_dirty(self) -> bool:
        """
        Is the cached DC model outdated?
        """
        return self._dc_model is None or self._dc_built != (self.model_revision, self.shunt_revision)

    def get_ac_model(self) -> AdmittanceMatrices:
        """
        Get the AC admittance matrices, rebuilding them if the system changed
        :return: AdmittanceMatrices
        """
        if self.ac_model_dirty:
            F, T, R, X, G, B, m, tau, active = self.get_branch_arrays()
            Cf, Ct = compute_connectivity(F, T, self.get_bus_number())
            self._ac_model = compute_admittances(R=R, X=X, G=G, B=B,
                                                 tap_module=m,
                                                 tap_angle=tau,
                                                 active=active,
                                                 Cf=Cf, Ct=Ct,
                                                 Yshunt_bus=self.get_Yshunt_bus())
            self._ac_built = (self.model_revision, self.shunt_revision)

        return self._ac_model

    def get_dc_model(self) -> LinearAdmittanceMatrices:
        """
        Get the DC susceptance matrices, rebuilding them if the system changed
        :return: LinearAdmittanceMatrices
        """
        if self.dc_model_dirty:
            F, T, R, X, G, B, m, tau, active = self.get_branch_arrays()
            zero_x = np.where(active & (X == 0.0))[0]
            if len(zero_x):
                raise BranchDefinitionError(self.branches[zero_x[0]].name, "has zero reactance in the DC model")
            Cf, Ct = compute_connectivity(F, T, self.get_bus_number())
            self._dc_model = compute_linear_admittances(X=X,
                                                        tap_module=m,
                                                        tap_angle=tau,
                                                        active=active,
                                                        Cf=Cf, Ct=Ct,
                                                        Gshunt_bus=self.get_Yshunt_bus().real)
            self._dc_built = (self.model_revision, self.shunt_revision)

        return self._dc_model

    def get_fast_decoupled_model(self, bx: bool) -> FastDecoupledAdmittanceMatrices:
        """
        Build the fast decoupled matrices (not cached, the solver owns them)
        :param bx: BX scheme? otherwise XB
        :return: FastDecoupledAdmittanceMatrices
        """
        F, T, R, X, G, B, m, tau, active = self.get_branch_arrays()
        Cf, Ct = compute_connectivity(F, T, self.get_bus_number())
        return compute_fast_decoupled_admittances(R=R, X=X, B=B,
                                                  tap_module=m,
                                                  tap_angle=tau,
                                                  active=active,
                                                  Cf=Cf, Ct=Ct,
                                                  Bshunt_bus=self.get_Yshunt_bus().imag,
                                                  bx=bx)

    def get_adjacency_matrix(self, only_active: bool = True) -> sp.csc_matrix:
        """
        Bus-bus adjacency matrix (without the diagonal)
        :param only_active: consider only the in-service branches
        :return: csc_matrix
        """
        F, T, R, X, G, B, m, tau, active = self.get_branch_arrays()
        if only_active:
            F = F[active]
            T = T[active]
        n = self.get_bus_number()
        data = np.ones(2 * len(F))
        A = sp.csc_matrix((data, (np.r_[F, T], np.r_[T, F])), shape=(n, n))
        A.data[:] = 1.0
        return A
