# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from itertools import combinations
from typing import Dict, List, Set, Union
import numpy as np
import networkx as nx
import scipy.sparse as sp
from scipy.linalg import qr

from GridStateEngine.basic_structures import Logger, IntVec
from GridStateEngine.enumerations import MeasurementSide, MIPSolvers
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Devices.measurement import MeasurementTemplate, Wattmeter, Varmeter
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Simulations.options_template import OptionsTemplate


class ObservabilityOptions(OptionsTemplate):
    """
    Observability analysis options
    """

    def __init__(self,
                 maximal_islands: bool = True,
                 restoration_threshold: float = 1e-5,
                 mip_solver: MIPSolvers = MIPSolvers.HIGHS):
        """
        ObservabilityOptions
        :param maximal_islands: merge the flow islands with the combinations of injections
        :param restoration_threshold: pivots of the Gram matrix below this value are zero
        :param mip_solver: ILP solver of the PMU placement
        """
        OptionsTemplate.__init__(self, name='ObservabilityOptions')

        self.maximal_islands = maximal_islands

        self.restoration_threshold = restoration_threshold

        self.mip_solver = mip_solver

        self.register(key="maximal_islands", tpe=bool)
        self.register(key="restoration_threshold", tpe=float)
        self.register(key="mip_solver", tpe=MIPSolvers)


class Island:
    """
    Observable islands of a measurement set

        - island: list of islands, each one the list of its bus indices
        - bus: island index of every bus
        - tie_bus: buses at the ends of the branches joining different islands
        - tie_branch: branches joining different islands
        - tie_injection: buses with an active power injection measurement
          not absorbed by the island merging
    """

    def __init__(self, nbus: int):
        """
        :param nbus: number of buses
        """
        self.island: List[List[int]] = list()
        self.bus: IntVec = np.zeros(nbus, dtype=int)
        self.tie_bus: Set[int] = set()
        self.tie_branch: Set[int] = set()
        self.tie_injection: Set[int] = set()

    @property
    def island_number(self) -> int:
        return len(self.island)

    def is_observable(self) -> bool:
        """
        A single island covers the whole network
        """
        return len(self.island) == 1

    def renumber(self) -> None:
        """
        Sort the buses of every island and refresh the island index of the buses
        """
        self.island = [sorted(isl) for isl in self.island]
        for k, isl in enumerate(self.island):
            for i in isl:
                self.bus[i] = k

    def get_island_labels(self, system: PowerSystem) -> List[List[str]]:
        """
        Islands as lists of bus labels
        """
        return [[system.buses[i].name for i in isl] for isl in self.island]

    def __str__(self):
        return "Island({} islands)".format(len(self.island))

    def __repr__(self):
        return str(self)


def connection_lists(system: PowerSystem) -> List[List[int]]:
    """
    Buses connected to every bus (itself included) through in-service branches
    :param system: PowerSystem
    :return: list of sorted bus index lists
    """
    A = sp.csc_matrix(system.get_adjacency_matrix(only_active=True)
                      + sp.identity(system.get_bus_number(), format='csc'))
    return [sorted(A.indices[A.indptr[i]:A.indptr[i + 1]].tolist()) for i in range(A.shape[0])]


def flow_components(system: PowerSystem, measurements: MeasurementSet) -> Island:
    """
    Group the buses joined by in-service branches with an in-service flow wattmeter
    :param system: PowerSystem
    :param measurements: MeasurementSet
    :return: Island without tie data
    """
    graph = nx.Graph()
    graph.add_nodes_from(range(system.get_bus_number()))
    bus_dict = system.get_bus_index_dict()

    for watt in measurements.wattmeters:
        if watt.active and not watt.at_bus and watt.api_object.active:
            br = watt.api_object
            graph.add_edge(bus_dict[br.bus_from], bus_dict[br.bus_to])

    observe = Island(system.get_bus_number())
    observe.island = sorted([sorted(c) for c in nx.connected_components(graph)], key=lambda c: c[0])
    observe.renumber()
    return observe


def tie_bus_branch(system: PowerSystem, observe: Island) -> None:
    """
    Find the in-service branches joining different islands and their buses
    """
    F, T, R, X, G, B, m, tau, active = system.get_branch_arrays()
    observe.tie_bus = set()
    observe.tie_branch = set()
    for k in range(len(F)):
        if active[k] and observe.bus[F[k]] != observe.bus[T[k]]:
            observe.tie_branch.add(k)
            observe.tie_bus.add(int(F[k]))
            observe.tie_bus.add(int(T[k]))


def tie_injection(system: PowerSystem, observe: Island, measurements: MeasurementSet) -> None:
    """
    Find the buses with an in-service injection wattmeter among the tie buses
    """
    bus_dict = system.get_bus_index_dict()
    observe.tie_injection = set()
    for watt in measurements.wattmeters:
        if watt.active and watt.at_bus:
            k = bus_dict[watt.api_object]
            if k in observe.tie_bus:
                observe.tie_injection.add(k)


def merge_pairs(observe: Island, connections: List[List[int]]) -> None:
    """
    Merge two islands joined by a tie injection whose bus only borders one other island.
    Tie injections bordering no other island, or only one, are spent.
    """
    removed = set()
    merge = True
    while merge:
        merge = False
        for k in sorted(observe.tie_injection):
            if k not in observe.tie_injection:
                continue
            own = int(observe.bus[k])
            incident = {int(observe.bus[j]) for j in connections[k]} - {own}

            if len(incident) <= 1:
                if len(incident) == 1:
                    other = incident.pop()
                    observe.island[own] += observe.island[other]
                    for j in observe.island[other]:
                        observe.bus[j] = own
                    observe.island[other] = list()
                    removed.add(other)

                observe.tie_injection.discard(k)
                merge = True

    if removed:
        observe.island = [isl for i, isl in enumerate(observe.island) if i not in removed]
        observe.renumber()


def decision_tree(incident: List[List[int]]) -> Union[List[int], None]:
    """
    Find the first combination of t >= 2 injections that touches exactly t + 1 islands
    :param incident: islands touched by every injection
    :return: indices of the combination or None
    """
    for t in range(2, len(incident) + 1):
        for comb in combinations(range(len(incident)), t):
            touched = set()
            for i in comb:
                touched.update(incident[i])
            if len(touched) == t + 1:
                return list(comb)
    return None


def merge_flow_islands(system: PowerSystem, observe: Island, connections: List[List[int]]) -> None:
    """
    Merge the islands joined by groups of tie injections, then spend the injections
    left inside a single island and merge the pairs again, until no group is found
    """
    while True:
        injections = sorted(observe.tie_injection)
        incident = [sorted({int(observe.bus[j]) for j in connections[k]}) for k in injections]

        comb = decision_tree(incident)
        if comb is None:
            break

        to_merge = list()
        for i in comb:
            for isl in incident[i]:
                if isl not in to_merge:
                    to_merge.append(isl)

        first = to_merge[0]
        for isl in to_merge[1:]:
            observe.island[first] += observe.island[isl]
        observe.island = [isl for i, isl in enumerate(observe.island) if i not in set(to_merge[1:])]
        observe.renumber()

        for k in injections:
            if len({int(observe.bus[j]) for j in connections[k]}) == 1:
                observe.tie_injection.discard(k)

        merge_pairs(observe, connections)

    tie_bus_branch(system, observe)


def island_topological_flow(system: PowerSystem, measurements: MeasurementSet) -> Island:
    """
    Flow observable islands: buses joined by branch flow wattmeters, merged
    in pairs by the tie injection wattmeters.

    Active and reactive measurements are assumed to come in pairs,
    so the wattmeters define the islands of both.

    :param system: PowerSystem
    :param measurements: MeasurementSet
    :return: Island
    """
    connections = connection_lists(system)

    observe = flow_components(system, measurements)
    tie_bus_branch(system, observe)
    tie_injection(system, observe, measurements)

    merge_pairs(observe, connections)
    tie_bus_branch(system, observe)

    return observe


def island_topological(system: PowerSystem, measurements: MeasurementSet) -> Island:
    """
    Maximal observable islands: the flow observable islands further merged
    by the combinations of tie injection wattmeters
    :param system: PowerSystem
    :param measurements: MeasurementSet
    :return: Island
    """
    connections = connection_lists(system)

    observe = flow_components(system, measurements)
    tie_bus_branch(system, observe)
    tie_injection(system, observe, measurements)

    merge_pairs(observe, connections)
    merge_flow_islands(system, observe, connections)

    return observe


class ReducedMatrix:
    """
    Rows of the reduced coefficient matrix (columns are islands)
    """

    def __init__(self):
        self.row: List[int] = list()
        self.col: List[int] = list()
        self.val: List[float] = list()
        self.n = 0

    def add_tie(self, observe: Island, connections: List[List[int]], k: int) -> None:
        """
        Injection at bus k: -1 per neighbour bus in another island, their count in the own island
        """
        own = int(observe.bus[k])
        own_buses = set(observe.island[own])
        others = [int(observe.bus[j]) for j in connections[k] if j not in own_buses]
        for isl in others:
            self.row.append(self.n)
            self.col.append(isl)
            self.val.append(-1.0)
        self.row.append(self.n)
        self.col.append(own)
        self.val.append(float(len(others)))
        self.n += 1

    def add_direct(self, island: int) -> None:
        """
        Angle reference inside an island
        """
        self.row.append(self.n)
        self.col.append(island)
        self.val.append(1.0)
        self.n += 1

    def add_indirect(self, from_island: int, to_island: int) -> None:
        """
        Flow between two islands
        """
        self.row += [self.n, self.n]
        self.col += [from_island, to_island]
        self.val += [1.0, -1.0]
        self.n += 1

    def to_csc(self, n_islands: int) -> sp.csc_matrix:
        return sp.csc_matrix((self.val, (self.row, self.col)), shape=(self.n, n_islands))


def find_pair(devices: List[Varmeter], watt: Wattmeter) -> Union[Varmeter, None]:
    """
    Varmeter at the same place as a wattmeter
    """
    for var in devices:
        if var.api_object is watt.api_object and var.side == watt.side:
            return var
    return None


def restoration_gram(system: PowerSystem,
                     measurements: MeasurementSet,
                     pseudo: MeasurementSet,
                     islands: Island,
                     threshold: float = 1e-5,
                     logger: Union[Logger, None] = None) -> List[MeasurementTemplate]:
    """
    Restore the observability with pseudo-measurements.

    The reduced coefficient matrix M has one column per island and the rows of:
        - the tie injections and the bus PMUs of the measurement set, and the slack bus
        - the candidate pseudo-measurements: injections at tie buses, flows on tie branches, bus PMUs

    The Gram matrix D = M M^T is factorized with QR; a candidate is accepted when its
    pivot |R_ii| is above the threshold. The accepted wattmeters are copied into the measurement
    set along with the varmeter at the same place, and so are the accepted PMUs.
    If the candidates are not enough the system stays unobservable; nothing is raised.

    :param system: PowerSystem
    :param measurements: MeasurementSet being restored
    :param pseudo: MeasurementSet with the candidate pseudo-measurements (labels different from the set)
    :param islands: Island of the measurement set
    :param threshold: zero pivot threshold
    :param logger: Logger
    :return: list of the devices added to the measurement set
    """
    if logger is None:
        logger = Logger()

    connections = connection_lists(system)
    bus_dict = system.get_bus_index_dict()
    br_dict = system.get_branch_index_dict()

    M = ReducedMatrix()

    for k in sorted(islands.tie_injection):
        M.add_tie(islands, connections, k)

    for pmu in measurements.pmus:
        if pmu.active and pmu.at_bus:
            M.add_direct(int(islands.bus[bus_dict[pmu.api_object]]))

    M.add_direct(int(islands.bus[system.get_slack_index()]))

    n_fixed = M.n

    candidates: List[MeasurementTemplate] = list()
    for watt in pseudo.wattmeters:
        if not watt.active:
            continue
        if watt.at_bus:
            k = bus_dict[watt.api_object]
            if k in islands.tie_bus:
                M.add_tie(islands, connections, k)
                candidates.append(watt)
        else:
            k = br_dict[watt.api_object]
            if k in islands.tie_branch and watt.api_object.active:
                f = int(islands.bus[bus_dict[watt.api_object.bus_from]])
                t = int(islands.bus[bus_dict[watt.api_object.bus_to]])
                M.add_indirect(f, t)
                candidates.append(watt)

    for pmu in pseudo.pmus:
        if pmu.active and pmu.at_bus:
            M.add_direct(int(islands.bus[bus_dict[pmu.api_object]]))
            candidates.append(pmu)

    added: List[MeasurementTemplate] = list()
    if len(candidates) == 0:
        return added

    Mr = M.to_csc(islands.island_number)
    D = (Mr @ Mr.T).toarray()
    R = qr(D, mode='r')[0]

    for k, dev in enumerate(candidates):
        i = n_fixed + k
        if abs(R[i, i]) <= threshold:
            continue

        if isinstance(dev, Wattmeter):
            added.append(measurements.add_wattmeter(dev.api_object, dev.value, side=dev.side,
                                                    variance=dev.variance, active=True, label=dev.name))
            var = find_pair(pseudo.varmeters, dev)
            if var is not None:
                added.append(measurements.add_varmeter(var.api_object, var.value, side=var.side,
                                                       variance=var.variance, active=True, label=var.name))
        else:
            added.append(measurements.add_pmu(dev.api_object, magnitude=dev.magnitude, angle=dev.angle,
                                              side=dev.side,
                                              variance_magnitude=dev.variance_magnitude,
                                              variance_angle=dev.variance_angle,
                                              active=True, correlated=dev.correlated, label=dev.name))

        logger.add_info("Pseudo-measurement added to restore the observability",
                        device=dev.name, device_class=dev.device_type.value,
                        value="{:.4e}".format(abs(R[i, i])), expected_value=threshold)

    return added


class ObservabilityAnalysis:
    """
    Island detection and, with a set of pseudo-measurements, observability restoration
    """
    name = 'Observability analysis'

    def __init__(self, measurements: MeasurementSet,
                 options: Union[ObservabilityOptions, None] = None,
                 logger: Union[Logger, None] = None):
        """
        :param measurements: MeasurementSet (with its power system)
        :param options: ObservabilityOptions
        :param logger: Logger
        """
        self.measurements = measurements
        self.system = measurements.system
        self.options = options if options is not None else ObservabilityOptions()
        self.logger = logger if logger is not None else Logger()

        self.islands: Union[Island, None] = None
        self.added: List[MeasurementTemplate] = list()

    def detect_islands(self) -> Island:
        """
        Flow or maximal observable islands, as configured
        """
        if self.options.maximal_islands:
            self.islands = island_topological(self.system, self.measurements)
        else:
            self.islands = island_topological_flow(self.system, self.measurements)
        return self.islands

    def is_observable(self) -> bool:
        """
        Is every island tied to the angle reference? One island is, and so are several
        when all but the island of the slack bus hold an in-service bus PMU
        """
        if self.islands is None:
            self.detect_islands()

        if self.islands.is_observable():
            return True

        bus_dict = self.system.get_bus_index_dict()
        referenced = {int(self.islands.bus[self.system.get_slack_index()])}
        for pmu in self.measurements.pmus:
            if pmu.active and pmu.at_bus:
                referenced.add(int(self.islands.bus[bus_dict[pmu.api_object]]))
        return len(referenced) == self.islands.island_number

    def run(self, pseudo: Union[MeasurementSet, None] = None) -> Island:
        """
        Detect the islands and, when there are several and pseudo-measurements are given,
        restore the observability and detect the islands again
        :param pseudo: MeasurementSet with the candidate pseudo-measurements
        :return: Island
        """
        self.added = list()
        self.detect_islands()

        if pseudo is not None and not self.is_observable():
            self.added = restoration_gram(self.system, self.measurements, pseudo, self.islands,
                                          threshold=self.options.restoration_threshold,
                                          logger=self.logger)
            self.detect_islands()

        if not self.is_observable():
            self.logger.add_warning("The measurement set is not observable",
                                    device=self.system.name,
                                    value=self.islands.island_number,
                                    expected_value=1)

        return self.islands
