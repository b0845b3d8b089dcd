# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List, Union
import pandas as pd

from GridStateEngine.basic_structures import Logger
from GridStateEngine.enumerations import MeasurementSide, MIPSolvers
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Devices.measurement import Pmu
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from GridStateEngine.Simulations.StateEstimation.measurement_generation import MeasurementGenerator
from GridStateEngine.Simulations.Observability.observability_analysis import connection_lists
from GridStateEngine.Utils.MIP.pulp_interface import LpModel


class PmuPlacement:
    """
    Optimal PMU placement

        - bus: label -> index of the buses with a PMU
        - from_branch: label -> index of the in-service branches whose from bus has a PMU
        - to_branch: label -> index of the in-service branches whose to bus has a PMU
    """

    def __init__(self):
        self.bus: Dict[str, int] = dict()
        self.from_branch: Dict[str, int] = dict()
        self.to_branch: Dict[str, int] = dict()

    @property
    def pmu_number(self) -> int:
        return len(self.bus)

    def to_df(self) -> pd.DataFrame:
        """
        Placed PMUs as a DataFrame
        """
        data = [[lbl, MeasurementSide.Bus.value, i] for lbl, i in self.bus.items()]
        data += [[lbl, MeasurementSide.From.value, k] for lbl, k in self.from_branch.items()]
        data += [[lbl, MeasurementSide.To.value, k] for lbl, k in self.to_branch.items()]
        return pd.DataFrame(data=data, columns=['Element', 'Side', 'Index'])

    def __str__(self):
        return "PmuPlacement({})".format(list(self.bus.keys()))

    def __repr__(self):
        return str(self)


class CoverageGroup:
    """
    Coverage constraint sum(coef_j * d_j) >= rhs of a set of buses.
    A bus alone is covered when a PMU sits at the bus or at a neighbour (rhs = 1)
    """

    def __init__(self, buses: List[int], coef: Dict[int, int], rhs: int):
        self.buses = buses
        self.coef = coef
        self.rhs = rhs


def merge_groups(groups: List[CoverageGroup]) -> CoverageGroup:
    """
    Merge the coverage constraints tied by a legacy measurement:
    all but one of the buses covered makes the remaining one observable
    """
    buses = list()
    coef: Dict[int, int] = dict()
    for g in groups:
        buses += g.buses
        for j, c in g.coef.items():
            coef[j] = coef.get(j, 0) + c
    return CoverageGroup(buses=buses, coef=coef, rhs=sum(g.rhs for g in groups) - 1)


def coverage_groups(system: PowerSystem,
                    connections: List[List[int]],
                    measurements: Union[MeasurementSet, None] = None) -> List[CoverageGroup]:
    """
    Build the coverage constraints of the buses, merged by the legacy measurements:
        - flow wattmeter: the constraints of the two end buses
        - injection wattmeter: the constraints of the bus and its neighbours
    :param system: PowerSystem
    :param connections: buses connected to every bus (itself included)
    :param measurements: MeasurementSet with the legacy measurements (None for the plain placement)
    :return: list of CoverageGroup
    """
    nbus = system.get_bus_number()
    groups: Dict[int, CoverageGroup] = {i: CoverageGroup(buses=[i], coef={j: 1 for j in connections[i]}, rhs=1)
                                        for i in range(nbus)}
    owner = list(range(nbus))

    def merge(buses: List[int]) -> None:
        keys = sorted({owner[i] for i in buses})
        if len(keys) < 2:
            return
        g = merge_groups([groups.pop(key) for key in keys])
        groups[keys[0]] = g
        for i in g.buses:
            owner[i] = keys[0]

    if measurements is not None:
        bus_dict = system.get_bus_index_dict()

        for watt in measurements.wattmeters:
            if watt.active and not watt.at_bus and watt.api_object.active:
                merge([bus_dict[watt.api_object.bus_from], bus_dict[watt.api_object.bus_to]])

        for watt in measurements.wattmeters:
            if watt.active and watt.at_bus:
                merge(connections[bus_dict[watt.api_object]])

    return [groups[key] for key in sorted(groups.keys())]


def pmu_placement(system: PowerSystem,
                  measurements: Union[MeasurementSet, None] = None,
                  extended: bool = False,
                  solver_type: MIPSolvers = MIPSolvers.HIGHS,
                  logger: Union[Logger, None] = None) -> PmuPlacement:
    """
    Optimal PMU placement

        min   sum(d_i)
        s.t.  sum(d_j, j in N[i]) >= 1    for every bus i
              d_i in {0, 1}

    where N[i] is the bus i and its neighbours through in-service branches.
    With extended=True the legacy wattmeters of the measurement set merge the coverage constraints.

    :param system: PowerSystem
    :param measurements: MeasurementSet with the legacy measurements (extended placement)
    :param extended: use the legacy measurements?
    :param solver_type: MIPSolvers
    :param logger: Logger where the solver messages are appended
    :return: PmuPlacement
    """
    connections = connection_lists(system)
    groups = coverage_groups(system, connections, measurements if extended else None)

    lp = LpModel(solver_type=solver_type, name="PMU placement")
    d = [lp.add_int(0, 1, name="d_{}".format(i)) for i in range(system.get_bus_number())]

    for k, g in enumerate(groups):
        lp.add_cst(lp.sum([c * d[j] for j, c in g.coef.items()]) >= g.rhs, name="coverage_{}".format(k))

    lp.minimize(lp.sum(d))

    try:
        lp.solve_or_raise()
    finally:
        if logger is not None:
            logger += lp.logger

    placement = PmuPlacement()
    has_pmu = [lp.get_value(x) > 0.5 for x in d]

    for i, bus in enumerate(system.buses):
        if has_pmu[i]:
            placement.bus[bus.name] = i

    bus_dict = system.get_bus_index_dict()
    for k, br in enumerate(system.branches):
        if br.active:
            if has_pmu[bus_dict[br.bus_from]]:
                placement.from_branch[br.name] = k
            if has_pmu[bus_dict[br.bus_to]]:
                placement.to_branch[br.name] = k

    return placement


def add_placement_pmus(measurements: MeasurementSet,
                       placement: PmuPlacement,
                       results: PowerFlowResults,
                       noise: bool = False,
                       seed: Union[int, None] = None) -> List[Pmu]:
    """
    Add the PMUs of a placement with the phasors of a power flow solution:
    the bus voltages and the branch currents at the ends where a PMU sits
    :param measurements: MeasurementSet
    :param placement: PmuPlacement
    :param results: PowerFlowResults
    :param noise: add Gaussian errors?
    :param seed: random seed
    :return: list of the added PMUs
    """
    gen = MeasurementGenerator(measurements, results, noise=noise, seed=seed)
    pmus = gen.add_pmus(list(placement.bus.keys()), side=MeasurementSide.Bus)
    pmus += gen.add_pmus(list(placement.from_branch.keys()), side=MeasurementSide.From)
    pmus += gen.add_pmus(list(placement.to_branch.keys()), side=MeasurementSide.To)
    return pmus
