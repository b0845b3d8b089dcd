# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *

# "from" flow wattmeters of the 14-bus monitoring (branch numbers, some repeated)
FLOW_BRANCHES = [3, 20, 9, 19, 14, 10, 11, 12, 13, 8, 19, 20]


def flow_monitoring(grid: PowerSystem) -> MeasurementSet:
    ms = MeasurementSet(grid, MeasurementDefaults(wattmeter_variance=1e-4))
    for k, br in enumerate(FLOW_BRANCHES):
        ms.add_wattmeter("Branch {}".format(br), 0.04, side=MeasurementSide.From, label="F{}".format(k + 1))
    return ms


def test_flow_islands_14_bus(grid_14_bus):
    ms = flow_monitoring(grid_14_bus)
    islands = island_topological_flow(grid_14_bus, ms)

    assert islands.island == [[0], [1, 2], [3, 6, 7, 8], [4, 5, 10, 11, 12], [9], [13]]
    assert not islands.is_observable()
    assert islands.get_island_labels(grid_14_bus)[1] == ["Bus 2", "Bus 3"]

    # the island index of every bus
    assert islands.bus[7] == 2
    assert islands.bus[13] == 5

    # Branch 1 (Bus 1 - Bus 2) joins islands, Branch 3 (Bus 2 - Bus 3) does not
    assert 0 in islands.tie_branch
    assert 2 not in islands.tie_branch


def test_restoration_14_bus(grid_14_bus):
    ms = flow_monitoring(grid_14_bus)
    islands = island_topological_flow(grid_14_bus, ms)

    pseudo = MeasurementSet(grid_14_bus)
    for i in [1, 2, 5, 3, 4, 9, 10, 11, 13, 14]:
        pseudo.add_wattmeter("Bus {}".format(i), 0.04, label="P{}".format(i))
    for i in [1, 2, 5, 3, 4, 9, 10, 11, 13, 14]:
        pseudo.add_varmeter("Bus {}".format(i), 0.04, label="P{}".format(i))
    pseudo.add_pmu("Bus 6", magnitude=1.1, angle=0.1, variance_magnitude=1e-3, label="T6")
    pseudo.add_pmu("Bus 7", magnitude=1.1, angle=0.1, variance_magnitude=1e-3, label="T7")

    logger = Logger()
    added = restoration_gram(grid_14_bus, ms, pseudo, islands, logger=logger)

    watts = {dev.name for dev in added if dev.device_type == DeviceType.WattmeterDevice}
    vars_ = {dev.name for dev in added if dev.device_type == DeviceType.VarmeterDevice}
    assert watts == {"P1", "P2", "P5", "P9", "P10"}
    assert vars_ == watts
    assert len(added) == 10
    assert len(ms.pmus) == 0

    # the pseudo-measurements are copies in the restored set
    assert ms.get_device(DeviceType.WattmeterDevice, "P9").value == 0.04
    assert ms.get_device(DeviceType.WattmeterDevice, "P9") is not pseudo.get_device(DeviceType.WattmeterDevice, "P9")
    assert logger.contains("Pseudo-measurement added")


def test_maximal_islands_and_restoration_14_bus(grid_14_bus):
    ms = flow_monitoring(grid_14_bus)
    for i in [2, 10, 14, 9]:
        ms.add_wattmeter("Bus {}".format(i), 0.04)

    islands = island_topological(grid_14_bus, ms)
    assert islands.island == [[0], [1, 2], [3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13]]

    pseudo = MeasurementSet(grid_14_bus)
    pseudo.add_wattmeter("Bus 3", 0.04, label="P3")
    pseudo.add_varmeter("Bus 3", 0.04, label="P3")

    restoration_gram(grid_14_bus, ms, pseudo, islands)

    # appended after the 12 flows and 4 injections
    assert ms.wattmeters[16].name == "P3"
    assert ms.get_device(DeviceType.VarmeterDevice, "P3").value == 0.04


def test_flow_islands_are_not_merged_by_injection_groups(grid_14_bus):
    """
    The flow islands only merge in pairs, the maximal islands also by groups of injections
    """
    ms = flow_monitoring(grid_14_bus)
    for i in [2, 10, 14, 9]:
        ms.add_wattmeter("Bus {}".format(i), 0.04)

    flow = island_topological_flow(grid_14_bus, ms)
    maximal = island_topological(grid_14_bus, ms)
    assert flow.island_number > maximal.island_number


def test_restored_set_estimates_the_power_flow(grid_14_bus):
    pf = PowerFlowDriver(grid_14_bus, options=PowerFlowOptions(solver_type=SolverType.DC)).run()

    ms = MeasurementSet(grid_14_bus, MeasurementDefaults(wattmeter_variance=1e-4))
    for k in range(8):
        ms.add_wattmeter(grid_14_bus.branches[k], pf.Sf.real[k], side=MeasurementSide.From)

    pseudo = MeasurementSet(grid_14_bus)
    for k, br in enumerate(grid_14_bus.branches):
        pseudo.add_wattmeter(br, pf.St.real[k], side=MeasurementSide.To, label="Pseudo " + br.name)
        pseudo.add_varmeter(br, pf.St.real[k], side=MeasurementSide.To, label="Pseudo " + br.name)

    analysis = ObservabilityAnalysis(ms)
    islands = analysis.run(pseudo)

    assert islands.is_observable()
    assert len(analysis.added) > 0

    se = DcStateEstimator(ms)
    se.solve()
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-10)


def test_restoration_with_pseudo_pmus(grid_14_bus):
    """
    Flows on half of the branches leave several islands, one phasor per island
    (but the slack one) gives each of them an angle reference
    """
    pf = PowerFlowDriver(grid_14_bus, options=PowerFlowOptions(solver_type=SolverType.DC)).run()

    ms = MeasurementSet(grid_14_bus, MeasurementDefaults(wattmeter_variance=1e-4))
    for k in range(0, 20, 2):
        ms.add_wattmeter(grid_14_bus.branches[k], pf.Sf.real[k], side=MeasurementSide.From)

    islands = island_topological(grid_14_bus, ms)
    assert islands.island_number > 1

    pseudo = MeasurementSet(grid_14_bus)
    for k, bus in enumerate(grid_14_bus.buses):
        pseudo.add_pmu(bus, magnitude=1.0, angle=pf.Va[k], variance_magnitude=1.0, label="Pseudo " + bus.name)

    logger = Logger()
    analysis = ObservabilityAnalysis(ms, logger=logger)
    analysis.run(pseudo)

    assert len(analysis.added) == islands.island_number - 1
    assert analysis.is_observable()
    assert not logger.contains("not observable")
    assert all(dev.device_type == DeviceType.PmuDevice for dev in analysis.added)

    # one phasor per island, none in the island of the slack bus
    bus_dict = grid_14_bus.get_bus_index_dict()
    reached = {int(islands.bus[bus_dict[dev.api_object]]) for dev in analysis.added}
    assert len(reached) == len(analysis.added)
    assert int(islands.bus[grid_14_bus.get_slack_index()]) not in reached

    se = DcStateEstimator(ms)
    se.solve()
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-10)


def test_chain_restoration(grid_chain):
    """
    Injections at buses 1, 3 and 5 of a 5-bus chain leave three islands,
    a single flow on one tie branch joins them
    """
    pf = PowerFlowDriver(grid_chain, options=PowerFlowOptions(solver_type=SolverType.DC)).run()

    ms = MeasurementSet(grid_chain)
    for i in [0, 2, 4]:
        ms.add_wattmeter(grid_chain.buses[i], pf.Sbus.real[i])

    islands = island_topological_flow(grid_chain, ms)
    assert islands.island == [[0, 1], [2], [3, 4]]
    assert islands.tie_branch == {1, 2}
    assert islands.tie_injection == {2}

    pseudo = MeasurementSet(grid_chain)
    for k, br in enumerate(grid_chain.branches):
        pseudo.add_wattmeter(br, pf.Sf.real[k], side=MeasurementSide.From, label="Pseudo " + br.name)
        pseudo.add_varmeter(br, 0.0, side=MeasurementSide.From, label="Pseudo " + br.name)

    added = restoration_gram(grid_chain, ms, pseudo, islands)
    assert [dev.name for dev in added] == ["Pseudo Branch 2", "Pseudo Branch 2"]

    assert island_topological(grid_chain, ms).is_observable()

    se = DcStateEstimator(ms)
    se.solve()
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-10)


def test_restoration_without_candidates(grid_chain):
    ms = MeasurementSet(grid_chain)
    ms.add_wattmeter("Bus 1", 0.1)
    islands = island_topological(grid_chain, ms)

    added = restoration_gram(grid_chain, ms, MeasurementSet(grid_chain), islands)
    assert added == []
    assert len(ms.wattmeters) == 1


def test_unobservable_set_is_reported(grid_chain):
    ms = MeasurementSet(grid_chain)
    ms.add_wattmeter("Bus 1", 0.1)

    logger = Logger()
    analysis = ObservabilityAnalysis(ms, ObservabilityOptions(maximal_islands=False), logger=logger)
    islands = analysis.run()

    assert not islands.is_observable()
    assert logger.contains("The measurement set is not observable")
    assert analysis.added == []


def test_out_of_service_measurements_are_ignored(grid_chain):
    ms = MeasurementSet(grid_chain)
    for br in grid_chain.branches:
        ms.add_wattmeter(br, 0.0, side=MeasurementSide.From)
    assert island_topological(grid_chain, ms).is_observable()

    ms.update_device(DeviceType.WattmeterDevice, "P2", active=False)
    islands = island_topological(grid_chain, ms)
    assert islands.island == [[0, 1], [2, 3, 4]]
    assert islands.tie_branch == {1}


def chain_monitoring(grid: PowerSystem) -> MeasurementSet:
    """
    Flows on every branch (P1..P4) and injections at every bus (P5..P9)
    """
    ms = MeasurementSet(grid)
    for br in grid.branches:
        ms.add_wattmeter(br, 0.0, side=MeasurementSide.From)
    for bus in grid.buses:
        ms.add_wattmeter(bus, 0.0)
    return ms


def test_random_status_splits_the_islands(grid_chain):
    ms = chain_monitoring(grid_chain)
    rev = ms.revision

    assert ms.set_status(DeviceType.WattmeterDevice, inservice=0, side=MeasurementSide.Bus) == []
    assert ms.revision == rev + 1
    assert island_topological(grid_chain, ms).is_observable()

    active = ms.set_status(DeviceType.WattmeterDevice, outservice=1, side=MeasurementSide.From, seed=3)
    assert len(active) == 3
    assert ms.get_device_number() == 3
    assert island_topological_flow(grid_chain, ms).island_number == 2
    assert island_topological(grid_chain, ms).island_number == 2

    # the injections join the two halves again
    ms.set_status(DeviceType.WattmeterDevice, outservice=0, side=MeasurementSide.Bus)
    assert island_topological(grid_chain, ms).is_observable()


def test_random_status_by_count(grid_chain):
    ms = chain_monitoring(grid_chain)

    assert ms.set_status(inservice=0) == []
    assert island_topological(grid_chain, ms).island_number == 5

    ms.set_status(outservice=0)
    assert ms.get_device_number() == 9
    assert island_topological(grid_chain, ms).is_observable()


def test_random_status_by_redundancy(grid_chain):
    ms = chain_monitoring(grid_chain)

    # 2 * 5 - 1 = 9 states
    assert len(ms.set_status(redundancy=1 / 3, seed=1)) == 3

    # clipped to the number of devices
    assert len(ms.set_status(redundancy=10.0, seed=1)) == 9


def test_random_status_is_reproducible(grid_14_bus):
    a = flow_monitoring(grid_14_bus)
    b = flow_monitoring(grid_14_bus)

    sel_a = [d.name for d in a.set_status(inservice=6, seed=42)]
    sel_b = [d.name for d in b.set_status(inservice=6, seed=42)]

    assert sel_a == sel_b
    assert island_topological_flow(grid_14_bus, a).island == island_topological_flow(grid_14_bus, b).island


def test_random_status_errors(grid_chain):
    ms = chain_monitoring(grid_chain)

    try:
        ms.set_status(inservice=2, outservice=2)
        assert False
    except ConfigurationError:
        pass

    try:
        ms.set_status(DeviceType.VoltmeterDevice, inservice=1)
        assert False
    except ConfigurationError:
        pass
