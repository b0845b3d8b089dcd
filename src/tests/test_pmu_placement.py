# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *
from GridStateEngine.Simulations.Observability.pmu_placement import coverage_groups


def build_7_bus_grid() -> PowerSystem:
    grid = PowerSystem(name="7 bus")
    b = [grid.add_bus(Bus(name=str(i + 1), is_slack=(i == 0), Pd=0.0 if i == 0 else 0.2, Bs=0.5 if i == 0 else 0.0))
         for i in range(7)]
    for f, t in [(1, 2), (2, 3), (2, 6), (2, 7), (3, 4), (3, 6), (4, 5), (4, 7)]:
        grid.add_branch(Branch(bus_from=b[f - 1], bus_to=b[t - 1], name="{}-{}".format(f, t), r=0.1, x=0.05))
    grid.add_generator(Generator(bus=b[0], name="G1", P=2.1))
    grid.add_generator(Generator(bus=b[2], name="G3", P=0.6))
    return grid


def test_chain_placement(grid_chain):
    placement = pmu_placement(grid_chain)

    assert placement.pmu_number == 2
    assert placement.bus == {"Bus 2": 1, "Bus 4": 3}

    # current phasors at the branch ends of the PMU buses
    assert placement.from_branch == {"Branch 2": 1, "Branch 4": 3}
    assert placement.to_branch == {"Branch 1": 0, "Branch 3": 2}

    df = placement.to_df()
    assert df.shape == (6, 3)
    assert list(df['Element'][:2]) == ["Bus 2", "Bus 4"]


def test_ieee14_placement(grid_14_bus):
    placement = pmu_placement(grid_14_bus)
    assert placement.pmu_number == 4

    # every bus has a PMU or a neighbour with one
    bus_dict = grid_14_bus.get_bus_index_dict()
    reach = set(placement.bus.values())
    for br in grid_14_bus.branches:
        f, t = bus_dict[br.bus_from], bus_dict[br.bus_to]
        if f in placement.bus.values():
            reach.add(t)
        if t in placement.bus.values():
            reach.add(f)
    assert reach == set(range(14))


def test_placement_skips_out_of_service_branches(grid_chain):
    grid_chain.update_branch("Branch 2", active=False)
    placement = pmu_placement(grid_chain)

    assert placement.pmu_number == 2
    assert "Branch 2" not in placement.from_branch
    assert "Branch 2" not in placement.to_branch


def test_placement_pmus_estimate_the_state(grid_14_bus):
    pf = PowerFlowDriver(grid_14_bus, options=PowerFlowOptions(solver_type=SolverType.NR, tolerance=1e-12)).run()
    assert pf.converged

    logger = Logger()
    placement = pmu_placement(grid_14_bus, logger=logger)
    ms = MeasurementSet(grid_14_bus)
    pmus = add_placement_pmus(ms, placement, pf)

    assert len(pmus) == placement.pmu_number + len(placement.from_branch) + len(placement.to_branch)

    se = PmuStateEstimator(ms)
    se.solve()
    assert np.allclose(se.V, pf.voltage, atol=1e-10)


def test_extended_placement_with_scada(grid_chain):
    """
    Flow measurements on the last two branches leave a single PMU to place
    """
    pf = PowerFlowDriver(grid_chain, options=PowerFlowOptions(solver_type=SolverType.NR, tolerance=1e-12)).run()
    assert pf.converged

    ms = MeasurementSet(grid_chain)
    for k in [2, 3]:
        br = grid_chain.branches[k]
        ms.add_wattmeter(br, pf.Sf[k].real, side=MeasurementSide.From)
        ms.add_varmeter(br, pf.Sf[k].imag, side=MeasurementSide.From)

    plain = pmu_placement(grid_chain, ms)
    assert plain.pmu_number == 2

    placement = pmu_placement(grid_chain, ms, extended=True)
    assert placement.bus == {"Bus 2": 1}

    # the phasors and the power pairs together estimate the state
    add_placement_pmus(ms, placement, pf)
    se = AcStateEstimator(ms)
    se.solve()
    assert se.converged
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_extended_placement_7_bus():
    grid = build_7_bus_grid()
    ms = MeasurementSet(grid)
    ms.add_wattmeter("2", -0.2)
    ms.add_wattmeter("2-3", 0.0699428, side=MeasurementSide.From)

    placement = pmu_placement(grid, ms, extended=True)
    assert placement.pmu_number == 2

    # bus 5 is only reachable from buses 4 and 5
    assert "4" in placement.bus or "5" in placement.bus


def test_injection_measurement_merges_coverage(grid_chain):
    """
    An injection at bus 3 ties the coverage of buses 2, 3 and 4
    """
    ms = MeasurementSet(grid_chain)
    ms.add_wattmeter("Bus 3", -0.1)

    connections = [[0, 1], [0, 1, 2], [1, 2, 3], [2, 3, 4], [3, 4]]
    groups = coverage_groups(grid_chain, connections, ms)

    assert len(groups) == 3
    assert groups[1].buses == [1, 2, 3]
    assert groups[1].rhs == 2
    assert groups[1].coef == {0: 1, 1: 2, 2: 3, 3: 2, 4: 1}
