# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *
from tests.conftest import build_chain_grid


def ac_power_flow(grid: PowerSystem) -> PowerFlowResults:
    pf = PowerFlowDriver(grid, options=PowerFlowOptions(solver_type=SolverType.NR, tolerance=1e-12)).run()
    assert pf.converged
    return pf


def scada_defaults() -> MeasurementDefaults:
    return MeasurementDefaults(voltmeter_variance=1e-4,
                               ammeter_variance=1e-4,
                               wattmeter_variance=1e-4,
                               varmeter_variance=1e-4,
                               pmu_magnitude_variance=1e-6,
                               pmu_angle_variance=1e-6)


def test_ac_state_estimation_recovers_power_flow(grid_5_bus):
    """
    Voltmeters at every bus and wattmeters / varmeters at every bus and branch end.
    Labels: V1..V5, P1..P19 and Q1..Q19 (injections, "from" flows, "to" flows)
    """
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf)

    se = AcStateEstimator(ms)
    se.solve()

    assert se.converged
    assert se.iterations > 1
    assert np.allclose(se.V, pf.voltage, atol=1e-8)
    assert len(se.row_devices) == 5 + 19 + 19


def test_ac_state_estimation_orthogonal(grid_5_bus):
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf)

    se = AcStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    se.solve()

    assert se.converged
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_state_estimation_with_pmus_and_ammeters(grid_5_bus):
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf, ammeters=True, pmus=True)

    # current phasors at the "from" end of a couple of branches
    gen = MeasurementGenerator(ms, pf)
    gen.add_pmus(["North-South", "Lake-Main"], side=MeasurementSide.From)
    gen.add_pmus(["South-Elm"], side=MeasurementSide.To)

    options = StateEstimationOptions(model=StateEstimationModel.AC)
    results = StateEstimationDriver(ms, options=options).run()

    assert results.converged
    assert np.allclose(results.voltage, pf.voltage, atol=1e-8)
    assert np.allclose(results.Sf, pf.Sf, atol=1e-7)


def test_ac_state_estimation_from_pmus_only(grid_5_bus):
    """
    The nonlinear estimator also works with phasors alone
    """
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    add_placement_pmus(ms, pmu_placement(grid_5_bus), pf)

    se = AcStateEstimator(ms)
    se.solve()

    assert se.converged
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_state_estimation_with_noise(grid_5_bus):
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf, noise=True, seed=10)

    se = AcStateEstimator(ms)
    se.solve()

    assert se.converged
    assert np.allclose(se.get_Vm(), pf.Vm, atol=1e-2)
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-2)


def test_ac_bad_data(grid_5_bus):
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf)
    ms.update_device(DeviceType.VarmeterDevice, "Q3", value=ms.get_device(DeviceType.VarmeterDevice, "Q3").value + 0.3)

    options = StateEstimationOptions(model=StateEstimationModel.AC, max_bad_data_passes=2)
    results = StateEstimationDriver(ms, options=options).run()

    assert len(results.bad_data) == 1
    assert results.bad_data[0].label == "Q3"
    assert results.bad_data[0].device_type == DeviceType.VarmeterDevice
    assert np.allclose(results.voltage, pf.voltage, atol=1e-8)


def test_ac_bad_pmu_is_removed(grid_5_bus):
    """
    A bad phasor puts the whole PMU out of service (both rows)
    """
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf, pmus=True)
    pmu = ms.get_device(DeviceType.PmuDevice, "PMU4")
    ms.update_device(DeviceType.PmuDevice, "PMU4", angle=pmu.angle + 0.05)

    se = AcStateEstimator(ms)
    se.solve()
    nrows = len(se.row_devices)

    bad = residual_test(se)
    assert bad.detect
    assert bad.label == "PMU4"
    assert not pmu.active

    se.solve()
    assert len(se.row_devices) == nrows - 2
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_lav_is_not_available(grid_5_bus):
    ms = MeasurementSet(grid_5_bus)
    try:
        AcStateEstimator(ms, method=StateEstimationMethod.LAV)
        assert False
    except GridStateError:
        pass


def test_ac_state_estimation_reports_divergence(grid_5_bus):
    """
    Hitting the iteration limit is reported, not raised
    """
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf)

    logger = Logger()
    se = AcStateEstimator(ms, max_iter=1, logger=logger)
    se.solve()

    assert not se.converged
    assert se.solved
    assert logger.contains("did not converge")


def test_ac_state_estimation_with_branch_current_pmus(grid_chain):
    """
    Without line charging every branch current is zero at a flat start,
    the current phasors are still usable
    """
    pf = ac_power_flow(grid_chain)
    ms = MeasurementSet(grid_chain, scada_defaults())
    add_placement_pmus(ms, pmu_placement(grid_chain), pf)

    se = AcStateEstimator(ms)
    se.solve()

    assert se.converged
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_start_from_the_bus_pmus(grid_chain):
    pf = ac_power_flow(grid_chain)
    ms = MeasurementSet(grid_chain, scada_defaults())
    add_placement_pmus(ms, pmu_placement(grid_chain), pf)

    se = AcStateEstimator(ms)

    # PMUs at Bus 2 and Bus 4, the other buses keep their set points
    assert np.isclose(se.V[1], pf.voltage[1])
    assert np.isclose(se.V[3], pf.voltage[3])
    assert se.V[2] == grid_chain.get_voltage_guess()[2]


def test_ac_polar_current_pmus_from_a_linear_estimate(grid_chain):
    pf = ac_power_flow(grid_chain)
    ms = MeasurementSet(grid_chain, scada_defaults())
    add_placement_pmus(ms, pmu_placement(grid_chain), pf)

    linear = PmuStateEstimator(ms)
    linear.solve()

    se = AcStateEstimator(ms, polar_current_pmu=True)
    se.set_initial_point(linear)
    se.solve()

    assert se.converged
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_initial_point_from_power_flow(grid_5_bus):
    pf = ac_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, scada_defaults())
    generate_measurements(ms, pf)

    se = AcStateEstimator(ms)
    se.set_initial_point(pf)
    se.solve()

    # the start is already the solution
    assert se.converged
    assert se.iterations == 1

    # back to the set points of the system
    se.set_initial_point(grid_5_bus)
    assert np.allclose(se.V, grid_5_bus.get_voltage_guess())
    se.solve()
    assert se.iterations > 1
    assert np.allclose(se.V, pf.voltage, atol=1e-8)


def test_ac_initial_point_must_fit_the_network(grid_5_bus):
    ms = MeasurementSet(grid_5_bus)
    se = AcStateEstimator(ms)
    try:
        se.set_initial_point(ac_power_flow(build_chain_grid(4)))
        assert False
    except GridStateError:
        pass

    try:
        se.set_initial_point(PmuStateEstimator(MeasurementSet(grid_5_bus)))
        assert False
    except GridStateError:
        pass
