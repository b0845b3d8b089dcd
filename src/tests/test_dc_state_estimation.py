# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *


def dc_power_flow(grid: PowerSystem) -> PowerFlowResults:
    options = PowerFlowOptions(solver_type=SolverType.DC)
    return PowerFlowDriver(grid, options=options).run()


def dc_measurements(grid: PowerSystem, results: PowerFlowResults) -> MeasurementSet:
    """
    Injections at every bus and flows at both ends of every branch, without errors
    """
    ms = MeasurementSet(grid, MeasurementDefaults(wattmeter_variance=1e-4))
    generate_measurements(ms, results, voltmeters=False, wattmeters=True, varmeters=False)
    return ms


def test_dc_state_estimation_recovers_power_flow(grid_3_bus):
    pf = dc_power_flow(grid_3_bus)
    ms = dc_measurements(grid_3_bus, pf)

    se = DcStateEstimator(ms)
    se.solve()

    assert se.solved
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-12)
    assert np.allclose(se.get_Vm(), 1.0)
    assert se.objective_value() < 1e-16

    # the slack angle stays at its initial value
    assert se.get_Va()[0] == 0.0


def test_dc_state_estimation_5_bus(grid_5_bus):
    pf = dc_power_flow(grid_5_bus)
    ms = dc_measurements(grid_5_bus, pf)

    results = StateEstimationDriver(ms).run()

    assert results.converged
    assert np.allclose(results.Va, pf.Va, atol=1e-10)
    assert np.allclose(results.Sf.real, pf.Sf.real, atol=1e-10)
    assert np.allclose(results.residuals, 0.0, atol=1e-10)

    # 5 injections + 7 "from" flows + 7 "to" flows
    assert len(results.get_residuals_df()) == 19


def test_dc_estimation_methods_agree(grid_5_bus):
    """
    With consistent measurements the normal equations, the orthogonal method and LAV coincide
    """
    pf = dc_power_flow(grid_5_bus)
    ms = dc_measurements(grid_5_bus, pf)

    wls = DcStateEstimator(ms, method=StateEstimationMethod.WLS)
    wls.solve()

    ort = DcStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    ort.solve()

    lav = DcStateEstimator(ms, method=StateEstimationMethod.LAV)
    lav.solve()

    assert np.allclose(wls.get_Va(), pf.Va, atol=1e-10)
    assert np.allclose(ort.get_Va(), wls.get_Va(), atol=1e-10)
    assert np.allclose(lav.get_Va(), wls.get_Va(), atol=1e-6)


def test_dc_wls_with_noise_is_close(grid_5_bus):
    pf = dc_power_flow(grid_5_bus)
    ms = MeasurementSet(grid_5_bus, MeasurementDefaults(wattmeter_variance=1e-6))
    generate_measurements(ms, pf, voltmeters=False, wattmeters=True, varmeters=False, noise=True, seed=1)

    wls = DcStateEstimator(ms)
    wls.solve()
    ort = DcStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    ort.solve()

    assert np.allclose(wls.get_Va(), pf.Va, atol=1e-2)
    assert np.allclose(ort.get_Va(), wls.get_Va(), atol=1e-9)
    assert np.isclose(ort.objective_value(), wls.objective_value())


def test_dc_bus_pmu_rows(grid_3_bus):
    """
    A voltage phasor measures the bus angle directly
    """
    pf = dc_power_flow(grid_3_bus)
    ms = MeasurementSet(grid_3_bus)
    ms.add_pmu("Bus 2", magnitude=1.0, angle=pf.Va[1])
    ms.add_pmu("Bus 3", magnitude=1.0, angle=pf.Va[2])

    # varmeters and voltmeters are ignored by the DC model
    ms.add_varmeter("Bus 2", value=0.3)
    ms.add_voltmeter("Bus 2", value=1.02)

    se = DcStateEstimator(ms)
    se.solve()

    assert len(se.row_devices) == 2
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-12)


def test_dc_model_reuse(grid_3_bus):
    """
    A value change keeps the model; a variance change rebuilds it
    """
    pf = dc_power_flow(grid_3_bus)
    ms = dc_measurements(grid_3_bus, pf)
    logger = Logger()

    se = DcStateEstimator(ms, logger=logger)
    se.solve()
    key = se.model_key
    factorization = se.gain_factorization

    ms.update_device(DeviceType.WattmeterDevice, "P2", value=-0.2)
    se.solve()
    assert se.model_key == key
    assert se.gain_factorization is factorization
    assert not logger.contains("rebuilt")

    ms.update_device(DeviceType.WattmeterDevice, "P2", variance=1e-3)
    se.solve()
    assert se.model_key != key
    assert se.gain_factorization is not factorization
    assert logger.contains("rebuilt")

    # a network change also rebuilds the model
    key = se.model_key
    grid_3_bus.update_branch("Branch 1", x=0.06)
    se.solve()
    assert se.model_key != key


def test_dc_unobservable_system_fails(grid_3_bus):
    """
    A single measurement cannot estimate two angles
    """
    ms = MeasurementSet(grid_3_bus)
    ms.add_wattmeter("Bus 2", value=-0.1)

    se = DcStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    try:
        se.solve()
        assert False
    except NumericalError:
        pass


def test_results_before_solve(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    se = DcStateEstimator(ms)
    try:
        se.get_results()
        assert False
    except GridStateError:
        pass
