# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *
from GridStateEngine.Simulations.StateEstimation.bad_data import normalized_residuals


def build_measurements(grid: PowerSystem):
    """
    Exact injections at every bus and flows at both ends of every branch.
    Labels: P1..P5 injections, P6..P12 "from" flows, P13..P19 "to" flows
    """
    pf = PowerFlowDriver(grid, options=PowerFlowOptions(solver_type=SolverType.DC)).run()
    ms = MeasurementSet(grid, MeasurementDefaults(wattmeter_variance=1e-4))
    generate_measurements(ms, pf, voltmeters=False, wattmeters=True, varmeters=False)
    return pf, ms


def test_gross_error_is_detected(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    watt = ms.get_device(DeviceType.WattmeterDevice, "P8")
    assert watt.side == MeasurementSide.From
    ms.update_device(DeviceType.WattmeterDevice, "P8", value=watt.value + 1.0)

    logger = Logger()
    se = DcStateEstimator(ms, logger=logger)
    se.solve()

    bad = residual_test(se, threshold=3.0)
    assert bad.detect
    assert bad.label == "P8"
    assert bad.device_type == DeviceType.WattmeterDevice
    assert bad.max_normalized_residual > 3.0

    # the device was put out of service
    assert not ms.get_device(DeviceType.WattmeterDevice, "P8").active
    assert logger.contains("Measurement deleted")

    # the remaining measurements are consistent
    se.solve()
    bad = residual_test(se, threshold=3.0)
    assert not bad.detect
    assert np.allclose(se.get_Va(), pf.Va, atol=1e-10)


def test_normalized_residuals_match_dense_computation(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    ms.update_device(DeviceType.WattmeterDevice, "P3", value=-0.2)
    ms.update_device(DeviceType.WattmeterDevice, "P10", value=0.1)

    se = DcStateEstimator(ms)
    se.solve()

    H = se.H_red.toarray()
    W = se.W.toarray()
    G = H.T @ W @ H
    omega = np.diag(se.variances) - H @ np.linalg.inv(G) @ H.T
    expected = np.abs(se.residual) / np.sqrt(np.abs(np.diag(omega)))

    assert np.allclose(normalized_residuals(se), expected, rtol=1e-8)


def test_no_bad_data_in_consistent_set(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    se = DcStateEstimator(ms)
    se.solve()
    bad = residual_test(se)
    assert not bad.detect
    assert all(d.active for d in ms.wattmeters)


def test_residual_test_with_orthogonal_method(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    ms.update_device(DeviceType.WattmeterDevice, "P15", value=ms.get_device(DeviceType.WattmeterDevice, "P15").value - 1.0)

    se = DcStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    se.solve()
    bad = residual_test(se)
    assert bad.detect
    assert bad.label == "P15"


def test_residual_test_does_not_apply_to_lav(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    ms.update_device(DeviceType.WattmeterDevice, "P8", value=5.0)

    logger = Logger()
    se = DcStateEstimator(ms, method=StateEstimationMethod.LAV, logger=logger)
    se.solve()
    bad = residual_test(se)

    assert not bad.detect
    assert ms.get_device(DeviceType.WattmeterDevice, "P8").active
    assert logger.contains("least absolute value")


def test_residual_test_requires_a_solution(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    se = DcStateEstimator(ms)
    try:
        residual_test(se)
        assert False
    except GridStateError:
        pass


def test_driver_removes_bad_data(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    ms.update_device(DeviceType.WattmeterDevice, "P8", value=ms.get_device(DeviceType.WattmeterDevice, "P8").value + 1.0)

    options = StateEstimationOptions(model=StateEstimationModel.DC, max_bad_data_passes=3)
    results = StateEstimationDriver(ms, options=options).run()

    assert len(results.bad_data) == 1
    assert results.bad_data[0].label == "P8"
    assert np.allclose(results.Va, pf.Va, atol=1e-10)

    df = results.get_bad_data_df()
    assert list(df['Label']) == ["P8"]

    # two passes: the detection and the clean solution
    assert results.convergence_reports[0].bad_data_detected == [True, False]


def test_driver_without_passes_keeps_bad_data(grid_5_bus):
    pf, ms = build_measurements(grid_5_bus)
    ms.update_device(DeviceType.WattmeterDevice, "P8", value=ms.get_device(DeviceType.WattmeterDevice, "P8").value + 1.0)

    results = StateEstimationDriver(ms).run()

    assert len(results.bad_data) == 0
    assert ms.get_device(DeviceType.WattmeterDevice, "P8").active
    assert not np.allclose(results.Va, pf.Va, atol=1e-6)
