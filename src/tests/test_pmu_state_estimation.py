# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *


def pmu_measurements(grid: PowerSystem, defaults=None):
    """
    Optimal placement filled with the exact phasors of a Newton-Raphson solution
    """
    pf = PowerFlowDriver(grid, options=PowerFlowOptions(solver_type=SolverType.NR, tolerance=1e-12)).run()
    assert pf.converged

    placement = pmu_placement(grid)
    ms = MeasurementSet(grid, defaults)
    add_placement_pmus(ms, placement, pf)
    return pf, ms


def test_pmu_estimation_recovers_voltage(grid_5_bus):
    pf, ms = pmu_measurements(grid_5_bus)

    se = PmuStateEstimator(ms)
    se.solve()

    assert np.allclose(se.V, pf.voltage, atol=1e-10)
    assert se.objective_value() < 1e-12


def test_pmu_estimation_correlated(grid_5_bus):
    defaults = MeasurementDefaults(pmu_magnitude_variance=1e-4, pmu_angle_variance=1e-6)
    pf, ms = pmu_measurements(grid_5_bus, defaults)

    se = PmuStateEstimator(ms, correlated_pmu=True)
    se.solve()

    assert se.correlated
    assert np.allclose(se.V, pf.voltage, atol=1e-10)

    # the precision matrix is no longer diagonal
    W = se.W.toarray()
    assert np.count_nonzero(W - np.diag(np.diag(W))) > 0


def test_pmu_estimation_lav(grid_5_bus):
    pf, ms = pmu_measurements(grid_5_bus)

    se = PmuStateEstimator(ms, method=StateEstimationMethod.LAV)
    se.solve()

    assert np.allclose(se.V, pf.voltage, atol=1e-6)


def test_pmu_estimation_orthogonal(grid_5_bus):
    pf, ms = pmu_measurements(grid_5_bus)

    se = PmuStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    se.solve()

    assert np.allclose(se.V, pf.voltage, atol=1e-10)


def test_orthogonal_method_with_correlated_pmus(grid_5_bus):
    defaults = MeasurementDefaults(pmu_magnitude_variance=1e-4, pmu_angle_variance=1e-6, pmu_correlated=True)
    pf, ms = pmu_measurements(grid_5_bus, defaults)

    se = PmuStateEstimator(ms, method=StateEstimationMethod.ORTHOGONAL)
    try:
        se.solve()
        assert False
    except OrthogonalMethodError:
        pass


def test_pmu_angle_update_rebuilds_weights(grid_5_bus):
    """
    The rectangular weights depend on the measured phasor
    """
    defaults = MeasurementDefaults(pmu_magnitude_variance=1e-4, pmu_angle_variance=1e-6)
    pf, ms = pmu_measurements(grid_5_bus, defaults)

    se = PmuStateEstimator(ms)
    se.solve()
    key = se.model_key

    pmu = ms.pmus[0]
    ms.update_device(DeviceType.PmuDevice, pmu.name, angle=pmu.angle + 0.01)
    se.solve()
    assert se.model_key != key


def test_pmu_driver_results(grid_5_bus):
    pf, ms = pmu_measurements(grid_5_bus)

    options = StateEstimationOptions(model=StateEstimationModel.PMU)
    results = StateEstimationDriver(ms, options=options).run()

    assert results.converged
    assert np.allclose(results.voltage, pf.voltage, atol=1e-10)
    assert np.allclose(results.Sf, pf.Sf, atol=1e-8)

    # two rows per PMU
    assert len(results.residuals) == 2 * len(ms.pmus)
