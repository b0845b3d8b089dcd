# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *
from tests.conftest import build_3_bus_dc_grid


def test_default_labels(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    v = ms.add_voltmeter("Bus 1", 1.0)
    p1 = ms.add_wattmeter("Bus 2", -0.1)
    p2 = ms.add_wattmeter("Branch 1", 0.05, side=MeasurementSide.From, label="Flow 1")
    p3 = ms.add_wattmeter("Branch 1", -0.05, side=MeasurementSide.To)
    pmu = ms.add_pmu("Bus 3", magnitude=1.0, angle=-0.01)

    assert v.name == "V1"
    assert p1.name == "P1"
    assert p2.name == "Flow 1"
    assert p3.name == "P3"
    assert pmu.name == "PMU1"

    # labels are unique per device class
    q1 = ms.add_varmeter("Bus 2", -0.05)
    assert q1.name == "Q1"


def test_custom_label_templates(grid_3_bus):
    ms = MeasurementSet(grid_3_bus, MeasurementDefaults(wattmeter_label="Watt ?"))
    assert ms.add_wattmeter("Bus 2", 0.0).name == "Watt 1"


def test_duplicated_label(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    ms.add_wattmeter("Bus 2", -0.1, label="A")
    try:
        ms.add_wattmeter("Bus 3", -0.1, label="A")
        assert False
    except LabelError as e:
        assert e.label == "A"


def test_unknown_labels(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    try:
        ms.add_wattmeter("Bus 9", 0.0)
        assert False
    except LabelError:
        pass

    try:
        ms.get_device(DeviceType.WattmeterDevice, "P1")
        assert False
    except LabelError:
        pass


def test_non_positive_variance(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    try:
        ms.add_voltmeter("Bus 1", 1.0, variance=0.0)
        assert False
    except MeasurementError:
        pass

    v = ms.add_voltmeter("Bus 1", 1.0, variance=1e-3)
    try:
        ms.update_device(DeviceType.VoltmeterDevice, v.name, variance=-1.0)
        assert False
    except MeasurementError:
        pass
    assert v.variance == 1e-3


def test_wrong_element(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)

    # a flow measurement needs a branch
    try:
        ms.add_wattmeter(grid_3_bus.buses[0], 0.1, side=MeasurementSide.From)
        assert False
    except MeasurementError:
        pass

    # the element must belong to the monitored system
    other = build_3_bus_dc_grid()
    try:
        ms.add_wattmeter(other.buses[0], 0.1)
        assert False
    except MeasurementError:
        pass


def test_revision(grid_3_bus):
    """
    Only the changes of the rows or the weights increase the revision
    """
    ms = MeasurementSet(grid_3_bus)
    ms.add_wattmeter("Bus 2", -0.1)
    ms.add_pmu("Bus 3", magnitude=1.0, angle=-0.01)
    rev = ms.revision

    ms.update_device(DeviceType.WattmeterDevice, "P1", value=-0.2)
    assert ms.revision == rev

    ms.update_device(DeviceType.WattmeterDevice, "P1", active=False)
    assert ms.revision == rev + 1

    ms.update_device(DeviceType.PmuDevice, "PMU1", angle=-0.02)
    assert ms.revision == rev + 2

    ms.update_device(DeviceType.PmuDevice, "PMU1", variance_angle=1e-4)
    assert ms.revision == rev + 3


def test_label_cannot_be_updated(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    ms.add_wattmeter("Bus 2", -0.1)
    try:
        ms.update_device(DeviceType.WattmeterDevice, "P1", name="P9")
        assert False
    except MeasurementError:
        pass


def test_measurement_set_dataframe(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    ms.add_voltmeter("Bus 1", 1.0)
    ms.add_wattmeter("Branch 2", 0.1, side=MeasurementSide.To)
    ms.add_pmu("Bus 3", magnitude=1.0, angle=-0.01, active=False)

    df = ms.to_df()
    assert df.shape[0] == 3
    assert list(df['Label']) == ["V1", "P1", "PMU1"]
    assert np.isclose(df['Angle'].values[2], -0.01)

    assert ms.get_device_number() == 2
    assert ms.get_device_number(only_active=False) == 3


def test_generated_measurements_are_exact(grid_5_bus):
    pf = PowerFlowDriver(grid_5_bus, options=PowerFlowOptions(solver_type=SolverType.NR, tolerance=1e-12)).run()
    ms = MeasurementSet(grid_5_bus)
    generate_measurements(ms, pf, ammeters=True, pmus=True)

    assert np.isclose(ms.get_device(DeviceType.VoltmeterDevice, "V3").value, pf.Vm[2])
    assert np.isclose(ms.get_device(DeviceType.WattmeterDevice, "P6").value, pf.Sf[0].real)
    assert np.isclose(ms.get_device(DeviceType.VarmeterDevice, "Q13").value, pf.St[0].imag)

    pmu = ms.get_device(DeviceType.PmuDevice, "PMU2")
    assert np.isclose(pmu.magnitude, pf.Vm[1])
    assert np.isclose(pmu.angle, pf.Va[1])


def test_generated_noise_is_reproducible(grid_5_bus):
    pf = PowerFlowDriver(grid_5_bus).run()

    values = list()
    for _ in range(2):
        ms = MeasurementSet(grid_5_bus)
        generate_measurements(ms, pf, noise=True, seed=3)
        values.append([d.value for d in ms.all_devices()])

    assert values[0] == values[1]


def test_pmu_magnitude_variance_update(grid_3_bus):
    ms = MeasurementSet(grid_3_bus)
    pmu = ms.add_pmu("Bus 3", magnitude=1.0, angle=-0.01)
    rev = ms.revision

    ms.update_device(DeviceType.PmuDevice, "PMU1", variance_magnitude=1e-2)
    assert pmu.variance == 1e-2
    assert ms.revision == rev + 1
