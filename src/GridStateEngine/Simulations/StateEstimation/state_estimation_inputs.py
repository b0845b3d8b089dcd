# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
import numpy as np
from GridStateEngine.basic_structures import IntVec
from GridStateEngine.enumerations import MeasurementSide
from GridStateEngine.Devices.measurement import Voltmeter, Ammeter, Wattmeter, Varmeter, Pmu, MeasurementTemplate
from GridStateEngine.Devices.measurement_set import MeasurementSet


class StateEstimationInput:
    """
    In-service measurements sorted by the measured quantity,
    with the index of the bus or branch each one refers to
    """

    def __init__(self, measurements: MeasurementSet) -> None:
        """
        State estimation inputs constructor
        :param measurements: MeasurementSet
        """
        system = measurements.system
        bus_dict = system.get_bus_index_dict()
        br_dict = system.get_branch_index_dict()

        self.vm_value: List[Voltmeter] = list()  # voltage magnitude measurements
        self.vm_idx: List[int] = list()  # buses with voltage magnitude measurements

        self.if_value: List[Ammeter] = list()  # current magnitude at the from side
        self.if_idx: List[int] = list()

        self.it_value: List[Ammeter] = list()  # current magnitude at the to side
        self.it_idx: List[int] = list()

        self.p_inj: List[Wattmeter] = list()  # bus active power injections
        self.p_idx: List[int] = list()

        self.pf_value: List[Wattmeter] = list()  # branch active power at the from side
        self.pf_idx: List[int] = list()

        self.pt_value: List[Wattmeter] = list()  # branch active power at the to side
        self.pt_idx: List[int] = list()

        self.q_inj: List[Varmeter] = list()  # bus reactive power injections
        self.q_idx: List[int] = list()

        self.qf_value: List[Varmeter] = list()  # branch reactive power at the from side
        self.qf_idx: List[int] = list()

        self.qt_value: List[Varmeter] = list()  # branch reactive power at the to side
        self.qt_idx: List[int] = list()

        self.pmu_bus: List[Pmu] = list()  # voltage phasors
        self.pmu_bus_idx: List[int] = list()

        self.pmu_from: List[Pmu] = list()  # current phasors at the from side
        self.pmu_from_idx: List[int] = list()

        self.pmu_to: List[Pmu] = list()  # current phasors at the to side
        self.pmu_to_idx: List[int] = list()

        for elm in measurements.voltmeters:
            if elm.active:
                self.vm_value.append(elm)
                self.vm_idx.append(bus_dict[elm.api_object])

        for elm in measurements.ammeters:
            if elm.active:
                if elm.side == MeasurementSide.From:
                    self.if_value.append(elm)
                    self.if_idx.append(br_dict[elm.api_object])
                else:
                    self.it_value.append(elm)
                    self.it_idx.append(br_dict[elm.api_object])

        for elm in measurements.wattmeters:
            if elm.active:
                if elm.side == MeasurementSide.Bus:
                    self.p_inj.append(elm)
                    self.p_idx.append(bus_dict[elm.api_object])
                elif elm.side == MeasurementSide.From:
                    self.pf_value.append(elm)
                    self.pf_idx.append(br_dict[elm.api_object])
                else:
                    self.pt_value.append(elm)
                    self.pt_idx.append(br_dict[elm.api_object])

        for elm in measurements.varmeters:
            if elm.active:
                if elm.side == MeasurementSide.Bus:
                    self.q_inj.append(elm)
                    self.q_idx.append(bus_dict[elm.api_object])
                elif elm.side == MeasurementSide.From:
                    self.qf_value.append(elm)
                    self.qf_idx.append(br_dict[elm.api_object])
                else:
                    self.qt_value.append(elm)
                    self.qt_idx.append(br_dict[elm.api_object])

        for elm in measurements.pmus:
            if elm.active:
                if elm.side == MeasurementSide.Bus:
                    self.pmu_bus.append(elm)
                    self.pmu_bus_idx.append(bus_dict[elm.api_object])
                elif elm.side == MeasurementSide.From:
                    self.pmu_from.append(elm)
                    self.pmu_from_idx.append(br_dict[elm.api_object])
                else:
                    self.pmu_to.append(elm)
                    self.pmu_to_idx.append(br_dict[elm.api_object])

    @staticmethod
    def idx(lst: List[int]) -> IntVec:
        """
        Index list as integer array (also when empty)
        """
        return np.array(lst, dtype=int)

    def get_pmus(self) -> List[Pmu]:
        """
        All the in-service PMUs: voltage phasors first, then the current phasors
        """
        return self.pmu_bus + self.pmu_from + self.pmu_to

    def size(self) -> int:
        """
        Number of in-service devices
        """
        return (len(self.vm_value) + len(self.if_value) + len(self.it_value)
                + len(self.p_inj) + len(self.pf_value) + len(self.pt_value)
                + len(self.q_inj) + len(self.qf_value) + len(self.qt_value)
                + len(self.get_pmus()))

    def get_devices(self) -> List[MeasurementTemplate]:
        """
        All the in-service devices in model order
        """
        return (self.vm_value + self.if_value + self.it_value
                + self.p_inj + self.pf_value + self.pt_value
                + self.q_inj + self.qf_value + self.qt_value
                + self.get_pmus())
