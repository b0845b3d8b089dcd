# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Union, Sequence
import numpy as np

from GridStateEngine.enumerations import MeasurementSide
from GridStateEngine.Devices.measurement import Voltmeter, Ammeter, Wattmeter, Varmeter, Pmu
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults

LabelList = Union[Sequence[str], None]


class MeasurementGenerator:
    """
    Add measurement devices whose values come from a power flow solution.
    With noise=True a Gaussian error of the device variance is added to each value.

    The bus and branch lists are labels; None means every bus or branch.
    """

    def __init__(self,
                 measurements: MeasurementSet,
                 results: PowerFlowResults,
                 noise: bool = False,
                 seed: Union[int, None] = None):
        """
        :param measurements: MeasurementSet to fill
        :param results: PowerFlowResults of the same system
        :param noise: add Gaussian errors?
        :param seed: seed of the random generator
        """
        self.measurements = measurements
        self.system = measurements.system
        self.results = results
        self.noise = noise
        self.rng = np.random.default_rng(seed)

    def sample(self, exact: float, variance: float) -> float:
        """
        Measured value of an exact quantity
        """
        if self.noise:
            return float(exact + self.rng.normal(0.0, np.sqrt(variance)))
        return float(exact)

    def _buses(self, buses: LabelList) -> List[int]:
        if buses is None:
            return list(range(self.system.get_bus_number()))
        return [self.system.bus_index(lbl) for lbl in buses]

    def _branches(self, branches: LabelList) -> List[int]:
        if branches is None:
            return list(range(self.system.get_branch_number()))
        return [self.system.branch_index(lbl) for lbl in branches]

    def add_voltmeters(self, buses: LabelList = None) -> List[Voltmeter]:
        """
        Voltage magnitude at the buses
        """
        var = self.measurements.defaults.voltmeter_variance
        Vm = self.results.Vm
        return [self.measurements.add_voltmeter(self.system.buses[i], self.sample(Vm[i], var), variance=var)
                for i in self._buses(buses)]

    def add_ammeters(self, branches: LabelList = None,
                     side: MeasurementSide = MeasurementSide.From) -> List[Ammeter]:
        """
        Current magnitude at one end of the branches
        """
        var = self.measurements.defaults.ammeter_variance
        I = self.results.If if side == MeasurementSide.From else self.results.It
        return [self.measurements.add_ammeter(self.system.branches[k], self.sample(np.abs(I[k]), var),
                                              side=side, variance=var)
                for k in self._branches(branches)]

    def _powers(self, side: MeasurementSide):
        if side == MeasurementSide.Bus:
            return self.results.Sbus
        elif side == MeasurementSide.From:
            return self.results.Sf
        else:
            return self.results.St

    def _elements(self, side: MeasurementSide, labels: LabelList):
        if side == MeasurementSide.Bus:
            return [(i, self.system.buses[i]) for i in self._buses(labels)]
        return [(k, self.system.branches[k]) for k in self._branches(labels)]

    def add_wattmeters(self, labels: LabelList = None,
                       side: MeasurementSide = MeasurementSide.Bus) -> List[Wattmeter]:
        """
        Active power injection at the buses (side=Bus) or active power flow at one end of the branches
        """
        var = self.measurements.defaults.wattmeter_variance
        S = self._powers(side)
        return [self.measurements.add_wattmeter(elm, self.sample(S[i].real, var), side=side, variance=var)
                for i, elm in self._elements(side, labels)]

    def add_varmeters(self, labels: LabelList = None,
                      side: MeasurementSide = MeasurementSide.Bus) -> List[Varmeter]:
        """
        Reactive power injection at the buses (side=Bus) or reactive power flow at one end of the branches
        """
        var = self.measurements.defaults.varmeter_variance
        S = self._powers(side)
        return [self.measurements.add_varmeter(elm, self.sample(S[i].imag, var), side=side, variance=var)
                for i, elm in self._elements(side, labels)]

    def add_pmus(self, labels: LabelList = None,
                 side: MeasurementSide = MeasurementSide.Bus) -> List[Pmu]:
        """
        Voltage phasors at the buses (side=Bus) or current phasors at one end of the branches
        """
        var_m = self.measurements.defaults.pmu_magnitude_variance
        var_a = self.measurements.defaults.pmu_angle_variance

        if side == MeasurementSide.Bus:
            X = self.results.voltage
        elif side == MeasurementSide.From:
            X = self.results.If
        else:
            X = self.results.It

        return [self.measurements.add_pmu(elm,
                                          magnitude=self.sample(np.abs(X[i]), var_m),
                                          angle=self.sample(np.angle(X[i]), var_a),
                                          side=side,
                                          variance_magnitude=var_m,
                                          variance_angle=var_a)
                for i, elm in self._elements(side, labels)]


def generate_measurements(measurements: MeasurementSet,
                          results: PowerFlowResults,
                          voltmeters: bool = True,
                          ammeters: bool = False,
                          wattmeters: bool = True,
                          varmeters: bool = True,
                          pmus: bool = False,
                          noise: bool = False,
                          seed: Union[int, None] = None) -> MeasurementSet:
    """
    Fill a measurement set with devices at every bus and at both ends of every branch
    :param measurements: MeasurementSet
    :param results: PowerFlowResults
    :param voltmeters: add bus voltmeters?
    :param ammeters: add branch ammeters (both ends)?
    :param wattmeters: add bus and branch (both ends) wattmeters?
    :param varmeters: add bus and branch (both ends) varmeters?
    :param pmus: add bus voltage PMUs?
    :param noise: add Gaussian errors?
    :param seed: random seed
    :return: the same MeasurementSet
    """
    gen = MeasurementGenerator(measurements, results, noise=noise, seed=seed)
    branch_sides = (MeasurementSide.From, MeasurementSide.To)

    if voltmeters:
        gen.add_voltmeters()

    if ammeters:
        for side in branch_sides:
            gen.add_ammeters(side=side)

    if wattmeters:
        for side in (MeasurementSide.Bus,) + branch_sides:
            gen.add_wattmeters(side=side)

    if varmeters:
        for side in (MeasurementSide.Bus,) + branch_sides:
            gen.add_varmeters(side=side)

    if pmus:
        gen.add_pmus(side=MeasurementSide.Bus)

    return measurements
