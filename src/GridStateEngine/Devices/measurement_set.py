# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List, Union
import numpy as np
import pandas as pd
from GridStateEngine.Devices.Substation.bus import Bus
from GridStateEngine.Devices.Branches.branch import Branch
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Devices.measurement import (MeasurementTemplate, Voltmeter, Ammeter, Wattmeter,
                                                 Varmeter, Pmu, MEASURABLE_OBJECT)
from GridStateEngine.enumerations import MeasurementSide, DeviceType
from GridStateEngine.exceptions import ConfigurationError, LabelError, MeasurementError


class MeasurementDefaults:
    """
    Default values used when a measurement device is added without them.
    Labels are generated from the templates replacing "?" by the device count.
    """

    def __init__(self,
                 voltmeter_variance: float = 1e-2,
                 ammeter_variance: float = 1e-2,
                 wattmeter_variance: float = 1e-2,
                 varmeter_variance: float = 1e-2,
                 pmu_magnitude_variance: float = 1e-5,
                 pmu_angle_variance: float = 1e-5,
                 active: bool = True,
                 pmu_correlated: bool = False,
                 voltmeter_label: str = "V?",
                 ammeter_label: str = "I?",
                 wattmeter_label: str = "P?",
                 varmeter_label: str = "Q?",
                 pmu_label: str = "PMU?"):
        """
        :param voltmeter_variance: default voltmeter variance
        :param ammeter_variance: default ammeter variance
        :param wattmeter_variance: default wattmeter variance
        :param varmeter_variance: default varmeter variance
        :param pmu_magnitude_variance: default PMU magnitude variance
        :param pmu_angle_variance: default PMU angle variance
        :param active: default in-service status
        :param pmu_correlated: keep the covariance of the PMU rectangular components
        :param voltmeter_label: label template
        :param ammeter_label: label template
        :param wattmeter_label: label template
        :param varmeter_label: label template
        :param pmu_label: label template
        """
        self.voltmeter_variance = voltmeter_variance
        self.ammeter_variance = ammeter_variance
        self.wattmeter_variance = wattmeter_variance
        self.varmeter_variance = varmeter_variance
        self.pmu_magnitude_variance = pmu_magnitude_variance
        self.pmu_angle_variance = pmu_angle_variance
        self.active = active
        self.pmu_correlated = pmu_correlated
        self.voltmeter_label = voltmeter_label
        self.ammeter_label = ammeter_label
        self.wattmeter_label = wattmeter_label
        self.varmeter_label = varmeter_label
        self.pmu_label = pmu_label


class MeasurementSet:
    """
    Collection of measurement devices placed on a PowerSystem.
    Devices are referred to by their label, unique per device class.
    """

    def __init__(self, system: PowerSystem, defaults: Union[MeasurementDefaults, None] = None):
        """
        Constructor
        :param system: PowerSystem being monitored
        :param defaults: MeasurementDefaults
        """
        self.system = system

        self.defaults = defaults if defaults is not None else MeasurementDefaults()

        self.voltmeters: List[Voltmeter] = list()
        self.ammeters: List[Ammeter] = list()
        self.wattmeters: List[Wattmeter] = list()
        self.varmeters: List[Varmeter] = list()
        self.pmus: List[Pmu] = list()

        self._dicts: Dict[DeviceType, Dict[str, MeasurementTemplate]] = {
            DeviceType.VoltmeterDevice: dict(),
            DeviceType.AmmeterDevice: dict(),
            DeviceType.WattmeterDevice: dict(),
            DeviceType.VarmeterDevice: dict(),
            DeviceType.PmuDevice: dict(),
        }

        # number of modifications that change the set of rows of the estimation models
        self.revision = 0

    def _lists(self) -> Dict[DeviceType, List[MeasurementTemplate]]:
        return {
            DeviceType.VoltmeterDevice: self.voltmeters,
            DeviceType.AmmeterDevice: self.ammeters,
            DeviceType.WattmeterDevice: self.wattmeters,
            DeviceType.VarmeterDevice: self.varmeters,
            DeviceType.PmuDevice: self.pmus,
        }

    def _make_label(self, template: str, device_type: DeviceType, label: Union[str, None]) -> str:
        if label is None:
            n = len(self._dicts[device_type])
            label = template.replace("?", str(n + 1))
            while label in self._dicts[device_type]:
                n += 1
                label = template.replace("?", str(n + 1))
        elif label in self._dicts[device_type]:
            raise LabelError(label, device_type.value, "has already been defined")
        return label

    def _check_element(self, name: str, element: MEASURABLE_OBJECT) -> None:
        if isinstance(element, Bus):
            ok = self.system.has_bus(element)
        elif isinstance(element, Branch):
            ok = self.system.has_branch(element)
        else:
            ok = False
        if not ok:
            raise MeasurementError(name, "is attached to an element that does not belong to the power system")

    def _resolve(self, element: Union[str, MEASURABLE_OBJECT], side: MeasurementSide) -> MEASURABLE_OBJECT:
        if isinstance(element, str):
            if side == MeasurementSide.Bus:
                return self.system.get_bus(element)
            else:
                return self.system.get_branch(element)
        return element

    def add_device(self, device: MeasurementTemplate) -> MeasurementTemplate:
        """
        Add an already built device
        :param device: measurement device
        :return: the device
        """
        d = self._dicts[device.device_type]
        if device.name in d:
            raise LabelError(device.name, device.device_type.value, "has already been defined")
        self._check_element(device.name, device.api_object)
        d[device.name] = device
        self._lists()[device.device_type].append(device)
        self.revision += 1
        return device

    def add_voltmeter(self, bus: Union[str, Bus], value: float, variance: Union[float, None] = None,
                      active: Union[bool, None] = None, label: Union[str, None] = None) -> Voltmeter:
        """
        Add a voltmeter
        :param bus: Bus or bus label
        :param value: voltage magnitude (p.u.)
        :param variance: variance, the default is used if None
        :param active: in service?, the default is used if None
        :param label: device label, generated if None
        :return: Voltmeter
        """
        label = self._make_label(self.defaults.voltmeter_label, DeviceType.VoltmeterDevice, label)
        dev = Voltmeter(value=value,
                        variance=self.defaults.voltmeter_variance if variance is None else variance,
                        api_obj=self._resolve(bus, MeasurementSide.Bus),
                        name=label,
                        active=self.defaults.active if active is None else active)
        return self.add_device(dev)

    def add_ammeter(self, branch: Union[str, Branch], value: float, side: MeasurementSide = MeasurementSide.From,
                    variance: Union[float, None] = None, active: Union[bool, None] = None,
                    label: Union[str, None] = None) -> Ammeter:
        """
        Add an ammeter
        :param branch: Branch or branch label
        :param value: current magnitude (p.u.)
        :param side: From or To
        :param variance: variance, the default is used if None
        :param active: in service?, the default is used if None
        :param label: device label, generated if None
        :return: Ammeter
        """
        label = self._make_label(self.defaults.ammeter_label, DeviceType.AmmeterDevice, label)
        dev = Ammeter(value=value,
                      variance=self.defaults.ammeter_variance if variance is None else variance,
                      api_obj=self._resolve(branch, side),
                      side=side,
                      name=label,
                      active=self.defaults.active if active is None else active)
        return self.add_device(dev)

    def add_wattmeter(self, element: Union[str, MEASURABLE_OBJECT], value: float,
                      side: MeasurementSide = MeasurementSide.Bus,
                      variance: Union[float, None] = None, active: Union[bool, None] = None,
                      label: Union[str, None] = None) -> Wattmeter:
        """
        Add a wattmeter
        :param element: Bus / Branch or its label
        :param value: active power (p.u.)
        :param side: Bus, From or To
        :param variance: variance, the default is used if None
        :param active: in service?, the default is used if None
        :param label: device label, generated if None
        :return: Wattmeter
        """
        label = self._make_label(self.defaults.wattmeter_label, DeviceType.WattmeterDevice, label)
        dev = Wattmeter(value=value,
                        variance=self.defaults.wattmeter_variance if variance is None else variance,
                        api_obj=self._resolve(element, side),
                        side=side,
                        name=label,
                        active=self.defaults.active if active is None else active)
        return self.add_device(dev)

    def add_varmeter(self, element: Union[str, MEASURABLE_OBJECT], value: float,
                     side: MeasurementSide = MeasurementSide.Bus,
                     variance: Union[float, None] = None, active: Union[bool, None] = None,
                     label: Union[str, None] = None) -> Varmeter:
        """
        Add a varmeter
        :param element: Bus / Branch or its label
        :param value: reactive power (p.u.)
        :param side: Bus, From or To
        :param variance: variance, the default is used if None
        :param active: in service?, the default is used if None
        :param label: device label, generated if None
        :return: Varmeter
        """
        label = self._make_label(self.defaults.varmeter_label, DeviceType.VarmeterDevice, label)
        dev = Varmeter(value=value,
                       variance=self.defaults.varmeter_variance if variance is None else variance,
                       api_obj=self._resolve(element, side),
                       side=side,
                       name=label,
                       active=self.defaults.active if active is None else active)
        return self.add_device(dev)

    def add_pmu(self, element: Union[str, MEASURABLE_OBJECT], magnitude: float, angle: float,
                side: MeasurementSide = MeasurementSide.Bus,
                variance_magnitude: Union[float, None] = None, variance_angle: Union[float, None] = None,
                active: Union[bool, None] = None, correlated: Union[bool, None] = None,
                label: Union[str, None] = None) -> Pmu:
        """
        Add a phasor measurement unit
        :param element: Bus / Branch or its label
        :param magnitude: phasor magnitude (p.u.)
        :param angle: phasor angle (rad)
        :param side: Bus (voltage phasor), From or To (current phasor)
        :param variance_magnitude: variance, the default is used if None
        :param variance_angle: variance, the default is used if None
        :param active: in service?, the default is used if None
        :param correlated: keep the rectangular covariance? the default is used if None
        :param label: device label, generated if None
        :return: Pmu
        """
        label = self._make_label(self.defaults.pmu_label, DeviceType.PmuDevice, label)
        vm = self.defaults.pmu_magnitude_variance if variance_magnitude is None else variance_magnitude
        va = self.defaults.pmu_angle_variance if variance_angle is None else variance_angle
        dev = Pmu(magnitude=magnitude,
                  angle=angle,
                  variance_magnitude=vm,
                  variance_angle=va,
                  api_obj=self._resolve(element, side),
                  side=side,
                  name=label,
                  active=self.defaults.active if active is None else active,
                  correlated=self.defaults.pmu_correlated if correlated is None else correlated)
        return self.add_device(dev)

    def get_device(self, device_type: DeviceType, label: str) -> MeasurementTemplate:
        """
        Get a device by label
        :param device_type: DeviceType
        :param label: device label
        :return: measurement device
        """
        try:
            return self._dicts[device_type][label]
        except KeyError:
            raise LabelError(label, device_type.value)

    def update_device(self, device_type: DeviceType, label: str, **kwargs) -> MeasurementTemplate:
        """
        Update the value, variance or status of a device
        :param device_type: DeviceType
        :param label: device label
        :param kwargs: property=value
        :return: the device
        """
        dev = self.get_device(device_type, label)
        for key, val in kwargs.items():
            if not dev.is_editable(key) or key in ('name', 'idtag', 'code'):
                raise MeasurementError(label, "does not allow updating {}".format(key))
            setattr(dev, key, val)
        # the status and the variances change the rows or the weights of the estimation models,
        # the PMU weights also depend on the measured phasor
        changed = set(kwargs)
        if changed & {'active', 'variance', 'variance_angle', 'variance_magnitude', 'correlated'}:
            self.revision += 1
        elif isinstance(dev, Pmu) and changed & {'value', 'angle'}:
            self.revision += 1
        return dev

    def set_status(self,
                   device_type: Union[DeviceType, None] = None,
                   inservice: Union[int, None] = None,
                   outservice: Union[int, None] = None,
                   redundancy: Union[float, None] = None,
                   side: Union[MeasurementSide, None] = None,
                   seed: Union[int, None] = None) -> List[MeasurementTemplate]:
        """
        Put devices in or out of service at random.

        Exactly one of inservice, outservice or redundancy is given. The redundancy is
        the ratio between the number of in-service devices and the 2n - 1 states of the
        network, clipped to the number of candidate devices.

        :param device_type: DeviceType of the candidates, all the devices if None
        :param inservice: number of candidates left in service, the rest go out of service
        :param outservice: number of candidates put out of service, the rest stay in service
        :param redundancy: redundancy of the in-service candidates
        :param side: Bus, From or To, to pick only the candidates at that location
        :param seed: seed of the random generator
        :return: the candidates that are in service
        """
        if sum(x is not None for x in (inservice, outservice, redundancy)) != 1:
            raise ConfigurationError("Exactly one of inservice, outservice or redundancy must be given")

        if device_type is None:
            candidates = self.all_devices()
        else:
            candidates = list(self._lists()[device_type])

        if side is not None:
            candidates = [d for d in candidates if d.side == side]

        if redundancy is not None:
            n_states = 2 * self.system.get_bus_number() - 1
            redundancy = min(redundancy, len(candidates) / n_states)
            inservice = int(round(redundancy * n_states))

        if inservice is not None:
            count, initial, final = inservice, False, True
        else:
            count, initial, final = outservice, True, False

        if count < 0 or count > len(candidates):
            raise ConfigurationError("{0} devices requested for a status change, {1} available".format(
                count, len(candidates)))

        rng = np.random.default_rng(seed)
        for d in candidates:
            d.active = initial
        for k in rng.permutation(len(candidates))[:count]:
            candidates[k].active = final

        self.revision += 1
        return [d for d in candidates if d.active]

    def all_devices(self) -> List[MeasurementTemplate]:
        """
        All the devices, grouped by type
        """
        return self.voltmeters + self.ammeters + self.wattmeters + self.varmeters + self.pmus

    def get_device_number(self, only_active: bool = True) -> int:
        """
        Number of devices
        :param only_active: count only the in-service devices
        """
        return sum(1 for d in self.all_devices() if d.active or not only_active)

    def to_df(self) -> pd.DataFrame:
        """
        Get the devices as a DataFrame
        """
        data = list()
        for d in self.all_devices():
            angle = d.angle if isinstance(d, Pmu) else None
            var_angle = d.variance_angle if isinstance(d, Pmu) else None
            data.append([d.device_type.value, d.name, d.api_object.name, d.side.value,
                         d.value, angle, d.variance, var_angle, d.active])
        return pd.DataFrame(data=data, columns=['Type', 'Label', 'Element', 'Side', 'Value', 'Angle',
                                                'Variance', 'Angle variance', 'Active'])
