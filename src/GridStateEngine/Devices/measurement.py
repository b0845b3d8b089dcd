# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np
from GridStateEngine.Devices.Parents.editable_device import EditableDevice
from GridStateEngine.Devices.Substation.bus import Bus
from GridStateEngine.Devices.Branches.branch import Branch
from GridStateEngine.enumerations import DeviceType, MeasurementSide
from GridStateEngine.exceptions import MeasurementError

MEASURABLE_OBJECT = Union[Bus, Branch]


def check_variance(name: str, variance: float) -> float:
    """
    Variances must be strictly positive to build the precision matrix
    :param name: name of the device
    :param variance: variance value
    :return: variance as float
    """
    variance = float(variance)
    if not np.isfinite(variance) or variance <= 0.0:
        raise MeasurementError(name, "has a non positive variance ({})".format(variance))
    return variance


class MeasurementTemplate(EditableDevice):
    """
    Measurement device parent class
    """

    def __init__(self,
                 value: float,
                 variance: float,
                 api_obj: MEASURABLE_OBJECT,
                 side: MeasurementSide,
                 active: bool,
                 name: str,
                 idtag: Union[str, None],
                 device_type: DeviceType):
        """
        Constructor
        :param value: measured value (p.u.)
        :param variance: variance of the measurement error
        :param api_obj: Bus or Branch where the device is attached
        :param side: MeasurementSide (Bus, From or To)
        :param active: is the device in service?
        :param name: label of the device
        :param idtag: UUID
        :param device_type: DeviceType
        """
        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                code="",
                                device_type=device_type)

        if side == MeasurementSide.Bus and not isinstance(api_obj, Bus):
            raise MeasurementError(name, "must be attached to a bus")

        if side != MeasurementSide.Bus and not isinstance(api_obj, Branch):
            raise MeasurementError(name, "must be attached to a branch end")

        self.value = float(value)
        self._variance = check_variance(name, variance)
        self.api_object: MEASURABLE_OBJECT = api_obj
        self.side: MeasurementSide = side
        self.active = bool(active)

        self.register("value", tpe=float, definition="Value of the measurement")
        self.register("variance", tpe=float, definition="Variance of the measurement")
        self.register("api_object", tpe=DeviceType.BusDevice, definition="Measured element", editable=False)
        self.register("side", tpe=MeasurementSide, definition="Location of the device", editable=False)
        self.register("active", tpe=bool, definition="Is the device in service?")

    @property
    def variance(self) -> float:
        """
        Variance getter
        :return: float
        """
        return self._variance

    @variance.setter
    def variance(self, val: float):
        self._variance = check_variance(self.name, val)

    @property
    def sigma(self) -> float:
        """
        Standard deviation
        :return: float
        """
        return np.sqrt(self._variance)

    @property
    def at_bus(self) -> bool:
        """
        Is the device measuring a bus quantity?
        """
        return self.side == MeasurementSide.Bus


class Voltmeter(MeasurementTemplate):
    """
    Bus voltage magnitude measurement
    """

    def __init__(self, value: float, variance: float, api_obj: Bus, name="", idtag: Union[str, None] = None,
                 active: bool = True):
        MeasurementTemplate.__init__(self,
                                     value=value,
                                     variance=variance,
                                     api_obj=api_obj,
                                     side=MeasurementSide.Bus,
                                     active=active,
                                     name=name,
                                     idtag=idtag,
                                     device_type=DeviceType.VoltmeterDevice)


class Ammeter(MeasurementTemplate):
    """
    Branch current magnitude measurement at the from or to end
    """

    def __init__(self, value: float, variance: float, api_obj: Branch, side: MeasurementSide = MeasurementSide.From,
                 name="", idtag: Union[str, None] = None, active: bool = True):
        MeasurementTemplate.__init__(self,
                                     value=value,
                                     variance=variance,
                                     api_obj=api_obj,
                                     side=side,
                                     active=active,
                                     name=name,
                                     idtag=idtag,
                                     device_type=DeviceType.AmmeterDevice)


class Wattmeter(MeasurementTemplate):
    """
    Active power measurement: bus injection or branch end flow
    """

    def __init__(self, value: float, variance: float, api_obj: MEASURABLE_OBJECT,
                 side: MeasurementSide = MeasurementSide.Bus,
                 name="", idtag: Union[str, None] = None, active: bool = True):
        MeasurementTemplate.__init__(self,
                                     value=value,
                                     variance=variance,
                                     api_obj=api_obj,
                                     side=side,
                                     active=active,
                                     name=name,
                                     idtag=idtag,
                                     device_type=DeviceType.WattmeterDevice)


class Varmeter(MeasurementTemplate):
    """
    Reactive power measurement: bus injection or branch end flow
    """

    def __init__(self, value: float, variance: float, api_obj: MEASURABLE_OBJECT,
                 side: MeasurementSide = MeasurementSide.Bus,
                 name="", idtag: Union[str, None] = None, active: bool = True):
        MeasurementTemplate.__init__(self,
                                     value=value,
                                     variance=variance,
                                     api_obj=api_obj,
                                     side=side,
                                     active=active,
                                     name=name,
                                     idtag=idtag,
                                     device_type=DeviceType.VarmeterDevice)


class Pmu(MeasurementTemplate):
    """
    Phasor measurement unit.
    At a bus it measures the voltage phasor, at a branch end the current phasor.
    The value is the magnitude, the angle is stored apart with its own variance.
    """

    def __init__(self,
                 magnitude: float,
                 angle: float,
                 variance_magnitude: float,
                 variance_angle: float,
                 api_obj: MEASURABLE_OBJECT,
                 side: MeasurementSide = MeasurementSide.Bus,
                 name="",
                 idtag: Union[str, None] = None,
                 active: bool = True,
                 correlated: bool = False):
        """
        PMU constructor
        :param magnitude: phasor magnitude (p.u.)
        :param angle: phasor angle (rad)
        :param variance_magnitude: variance of the magnitude
        :param variance_angle: variance of the angle
        :param api_obj: Bus or Branch
        :param side: MeasurementSide
        :param name: label
        :param idtag: UUID
        :param active: is the device in service?
        :param correlated: keep the covariance of the rectangular components
        """
        MeasurementTemplate.__init__(self,
                                     value=magnitude,
                                     variance=variance_magnitude,
                                     api_obj=api_obj,
                                     side=side,
                                     active=active,
                                     name=name,
                                     idtag=idtag,
                                     device_type=DeviceType.PmuDevice)

        self.angle = float(angle)
        self._variance_angle = check_variance(name, variance_angle)
        self.correlated = bool(correlated)

        self.register("angle", units='rad', tpe=float, definition="Measured phasor angle")
        self.register("variance_magnitude", tpe=float, definition="Variance of the magnitude measurement")
        self.register("variance_angle", tpe=float, definition="Variance of the angle measurement")
        self.register("correlated", tpe=bool, definition="Keep the rectangular covariance?")

    @property
    def magnitude(self) -> float:
        """
        Measured phasor magnitude
        """
        return self.value

    @magnitude.setter
    def magnitude(self, val: float):
        self.value = float(val)

    @property
    def variance_magnitude(self) -> float:
        """
        Variance of the magnitude
        """
        return self.variance

    @variance_magnitude.setter
    def variance_magnitude(self, val: float):
        self.variance = val

    @property
    def variance_angle(self) -> float:
        """
        Variance of the angle
        """
        return self._variance_angle

    @variance_angle.setter
    def variance_angle(self, val: float):
        self._variance_angle = check_variance(self.name, val)

    def rectangular(self, correlated: Union[bool, None] = None):
        """
        Convert the polar measurement to rectangular components with
        first order propagation of the uncertainty.
        :param correlated: keep the covariance? (the device setting if None)
        :return: z_re, z_im, v_re, v_im, covariance (zero when not correlated)
        """
        correlated = self.correlated if correlated is None else correlated
        c = np.cos(self.angle)
        s = np.sin(self.angle)
        z_re = self.value * c
        z_im = self.value * s
        v_re = self.variance * c * c + self.variance_angle * (self.value * s) ** 2
        v_im = self.variance * s * s + self.variance_angle * (self.value * c) ** 2
        w = s * c * (self.variance - self.variance_angle * self.value ** 2)

        if v_re <= 0.0 or v_im <= 0.0:
            raise MeasurementError(self.name, "has a zero variance in rectangular coordinates")

        if not correlated:
            return z_re, z_im, v_re, v_im, 0.0

        if v_re * v_im - w * w <= 0.0:
            raise MeasurementError(self.name, "has an invalid rectangular covariance matrix")

        return z_re, z_im, v_re, v_im, w
