# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np
from GridStateEngine.Devices.Parents.editable_device import EditableDevice
from GridStateEngine.Devices.Substation.bus import Bus
from GridStateEngine.enumerations import DeviceType
from GridStateEngine.exceptions import BranchDefinitionError


class Branch(EditableDevice):
    """
    Unified branch model: a line when the tap module is 1 and the tap phase is 0,
    a transformer (in-phase or phase shifting) otherwise.
    The series element is r + jx, the total shunt element g + jb is split evenly at both ends,
    and the ideal transformer sits at the from side.
    """

    def __init__(self,
                 bus_from: Bus,
                 bus_to: Bus,
                 name: str = 'Branch',
                 idtag: Union[str, None] = None,
                 code: str = '',
                 r: float = 0.0,
                 x: float = 0.0,
                 g: float = 0.0,
                 b: float = 0.0,
                 tap_module: float = 1.0,
                 tap_phase: float = 0.0,
                 active: bool = True,
                 rate: float = 9999.0,
                 angle_min: float = -6.28,
                 angle_max: float = 6.28):
        """
        Branch constructor
        :param bus_from: "From" :ref:`bus<Bus>` object
        :param bus_to: "To" :ref:`bus<Bus>` object
        :param name: Name of the branch (label)
        :param idtag: UUID code
        :param code: secondary ID
        :param r: series resistance (p.u.)
        :param x: series reactance (p.u.)
        :param g: total shunt conductance (p.u.)
        :param b: total shunt susceptance (p.u.)
        :param tap_module: off nominal turns ratio, zero is interpreted as 1
        :param tap_phase: phase shift angle (rad)
        :param active: is the branch in service?
        :param rate: branch rating (p.u.)
        :param angle_min: minimum voltage angle difference (rad)
        :param angle_max: maximum voltage angle difference (rad)
        """
        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                code=code,
                                device_type=DeviceType.BranchDevice)

        if bus_from is None or bus_to is None:
            raise BranchDefinitionError(name, "must be connected to two buses")

        if bus_from == bus_to:
            raise BranchDefinitionError(name, "connects the bus {} with itself".format(bus_from.name))

        if r == 0.0 and x == 0.0:
            raise BranchDefinitionError(name, "has zero series impedance")

        self.bus_from: Bus = bus_from
        self.bus_to: Bus = bus_to

        self.r = float(r)
        self.x = float(x)
        self.g = float(g)
        self.b = float(b)

        self._tap_module = 1.0
        self.tap_module = tap_module
        self.tap_phase = float(tap_phase)

        self.active = bool(active)
        self.rate = float(rate)

        self.angle_min = float(angle_min)
        self.angle_max = float(angle_max)

        self.register(key='bus_from', units='', tpe=DeviceType.BusDevice, definition='Name of the bus at the "from" side', editable=False)
        self.register(key='bus_to', units='', tpe=DeviceType.BusDevice, definition='Name of the bus at the "to" side', editable=False)
        self.register(key='r', units='p.u.', tpe=float, definition='Total series resistance.')
        self.register(key='x', units='p.u.', tpe=float, definition='Total series reactance.')
        self.register(key='g', units='p.u.', tpe=float, definition='Total shunt conductance.')
        self.register(key='b', units='p.u.', tpe=float, definition='Total shunt susceptance.')
        self.register(key='tap_module', units='', tpe=float, definition='Tap changer module, it a value close to 1.0')
        self.register(key='tap_phase', units='rad', tpe=float, definition='Angle shift of the tap changer.')
        self.register(key='active', units='', tpe=bool, definition='Is the branch active?')
        self.register(key='rate', units='p.u.', tpe=float, definition='Thermal rating power')
        self.register(key='angle_min', units='rad', tpe=float, definition='Minimum voltage angle difference.')
        self.register(key='angle_max', units='rad', tpe=float, definition='Maximum voltage angle difference.')

    @property
    def tap_module(self) -> float:
        """
        Tap module getter
        :return: float
        """
        return self._tap_module

    @tap_module.setter
    def tap_module(self, val: float):
        self._tap_module = 1.0 if val == 0.0 else float(val)

    @property
    def ys(self) -> complex:
        """
        Series admittance
        :return: complex
        """
        return 1.0 / complex(self.r, self.x)

    @property
    def ysh(self) -> complex:
        """
        Total shunt admittance
        :return: complex
        """
        return complex(self.g, self.b)

    @property
    def tap(self) -> complex:
        """
        Complex tap ratio alpha = (1 / tau) exp(-j phi)
        :return: complex
        """
        return np.exp(-1j * self.tap_phase) / self.tap_module

    def check_parameters(self) -> None:
        """
        Raise if the current parameter set cannot be modelled
        """
        if self.r == 0.0 and self.x == 0.0:
            raise BranchDefinitionError(self.name, "has zero series impedance")
