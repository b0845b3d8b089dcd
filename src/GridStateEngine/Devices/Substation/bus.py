# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
from GridStateEngine.Devices.Parents.editable_device import EditableDevice
from GridStateEngine.enumerations import DeviceType, BusMode


class Bus(EditableDevice):
    """
    Bus (node) of the network. It carries the aggregated demand and shunt of the node.
    All the electrical magnitudes are in per unit, the angles in radians.
    """

    def __init__(self,
                 name="Bus",
                 idtag: Union[str, None] = None,
                 code='',
                 bus_type: BusMode = BusMode.PQ_tpe,
                 Pd: float = 0.0,
                 Qd: float = 0.0,
                 Gs: float = 0.0,
                 Bs: float = 0.0,
                 Vnom: float = 10.0,
                 Vm0: float = 1.0,
                 Va0: float = 0.0,
                 vmin: float = 0.9,
                 vmax: float = 1.1,
                 angle_min: float = -6.28,
                 angle_max: float = 6.28,
                 is_slack: bool = False):
        """
        Bus constructor
        :param name: Name of the bus (label)
        :param idtag: Unique identifier, if empty or None, a random one is generated
        :param code: Compatibility id with legacy systems
        :param bus_type: demand (PQ), generator (PV) or slack
        :param Pd: active power demand (p.u.)
        :param Qd: reactive power demand (p.u.)
        :param Gs: shunt conductance (p.u.)
        :param Bs: shunt susceptance (p.u.)
        :param Vnom: Nominal voltage in kV
        :param Vm0: voltage magnitude (p.u.), initial guess and slack set point
        :param Va0: voltage angle (rad), initial guess and slack set point
        :param vmin: Minimum per unit voltage (p.u.)
        :param vmax: Maximum per unit voltage (p.u.)
        :param angle_min: Minimum voltage angle (rad)
        :param angle_max: Maximum voltage angle (rad)
        :param is_slack: shortcut to declare the bus as slack
        """
        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                code=code,
                                device_type=DeviceType.BusDevice)

        self.bus_type: BusMode = BusMode.Slack_tpe if is_slack else bus_type

        self.Pd = float(Pd)
        self.Qd = float(Qd)

        self.Gs = float(Gs)
        self.Bs = float(Bs)

        self.Vnom = float(Vnom)

        self.Vm0 = float(Vm0)
        self.Va0 = float(Va0)

        self.vmin = float(vmin)
        self.vmax = float(vmax)

        self.angle_min = float(angle_min)
        self.angle_max = float(angle_max)

        self.register(key='bus_type', units='', tpe=BusMode, definition='Demand, generator or slack')
        self.register(key='Pd', units='p.u.', tpe=float, definition='Active power demand')
        self.register(key='Qd', units='p.u.', tpe=float, definition='Reactive power demand')
        self.register(key='Gs', units='p.u.', tpe=float, definition='Shunt conductance')
        self.register(key='Bs', units='p.u.', tpe=float, definition='Shunt susceptance')
        self.register(key='Vnom', units='kV', tpe=float, definition='Nominal line voltage of the bus.')
        self.register(key='Vm0', units='p.u.', tpe=float, definition='Voltage magnitude')
        self.register(key='Va0', units='rad', tpe=float, definition='Voltage angle')
        self.register(key='vmin', units='p.u.', tpe=float, definition='Lower range of allowed voltage module.')
        self.register(key='vmax', units='p.u.', tpe=float, definition='Higher range of allowed voltage module.')
        self.register(key='angle_min', units='rad', tpe=float, definition='Lower range of allowed voltage angle.')
        self.register(key='angle_max', units='rad', tpe=float, definition='Higher range of allowed voltage angle.')

    @property
    def is_slack(self) -> bool:
        """
        Is this the slack bus?
        """
        return self.bus_type == BusMode.Slack_tpe
