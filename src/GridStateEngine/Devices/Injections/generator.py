# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union, List, Tuple
import numpy as np
from GridStateEngine.Devices.Parents.editable_device import EditableDevice
from GridStateEngine.Devices.Substation.bus import Bus
from GridStateEngine.enumerations import DeviceType, CostModel
from GridStateEngine.exceptions import CostFunctionError


class Generator(EditableDevice):
    """
    Generator attached to a single bus.
    Several generators may share the same bus; the first in-service one sets the bus voltage.
    """

    def __init__(self,
                 bus: Bus,
                 name: str = 'gen',
                 idtag: Union[str, None] = None,
                 code: str = '',
                 P: float = 0.0,
                 Q: float = 0.0,
                 vset: float = 1.0,
                 Pmin: float = 0.0,
                 Pmax: float = np.inf,
                 Qmin: float = -np.inf,
                 Qmax: float = np.inf,
                 lower_active: float = 0.0,
                 min_reactive_lower: float = 0.0,
                 max_reactive_lower: float = 0.0,
                 upper_active: float = 0.0,
                 min_reactive_upper: float = 0.0,
                 max_reactive_upper: float = 0.0,
                 active: bool = True,
                 cost_model: CostModel = CostModel.NoCost,
                 polynomial: Union[List[float], None] = None,
                 piecewise: Union[List[Tuple[float, float]], None] = None):
        """
        Generator constructor
        :param bus: Bus where the generator is connected
        :param name: Name of the generator (label)
        :param idtag: UUID code
        :param code: secondary ID
        :param P: Active power output (p.u.)
        :param Q: Reactive power output (p.u.)
        :param vset: Voltage magnitude set point (p.u.)
        :param Pmin: Minimum active power (p.u.)
        :param Pmax: Maximum active power (p.u.)
        :param Qmin: Minimum reactive power (p.u.)
        :param Qmax: Maximum reactive power (p.u.)
        :param lower_active: lower active power of the capability curve corner (p.u.)
        :param min_reactive_lower: minimum reactive power at lower_active (p.u.)
        :param max_reactive_lower: maximum reactive power at lower_active (p.u.)
        :param upper_active: upper active power of the capability curve corner (p.u.)
        :param min_reactive_upper: minimum reactive power at upper_active (p.u.)
        :param max_reactive_upper: maximum reactive power at upper_active (p.u.)
        :param active: Is the generator in service?
        :param cost_model: CostModel
        :param polynomial: polynomial cost coefficients from the highest to the lowest degree
        :param piecewise: piecewise linear cost points [(P, cost), ...] sorted by increasing power
        """
        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                code=code,
                                device_type=DeviceType.GeneratorDevice)

        self.bus: Bus = bus

        self.P = float(P)
        self.Q = float(Q)
        self.vset = float(vset)

        self.Pmin = float(Pmin)
        self.Pmax = float(Pmax)
        self.Qmin = float(Qmin)
        self.Qmax = float(Qmax)

        # sloped PQ capability curve corners
        self.lower_active = float(lower_active)
        self.min_reactive_lower = float(min_reactive_lower)
        self.max_reactive_lower = float(max_reactive_lower)
        self.upper_active = float(upper_active)
        self.min_reactive_upper = float(min_reactive_upper)
        self.max_reactive_upper = float(max_reactive_upper)

        self.active = bool(active)

        self.cost_model: CostModel = cost_model
        self.polynomial: List[float] = list(polynomial) if polynomial is not None else list()
        self.piecewise: List[Tuple[float, float]] = [(float(p), float(c)) for p, c in piecewise] \
            if piecewise is not None else list()

        self.register(key='bus', units='', tpe=DeviceType.BusDevice, definition='Connection bus', editable=False)
        self.register(key='P', units='p.u.', tpe=float, definition='Active power')
        self.register(key='Q', units='p.u.', tpe=float, definition='Reactive power')
        self.register(key='vset', units='p.u.', tpe=float, definition='Set voltage. This is used for controlled generators.')
        self.register(key='Pmin', units='p.u.', tpe=float, definition='Minimum active power. Used in OPF.')
        self.register(key='Pmax', units='p.u.', tpe=float, definition='Maximum active power. Used in OPF.')
        self.register(key='Qmin', units='p.u.', tpe=float, definition='Minimum reactive power.')
        self.register(key='Qmax', units='p.u.', tpe=float, definition='Maximum reactive power.')
        self.register(key='lower_active', units='p.u.', tpe=float, definition='Lower active power of the capability curve')
        self.register(key='min_reactive_lower', units='p.u.', tpe=float, definition='Minimum reactive power at the lower active power')
        self.register(key='max_reactive_lower', units='p.u.', tpe=float, definition='Maximum reactive power at the lower active power')
        self.register(key='upper_active', units='p.u.', tpe=float, definition='Upper active power of the capability curve')
        self.register(key='min_reactive_upper', units='p.u.', tpe=float, definition='Minimum reactive power at the upper active power')
        self.register(key='max_reactive_upper', units='p.u.', tpe=float, definition='Maximum reactive power at the upper active power')
        self.register(key='active', units='', tpe=bool, definition='Is the generator in service?')
        self.register(key='cost_model', units='', tpe=CostModel, definition='Type of cost function')

    def check_cost(self) -> None:
        """
        Validate the cost function, raising CostFunctionError if it cannot be evaluated
        """
        if self.cost_model == CostModel.Polynomial:
            if len(self.polynomial) == 0:
                raise CostFunctionError(self.name, "has a polynomial cost function without coefficients")

        elif self.cost_model == CostModel.Piecewise:
            if len(self.piecewise) < 2:
                raise CostFunctionError(self.name,
                                        "has a piecewise linear cost function with only one defined point")

            for (p1, c1), (p2, c2) in zip(self.piecewise[:-1], self.piecewise[1:]):
                if p2 == p1:
                    raise CostFunctionError(self.name,
                                            "has a piecewise linear cost function with an infinite slope")
                slope = (c2 - c1) / (p2 - p1)
                if not np.isfinite(slope):
                    raise CostFunctionError(self.name,
                                            "has a piecewise linear cost function slope of {}".format(slope))

    def cost(self, P: Union[float, None] = None) -> float:
        """
        Evaluate the generation cost
        :param P: active power (p.u.), if None the generator set point is used
        :return: cost
        """
        if P is None:
            P = self.P

        if self.cost_model == CostModel.Polynomial:
            self.check_cost()
            return float(np.polyval(self.polynomial, P))

        elif self.cost_model == CostModel.Piecewise:
            self.check_cost()
            pts = np.array(self.piecewise)

            # extrapolate with the slope of the first / last segment
            if P <= pts[0, 0]:
                slope = (pts[1, 1] - pts[0, 1]) / (pts[1, 0] - pts[0, 0])
                return float(pts[0, 1] + slope * (P - pts[0, 0]))
            elif P >= pts[-1, 0]:
                slope = (pts[-1, 1] - pts[-2, 1]) / (pts[-1, 0] - pts[-2, 0])
                return float(pts[-1, 1] + slope * (P - pts[-1, 0]))
            else:
                return float(np.interp(P, pts[:, 0], pts[:, 1]))

        else:
            return 0.0

    def reactive_limits(self, P: Union[float, None] = None) -> Tuple[float, float]:
        """
        Reactive power limits at the given active power, taking the sloped
        capability corners into account when they are defined.
        :param P: active power (p.u.), if None the generator set point is used
        :return: Qmin, Qmax
        """
        if P is None:
            P = self.P

        qmin = self.Qmin
        qmax = self.Qmax

        if self.upper_active > self.lower_active:
            t = (P - self.lower_active) / (self.upper_active - self.lower_active)
            t = min(max(t, 0.0), 1.0)
            qmin = max(qmin, self.min_reactive_lower + t * (self.min_reactive_upper - self.min_reactive_lower))
            qmax = min(qmax, self.max_reactive_lower + t * (self.max_reactive_upper - self.max_reactive_lower))

        return qmin, qmax
