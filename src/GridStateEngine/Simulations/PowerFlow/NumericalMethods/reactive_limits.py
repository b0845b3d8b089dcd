# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np

from GridStateEngine.basic_structures import Logger, CxVec, IntVec
from GridStateEngine.enumerations import BusMode
from GridStateEngine.exceptions import SlackError
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Simulations.PostProcessing.ac_analysis import compute_bus_power, compute_generator_power


def reactive_power_limit(system: PowerSystem, V: CxVec, logger: Union[Logger, None] = None) -> IntVec:
    """
    Check the generator reactive power of an AC solution against the generator limits.

    The generator outputs are set to the values of the solution. A generator out of its limits
    is clamped and its bus becomes a demand bus. When that happens to the slack bus,
    the first generator bus (insertion order) becomes the slack bus.

    A new solver must be built after this function converts any bus.

    :param system: PowerSystem
    :param V: complex bus voltages of the solution
    :param logger: Logger
    :return: per generator: -1 below the minimum, 1 above the maximum, 0 within limits
    """
    if logger is None:
        logger = system.logger

    bus_types = system.get_bus_types()
    slack = system.get_slack_index()

    Sinj = compute_bus_power(system.get_ac_model().Ybus, V)
    Pg, Qg = compute_generator_power(system, Sinj, bus_types, slack)

    violate = np.zeros(system.get_generator_number(), dtype=int)

    # store the solution outputs
    for k, gen in enumerate(system.generators):
        if gen.active:
            system.update_generator(gen.name, P=Pg[k], Q=Qg[k])

    for k, gen in enumerate(system.generators):

        if not gen.active:
            continue

        qmin, qmax = gen.reactive_limits(Pg[k])
        if qmin >= qmax:
            continue

        bus = gen.bus
        if bus.bus_type == BusMode.PQ_tpe:
            continue

        if Qg[k] < qmin:
            violate[k] = -1
            q_new = qmin
        elif Qg[k] > qmax:
            violate[k] = 1
            q_new = qmax
        else:
            continue

        was_slack = bus.bus_type == BusMode.Slack_tpe

        system.update_generator(gen.name, Q=q_new)
        system.update_bus(bus.name, bus_type=BusMode.PQ_tpe)
        logger.add_info("Generator reactive power out of limits, the bus was converted to demand bus",
                        device=gen.name, device_class="Generator", device_property="Q",
                        value=Qg[k], expected_value=q_new)

        if was_slack:
            new_slack = None
            for candidate in system.buses:
                if candidate.bus_type == BusMode.PV_tpe:
                    new_slack = candidate
                    break

            if new_slack is None:
                raise SlackError("The slack bus was converted to demand bus because of the reactive power limits "
                                 "and there are no generator buses left to become the slack bus")

            system.update_bus(new_slack.name, bus_type=BusMode.Slack_tpe)
            logger.add_info("The slack bus was converted to demand bus, a new slack bus was assigned",
                            device=new_slack.name, device_class="Bus", device_property="bus_type",
                            value=new_slack.name, expected_value=bus.name)

    return violate


def adjust_angle(system: PowerSystem, V: CxVec, slack: int) -> CxVec:
    """
    Refer the voltage angles to a given bus (i.e. the slack bus before the reactive limits moved it)
    :param system: PowerSystem
    :param V: complex bus voltages
    :param slack: index of the reference bus
    :return: voltages rotated so that the reference bus recovers its initial angle
    """
    va0 = system.buses[slack].Va0
    shift = va0 - np.angle(V[slack])
    return V * np.exp(1j * shift)
