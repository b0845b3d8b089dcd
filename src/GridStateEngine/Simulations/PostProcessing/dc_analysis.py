# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np

from GridStateEngine.basic_structures import Vec
from GridStateEngine.Devices.power_system import PowerSystem


def compute_dc_generator_power(system: PowerSystem, Pinj: Vec, slack: int) -> Vec:
    """
    Active power of the generators: the set point, except for the first generator of the slack bus
    that takes whatever the slack bus must provide
    :param system: PowerSystem
    :param Pinj: bus injections (generation - demand)
    :param slack: slack bus index
    :return: P per generator
    """
    Pg = np.zeros(system.get_generator_number())
    gen_idx = {g: k for k, g in enumerate(system.generators)}
    slack_bus = system.buses[slack]
    Pd = system.buses[slack].Pd

    for bus, gens in system.get_generators_by_bus(only_active=True).items():
        for g in gens:
            Pg[gen_idx[g]] = g.P

        if bus is slack_bus:
            Pg[gen_idx[gens[0]]] = Pinj[slack] + Pd - sum(g.P for g in gens[1:])

    return Pg


class DcPowerAnalysis:
    """
    Powers of a DC solution

        Pinj = Bbus · Va + Pshift + Pshunt      (generation - demand per bus)
        Pf = Bf · Va - b · tau                  (flow from the "from" side)
        Pt = -Pf
    """

    def __init__(self, system: PowerSystem, Va: Vec, slack: int):
        """
        :param system: PowerSystem
        :param Va: bus voltage angles (rad)
        :param slack: slack bus index
        """
        dc = system.get_dc_model()
        F, T, R, X, G, B, m, tau, active = system.get_branch_arrays()

        self.Va = Va

        # buses
        self.Pd: Vec = system.get_Sd().real
        self.Pshunt: Vec = dc.Pshunt.copy()
        self.Pinj: Vec = dc.Bbus @ Va + dc.Pshift + dc.Pshunt
        self.Psupply: Vec = system.get_Sgen().real
        self.Psupply[slack] = self.Pinj[slack] + self.Pd[slack]

        # branches
        self.Pf: Vec = dc.Bf @ Va - dc.b * tau
        self.Pt: Vec = -self.Pf

        # generators
        self.Pgen: Vec = compute_dc_generator_power(system, self.Pinj, slack)
