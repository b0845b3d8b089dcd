# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from pathlib import Path

import pytest
from GridStateEngine.api import *

ROOT_PATH = Path(__file__).parent

# IEEE 14-bus topology (bus labels "Bus 1" ... "Bus 14")
IEEE14_BRANCHES = [(1, 2), (1, 5), (2, 3), (2, 4), (2, 5), (3, 4), (4, 5), (4, 7), (4, 9), (5, 6),
                   (6, 11), (6, 12), (6, 13), (12, 13), (14, 13), (14, 9), (9, 10), (10, 11), (9, 7), (7, 8)]


@pytest.fixture
def root_path():
    return ROOT_PATH


def build_3_bus_dc_grid() -> PowerSystem:
    """
    Slack at bus 1 with a 3.2 p.u. generator, demands at buses 2 and 3
    """
    grid = PowerSystem(name="3 bus")
    b1 = grid.add_bus(Bus(name="Bus 1", is_slack=True))
    b2 = grid.add_bus(Bus(name="Bus 2", Pd=0.1))
    b3 = grid.add_bus(Bus(name="Bus 3", Pd=0.05))

    grid.add_branch(Branch(bus_from=b1, bus_to=b2, name="Branch 1", x=0.05))
    grid.add_branch(Branch(bus_from=b1, bus_to=b3, name="Branch 2", x=0.01))
    grid.add_branch(Branch(bus_from=b2, bus_to=b3, name="Branch 3", x=0.01))

    grid.add_generator(Generator(bus=b1, name="Gen 1", P=3.2))
    return grid


def build_5_bus_grid() -> PowerSystem:
    """
    Stagg and El-Abiad 5-bus system
    """
    grid = PowerSystem(name="5 bus")
    b1 = grid.add_bus(Bus(name="North", is_slack=True))
    b2 = grid.add_bus(Bus(name="South", Pd=0.2, Qd=0.1))
    b3 = grid.add_bus(Bus(name="Lake", Pd=0.45, Qd=0.15))
    b4 = grid.add_bus(Bus(name="Main", Pd=0.4, Qd=0.05))
    b5 = grid.add_bus(Bus(name="Elm", Pd=0.6, Qd=0.1))

    grid.add_branch(Branch(bus_from=b1, bus_to=b2, name="North-South", r=0.02, x=0.06, b=0.06))
    grid.add_branch(Branch(bus_from=b1, bus_to=b3, name="North-Lake", r=0.08, x=0.24, b=0.05))
    grid.add_branch(Branch(bus_from=b2, bus_to=b3, name="South-Lake", r=0.06, x=0.18, b=0.04))
    grid.add_branch(Branch(bus_from=b2, bus_to=b4, name="South-Main", r=0.06, x=0.18, b=0.04))
    grid.add_branch(Branch(bus_from=b2, bus_to=b5, name="South-Elm", r=0.04, x=0.12, b=0.03))
    grid.add_branch(Branch(bus_from=b3, bus_to=b4, name="Lake-Main", r=0.01, x=0.03, b=0.02))
    grid.add_branch(Branch(bus_from=b4, bus_to=b5, name="Main-Elm", r=0.08, x=0.24, b=0.05))

    grid.add_generator(Generator(bus=b1, name="G1", vset=1.06))
    grid.add_generator(Generator(bus=b2, name="G2", P=0.4, vset=1.0, Qmin=-0.4, Qmax=0.4))
    return grid


def build_14_bus_dc_grid() -> PowerSystem:
    """
    IEEE 14-bus topology with equal reactances
    """
    grid = PowerSystem(name="14 bus")
    for i in range(1, 15):
        grid.add_bus(Bus(name="Bus {}".format(i), is_slack=(i == 1), Pd=0.05))

    for k, (f, t) in enumerate(IEEE14_BRANCHES):
        grid.add_branch(Branch(bus_from=grid.get_bus("Bus {}".format(f)),
                               bus_to=grid.get_bus("Bus {}".format(t)),
                               name="Branch {}".format(k + 1), x=0.05))

    grid.add_generator(Generator(bus=grid.get_bus("Bus 1"), name="Gen 1", P=3.2))
    return grid


def build_chain_grid(n: int = 5) -> PowerSystem:
    """
    Buses 1 - 2 - ... - n in a chain
    """
    grid = PowerSystem(name="chain")
    buses = [grid.add_bus(Bus(name="Bus {}".format(i + 1), is_slack=(i == 0), Pd=0.1)) for i in range(n)]
    for i in range(n - 1):
        grid.add_branch(Branch(bus_from=buses[i], bus_to=buses[i + 1], name="Branch {}".format(i + 1),
                               r=0.01, x=0.1))
    grid.add_generator(Generator(bus=buses[0], name="Gen 1"))
    return grid


@pytest.fixture
def grid_3_bus() -> PowerSystem:
    return build_3_bus_dc_grid()


@pytest.fixture
def grid_5_bus() -> PowerSystem:
    return build_5_bus_grid()


@pytest.fixture
def grid_14_bus() -> PowerSystem:
    return build_14_bus_dc_grid()


@pytest.fixture
def grid_chain() -> PowerSystem:
    return build_chain_grid()
