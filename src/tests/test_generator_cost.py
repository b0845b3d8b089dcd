# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from GridStateEngine.api import *


def test_polynomial_cost(grid_3_bus):
    grid_3_bus.set_generator_cost("Gen 1", CostModel.Polynomial, polynomial=[2.0, 3.0, 1.0])
    gen = grid_3_bus.get_generator("Gen 1")

    assert np.isclose(gen.cost(2.0), 15.0)

    # the set point is used by default
    assert np.isclose(gen.cost(), 2.0 * 3.2 ** 2 + 3.0 * 3.2 + 1.0)


def test_piecewise_cost_is_extrapolated(grid_3_bus):
    grid_3_bus.set_generator_cost("Gen 1", CostModel.Piecewise, piecewise=[(0.0, 0.0), (1.0, 10.0), (2.0, 30.0)])
    gen = grid_3_bus.get_generator("Gen 1")

    assert np.isclose(gen.cost(1.5), 20.0)

    # beyond the points the first and last slopes hold
    assert np.isclose(gen.cost(3.0), 50.0)
    assert np.isclose(gen.cost(-1.0), -10.0)


def test_no_cost():
    bus = Bus(name="1", is_slack=True)
    gen = Generator(bus=bus, P=1.0)
    assert gen.cost() == 0.0


def test_single_point_piecewise_cost_is_rejected():
    grid = PowerSystem()
    bus = grid.add_bus(Bus(name="1", is_slack=True))
    try:
        grid.add_generator(Generator(bus=bus, name="G", cost_model=CostModel.Piecewise, piecewise=[(1.0, 5.0)]))
        assert False
    except CostFunctionError as e:
        assert "only one defined point" in e.message
        assert e.generator == "G"

    assert len(grid.generators) == 0


def test_invalid_cost_keeps_the_previous_one(grid_3_bus):
    grid_3_bus.set_generator_cost("Gen 1", CostModel.Polynomial, polynomial=[1.0, 0.0])

    try:
        grid_3_bus.set_generator_cost("Gen 1", CostModel.Piecewise, piecewise=[(1.0, 0.0), (1.0, 5.0)])
        assert False
    except CostFunctionError as e:
        assert "infinite slope" in e.message

    gen = grid_3_bus.get_generator("Gen 1")
    assert gen.cost_model == CostModel.Polynomial
    assert np.isclose(gen.cost(4.0), 4.0)


def test_empty_polynomial_is_rejected(grid_3_bus):
    try:
        grid_3_bus.set_generator_cost("Gen 1", CostModel.Polynomial, polynomial=[])
        assert False
    except ConfigurationError:
        pass


def test_capability_curve_limits():
    bus = Bus(name="1")
    gen = Generator(bus=bus, Qmin=-2.0, Qmax=2.0,
                    lower_active=0.0, min_reactive_lower=-1.0, max_reactive_lower=1.0,
                    upper_active=1.0, min_reactive_upper=-0.5, max_reactive_upper=0.5)

    qmin, qmax = gen.reactive_limits(0.5)
    assert np.isclose(qmin, -0.75)
    assert np.isclose(qmax, 0.75)

    # the plain limits apply without a capability curve
    gen.upper_active = 0.0
    assert gen.reactive_limits(0.5) == (-2.0, 2.0)
