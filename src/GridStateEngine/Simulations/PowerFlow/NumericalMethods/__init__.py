# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Simulations.PowerFlow.NumericalMethods.power_flow_solver import PowerFlowSolver
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphsonPowerFlow, AC_jacobian
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.fast_decoupled import FastDecoupledPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.gauss_seidel import GaussSeidelPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.dc_power_flow import DcPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.reactive_limits import reactive_power_limit, adjust_angle
