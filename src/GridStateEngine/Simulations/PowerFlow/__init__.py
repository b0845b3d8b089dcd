# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Simulations.PowerFlow.NumericalMethods import *
from GridStateEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from GridStateEngine.Simulations.PowerFlow.power_flow_driver import PowerFlowDriver, create_power_flow, run_solver
