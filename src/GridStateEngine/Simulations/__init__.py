# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Simulations.options_template import OptionsTemplate
from GridStateEngine.Simulations.PowerFlow import *
from GridStateEngine.Simulations.PostProcessing import *
from GridStateEngine.Simulations.StateEstimation import *
from GridStateEngine.Simulations.Observability import *
