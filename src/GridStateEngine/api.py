# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.basic_structures import *
from GridStateEngine.enumerations import *
from GridStateEngine.exceptions import *
from GridStateEngine.Devices import *
from GridStateEngine.Topology.admittance_matrices import (AdmittanceMatrices, LinearAdmittanceMatrices,
                                                          FastDecoupledAdmittanceMatrices)
from GridStateEngine.Utils.NumericalMethods.sparse_inverse import SelectedInverse
from GridStateEngine.Utils.MIP.pulp_interface import LpModel, get_available_mip_solvers
from GridStateEngine.Simulations import *
