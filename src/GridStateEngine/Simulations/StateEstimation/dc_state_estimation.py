# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Vec, IntVec
from GridStateEngine.enumerations import StateEstimationModel
from GridStateEngine.Simulations.StateEstimation.linear_state_estimation import (LinearStateEstimator,
                                                                                 MeasurementModel, stack_rows)


class DcStateEstimator(LinearStateEstimator):
    """
    DC state estimation: the state is the vector of bus voltage angles.

    Rows of the model:

        - wattmeter at bus k:           Bbus[k, :] · θ = P - Pshift[k] - Pshunt[k]
        - wattmeter at the from end:    Bf[k, :] · θ = Pf + b[k] · τ[k]
        - wattmeter at the to end:     -Bf[k, :] · θ = Pt - b[k] · τ[k]
        - PMU at bus k:                 θ[k] = angle - θ[slack]

    The slack angle is fixed to its initial value, so its column is left out.
    Varmeters, voltmeters, ammeters and current PMUs are ignored.
    """
    model = StateEstimationModel.DC

    def state_columns(self) -> IntVec:
        return np.delete(np.arange(self.system.get_bus_number()), self.slack)

    def get_slack_angle(self) -> float:
        """
        Initial angle of the slack bus
        """
        return float(np.angle(self.system.get_voltage_guess()[self.slack]))

    def build_model(self) -> MeasurementModel:
        n = self.system.get_bus_number()
        dc = self.system.get_dc_model()
        inp = self.inputs
        Bbus = sp.csr_matrix(dc.Bbus)
        Bf = sp.csr_matrix(dc.Bf)
        eye = sp.identity(n, format='csr')

        mdl = MeasurementModel(nstate=n)
        mdl.H = stack_rows([Bbus[inp.idx(inp.p_idx), :],
                            Bf[inp.idx(inp.pf_idx), :],
                            -Bf[inp.idx(inp.pt_idx), :],
                            eye[inp.idx(inp.pmu_bus_idx), :]], n)

        for dev in inp.p_inj + inp.pf_value + inp.pt_value:
            mdl.add_rows(dev, dev.variance)

        for dev in inp.pmu_bus:
            mdl.add_rows(dev, dev.variance_angle)

        return mdl

    def build_means(self) -> Vec:
        dc = self.system.get_dc_model()
        inp = self.inputs
        tau = self.system.get_branch_arrays()[7]

        p_idx = inp.idx(inp.p_idx)
        pf_idx = inp.idx(inp.pf_idx)
        pt_idx = inp.idx(inp.pt_idx)

        z_p = np.array([d.value for d in inp.p_inj], dtype=float) - dc.Pshift[p_idx] - dc.Pshunt[p_idx]
        z_pf = np.array([d.value for d in inp.pf_value], dtype=float) + dc.b[pf_idx] * tau[pf_idx]
        z_pt = np.array([d.value for d in inp.pt_value], dtype=float) - dc.b[pt_idx] * tau[pt_idx]
        z_va = np.array([d.angle for d in inp.pmu_bus], dtype=float) - self.get_slack_angle()

        return np.r_[z_p, z_pf, z_pt, z_va]

    def set_state(self, x: Vec) -> None:
        Va = np.zeros(self.system.get_bus_number())
        Va[self.state_columns()] = x
        Va += self.get_slack_angle()
        self.V = np.exp(1j * Va)
