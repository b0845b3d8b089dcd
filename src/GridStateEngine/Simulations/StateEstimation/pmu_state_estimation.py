# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Vec, IntVec
from GridStateEngine.enumerations import StateEstimationModel
from GridStateEngine.Devices.measurement import Pmu
from GridStateEngine.Simulations.StateEstimation.linear_state_estimation import LinearStateEstimator, MeasurementModel


class PmuStateEstimator(LinearStateEstimator):
    """
    State estimation with phasor measurements only, in rectangular coordinates.
    The state is x = [Re(V), Im(V)] of every bus, so the model is linear:

        - voltage PMU at bus k:     Re(V[k]), Im(V[k])
        - current PMU at a branch:  Re(Y[k, :] · V), Im(Y[k, :] · V)   with Y = Yf or Yt

    The polar measurements are converted to rectangular components; the covariance
    of the two components is kept for the correlated PMUs.
    """
    model = StateEstimationModel.PMU

    def state_columns(self) -> IntVec:
        return np.arange(2 * self.system.get_bus_number())

    def is_correlated(self, pmu: Pmu) -> bool:
        return pmu.correlated or self.correlated_pmu

    def build_model(self) -> MeasurementModel:
        n = self.system.get_bus_number()
        adm = self.system.get_ac_model()
        inp = self.inputs
        Yf = sp.csr_matrix(adm.Yf)
        Yt = sp.csr_matrix(adm.Yt)

        rows: List[int] = list()
        cols: List[int] = list()
        vals: List[float] = list()

        mdl = MeasurementModel(nstate=2 * n)

        for pmu, k in zip(inp.pmu_bus, inp.pmu_bus_idx):
            i = mdl.nrows
            rows += [i, i + 1]
            cols += [k, n + k]
            vals += [1.0, 1.0]
            _, _, v_re, v_im, w = pmu.rectangular(correlated=self.is_correlated(pmu))
            mdl.add_pair(pmu, v_re, v_im, w)

        for Y, devices, indices in ((Yf, inp.pmu_from, inp.pmu_from_idx),
                                    (Yt, inp.pmu_to, inp.pmu_to_idx)):
            for pmu, k in zip(devices, indices):
                i = mdl.nrows
                a, b = Y.indptr[k], Y.indptr[k + 1]
                for j, y in zip(Y.indices[a:b], Y.data[a:b]):
                    # real part
                    rows += [i, i]
                    cols += [j, n + j]
                    vals += [y.real, -y.imag]
                    # imaginary part
                    rows += [i + 1, i + 1]
                    cols += [j, n + j]
                    vals += [y.imag, y.real]
                _, _, v_re, v_im, w = pmu.rectangular(correlated=self.is_correlated(pmu))
                mdl.add_pair(pmu, v_re, v_im, w)

        mdl.H = sp.csr_matrix((vals, (rows, cols)), shape=(mdl.nrows, 2 * n))
        return mdl

    def build_means(self) -> Vec:
        z = np.zeros(len(self.row_devices))
        for i, pmu in enumerate(self.inputs.get_pmus()):
            z_re, z_im, _, _, _ = pmu.rectangular(correlated=False)
            z[2 * i] = z_re
            z[2 * i + 1] = z_im
        return z

    def set_state(self, x: Vec) -> None:
        n = self.system.get_bus_number()
        self.V = x[:n] + 1j * x[n:]
