# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import TYPE_CHECKING, Union
import numpy as np
import scipy.sparse as sp

from GridStateEngine.enumerations import StateEstimationMethod, DeviceType
from GridStateEngine.Utils.NumericalMethods.sparse_inverse import SelectedInverse

if TYPE_CHECKING:
    from GridStateEngine.Simulations.StateEstimation.state_estimator import StateEstimator


class BadData:
    """
    Outcome of one pass of the largest normalized residual test
    """

    def __init__(self,
                 detect: bool = False,
                 max_normalized_residual: float = 0.0,
                 label: str = "",
                 device_type: Union[DeviceType, None] = None,
                 index: int = -1):
        """
        :param detect: was a measurement above the threshold found (and removed)?
        :param max_normalized_residual: largest normalized residual
        :param label: label of the device with the largest normalized residual
        :param device_type: DeviceType of that device
        :param index: row of that residual in the measurement model
        """
        self.detect = detect
        self.max_normalized_residual = max_normalized_residual
        self.label = label
        self.device_type = device_type
        self.index = index

    def __str__(self):
        return "BadData(detect={0}, label={1}, residual={2:.4f})".format(self.detect, self.label,
                                                                          self.max_normalized_residual)

    def __repr__(self):
        return str(self)


def normalized_residuals(estimator: StateEstimator):
    """
    Normalized residuals of the last solution

        S = Σ - H G^-1 H^T,     G = H^T W H
        rN_i = |r_i| / sqrt(|S_ii|)

    Only the entries of G^-1 coupled by the rows of H are computed.
    Rows with a zero residual get a zero normalized residual.

    :param estimator: solved StateEstimator
    :return: array of normalized residuals
    """
    estimator.check_solved()

    H = sp.csc_matrix(estimator.H_red)
    r = estimator.residual
    rn = np.zeros(len(r))

    if H.shape[1] > 0:
        G = sp.csc_matrix(H.T @ estimator.W @ H)
        inverse = SelectedInverse(G, name="gain matrix", logger=estimator.logger)
        c = inverse.quadratic_diagonal(H)
    else:
        c = np.zeros(len(r))

    s = np.abs(estimator.variances - c)
    mask = (r != 0.0) & (s > 0.0)
    rn[mask] = np.abs(r[mask]) / np.sqrt(s[mask])
    return rn


def residual_test(estimator: StateEstimator, threshold: float = 3.0) -> BadData:
    """
    Largest normalized residual test.

    When the largest normalized residual exceeds the threshold, its device is put out of
    service in the measurement set (both rows for a PMU). Only one device is removed per
    call: solve again and repeat the test until nothing is detected.

    :param estimator: solved StateEstimator
    :param threshold: largest acceptable normalized residual
    :return: BadData
    """
    estimator.check_solved()

    if estimator.method == StateEstimationMethod.LAV:
        estimator.logger.add_info("The residual test does not apply to the least absolute value estimator",
                                  device=estimator.name)
        return BadData()

    rn = normalized_residuals(estimator)

    if len(rn) == 0:
        return BadData()

    idx = int(np.argmax(rn))
    device = estimator.row_devices[idx]
    result = BadData(detect=False,
                     max_normalized_residual=float(rn[idx]),
                     label=device.name,
                     device_type=device.device_type,
                     index=idx)

    if rn[idx] > threshold:
        result.detect = True
        estimator.measurements.update_device(device.device_type, device.name, active=False)
        estimator.logger.add_info("Measurement deleted, normalized residual {:.4f}".format(rn[idx]),
                                  device=device.name,
                                  device_class=device.device_type.value,
                                  device_property="value",
                                  value=device.value,
                                  expected_value=threshold)

    return result
