# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import numba as nb
from GridStateEngine.basic_structures import Vec


@nb.njit(cache=True)
def max_abs(x: Vec) -> float:
    """
    Compute max abs efficiently
    :param x:
    :return:
    """
    max_val = 0.0
    for x_val in x:
        x_abs = abs(x_val)
        if x_abs > max_val:
            max_val = x_abs

    return max_val


def block_max_abs(x: Vec) -> float:
    """
    max abs that accepts empty arrays
    :param x: array
    :return: max(|x|) or 0
    """
    if len(x) == 0:
        return 0.0
    return max_abs(np.ascontiguousarray(x, dtype=float))
