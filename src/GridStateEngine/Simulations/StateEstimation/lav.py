# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np
import scipy.sparse as sp
from GridStateEngine.basic_structures import Vec, Logger
from GridStateEngine.enumerations import MIPSolvers
from GridStateEngine.Utils.MIP.pulp_interface import LpModel


def solve_lav(H: sp.csr_matrix, z: Vec,
              solver_type: MIPSolvers = MIPSolvers.HIGHS,
              name: str = "LAV state estimation",
              logger: Union[Logger, None] = None) -> Vec:
    """
    Least absolute value estimate of the linear model z = H x + r

        min   sum(r+ + r-)
        s.t.  H (x+ - x-) + r+ - r- = z
              x+, x-, r+, r- >= 0

    :param H: measurement Jacobian (m x n)
    :param z: measurement means (m)
    :param solver_type: MIPSolvers
    :param name: name of the problem
    :param logger: Logger where the solver messages are appended
    :return: estimated state x (n)
    """
    H = sp.csr_matrix(H)
    m, n = H.shape

    lp = LpModel(solver_type=solver_type, name=name)

    x_pos = [lp.add_var(0.0, None, name="x_pos_{}".format(j)) for j in range(n)]
    x_neg = [lp.add_var(0.0, None, name="x_neg_{}".format(j)) for j in range(n)]
    r_pos = [lp.add_var(0.0, None, name="r_pos_{}".format(i)) for i in range(m)]
    r_neg = [lp.add_var(0.0, None, name="r_neg_{}".format(i)) for i in range(m)]

    for i in range(m):
        a, b = H.indptr[i], H.indptr[i + 1]
        row = lp.sum([H.data[k] * (x_pos[H.indices[k]] - x_neg[H.indices[k]]) for k in range(a, b)])
        lp.add_cst(row + r_pos[i] - r_neg[i] == float(z[i]), name="measurement_{}".format(i))

    lp.minimize(lp.sum(r_pos) + lp.sum(r_neg))

    try:
        lp.solve_or_raise()
    finally:
        if logger is not None:
            logger += lp.logger

    return np.array([lp.get_value(x_pos[j]) - lp.get_value(x_neg[j]) for j in range(n)])
