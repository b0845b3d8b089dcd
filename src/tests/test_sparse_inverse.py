# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import scipy.sparse as sp
from GridStateEngine.api import *


def build_matrix() -> sp.csc_matrix:
    """
    Symmetric positive definite matrix with a loop in its graph
    """
    n = 7
    A = sp.diags([-1.0 * np.ones(n - 1), 4.0 * np.ones(n), -1.0 * np.ones(n - 1)], [-1, 0, 1], format='lil')
    A[0, n - 1] = -0.5
    A[n - 1, 0] = -0.5
    A[2, 5] = -0.3
    A[5, 2] = -0.3
    return sp.csc_matrix(A)


def test_selected_entries_match_the_inverse():
    A = build_matrix()
    Ainv = np.linalg.inv(A.toarray())
    inv = SelectedInverse(A)

    for i, j in [(0, 0), (0, 1), (1, 0), (2, 5), (6, 0), (3, 3)]:
        assert np.isclose(inv.value(i, j), Ainv[i, j], rtol=1e-10)


def test_entries_outside_the_pattern():
    A = build_matrix()
    Ainv = np.linalg.inv(A.toarray())
    inv = SelectedInverse(A)

    assert np.isclose(inv.value(1, 4), Ainv[1, 4], rtol=1e-10)
    assert np.isclose(inv.value(4, 1), Ainv[4, 1], rtol=1e-10)


def test_diagonal():
    A = build_matrix()
    inv = SelectedInverse(A)
    assert np.allclose(inv.diagonal(), np.diag(np.linalg.inv(A.toarray())), rtol=1e-10)


def test_quadratic_diagonal():
    """
    diag(H A^-1 H^T) as used by the residual covariance
    """
    A = build_matrix()
    H = sp.csr_matrix(np.array([[1.0, -1.0, 0, 0, 0, 0, 0],
                                [0, 0, 2.0, 0, 0, -1.0, 0],
                                [0, 0, 0, 0, 1.0, 0, 0],
                                [1.0, 0, 0, 1.0, 0, 0, 1.0]]))
    inv = SelectedInverse(A)

    expected = np.diag(H.toarray() @ np.linalg.inv(A.toarray()) @ H.toarray().T)
    assert np.allclose(inv.quadratic_diagonal(H), expected, rtol=1e-10)


def test_gain_matrix_of_an_estimation(grid_5_bus):
    pf = PowerFlowDriver(grid_5_bus, options=PowerFlowOptions(solver_type=SolverType.DC)).run()
    ms = MeasurementSet(grid_5_bus, MeasurementDefaults(wattmeter_variance=1e-2))
    generate_measurements(ms, pf, voltmeters=False, varmeters=False)

    se = DcStateEstimator(ms)
    se.solve()

    G = (se.H_red.T @ se.W @ se.H_red).tocsc()
    inv = SelectedInverse(G)
    assert np.allclose(inv.diagonal(), np.diag(np.linalg.inv(G.toarray())), rtol=1e-8)
