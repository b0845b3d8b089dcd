# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import scipy.sparse as sp
from GridStateEngine.api import *
from tests.conftest import build_5_bus_grid


def test_ybus_decomposition(grid_5_bus):
    """
    Ybus = Cf' Yf + Ct' Yt + diag(Yshunt)
    """
    adm = grid_5_bus.get_ac_model()
    Ybus = adm.Cf.T @ adm.Yf + adm.Ct.T @ adm.Yt + sp.diags(adm.Yshunt_bus)
    assert np.allclose((adm.Ybus - Ybus).toarray(), 0.0, atol=1e-12)

    # without phase shifters the matrix is symmetric
    assert np.allclose((adm.Ybus - adm.Ybus.T).toarray(), 0.0, atol=1e-12)


def test_ybus_rebuild_is_identical():
    """
    Building the nodal matrix twice from the same data gives the same matrix
    """
    Y1 = build_5_bus_grid().get_ac_model().Ybus.toarray()
    Y2 = build_5_bus_grid().get_ac_model().Ybus.toarray()
    assert np.array_equal(Y1, Y2)


def test_model_cache_invalidation(grid_5_bus):
    """
    The cached models are rebuilt only when the branch data change
    """
    adm1 = grid_5_bus.get_ac_model()
    dc1 = grid_5_bus.get_dc_model()
    assert grid_5_bus.get_ac_model() is adm1

    # a demand change does not touch the nodal matrices
    grid_5_bus.update_bus("Lake", Pd=0.5)
    assert grid_5_bus.get_ac_model() is adm1
    assert grid_5_bus.get_dc_model() is dc1

    rev = grid_5_bus.model_revision
    changes = grid_5_bus.update_branch("Lake-Main", x=0.04)
    assert ModelChange.BranchParameter in changes
    assert grid_5_bus.model_revision > rev

    adm2 = grid_5_bus.get_ac_model()
    assert adm2 is not adm1
    assert not np.allclose(adm1.Ybus.toarray(), adm2.Ybus.toarray())


def test_branch_status_removes_admittance(grid_5_bus):
    """
    An out of service branch does not contribute to the nodal matrices
    """
    grid_5_bus.update_branch("Main-Elm", active=False)
    adm = grid_5_bus.get_ac_model()
    dc = grid_5_bus.get_dc_model()

    i = grid_5_bus.bus_index("Main")
    j = grid_5_bus.bus_index("Elm")
    assert adm.Ybus[i, j] == 0
    assert dc.Bbus[i, j] == 0


def test_dc_model_rows(grid_3_bus):
    """
    The DC nodal matrix has zero row sums and Bf gives b (θf - θt)
    """
    dc = grid_3_bus.get_dc_model()
    assert np.allclose(np.asarray(dc.Bbus.sum(axis=1)).ravel(), 0.0)
    assert np.allclose(dc.b, [20.0, 100.0, 100.0])

    theta = np.array([0.0, -0.1, -0.2])
    assert np.allclose(dc.Bf @ theta, [20.0 * 0.1, 100.0 * 0.2, 100.0 * 0.1])


def test_phase_shifter_dc_injection():
    """
    A phase shifter behaves as a pair of opposite injections b·tau
    """
    grid = PowerSystem()
    b1 = grid.add_bus(Bus(name="1", is_slack=True))
    b2 = grid.add_bus(Bus(name="2"))
    grid.add_branch(Branch(bus_from=b1, bus_to=b2, name="PST", x=0.1, tap_phase=0.05))
    dc = grid.get_dc_model()

    assert np.allclose(dc.Pshift, [-0.5, 0.5])


def test_branch_definition_errors():
    """
    Invalid branches are rejected with the branch label
    """
    b1 = Bus(name="1")
    b2 = Bus(name="2")

    try:
        Branch(bus_from=b1, bus_to=b1, name="loop", x=0.1)
        assert False
    except BranchDefinitionError as e:
        assert "loop" in str(e)

    try:
        Branch(bus_from=b1, bus_to=b2, name="zero", r=0.0, x=0.0)
        assert False
    except BranchDefinitionError as e:
        assert "zero" in str(e)


def test_duplicated_labels():
    grid = PowerSystem()
    grid.add_bus(Bus(name="1"))
    try:
        grid.add_bus(Bus(name="1"))
        assert False
    except LabelError:
        pass

    try:
        grid.get_bus("2")
        assert False
    except LabelError:
        pass


def test_resistive_branch_in_the_dc_model(grid_3_bus):
    """
    A purely resistive branch has no DC susceptance unless it is out of service
    """
    grid_3_bus.update_branch("Branch 3", r=0.01, x=0.0)
    try:
        grid_3_bus.get_dc_model()
        assert False
    except BranchDefinitionError as e:
        assert "Branch 3" in e.message

    grid_3_bus.update_branch("Branch 3", active=False)
    dc = grid_3_bus.get_dc_model()
    assert dc.b[2] == 0.0
    assert np.all(np.isfinite(dc.Bbus.toarray()))
