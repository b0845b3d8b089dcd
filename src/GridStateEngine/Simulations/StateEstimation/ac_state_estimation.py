# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple, Union
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Logger, Vec, CxVec, IntVec
from GridStateEngine.enumerations import (StateEstimationModel, StateEstimationMethod, FactorizationType, MIPSolvers,
                                          MeasurementSide)
from GridStateEngine.exceptions import GridStateError
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Utils.NumericalMethods.sparse_solve import factorize, qr_least_squares
from GridStateEngine.Utils.NumericalMethods.common import block_max_abs
from GridStateEngine.Simulations.Derivatives.matpower_derivatives import dSbus_dV, dSbr_dV, dIbr_dV
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from GridStateEngine.Simulations.StateEstimation.state_estimator import StateEstimator


def magnitude_derivatives(I: CxVec, dI_dVa: sp.csc_matrix, dI_dVm: sp.csc_matrix):
    """
    Derivatives of |I| and angle(I) from the derivatives of the complex current

        d|I| = Re(conj(I) dI) / |I|
        d∠I = Im(conj(I) dI) / |I|^2

    Zero currents get zero derivatives.

    :param I: complex currents
    :param dI_dVa: derivatives w.r.t. the voltage angles
    :param dI_dVm: derivatives w.r.t. the voltage magnitudes
    :return: dImag_dVa, dImag_dVm, dIang_dVa, dIang_dVm
    """
    mag = np.abs(I)
    inv = np.zeros(len(I))
    inv2 = np.zeros(len(I))
    nz = mag > 0.0
    inv[nz] = 1.0 / mag[nz]
    inv2[nz] = 1.0 / mag[nz] ** 2

    cI = sp.diags(np.conj(I))
    A_va = cI @ dI_dVa
    A_vm = cI @ dI_dVm

    return (sp.diags(inv) @ A_va.real, sp.diags(inv) @ A_vm.real,
            sp.diags(inv2) @ A_va.imag, sp.diags(inv2) @ A_vm.imag)


class AcStateEstimator(StateEstimator):
    """
    Nonlinear weighted least squares state estimation (Gauss-Newton).

    The state is the voltage angle of every bus but the slack, whose angle is fixed
    to its initial value, and the voltage magnitude of every bus. Every iteration solves

        G(x) dx = H(x)^T W (z - h(x)),      G = H^T W H

    with the normal equations or, with the orthogonal method, the scaled QR of H.

    Rows: voltmeters (|V|), ammeters (|If|, |It|), wattmeters and varmeters
    (bus injections and branch flows) and PMUs: |V| and angle(V) at the buses,
    Re(I) and Im(I) at the branch ends, or |I| and angle(I) with polar_current_pmu.

    The iterations start from the bus voltage set points, replaced by the phasors of the
    in-service bus PMUs, unless set_initial_point() gives another start.
    """
    model = StateEstimationModel.AC

    def __init__(self,
                 measurements: MeasurementSet,
                 method: StateEstimationMethod = StateEstimationMethod.WLS,
                 factorization: FactorizationType = FactorizationType.LU,
                 tolerance: float = 1e-8,
                 max_iter: int = 20,
                 mip_solver: MIPSolvers = MIPSolvers.HIGHS,
                 polar_current_pmu: bool = False,
                 logger: Union[Logger, None] = None):
        """
        :param measurements: MeasurementSet
        :param method: WLS or ORTHOGONAL
        :param factorization: factorization of the gain matrix
        :param tolerance: largest state increment to stop
        :param max_iter: maximum number of iterations of solve()
        :param mip_solver: not used, the LAV method is not available for this model
        :param polar_current_pmu: model the current phasors as magnitude and angle rows
        :param logger: Logger
        """
        StateEstimator.__init__(self,
                                measurements=measurements,
                                method=method,
                                factorization=factorization,
                                mip_solver=mip_solver,
                                correlated_pmu=False,
                                logger=logger)

        if method == StateEstimationMethod.LAV:
            raise GridStateError("The least absolute value method is not available for the AC state estimation")

        self.tolerance = tolerance
        self.max_iter = max_iter
        self.polar_current_pmu = polar_current_pmu

        self.Vm: Vec = np.zeros(0)
        self.Va: Vec = np.zeros(0)
        self.non_slack: IntVec = np.zeros(0, dtype=int)

        self.reset()

    def reset(self) -> None:
        """
        Start again from the initial voltages of the system, with the phasors
        of the in-service bus PMUs where there are any
        """
        V = self.system.get_voltage_guess()
        bus_dict = self.system.get_bus_index_dict()
        for pmu in self.measurements.pmus:
            if pmu.active and pmu.side == MeasurementSide.Bus and pmu.magnitude > 0.0:
                V[bus_dict[pmu.api_object]] = pmu.magnitude * np.exp(1j * pmu.angle)
        self.set_voltage(V)

    def set_voltage(self, V: CxVec) -> None:
        """
        Set the state the next solve() starts from
        :param V: complex bus voltages
        """
        if len(V) != self.system.get_bus_number():
            raise GridStateError("The initial point has {0} voltages for {1} buses".format(
                len(V), self.system.get_bus_number()))
        self.V = np.array(V, dtype=complex)
        self.Vm = np.abs(self.V)
        self.Va = np.angle(self.V)
        self.iterations = 0
        self.converged = False
        self.solved = False

    def set_initial_point(self, source: Union[PowerSystem, PowerFlowResults, StateEstimator]) -> None:
        """
        Start the iterations from another solution
        :param source: PowerSystem (bus voltage set points), PowerFlowResults, or a solved
                       state estimator (a DC estimate gives unit magnitudes)
        """
        if isinstance(source, PowerSystem):
            self.set_voltage(source.get_voltage_guess())
        elif isinstance(source, PowerFlowResults):
            self.set_voltage(source.voltage)
        elif isinstance(source, StateEstimator):
            source.check_solved()
            self.set_voltage(source.V)
        else:
            raise GridStateError("Cannot take the initial point from {}".format(type(source).__name__))

    def state_columns(self) -> IntVec:
        n = self.system.get_bus_number()
        return np.r_[self.non_slack, n + np.arange(n)]

    def build(self) -> None:
        """
        Collect the in-service devices, their variances and the row order
        """
        self.collect_measurements()
        inp = self.inputs
        n = self.system.get_bus_number()
        self.non_slack = np.delete(np.arange(n), self.slack)

        if len(self.V) != n:
            self.reset()

        # the slack angle is not estimated
        self.Va[self.slack] = np.angle(self.system.get_voltage_guess()[self.slack])
        self.V = self.Vm * np.exp(1j * self.Va)

        devices = (inp.vm_value + inp.if_value + inp.it_value + inp.p_inj + inp.pf_value + inp.pt_value
                   + inp.q_inj + inp.qf_value + inp.qt_value)
        variances = [d.variance for d in devices]

        for pmus, polar in self.pmu_groups():
            devices += pmus + pmus
            if polar:
                variances += [p.variance_magnitude for p in pmus] + [p.variance_angle for p in pmus]
            else:
                rect = [p.rectangular(correlated=False) for p in pmus]
                variances += [r[2] for r in rect] + [r[3] for r in rect]

        self.row_devices = devices
        self.variances = np.array(variances, dtype=float)
        self.W = sp.diags(1.0 / self.variances, format='csc') if len(devices) else sp.csc_matrix((0, 0))
        self.model_key = self.get_model_key()

    def pmu_groups(self):
        """
        PMUs at the buses, the "from" and the "to" ends, each with its coordinates
        :return: list of (PMU list, is polar?)
        """
        inp = self.inputs
        return [(inp.pmu_bus, True),
                (inp.pmu_from, self.polar_current_pmu),
                (inp.pmu_to, self.polar_current_pmu)]

    def get_means(self) -> Vec:
        """
        Measured values in the row order
        """
        inp = self.inputs
        z = [d.value for d in self.row_devices[:len(self.row_devices) - 2 * len(inp.get_pmus())]]
        for pmus, polar in self.pmu_groups():
            if polar:
                z += [p.magnitude for p in pmus] + [p.angle for p in pmus]
            else:
                rect = [p.rectangular(correlated=False) for p in pmus]
                z += [r[0] for r in rect] + [r[1] for r in rect]
        return np.array(z, dtype=float)

    def evaluate(self, V: CxVec) -> Tuple[sp.csc_matrix, Vec]:
        """
        Measurement functions and their Jacobian
        :param V: complex bus voltages
        :return: H (rows x 2n, columns [Va, Vm]), h(V)
        """
        inp = self.inputs
        idx = inp.idx
        adm = self.system.get_ac_model()
        F, T = self.system.get_branch_arrays()[:2]
        n = len(V)

        Vm = np.abs(V)
        Va = np.angle(V)

        dS_dVa, dS_dVm = dSbus_dV(adm.Ybus, V)
        dSf_dVa, dSf_dVm, dSt_dVa, dSt_dVm, Sf, St = dSbr_dV(adm.Yf, adm.Yt, V, F, T)
        dIf_dVa, dIf_dVm, dIt_dVa, dIt_dVm, If, It = dIbr_dV(adm.Yf, adm.Yt, V)
        Sbus = V * np.conj(adm.Ybus @ V)

        dIfm_dVa, dIfm_dVm, dIfa_dVa, dIfa_dVm = magnitude_derivatives(If, dIf_dVa, dIf_dVm)
        dItm_dVa, dItm_dVm, dIta_dVa, dIta_dVm = magnitude_derivatives(It, dIt_dVa, dIt_dVm)

        eye = sp.identity(n, format='csr')
        zero = sp.csr_matrix((n, n))

        vm = idx(inp.vm_idx)
        i_f = idx(inp.if_idx)
        i_t = idx(inp.it_idx)
        p = idx(inp.p_idx)
        pf = idx(inp.pf_idx)
        pt = idx(inp.pt_idx)
        q = idx(inp.q_idx)
        qf = idx(inp.qf_idx)
        qt = idx(inp.qt_idx)
        pmu_b = idx(inp.pmu_bus_idx)
        pmu_f = idx(inp.pmu_from_idx)
        pmu_t = idx(inp.pmu_to_idx)

        blocks = [
            (zero[vm, :], eye[vm, :], Vm[vm]),
            (dIfm_dVa[i_f, :], dIfm_dVm[i_f, :], np.abs(If[i_f])),
            (dItm_dVa[i_t, :], dItm_dVm[i_t, :], np.abs(It[i_t])),
            (dS_dVa[p, :].real, dS_dVm[p, :].real, Sbus[p].real),
            (dSf_dVa[pf, :].real, dSf_dVm[pf, :].real, Sf[pf].real),
            (dSt_dVa[pt, :].real, dSt_dVm[pt, :].real, St[pt].real),
            (dS_dVa[q, :].imag, dS_dVm[q, :].imag, Sbus[q].imag),
            (dSf_dVa[qf, :].imag, dSf_dVm[qf, :].imag, Sf[qf].imag),
            (dSt_dVa[qt, :].imag, dSt_dVm[qt, :].imag, St[qt].imag),
            (zero[pmu_b, :], eye[pmu_b, :], Vm[pmu_b]),
            (eye[pmu_b, :], zero[pmu_b, :], Va[pmu_b]),
        ]

        if self.polar_current_pmu:
            blocks += [
                (dIfm_dVa[pmu_f, :], dIfm_dVm[pmu_f, :], np.abs(If[pmu_f])),
                (dIfa_dVa[pmu_f, :], dIfa_dVm[pmu_f, :], np.angle(If[pmu_f])),
                (dItm_dVa[pmu_t, :], dItm_dVm[pmu_t, :], np.abs(It[pmu_t])),
                (dIta_dVa[pmu_t, :], dIta_dVm[pmu_t, :], np.angle(It[pmu_t])),
            ]
        else:
            blocks += [
                (dIf_dVa[pmu_f, :].real, dIf_dVm[pmu_f, :].real, If[pmu_f].real),
                (dIf_dVa[pmu_f, :].imag, dIf_dVm[pmu_f, :].imag, If[pmu_f].imag),
                (dIt_dVa[pmu_t, :].real, dIt_dVm[pmu_t, :].real, It[pmu_t].real),
                (dIt_dVa[pmu_t, :].imag, dIt_dVm[pmu_t, :].imag, It[pmu_t].imag),
            ]

        blocks = [b for b in blocks if len(b[2]) > 0]
        if len(blocks) == 0:
            return sp.csc_matrix((0, 2 * n)), np.zeros(0)

        H = sp.vstack([sp.hstack([sp.csr_matrix(a), sp.csr_matrix(b)]) for a, b, _ in blocks], format='csc')
        h = np.concatenate([c for _, _, c in blocks])
        return H, h

    def get_residual(self, z: Vec, h: Vec) -> Vec:
        """
        z - h with the angle rows wrapped to [-pi, pi]
        """
        r = z - h
        n_pmu = len(self.inputs.get_pmus())
        if n_pmu:
            nr = len(r)
            start = nr - 2 * n_pmu
            offset = start
            for pmus, polar in self.pmu_groups():
                k = len(pmus)
                if polar:
                    ang = slice(offset + k, offset + 2 * k)
                    r[ang] = np.angle(np.exp(1j * r[ang]))
                offset += 2 * k
        return r

    def step(self) -> float:
        """
        One Gauss-Newton iteration
        :return: largest state increment
        """
        if not self.model_is_valid():
            self.build()

        n = self.system.get_bus_number()
        z = self.get_means()
        H, h = self.evaluate(self.V)
        r = self.get_residual(z, h)
        Hr = sp.csc_matrix(H[:, self.state_columns()])

        if self.method == StateEstimationMethod.WLS:
            G = sp.csc_matrix(Hr.T @ self.W @ Hr)
            dx = factorize(G, self.factorization, "gain matrix").solve(Hr.T @ (self.W @ r))
        else:
            sqrt_w = np.sqrt(self.W.diagonal())
            dx = qr_least_squares(sp.diags(sqrt_w) @ Hr, sqrt_w * r, name="scaled measurement Jacobian")

        nns = len(self.non_slack)
        self.Va[self.non_slack] += dx[:nns]
        self.Vm += dx[nns:nns + n]
        self.V = self.Vm * np.exp(1j * self.Va)
        self.iterations += 1

        return block_max_abs(dx)

    def update_residual(self) -> None:
        """
        Residuals and Jacobian at the current state
        """
        z = self.get_means()
        H, h = self.evaluate(self.V)
        self.residual = self.get_residual(z, h)
        self.H_red = sp.csc_matrix(H[:, self.state_columns()])

    def solve(self) -> None:
        """
        Iterate until the state increment is below the tolerance or the iteration limit is reached.
        Reaching the limit is reported in the logger and the converged flag, not raised.
        """
        self.converged = False
        self.iterations = 0
        self.error = 0.0

        for _ in range(self.max_iter):
            self.error = self.step()
            if self.error < self.tolerance:
                self.converged = True
                break

        if not self.converged:
            self.logger.add_warning('State estimation did not converge',
                                    device=self.name,
                                    value="{:.4e}".format(self.error),
                                    expected_value=f"<{self.tolerance}")

        self.update_residual()
        self.solved = True
