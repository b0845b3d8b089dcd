# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
import scipy.sparse as sp
from GridStateEngine.basic_structures import Vec, CxVec, IntVec, BoolVec


def compute_connectivity(F: IntVec, T: IntVec, nbus: int):
    """
    Compute the branch-bus connectivity matrices
    :param F: array of "from" bus indices
    :param T: array of "to" bus indices
    :param nbus: number of buses
    :return: Cf, Ct (nbr x nbus)
    """
    nbr = len(F)
    br_idx = np.arange(nbr, dtype=int)
    ones = np.ones(nbr, dtype=float)
    Cf = sp.csc_matrix((ones, (br_idx, F)), shape=(nbr, nbus), dtype=float)
    Ct = sp.csc_matrix((ones, (br_idx, T)), shape=(nbr, nbus), dtype=float)
    return Cf, Ct


class AdmittanceMatrices:
    """
    Class to store admittance matrices
    """

    def __init__(self,
                 Ybus: sp.csc_matrix,
                 Yf: sp.csc_matrix,
                 Yt: sp.csc_matrix,
                 Cf: sp.csc_matrix,
                 Ct: sp.csc_matrix,
                 yff: CxVec,
                 yft: CxVec,
                 ytf: CxVec,
                 ytt: CxVec,
                 Yshunt_bus: CxVec):
        """
        Constructor
        :param Ybus: Admittance matrix
        :param Yf: Admittance matrix of the branches with their "from" bus
        :param Yt: Admittance matrix of the branches with their "to" bus
        :param Cf: Connectivity matrix of the branches with their "from" bus
        :param Ct: Connectivity matrix of the branches with their "to" bus
        :param yff: admittance from-from primitives vector
        :param yft: admittance from-to primitives vector
        :param ytf: admittance to-from primitives vector
        :param ytt: admittance to-to primitives vector
        :param Yshunt_bus: array of shunt admittances per bus
        """
        self.Ybus = Ybus

        self.Yf = Yf

        self.Yt = Yt

        self.Cf = Cf

        self.Ct = Ct

        self.yff = yff

        self.yft = yft

        self.ytf = ytf

        self.ytt = ytt

        self.Yshunt_bus = Yshunt_bus


def compute_admittances(R: Vec,
                        X: Vec,
                        G: Vec,
                        B: Vec,
                        tap_module: Vec,
                        tap_angle: Vec,
                        active: BoolVec,
                        Cf: sp.csc_matrix,
                        Ct: sp.csc_matrix,
                        Yshunt_bus: CxVec) -> AdmittanceMatrices:
    """
    Compute the complete admittance matrices using the unified pi model

    :param R: array of branch resistance (p.u.)
    :param X: array of branch reactance (p.u.)
    :param G: array of branch total shunt conductance (p.u.)
    :param B: array of branch total shunt susceptance (p.u.)
    :param tap_module: array of tap modules
    :param tap_angle: array of tap angles (rad)
    :param active: array of branch states
    :param Cf: Connectivity branch-bus "from"
    :param Ct: Connectivity branch-bus "to"
    :param Yshunt_bus: array of shunt admittances per bus (p.u.)
    :return: AdmittanceMatrices instance
    """
    st = active.astype(float)

    ys = st / (R + 1.0j * X)  # series admittance
    bc2 = st * (G + 1j * B) / 2.0  # shunt admittance

    Ytt = ys + bc2
    Yff = Ytt / (tap_module * tap_module)
    Yft = -ys / (tap_module * np.exp(-1.0j * tap_angle))
    Ytf = -ys / (tap_module * np.exp(1.0j * tap_angle))

    # compose the matrices
    Yf = sp.diags(Yff) * Cf + sp.diags(Yft) * Ct
    Yt = sp.diags(Ytf) * Cf + sp.diags(Ytt) * Ct
    Ybus = Cf.T * Yf + Ct.T * Yt + sp.diags(Yshunt_bus)

    return AdmittanceMatrices(Ybus.tocsc(), Yf.tocsc(), Yt.tocsc(), Cf, Ct, Yff, Yft, Ytf, Ytt, Yshunt_bus)


class FastDecoupledAdmittanceMatrices:
    """
    Admittance matrices for the fast decoupled method
    """

    def __init__(self, B1: sp.csc_matrix, B2: sp.csc_matrix):
        self.B1 = B1
        self.B2 = B2

    def get_B1(self, pvpq: IntVec) -> sp.csc_matrix:
        """
        Active power approximation restricted to the non-slack buses
        :param pvpq: list of non-slack indices
        :return: B1[pvpq, pvpq]
        """
        return self.B1[np.ix_(pvpq, pvpq)].tocsc()

    def get_B2(self, pq: IntVec) -> sp.csc_matrix:
        """
        Reactive power approximation restricted to the demand buses
        :param pq: list of pq indices
        :return: B2[pq, pq]
        """
        return self.B2[np.ix_(pq, pq)].tocsc()


def compute_fast_decoupled_admittances(R: Vec,
                                       X: Vec,
                                       B: Vec,
                                       tap_module: Vec,
                                       tap_angle: Vec,
                                       active: BoolVec,
                                       Cf: sp.csc_matrix,
                                       Ct: sp.csc_matrix,
                                       Bshunt_bus: Vec,
                                       bx: bool = False) -> FastDecoupledAdmittanceMatrices:
    """
    Compute the admittance matrices for the fast decoupled method
    BX: B1 keeps the resistance and B2 neglects it.
    XB: B1 neglects the resistance and B2 keeps it.
    :param R: array of branch resistance (p.u.)
    :param X: array of branch reactance (p.u.)
    :param B: array of branch susceptance (p.u.)
    :param tap_module: array of tap modules
    :param tap_angle: array of tap angles (rad)
    :param active: array of branch states
    :param Cf: Connectivity branch-bus "from"
    :param Ct: Connectivity branch-bus "to"
    :param Bshunt_bus: array of bus shunt susceptances (p.u.)
    :param bx: use the BX scheme? otherwise XB
    :return: B' and B''
    """
    st = active.astype(float)
    z2 = R * R + X * X

    if bx:
        g1 = st * R / z2
        b1 = -st * X / z2
        b2 = -st / X
    else:
        g1 = np.zeros(len(R))
        b1 = -st / X
        b2 = -st * X / z2

    sin_sh = np.sin(tap_angle)
    cos_sh = np.cos(tap_angle)

    b1_ft = -g1 * sin_sh - b1 * cos_sh
    b1_tf = g1 * sin_sh - b1 * cos_sh
    B1 = (Cf.T * sp.diags(b1) * Cf + Ct.T * sp.diags(b1) * Ct
          + Cf.T * sp.diags(b1_ft) * Ct + Ct.T * sp.diags(b1_tf) * Cf)

    b2_ff = (b2 + 0.5 * st * B) / (tap_module * tap_module)
    b2_tt = b2 + 0.5 * st * B
    b2_ft = -b2 / tap_module
    B2 = (Cf.T * sp.diags(b2_ff) * Cf + Ct.T * sp.diags(b2_tt) * Ct
          + Cf.T * sp.diags(b2_ft) * Ct + Ct.T * sp.diags(b2_ft) * Cf
          + sp.diags(Bshunt_bus))

    return FastDecoupledAdmittanceMatrices(B1=B1.tocsc(), B2=B2.tocsc())


class LinearAdmittanceMatrices:
    """
    Admittance matrices for linear methods (DC power flow, DC state estimation)
    """

    def __init__(self, Bbus: sp.csc_matrix, Bf: sp.csc_matrix, b: Vec, Pshift: Vec, Pshunt: Vec):
        """
        :param Bbus: nodal susceptance matrix
        :param Bf: branch-bus susceptance matrix at the "from" side
        :param b: branch series susceptance 1 / (tau x)
        :param Pshift: bus power equivalent of the phase shifters
        :param Pshunt: bus power consumed by the shunt conductances
        """
        self.Bbus = Bbus
        self.Bf = Bf
        self.b = b
        self.Pshift = Pshift
        self.Pshunt = Pshunt

    def get_Bred(self, pqpv: IntVec) -> sp.csc_matrix:
        """
        Get Bred or Bpqpv for the DC power flow
        :param pqpv: list of non-slack indices
        :return: B[pqpv, pqpv]
        """
        return self.Bbus[np.ix_(pqpv, pqpv)].tocsc()


def compute_linear_admittances(X: Vec,
                               tap_module: Vec,
                               tap_angle: Vec,
                               active: BoolVec,
                               Cf: sp.csc_matrix,
                               Ct: sp.csc_matrix,
                               Gshunt_bus: Vec) -> LinearAdmittanceMatrices:
    """
    Compute the linear admittances for the DC power flow and the DC state estimation
    :param X: array of branch reactance (p.u.)
    :param tap_module: array of branch tap modules
    :param tap_angle: array of branch tap angles (rad)
    :param active: array of branch states
    :param Cf: Connectivity branch-bus "from"
    :param Ct: Connectivity branch-bus "to"
    :param Gshunt_bus: array of bus shunt conductances (p.u.)
    :return: LinearAdmittanceMatrices
    """
    den = X * tap_module
    b = np.zeros(len(X))
    idx = np.where(active & (den != 0.0))[0]
    b[idx] = 1.0 / den[idx]

    b_tt = sp.diags(b)
    Bf = b_tt * Cf - b_tt * Ct
    Bt = -b_tt * Cf + b_tt * Ct
    Bbus = Cf.T * Bf + Ct.T * Bt

    # the phase shifters behave as constant injections at both ends
    Pshift = Ct.T * (tap_angle * b) - Cf.T * (tap_angle * b)

    return LinearAdmittanceMatrices(Bbus=Bbus.tocsc(),
                                    Bf=Bf.tocsc(),
                                    b=b,
                                    Pshift=np.asarray(Pshift).ravel(),
                                    Pshunt=Gshunt_bus.copy())
