# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from typing import Tuple
from scipy.sparse import diags, csc_matrix, csr_matrix
from GridStateEngine.basic_structures import CxVec, IntVec


def dSbus_dV(Ybus: csc_matrix, V: CxVec) -> Tuple[csc_matrix, csc_matrix]:
    """
    Derivatives of the power Injections w.r.t the voltage

        S = diag(V) conj(Ybus V)
        dS/dVa = j diag(V) conj(diag(Ibus) - Ybus diag(V))
        dS/dVm = diag(V) conj(Ybus diag(V/|V|)) + conj(diag(Ibus)) diag(V/|V|)

    :param Ybus: Admittance matrix
    :param V: complex voltage arrays
    :return: dSbus_dVa, dSbus_dVm
    """
    diagV = diags(V)
    diagE = diags(V / np.abs(V))
    Ibus = Ybus * V
    diagIbus = diags(Ibus)

    dSbus_dVa = 1j * diagV * np.conj(diagIbus - Ybus * diagV)  # dSbus / dVa
    dSbus_dVm = diagV * np.conj(Ybus * diagE) + np.conj(diagIbus) * diagE  # dSbus / dVm

    return dSbus_dVa.tocsc(), dSbus_dVm.tocsc()


def dSbr_dV(Yf: csc_matrix, Yt: csc_matrix, V: CxVec,
            F: IntVec, T: IntVec) -> Tuple[csc_matrix, csc_matrix, csc_matrix, csc_matrix, CxVec, CxVec]:
    """
    Derivatives of the branch power w.r.t the bus voltage modules and angles

        Sf = diag(Vf) conj(Yf V)

    :param Yf: Admittances matrix of the Branches with the "from" buses
    :param Yt: Admittances matrix of the Branches with the "to" buses
    :param V: Array of voltages
    :param F: Array of branch "from" bus indices
    :param T: Array of branch "to" bus indices
    :return: dSf_dVa, dSf_dVm, dSt_dVa, dSt_dVm, Sf, St
    """
    nl = len(F)
    nb = len(V)
    il = np.arange(nl)
    shape = (nl, nb)

    Vnorm = V / np.abs(V)
    diagV = diags(V)
    diagVnorm = diags(Vnorm)

    If = Yf * V
    It = Yt * V

    diagVf = diags(V[F])
    diagVt = diags(V[T])
    diagIfc = diags(np.conj(If))
    diagItc = diags(np.conj(It))

    dSf_dVa = 1j * (diagIfc * csr_matrix((V[F], (il, F)), shape) - diagVf * np.conj(Yf * diagV))
    dSt_dVa = 1j * (diagItc * csr_matrix((V[T], (il, T)), shape) - diagVt * np.conj(Yt * diagV))

    dSf_dVm = diagVf * np.conj(Yf * diagVnorm) + diagIfc * csr_matrix((Vnorm[F], (il, F)), shape)
    dSt_dVm = diagVt * np.conj(Yt * diagVnorm) + diagItc * csr_matrix((Vnorm[T], (il, T)), shape)

    Sf = V[F] * np.conj(If)
    St = V[T] * np.conj(It)

    return dSf_dVa.tocsc(), dSf_dVm.tocsc(), dSt_dVa.tocsc(), dSt_dVm.tocsc(), Sf, St


def dIbr_dV(Yf: csc_matrix, Yt: csc_matrix, V: CxVec) -> Tuple[csc_matrix, csc_matrix, csc_matrix, csc_matrix,
                                                                 CxVec, CxVec]:
    """
    Derivatives of the complex branch currents w.r.t the bus voltage

        If = Yf V
        dIf/dVa = j Yf diag(V)
        dIf/dVm = Yf diag(V/|V|)

    :param Yf: Admittances matrix of the Branches with the "from" buses
    :param Yt: Admittances matrix of the Branches with the "to" buses
    :param V: Array of voltages
    :return: dIf_dVa, dIf_dVm, dIt_dVa, dIt_dVm, If, It
    """
    diagV = diags(V)
    diagVnorm = diags(V / np.abs(V))

    dIf_dVa = Yf * 1j * diagV
    dIf_dVm = Yf * diagVnorm
    dIt_dVa = Yt * 1j * diagV
    dIt_dVm = Yt * diagVnorm

    If = Yf * V
    It = Yt * V

    return dIf_dVa.tocsc(), dIf_dVm.tocsc(), dIt_dVa.tocsc(), dIt_dVm.tocsc(), If, It
