# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple
import numpy as np

from GridStateEngine.basic_structures import Vec, CxVec, IntVec, BoolVec, CscMat
from GridStateEngine.enumerations import BusMode
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Topology.admittance_matrices import AdmittanceMatrices


def compute_bus_power(Ybus: CscMat, V: CxVec) -> CxVec:
    """
    Complex power injected at every bus
    :param Ybus: nodal admittance matrix
    :param V: complex voltages
    :return: S = V · conj(Ybus · V)
    """
    return V * np.conj(Ybus @ V)


def compute_shunt_power(Yshunt_bus: CxVec, V: CxVec) -> CxVec:
    """
    Power consumed by the bus shunts
    :param Yshunt_bus: bus shunt admittances
    :param V: complex voltages
    :return: S = |V|^2 · conj(Ysh)
    """
    return np.power(np.abs(V), 2) * np.conj(Yshunt_bus)


def compute_branch_power(adm: AdmittanceMatrices, V: CxVec,
                         F: IntVec, T: IntVec) -> Tuple[CxVec, CxVec, CxVec, CxVec]:
    """
    Branch currents and powers at both ends
    :param adm: AdmittanceMatrices
    :param V: complex voltages
    :param F: from bus indices
    :param T: to bus indices
    :return: Sf, St, If, It
    """
    If = adm.Yf @ V
    It = adm.Yt @ V
    Sf = V[F] * np.conj(If)
    St = V[T] * np.conj(It)
    return Sf, St, If, It


def compute_series_current(R: Vec, X: Vec, tap_module: Vec, tap_angle: Vec, active: BoolVec,
                           V: CxVec, F: IntVec, T: IntVec) -> CxVec:
    """
    Current through the series impedance of the branches, flowing from the "from" side
    :param R: resistances
    :param X: reactances
    :param tap_module: tap modules
    :param tap_angle: tap angles (rad)
    :param active: branch states
    :param V: complex voltages
    :param F: from bus indices
    :param T: to bus indices
    :return: series currents
    """
    ys = active.astype(float) / (R + 1j * X)
    alpha = np.exp(-1j * tap_angle) / tap_module
    return ys * (alpha * V[F] - V[T])


def compute_branch_losses(R: Vec, X: Vec, Iseries: CxVec) -> CxVec:
    """
    Series losses of the branches
    :param R: resistances
    :param X: reactances
    :param Iseries: series currents
    :return: Ploss + j Qloss
    """
    i2 = np.power(np.abs(Iseries), 2)
    return i2 * R + 1j * i2 * X


def compute_charging_power(B: Vec, tap_module: Vec, active: BoolVec,
                           V: CxVec, F: IntVec, T: IntVec) -> Vec:
    """
    Reactive power produced by the branch charging susceptance
    :param B: branch total susceptance
    :param tap_module: tap modules
    :param active: branch states
    :param V: complex voltages
    :param F: from bus indices
    :param T: to bus indices
    :return: Q charging
    """
    vf = np.abs(V[F]) / tap_module
    vt = np.abs(V[T])
    return 0.5 * active * B * (vf * vf + vt * vt)


def compute_generator_power(system: PowerSystem, Sinj: CxVec, bus_types: IntVec, slack: int) -> Tuple[Vec, Vec]:
    """
    Split the power of every bus among its in-service generators.

    The reactive power of a bus is shared in proportion to the reactive range of its generators.
    Infinite limits are replaced by a bus-wide value larger than any of the quantities involved.
    The first generator of the slack bus takes the active power not provided by the others.

    :param system: PowerSystem
    :param Sinj: computed bus power injections
    :param bus_types: bus types used in the solution (BusMode values)
    :param slack: slack bus index
    :return: P and Q per generator (zero for the generators out of service)
    """
    ngen = system.get_generator_number()
    Pg = np.zeros(ngen)
    Qg = np.zeros(ngen)

    bus_dict = system.get_bus_index_dict()
    gen_idx = {g: k for k, g in enumerate(system.generators)}
    Sd = system.get_Sd()

    for bus, gens in system.get_generators_by_bus(only_active=True).items():
        i = bus_dict[bus]

        # reactive power of the generators of the bus
        if bus_types[i] == BusMode.PQ_tpe.value:
            q_total = sum(g.Q for g in gens)
        else:
            q_total = Sinj[i].imag + Sd[i].imag

        qmin = np.array([g.Qmin for g in gens], dtype=float)
        qmax = np.array([g.Qmax for g in gens], dtype=float)

        big = abs(q_total) + np.abs(qmin[np.isfinite(qmin)]).sum() + np.abs(qmax[np.isfinite(qmax)]).sum()
        qmin = np.where(np.isinf(qmin), np.sign(qmin) * big, qmin)
        qmax = np.where(np.isinf(qmax), np.sign(qmax) * big, qmax)

        qmin_total = qmin.sum()
        qmax_total = qmax.sum()

        if abs(qmax_total - qmin_total) > 10 * np.finfo(float).eps:
            q = qmin + (q_total - qmin_total) / (qmax_total - qmin_total) * (qmax - qmin)
        else:
            q = qmin + (q_total - qmin_total) / len(gens)

        for g, qi in zip(gens, q):
            Qg[gen_idx[g]] = qi
            Pg[gen_idx[g]] = g.P

        if i == slack:
            first = gen_idx[gens[0]]
            Pg[first] = Sinj[i].real + Sd[i].real - sum(g.P for g in gens[1:])

    return Pg, Qg


def compute_supply(system: PowerSystem, Sinj: CxVec, bus_types: IntVec, slack: int) -> CxVec:
    """
    Generation per bus: the stored outputs for the demand buses,
    the reactive power derived from the injection for the generator buses and both for the slack
    :param system: PowerSystem
    :param Sinj: computed bus power injections
    :param bus_types: bus types used in the solution (BusMode values)
    :param slack: slack bus index
    :return: complex supply per bus
    """
    Sgen = system.get_Sgen()
    Sd = system.get_Sd()

    P = Sgen.real.copy()
    Q = np.where(bus_types != BusMode.PQ_tpe.value, Sinj.imag + Sd.imag, Sgen.imag)
    P[slack] = Sinj[slack].real + Sd[slack].real

    return P + 1j * Q


class AcPowerAnalysis:
    """
    Powers and currents of an AC solution
    """

    def __init__(self, system: PowerSystem, V: CxVec, bus_types: IntVec, slack: int):
        """
        :param system: PowerSystem
        :param V: complex bus voltages
        :param bus_types: bus types used in the solution (BusMode values)
        :param slack: slack bus index
        """
        adm = system.get_ac_model()
        F, T, R, X, G, B, m, tau, active = system.get_branch_arrays()

        self.V = V

        # buses
        self.Ibus: CxVec = adm.Ybus @ V
        self.Sbus: CxVec = V * np.conj(self.Ibus)
        self.Sd: CxVec = system.get_Sd()
        self.Sshunt: CxVec = compute_shunt_power(adm.Yshunt_bus, V)
        self.Ssupply: CxVec = compute_supply(system, self.Sbus, bus_types, slack)

        # branches
        self.Sf, self.St, self.If, self.It = compute_branch_power(adm, V, F, T)
        self.Iseries: CxVec = compute_series_current(R, X, m, tau, active, V, F, T)
        self.losses: CxVec = compute_branch_losses(R, X, self.Iseries)
        self.Qcharging: Vec = compute_charging_power(B, m, active, V, F, T)

        # generators
        self.Pgen, self.Qgen = compute_generator_power(system, self.Sbus, bus_types, slack)
