# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
import pandas as pd
from typing import List
from GridStateEngine.basic_structures import IntVec, Vec, StrVec, CxVec, ConvergenceReport
from GridStateEngine.enumerations import BusMode
from GridStateEngine.Simulations.PostProcessing.ac_analysis import AcPowerAnalysis
from GridStateEngine.Simulations.PostProcessing.dc_analysis import DcPowerAnalysis


class PowerFlowResults:
    """
    A **PowerFlowResults** object is returned by the power flow driver.
    It gives access to the bus, branch and generator results of the last solution.
    All the magnitudes are in p.u.
    """

    def __init__(self,
                 n: int,
                 m: int,
                 n_gen: int,
                 bus_names: StrVec,
                 branch_names: StrVec,
                 gen_names: StrVec,
                 bus_types: IntVec):
        """
        :param n: number of buses
        :param m: number of branches
        :param n_gen: number of generators
        :param bus_names: list of bus names
        :param branch_names: list of branch names
        :param gen_names: list of generator names
        :param bus_types: array of bus types
        """
        self.bus_names: StrVec = bus_names
        self.branch_names: StrVec = branch_names
        self.gen_names: StrVec = gen_names
        self.bus_types: IntVec = bus_types

        self.voltage: CxVec = np.zeros(n, dtype=complex)
        self.Sbus: CxVec = np.zeros(n, dtype=complex)
        self.Sgen_bus: CxVec = np.zeros(n, dtype=complex)
        self.Sshunt: CxVec = np.zeros(n, dtype=complex)
        self.Ibus: CxVec = np.zeros(n, dtype=complex)

        self.Sf: CxVec = np.zeros(m, dtype=complex)
        self.St: CxVec = np.zeros(m, dtype=complex)
        self.If: CxVec = np.zeros(m, dtype=complex)
        self.It: CxVec = np.zeros(m, dtype=complex)
        self.Iseries: CxVec = np.zeros(m, dtype=complex)
        self.losses: CxVec = np.zeros(m, dtype=complex)
        self.Qcharging: Vec = np.zeros(m)

        self.gen_p: Vec = np.zeros(n_gen)
        self.gen_q: Vec = np.zeros(n_gen)

        # per generator: -1 / 1 when the reactive limits were enforced
        self.q_violations: IntVec = np.zeros(n_gen, dtype=int)

        self.convergence_reports: List[ConvergenceReport] = list()

        self.converged = False
        self.error = 0.0
        self.iterations = 0
        self.elapsed = 0.0
        self.method = None

    def apply_ac(self, analysis: AcPowerAnalysis) -> None:
        """
        Store the results of an AC solution
        :param analysis: AcPowerAnalysis
        """
        self.voltage = analysis.V
        self.Sbus = analysis.Sbus
        self.Sgen_bus = analysis.Ssupply
        self.Sshunt = analysis.Sshunt
        self.Ibus = analysis.Ibus
        self.Sf = analysis.Sf
        self.St = analysis.St
        self.If = analysis.If
        self.It = analysis.It
        self.Iseries = analysis.Iseries
        self.losses = analysis.losses
        self.Qcharging = analysis.Qcharging
        self.gen_p = analysis.Pgen
        self.gen_q = analysis.Qgen

    def apply_dc(self, analysis: DcPowerAnalysis) -> None:
        """
        Store the results of a DC solution (the magnitudes are 1 p.u.)
        :param analysis: DcPowerAnalysis
        """
        self.voltage = np.exp(1j * analysis.Va)
        self.Sbus = analysis.Pinj + 0j
        self.Sgen_bus = analysis.Psupply + 0j
        self.Sshunt = analysis.Pshunt + 0j
        self.Sf = analysis.Pf + 0j
        self.St = analysis.Pt + 0j
        self.losses = np.zeros(len(analysis.Pf), dtype=complex)
        self.gen_p = analysis.Pgen

    @property
    def Vm(self) -> Vec:
        return np.abs(self.voltage)

    @property
    def Va(self) -> Vec:
        return np.angle(self.voltage)

    def get_report_dataframe(self, idx: int = -1) -> pd.DataFrame:
        """
        Get a DataFrame containing a convergence report
        :param idx: index of the report (the last one by default)
        :return: DataFrame
        """
        report = self.convergence_reports[idx]
        data = {'Method': report.methods_,
                'Converged?': report.converged_,
                'Error': report.error_,
                'Elapsed (s)': report.elapsed_,
                'Iterations': report.iterations_}

        return pd.DataFrame(data)

    def get_bus_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the buses results
        :return: DataFrame
        """
        return pd.DataFrame(data={'Type': [BusMode.as_str(t) for t in self.bus_types],
                                  'Vm': np.abs(self.voltage),
                                  'Va': np.angle(self.voltage, deg=True),
                                  'P': self.Sbus.real,
                                  'Q': self.Sbus.imag,
                                  'Pgen': self.Sgen_bus.real,
                                  'Qgen': self.Sgen_bus.imag,
                                  'Pshunt': self.Sshunt.real,
                                  'Qshunt': self.Sshunt.imag},
                            index=self.bus_names)

    def get_branch_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the branches results
        :return: DataFrame
        """
        return pd.DataFrame(data={'Pf': self.Sf.real,
                                  'Qf': self.Sf.imag,
                                  'Pt': self.St.real,
                                  'Qt': self.St.imag,
                                  'If': np.abs(self.If),
                                  'It': np.abs(self.It),
                                  'Is': np.abs(self.Iseries),
                                  'Is_angle': np.angle(self.Iseries, deg=True),
                                  'Qcharging': self.Qcharging,
                                  "Ploss": self.losses.real,
                                  "Qloss": self.losses.imag},
                            index=self.branch_names)

    def get_generator_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the generators results
        :return: DataFrame
        """
        return pd.DataFrame(data={'P': self.gen_p,
                                  'Q': self.gen_q,
                                  'Q limit': self.q_violations},
                            index=self.gen_names)
