# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List
import numpy as np
import pandas as pd
from GridStateEngine.basic_structures import IntVec, StrVec, Vec
from GridStateEngine.Devices.measurement import MeasurementTemplate
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from GridStateEngine.Simulations.StateEstimation.bad_data import BadData


class StateEstimationResults(PowerFlowResults):
    """
    Results of a state estimation: the power flow results of the estimated state,
    the measurement residuals and the bad data removed on the way
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
        PowerFlowResults.__init__(self,
                                  n=n,
                                  m=m,
                                  n_gen=n_gen,
                                  bus_names=bus_names,
                                  branch_names=branch_names,
                                  gen_names=gen_names,
                                  bus_types=bus_types)

        self.bad_data: List[BadData] = list()

        self.residual_labels: List[str] = list()
        self.residual_types: List[str] = list()
        self.residuals: Vec = np.zeros(0)
        self.residual_variances: Vec = np.zeros(0)

    def set_residuals(self, row_devices: List[MeasurementTemplate], residual: Vec, variances: Vec) -> None:
        """
        Store the residual of every row of the measurement model
        :param row_devices: device of each row
        :param residual: z - h(x)
        :param variances: measurement variance of each row
        """
        self.residual_labels = [d.name for d in row_devices]
        self.residual_types = [d.device_type.value for d in row_devices]
        self.residuals = residual.copy()
        self.residual_variances = variances.copy()

    def get_residuals_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the measurement residuals
        :return: DataFrame
        """
        return pd.DataFrame(data={'Type': self.residual_types,
                                  'Label': self.residual_labels,
                                  'Residual': self.residuals,
                                  'Variance': self.residual_variances})

    def get_bad_data_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the removed measurements
        :return: DataFrame
        """
        return pd.DataFrame(data={'Type': [b.device_type.value for b in self.bad_data],
                                  'Label': [b.label for b in self.bad_data],
                                  'Normalized residual': [b.max_normalized_residual for b in self.bad_data]})
