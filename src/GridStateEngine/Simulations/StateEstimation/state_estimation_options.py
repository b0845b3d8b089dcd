# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.enumerations import (StateEstimationModel, StateEstimationMethod, FactorizationType,
                                          MIPSolvers)
from GridStateEngine.Simulations.options_template import OptionsTemplate


class StateEstimationOptions(OptionsTemplate):
    """
    State estimation options
    """

    def __init__(self,
                 model: StateEstimationModel = StateEstimationModel.DC,
                 method: StateEstimationMethod = StateEstimationMethod.WLS,
                 factorization: FactorizationType = FactorizationType.LU,
                 tolerance: float = 1e-8,
                 max_iter: int = 20,
                 bad_data_threshold: float = 3.0,
                 max_bad_data_passes: int = 0,
                 correlated_pmu: bool = False,
                 polar_current_pmu: bool = False,
                 mip_solver: MIPSolvers = MIPSolvers.HIGHS,
                 verbose: int = 0):
        """
        StateEstimationOptions
        :param model: measurement model (DC, PMU or AC)
        :param method: WLS (normal equations), ORTHOGONAL or LAV
        :param factorization: factorization of the gain matrix (normal equations)
        :param tolerance: state increment tolerance of the nonlinear AC estimator
        :param max_iter: maximum number of iterations of the nonlinear AC estimator
        :param bad_data_threshold: largest acceptable normalized residual
        :param max_bad_data_passes: number of residual tests (each one removes at most one device)
        :param correlated_pmu: keep the covariance of the PMU rectangular components for all the PMUs
        :param polar_current_pmu: current phasors as magnitude and angle rows in the AC estimator
        :param mip_solver: LP solver for the LAV method
        :param verbose: Verbosity level
        """
        OptionsTemplate.__init__(self, name='StateEstimationOptions')

        self.model = model

        self.method = method

        self.factorization = factorization

        self.tolerance = tolerance

        self.max_iter = max_iter

        self.bad_data_threshold = bad_data_threshold

        self.max_bad_data_passes = max_bad_data_passes

        self.correlated_pmu = correlated_pmu

        self.polar_current_pmu = polar_current_pmu

        self.mip_solver = mip_solver

        self.verbose = verbose

        self.register(key="model", tpe=StateEstimationModel)
        self.register(key="method", tpe=StateEstimationMethod)
        self.register(key="factorization", tpe=FactorizationType)
        self.register(key="tolerance", tpe=float)
        self.register(key="max_iter", tpe=int)
        self.register(key="bad_data_threshold", tpe=float)
        self.register(key="max_bad_data_passes", tpe=int)
        self.register(key="correlated_pmu", tpe=bool)
        self.register(key="polar_current_pmu", tpe=bool)
        self.register(key="mip_solver", tpe=MIPSolvers)
        self.register(key="verbose", tpe=int)
