# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import List, Union

from GridStateEngine.basic_structures import Logger, ConvergenceReport
from GridStateEngine.enumerations import StateEstimationModel, StateEstimationMethod
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Simulations.StateEstimation.state_estimation_options import StateEstimationOptions
from GridStateEngine.Simulations.StateEstimation.state_estimation_results import StateEstimationResults
from GridStateEngine.Simulations.StateEstimation.state_estimator import StateEstimator
from GridStateEngine.Simulations.StateEstimation.dc_state_estimation import DcStateEstimator
from GridStateEngine.Simulations.StateEstimation.pmu_state_estimation import PmuStateEstimator
from GridStateEngine.Simulations.StateEstimation.ac_state_estimation import AcStateEstimator
from GridStateEngine.Simulations.StateEstimation.bad_data import BadData, residual_test


def create_state_estimator(measurements: MeasurementSet,
                           options: Union[StateEstimationOptions, None] = None,
                           logger: Union[Logger, None] = None) -> StateEstimator:
    """
    Build the estimator of the model selected in the options
    :param measurements: MeasurementSet
    :param options: StateEstimationOptions
    :param logger: Logger
    :return: StateEstimator
    """
    if options is None:
        options = StateEstimationOptions()

    if options.model == StateEstimationModel.DC:
        return DcStateEstimator(measurements,
                                method=options.method,
                                factorization=options.factorization,
                                mip_solver=options.mip_solver,
                                logger=logger)

    elif options.model == StateEstimationModel.PMU:
        return PmuStateEstimator(measurements,
                                 method=options.method,
                                 factorization=options.factorization,
                                 mip_solver=options.mip_solver,
                                 correlated_pmu=options.correlated_pmu,
                                 logger=logger)

    elif options.model == StateEstimationModel.AC:
        return AcStateEstimator(measurements,
                                method=options.method,
                                factorization=options.factorization,
                                tolerance=options.tolerance,
                                max_iter=options.max_iter,
                                polar_current_pmu=options.polar_current_pmu,
                                mip_solver=options.mip_solver,
                                logger=logger)

    else:
        raise Exception(str(options.model) + ' Not supported in state estimation mode')


class StateEstimationConvergenceReport(ConvergenceReport):
    """
    Convergence report with the outcome of the residual test of every pass
    """

    def __init__(self) -> None:
        """
        Constructor
        """
        super().__init__()
        self.bad_data_detected = list()

    def add_se(self, method,
               converged: bool,
               error: float,
               elapsed: float,
               iterations: int,
               bad_data_detected: bool):
        """

        :param method:
        :param converged:
        :param error:
        :param elapsed:
        :param iterations:
        :param bad_data_detected:
        :return:
        """
        self.add(method, converged, error, elapsed, iterations)
        self.bad_data_detected.append(bad_data_detected)


class StateEstimationDriver:
    """
    State estimation: solves, runs the residual test and removes the bad data one
    device per pass (up to max_bad_data_passes), then post-processes the estimate
    """
    name = 'State estimation'

    def __init__(self, measurements: MeasurementSet,
                 options: Union[StateEstimationOptions, None] = None,
                 logger: Union[Logger, None] = None):
        """
        StateEstimationDriver class constructor
        :param measurements: MeasurementSet (with its power system)
        :param options: StateEstimationOptions
        :param logger: Logger
        """
        self.measurements = measurements
        self.options = options if options is not None else StateEstimationOptions()
        self.logger = logger if logger is not None else Logger()

        self.estimator: Union[StateEstimator, None] = None
        self.results: Union[StateEstimationResults, None] = None
        self.bad_data: List[BadData] = list()

    def run(self) -> StateEstimationResults:
        """
        Run the state estimation
        :return: StateEstimationResults
        """
        self.estimator = create_state_estimator(self.measurements, self.options, self.logger)
        self.bad_data = list()
        report = StateEstimationConvergenceReport()

        test_residuals = self.options.method != StateEstimationMethod.LAV

        for it in range(self.options.max_bad_data_passes + 1):
            start = time.time()
            self.estimator.solve()

            detected = False
            if test_residuals and it < self.options.max_bad_data_passes:
                bad = residual_test(self.estimator, threshold=self.options.bad_data_threshold)
                detected = bad.detect
                if detected:
                    self.bad_data.append(bad)

            report.add_se(method=self.options.method,
                          converged=self.estimator.converged,
                          error=self.estimator.error,
                          elapsed=time.time() - start,
                          iterations=self.estimator.iterations,
                          bad_data_detected=detected)

            if self.options.verbose > 0:
                print("{0} pass {1}: bad data detected: {2}".format(self.estimator.name, it, detected))

            if not detected:
                break

        self.results = self.estimator.get_results()
        self.results.bad_data = self.bad_data
        self.results.convergence_reports = [report]
        self.results.elapsed = sum(report.elapsed_)

        return self.results
