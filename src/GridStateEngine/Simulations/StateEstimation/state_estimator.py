# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, Union
import numpy as np
import scipy.sparse as sp

from GridStateEngine.basic_structures import Logger, Vec, CxVec
from GridStateEngine.enumerations import StateEstimationModel, StateEstimationMethod, FactorizationType, MIPSolvers
from GridStateEngine.exceptions import GridStateError
from GridStateEngine.Devices.measurement import MeasurementTemplate
from GridStateEngine.Devices.measurement_set import MeasurementSet
from GridStateEngine.Simulations.StateEstimation.state_estimation_inputs import StateEstimationInput
from GridStateEngine.Simulations.StateEstimation.state_estimation_results import StateEstimationResults
from GridStateEngine.Simulations.PostProcessing.ac_analysis import AcPowerAnalysis
from GridStateEngine.Simulations.PostProcessing.dc_analysis import DcPowerAnalysis


class StateEstimator:
    """
    Common machinery of the state estimators.

    The measurement model (H, the precision matrix W and the gain matrix factorization)
    is kept while the network, the measurement set and the slack bus stay the same.
    The measurement means are read from the devices on every solve, so updating
    a measured value does not force rebuilding the model.

    After solve(), the estimator exposes what the residual test needs:

        - H_red: Jacobian at the solution without the fixed state columns
        - W: precision matrix (inverse of the covariance)
        - variances: diagonal of the covariance matrix
        - residual: z - h(x) per row
        - row_devices: device of every row (a PMU owns two rows)
    """
    model: StateEstimationModel = StateEstimationModel.DC

    def __init__(self,
                 measurements: MeasurementSet,
                 method: StateEstimationMethod = StateEstimationMethod.WLS,
                 factorization: FactorizationType = FactorizationType.LU,
                 mip_solver: MIPSolvers = MIPSolvers.HIGHS,
                 correlated_pmu: bool = False,
                 logger: Union[Logger, None] = None):
        """
        :param measurements: MeasurementSet (its system is the estimated network)
        :param method: WLS, ORTHOGONAL or LAV
        :param factorization: factorization of the gain matrix
        :param mip_solver: LP solver of the LAV method
        :param correlated_pmu: keep the rectangular covariance of every PMU
        :param logger: Logger
        """
        self.measurements = measurements
        self.system = measurements.system
        self.method = method
        self.factorization = factorization
        self.mip_solver = mip_solver
        self.correlated_pmu = correlated_pmu
        self.logger = logger if logger is not None else Logger()

        self.inputs: Union[StateEstimationInput, None] = None

        self.H_red: Union[sp.csc_matrix, None] = None
        self.W: Union[sp.csc_matrix, None] = None
        self.variances: Vec = np.zeros(0)
        self.residual: Vec = np.zeros(0)
        self.row_devices: List[MeasurementTemplate] = list()

        self.slack = 0
        self.V: CxVec = np.zeros(0, dtype=complex)

        self.solved = False
        self.converged = False
        self.iterations = 0
        self.error = 0.0

        # model key of the stored matrices (None: not built)
        self.model_key: Union[Tuple[int, int, int, int], None] = None

    @property
    def name(self) -> str:
        return "{0} state estimation, {1}".format(self.model.name, self.method)

    def get_model_key(self) -> Tuple[int, int, int, int]:
        """
        Key of the data the measurement model depends on
        :return: network revision, pattern revision, measurement revision, slack index
        """
        return (self.system.model_revision, self.system.pattern_revision,
                self.measurements.revision, self.system.get_slack_index())

    def model_is_valid(self) -> bool:
        """
        Are the stored matrices built with the current network and measurements?
        """
        return self.model_key is not None and self.model_key == self.get_model_key()

    def invalidate(self) -> None:
        """
        Drop the stored measurement model
        """
        self.model_key = None
        self.solved = False

    def collect_measurements(self) -> None:
        """
        Read the in-service devices and the slack bus
        """
        self.inputs = StateEstimationInput(self.measurements)
        self.slack = self.system.get_slack_index()

    def solve(self) -> None:
        """
        Estimate the state
        """
        raise NotImplementedError()

    def check_solved(self) -> None:
        """
        Raise if there is no solution to work with
        """
        if not self.solved:
            raise GridStateError("The {} has not been solved".format(self.name))

    def objective_value(self) -> float:
        """
        Weighted sum of squared residuals of the last solution: r^T W r
        """
        self.check_solved()
        return float(self.residual @ (self.W @ self.residual))

    def get_Va(self) -> Vec:
        """
        Estimated voltage angles (rad)
        """
        return np.angle(self.V)

    def get_Vm(self) -> Vec:
        """
        Estimated voltage magnitudes (p.u.)
        """
        return np.abs(self.V)

    def get_results(self) -> StateEstimationResults:
        """
        Post-process the estimated state
        :return: StateEstimationResults
        """
        self.check_solved()

        results = StateEstimationResults(n=self.system.get_bus_number(),
                                         m=self.system.get_branch_number(),
                                         n_gen=self.system.get_generator_number(),
                                         bus_names=np.array(self.system.get_bus_names()),
                                         branch_names=np.array(self.system.get_branch_names()),
                                         gen_names=np.array([g.name for g in self.system.generators]),
                                         bus_types=self.system.get_bus_types())

        if self.model == StateEstimationModel.DC:
            results.apply_dc(DcPowerAnalysis(self.system, np.angle(self.V), self.slack))
        else:
            results.apply_ac(AcPowerAnalysis(self.system, self.V, self.system.get_bus_types(), self.slack))

        results.converged = self.converged
        results.iterations = self.iterations
        results.error = self.error
        results.method = self.method
        results.set_residuals(self.row_devices, self.residual, self.variances)

        return results
