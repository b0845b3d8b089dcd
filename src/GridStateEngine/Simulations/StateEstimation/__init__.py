# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Simulations.StateEstimation.state_estimation_options import StateEstimationOptions
from GridStateEngine.Simulations.StateEstimation.state_estimation_inputs import StateEstimationInput
from GridStateEngine.Simulations.StateEstimation.state_estimation_results import StateEstimationResults
from GridStateEngine.Simulations.StateEstimation.state_estimator import StateEstimator
from GridStateEngine.Simulations.StateEstimation.dc_state_estimation import DcStateEstimator
from GridStateEngine.Simulations.StateEstimation.pmu_state_estimation import PmuStateEstimator
from GridStateEngine.Simulations.StateEstimation.ac_state_estimation import AcStateEstimator
from GridStateEngine.Simulations.StateEstimation.bad_data import BadData, residual_test, normalized_residuals
from GridStateEngine.Simulations.StateEstimation.measurement_generation import (MeasurementGenerator,
                                                                                generate_measurements)
from GridStateEngine.Simulations.StateEstimation.state_estimation_driver import (StateEstimationDriver,
                                                                                 create_state_estimator)
