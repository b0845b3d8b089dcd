# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0


class GridStateError(Exception):
    """Base class for exceptions in this package."""

    def __init__(self, message: str = "GridStateEngine error"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(GridStateError):
    """Base class for invalid model definitions, raised when the model is constructed."""
    pass


class SlackError(ConfigurationError):
    """Exception raised when there is a problem with the slack bus in a power flow study."""

    def __init__(self, message="No generator bus with an in-service generator is available to become the slack bus"):
        super().__init__(message)


class CostFunctionError(ConfigurationError):
    """Exception raised when a generator cost function cannot be evaluated."""

    def __init__(self, generator: str, message="has an undefined cost function"):
        self.generator = generator
        super().__init__(f"The generator {generator} {message}")


class LabelError(ConfigurationError):
    """Exception raised for duplicated or unknown labels."""

    def __init__(self, label, element: str, message="does not exist"):
        self.label = label
        self.element = element
        super().__init__(f"The {element} label {label} {message}")


class BranchDefinitionError(ConfigurationError):
    """Exception raised when a branch cannot be modelled."""

    def __init__(self, branch: str, message="is not valid"):
        self.branch = branch
        super().__init__(f"The branch {branch} {message}")


class MeasurementError(ConfigurationError):
    """Exception raised for invalid measurement data."""

    def __init__(self, device: str, message="has invalid data"):
        self.device = device
        super().__init__(f"The measurement {device} {message}")


class ModelReuseError(ConfigurationError):
    """Exception raised when a solver cannot absorb a change to the power system."""

    def __init__(self, solver: str, message="cannot be reused due to required bus type conversion"):
        self.solver = solver
        super().__init__(f"The {solver} model {message}")


class NumericalError(GridStateError):
    """Base class for failures of the numerical methods."""
    pass


class SingularMatrixError(NumericalError):
    """Exception raised when a factorization finds a singular matrix."""

    def __init__(self, matrix: str, message="is singular and cannot be factorized"):
        self.matrix = matrix
        super().__init__(f"The {matrix} {message}")


class RectangularJacobianError(NumericalError):
    """Exception raised when the Jacobian matrix used in power flow calculation is not square."""

    def __init__(self, rows, columns, message="Jacobian matrix must be square"):
        self.rows = rows
        self.columns = columns
        super().__init__(f"{message}: found {rows}x{columns}")


class OrthogonalMethodError(NumericalError):
    """Exception raised when the orthogonal method meets a correlated precision matrix."""

    def __init__(self, message="The non-diagonal precision matrix prevents using the orthogonal method"):
        super().__init__(message)


class OptimizationError(NumericalError):
    """Exception raised when the LP/MIP solver does not reach an optimal solution."""

    def __init__(self, problem: str, status: str):
        self.problem = problem
        self.status = status
        super().__init__(f"The {problem} problem could not be solved: {status}")
