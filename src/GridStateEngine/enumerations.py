# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from enum import Enum


class BusMode(Enum):
    """
    Bus modes
    """
    PQ_tpe = 1  # demand bus: P, Q given
    PV_tpe = 2  # generator bus: P, Vm given
    Slack_tpe = 3  # slack bus: Vm, Va given

    def __str__(self):
        return self.as_str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BusMode[s]
        except KeyError:
            return s

    @staticmethod
    def as_str(val: int) -> str:
        """
        Get the string representation of the numeric value
        :param val:
        :return:
        """
        if val == 1:
            return "PQ"
        elif val == 2:
            return "PV"
        elif val == 3:
            return "Slack"
        else:
            return ""


class SolverType(Enum):
    """
    Power flow algorithms
    """

    NR = 'Newton Raphson'
    FASTDECOUPLED_BX = 'Fast decoupled BX'
    FASTDECOUPLED_XB = 'Fast decoupled XB'
    GAUSS = 'Gauss-Seidel'
    DC = 'Linear DC'

    def __str__(self) -> str:
        """

        :return:
        """
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SolverType[s]
        except KeyError:
            return s


class FactorizationType(Enum):
    """
    Sparse factorizations available to the linear systems
    """
    LU = 'LU'
    LDLt = 'LDLt'
    QR = 'QR'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return FactorizationType[s]
        except KeyError:
            return s


class StateEstimationMethod(Enum):
    """
    Ways of solving the linear estimation problem
    """
    WLS = 'Weighted least squares (normal equations)'
    ORTHOGONAL = 'Weighted least squares (orthogonal)'
    LAV = 'Least absolute value'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return StateEstimationMethod[s]
        except KeyError:
            return s


class StateEstimationModel(Enum):
    """
    Measurement models of the state estimation
    """
    DC = 'DC (angles and active power)'
    PMU = 'PMU (rectangular voltages)'
    AC = 'AC (polar voltages, nonlinear)'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return StateEstimationModel[s]
        except KeyError:
            return s


class MeasurementSide(Enum):
    """
    Place where a measurement device is attached
    """
    Bus = 'Bus'
    From = 'From'
    To = 'To'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class ModelChange(Enum):
    """
    Kinds of updates applied to a power system after a solver has been built
    """
    BusAdded = 'Bus added'
    BusType = 'Bus type'
    Demand = 'Demand'
    BusShunt = 'Bus shunt'
    VoltageSetpoint = 'Voltage set point'
    BranchAdded = 'Branch added'
    BranchStatus = 'Branch status'
    BranchParameter = 'Branch parameter'
    GeneratorAdded = 'Generator added'
    GeneratorStatus = 'Generator status'
    GeneratorOutput = 'Generator output'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    def affects_nodal_values(self) -> bool:
        """
        Does this change modify the values stored in the nodal matrices?
        :return: bool
        """
        return self in (ModelChange.BranchAdded, ModelChange.BranchStatus,
                        ModelChange.BranchParameter, ModelChange.BusAdded)

    def affects_nodal_pattern(self) -> bool:
        """
        Does this change modify the sparsity pattern of the nodal matrices?
        :return: bool
        """
        return self in (ModelChange.BranchAdded, ModelChange.BusAdded)


class CostModel(Enum):
    """
    Generator cost function types
    """
    NoCost = 'None'
    Polynomial = 'Polynomial'
    Piecewise = 'Piecewise linear'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class MIPSolvers(Enum):
    """
    MIP solvers enumeration
    """
    HIGHS = 'HIGHS'
    CBC = 'CBC'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return MIPSolvers[s]
        except KeyError:
            return MIPSolvers.HIGHS


class LogSeverity(Enum):
    """
    Enumeration of logs severities
    """
    Error = 'Error'
    Warning = 'Warning'
    Information = 'Information'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LogSeverity[s]
        except KeyError:
            return s


class DeviceType(Enum):
    """
    Device types
    """
    BusDevice = 'Bus'
    BranchDevice = 'Branch'
    GeneratorDevice = 'Generator'
    VoltmeterDevice = 'Voltmeter'
    AmmeterDevice = 'Ammeter'
    WattmeterDevice = 'Wattmeter'
    VarmeterDevice = 'Varmeter'
    PmuDevice = 'PMU'
    SimulationOptionsDevice = 'SimulationOptionsDevice'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return DeviceType[s]
        except KeyError:
            return s
