# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

"""
This module abstracts the synthax of PuLP out
so that the LP / ILP formulations of the state estimation and observability
modules do not depend on the modelling library
"""
from __future__ import annotations

from typing import List, Union, Any
import pulp
from pulp import LpAffineExpression as LpExp
from pulp import LpConstraint as LpCst
from pulp import LpVariable as LpVar
from GridStateEngine.enumerations import MIPSolvers
from GridStateEngine.basic_structures import Logger
from GridStateEngine.exceptions import OptimizationError


def get_available_mip_solvers() -> List[str]:
    """
    Get a list of candidate solvers
    :return:
    """
    solvers = pulp.listSolvers(onlyAvailable=True)

    solvers2 = list()
    for slv in solvers:
        if slv == 'HiGHS':
            solvers2.append(MIPSolvers.HIGHS.value)
        elif slv == 'PULP_CBC_CMD':
            solvers2.append(MIPSolvers.CBC.value)

    return solvers2


class LpModel:
    """
    LPModel implementation for PuLP
    """
    OPTIMAL = pulp.LpStatusOptimal
    INFINITY = 1e20

    def __init__(self, solver_type: MIPSolvers = MIPSolvers.HIGHS, name: str = "problem"):
        """
        :param solver_type: MIPSolvers
        :param name: name of the problem, used in the logs and errors
        """
        self.solver_type: MIPSolvers = solver_type

        self.name = name

        self.model = pulp.LpProblem(name, pulp.LpMinimize)

        self.logger = Logger()

        self.status = pulp.LpStatusNotSolved

    def add_int(self, lb: int, ub: int, name: str = "") -> LpVar:
        """
        Make integer LP var
        :param lb: lower bound
        :param ub: upper bound
        :param name: name (optional)
        :return: LpVar
        """
        var = pulp.LpVariable(name=name, lowBound=lb, upBound=ub, cat=pulp.LpInteger)
        self.model.addVariable(var)
        return var

    def add_var(self, lb: Union[float, None], ub: Union[float, None], name: str = "") -> LpVar:
        """
        Make floating point LP var
        :param lb: lower bound (None for unbounded)
        :param ub: upper bound (None for unbounded)
        :param name: name (optional)
        :return: LpVar
        """
        var = pulp.LpVariable(name=name, lowBound=lb, upBound=ub, cat=pulp.LpContinuous)
        self.model.addVariable(var)
        return var

    def add_cst(self, cst: LpCst | bool, name: str = "") -> Union[LpCst, int]:
        """
        Add constraint to the model
        :param cst: constraint object (or general expression)
        :param name: name of the constraint (optional)
        :return: Constraint object
        """
        if isinstance(cst, bool):
            return 0
        else:
            return self.model.addConstraint(constraint=cst, name=name)

    @staticmethod
    def sum(cst) -> LpExp:
        """
        Add sum of the constraints to the model
        :param cst: constraint object (or general expression)
        :return: Constraint object
        """
        return pulp.lpSum(cst)

    def minimize(self, obj_function: LpExp):
        """
        Set the objective function with minimization sense
        :param obj_function: expression to minimize
        """
        self.model.setObjective(obj=obj_function)

    def get_solver(self, show_logs: bool = False):
        """
        Get the PuLP solver object
        :param show_logs: show the solver output?
        :return: solver
        """
        if self.solver_type == MIPSolvers.HIGHS:
            return pulp.HiGHS(mip=self.model.isMIP(), msg=show_logs)

        elif self.solver_type == MIPSolvers.CBC:
            return pulp.PULP_CBC_CMD(mip=self.model.isMIP(), msg=show_logs)

        else:
            raise Exception('PuLP Unsupported MIP solver ' + self.solver_type.value)

    def solve(self, show_logs: bool = False) -> int:
        """
        Solve the model, retrying with CBC if the selected solver is not usable
        :param show_logs: show the solver output?
        :return: status
        """
        try:
            status = self.model.solve(solver=self.get_solver(show_logs=show_logs))
        except pulp.PulpSolverError as e:
            self.logger.add_error(msg=str(e), device=self.name)
            self.logger.add_error(msg="Retrying with CBC", device=self.name, value=self.solver_type.value)
            status = self.model.solve(solver=pulp.PULP_CBC_CMD(mip=self.model.isMIP(), msg=show_logs))

        self.status = status

        if status != self.OPTIMAL:
            self.logger.add_error(msg="The problem could not be solved", device=self.name,
                                  value=self.status2string(status))

        return status

    def solve_or_raise(self, show_logs: bool = False) -> None:
        """
        Solve the model, raising OptimizationError if the solution is not optimal
        :param show_logs: show the solver output?
        """
        status = self.solve(show_logs=show_logs)
        if status != self.OPTIMAL:
            raise OptimizationError(self.name, self.status2string(status))

    @staticmethod
    def get_value(x: Union[float, int, LpVar, LpExp, Any]) -> float:
        """
        Get the value of a variable stored in a numpy array of objects
        :param x: solver object (it may be a LP var or a number)
        :return: result or zero
        """
        if isinstance(x, LpVar):
            val = x.value()
        elif isinstance(x, LpExp):
            val = x.value()
        elif isinstance(x, float) or isinstance(x, int):
            return x
        else:
            raise Exception("Unrecognized type {}".format(x))

        if val is None:
            return 0.0
        else:
            return float(val)

    @staticmethod
    def status2string(stat: int) -> str:
        """
        Convert the PuLP status to a string
        :param stat:
        :return:
        """
        return pulp.LpStatus[stat]
