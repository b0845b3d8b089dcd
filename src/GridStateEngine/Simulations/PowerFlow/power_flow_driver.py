# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import Union, List, Tuple
import numpy as np

from GridStateEngine.basic_structures import Logger, ConvergenceReport
from GridStateEngine.enumerations import SolverType, FactorizationType
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from GridStateEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.power_flow_solver import PowerFlowSolver
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphsonPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.fast_decoupled import FastDecoupledPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.gauss_seidel import GaussSeidelPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.dc_power_flow import DcPowerFlow
from GridStateEngine.Simulations.PowerFlow.NumericalMethods.reactive_limits import (reactive_power_limit,
                                                                                    adjust_angle)
from GridStateEngine.Simulations.PostProcessing.ac_analysis import AcPowerAnalysis
from GridStateEngine.Simulations.PostProcessing.dc_analysis import DcPowerAnalysis


def create_power_flow(system: PowerSystem,
                      solver_type: SolverType = SolverType.NR,
                      factorization: FactorizationType = FactorizationType.LU,
                      logger: Union[Logger, None] = None) -> PowerFlowSolver:
    """
    Build a power flow solver for a system
    :param system: PowerSystem
    :param solver_type: SolverType
    :param factorization: FactorizationType
    :param logger: Logger
    :return: PowerFlowSolver
    """
    if solver_type == SolverType.NR:
        return NewtonRaphsonPowerFlow(system, factorization=factorization, logger=logger)

    elif solver_type == SolverType.FASTDECOUPLED_BX:
        return FastDecoupledPowerFlow(system, bx=True, factorization=factorization, logger=logger)

    elif solver_type == SolverType.FASTDECOUPLED_XB:
        return FastDecoupledPowerFlow(system, bx=False, factorization=factorization, logger=logger)

    elif solver_type == SolverType.GAUSS:
        return GaussSeidelPowerFlow(system, factorization=factorization, logger=logger)

    elif solver_type == SolverType.DC:
        return DcPowerFlow(system, factorization=factorization, logger=logger)

    else:
        raise Exception(str(solver_type) + ' Not supported in power flow mode')


def run_solver(solver: PowerFlowSolver, tolerance: float = 1e-8, max_iter: int = 20,
               verbose: int = 0) -> Tuple[bool, float, int, float]:
    """
    Iterate a solver: mismatch, check, solve, until the tolerance or the iteration limit is reached
    :param solver: PowerFlowSolver
    :param tolerance: maximum mismatch (p.u.)
    :param max_iter: maximum number of iterations
    :param verbose: print the mismatch of every iteration?
    :return: converged, error, iterations, elapsed
    """
    start = time.time()

    if solver.method == SolverType.DC:
        solver.solve()
        return True, 0.0, solver.iterations, time.time() - start

    converged = False
    error = 0.0
    for it in range(max_iter + 1):
        stop_p, stop_q = solver.mismatch()
        error = max(stop_p, stop_q)

        if verbose > 0:
            print("{0} iteration {1}: P mismatch {2:.3e}, Q mismatch {3:.3e}".format(solver.name, it,
                                                                                     stop_p, stop_q))

        if error < tolerance:
            converged = True
            break

        if it < max_iter:
            solver.solve()

    return converged, error, solver.iterations, time.time() - start


class PowerFlowDriver:
    """
    Power flow: builds the solver, iterates it, enforces the reactive power limits (optional)
    and post-processes the solution
    """
    name = 'Power Flow'

    def __init__(self, system: PowerSystem,
                 options: Union[PowerFlowOptions, None] = None,
                 logger: Union[Logger, None] = None):
        """
        PowerFlowDriver class constructor
        :param system: PowerSystem
        :param options: PowerFlowOptions (optional)
        :param logger: Logger (optional)
        """
        self.system = system
        self.options: PowerFlowOptions = PowerFlowOptions() if options is None else options
        self.logger = logger if logger is not None else Logger()

        self.solver: Union[PowerFlowSolver, None] = None
        self.results: Union[PowerFlowResults, None] = None
        self.convergence_reports: List[ConvergenceReport] = list()

    def get_solver_list(self) -> List[SolverType]:
        """
        List of methods to try
        """
        if self.options.retry_with_other_methods and self.options.solver_type != SolverType.DC:
            solver_list = [SolverType.NR,
                           SolverType.FASTDECOUPLED_XB,
                           SolverType.GAUSS]

            if self.options.solver_type in solver_list:
                solver_list.remove(self.options.solver_type)

            return [self.options.solver_type] + solver_list

        return [self.options.solver_type]

    def _solve_once(self, report: ConvergenceReport, V0=None) -> bool:
        """
        Run the list of methods until one converges
        :param report: ConvergenceReport to fill
        :param V0: initial voltage (optional)
        :return: converged?
        """
        converged = False
        for solver_type in self.get_solver_list():

            self.solver = create_power_flow(self.system,
                                            solver_type=solver_type,
                                            factorization=self.options.factorization,
                                            logger=self.logger)

            if V0 is not None and solver_type != SolverType.DC:
                self.solver.Vm = np.abs(V0)
                self.solver.Va = np.angle(V0)
                self.solver.update_voltage_setpoints()

            converged, error, iterations, elapsed = run_solver(self.solver,
                                                               tolerance=self.options.tolerance,
                                                               max_iter=self.options.max_iter,
                                                               verbose=self.options.verbose)

            report.add(method=solver_type, converged=converged, error=error,
                       elapsed=elapsed, iterations=iterations)

            if converged:
                break

            self.logger.add_info('Tried solver but it did not converge',
                                 device=str(solver_type),
                                 value="{:.4e}".format(error),
                                 expected_value=self.options.tolerance)

        if not converged:
            self.logger.add_warning('Power flow did not converge',
                                    device=self.system.name,
                                    value="{:.4e}".format(report.error()),
                                    expected_value=f"<{self.options.tolerance}")
        return converged

    def run(self) -> PowerFlowResults:
        """
        Run the power flow
        :return: PowerFlowResults
        """
        report = ConvergenceReport()
        self.convergence_reports = [report]

        converged = self._solve_once(report)

        # slack bus before the reactive limits (it might move)
        original_slack = self.solver.slack
        q_violations = np.zeros(self.system.get_generator_number(), dtype=int)

        if self.options.control_Q and self.solver.method != SolverType.DC and converged:
            outer_it = 0
            while outer_it < self.options.max_outer_loop_iter:
                violate = reactive_power_limit(self.system, self.solver.V, logger=self.logger)
                q_violations[violate != 0] = violate[violate != 0]

                if not np.any(violate != 0):
                    break

                converged = self._solve_once(report, V0=self.solver.V)
                outer_it += 1

                if not converged:
                    break

            if self.solver.slack != original_slack:
                self.solver.V = adjust_angle(self.system, self.solver.V, original_slack)

        self.results = self.post_process()
        self.results.q_violations = q_violations
        self.results.convergence_reports = self.convergence_reports
        self.results.converged = report.converged()
        self.results.error = report.error()
        self.results.iterations = sum(report.iterations_)
        self.results.elapsed = sum(report.elapsed_)
        self.results.method = report.methods_[-1] if len(report.methods_) else None

        return self.results

    def post_process(self) -> PowerFlowResults:
        """
        Compute the powers and currents of the solver state
        :return: PowerFlowResults
        """
        results = PowerFlowResults(n=self.system.get_bus_number(),
                                   m=self.system.get_branch_number(),
                                   n_gen=self.system.get_generator_number(),
                                   bus_names=np.array(self.system.get_bus_names()),
                                   branch_names=np.array(self.system.get_branch_names()),
                                   gen_names=np.array([g.name for g in self.system.generators]),
                                   bus_types=self.solver.bus_types)

        if self.solver.method == SolverType.DC:
            results.apply_dc(DcPowerAnalysis(self.system, self.solver.Va, self.solver.slack))
        else:
            results.apply_ac(AcPowerAnalysis(self.system, self.solver.V, self.solver.bus_types, self.solver.slack))

        return results
