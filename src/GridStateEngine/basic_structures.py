# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Any, Dict, Union
import datetime
import pandas as pd
import nptyping as npt
from scipy.sparse import csc_matrix, csr_matrix
from GridStateEngine.enumerations import LogSeverity

IntList = List[int]
Numeric = Union[int, float, bool, complex]
IntVec = npt.NDArray[npt.Shape['*'], npt.Int]
BoolVec = npt.NDArray[npt.Shape['*'], npt.Bool]
Vec = npt.NDArray[npt.Shape['*'], npt.Double]
CxVec = npt.NDArray[npt.Shape['*'], npt.Complex]
StrVec = npt.NDArray[npt.Shape['*'], npt.String]
ObjVec = npt.NDArray[npt.Shape['*'], npt.Object]
Mat = npt.NDArray[npt.Shape['*, *'], npt.Double]
CxMat = npt.NDArray[npt.Shape['*, *'], npt.Complex]
IntMat = npt.NDArray[npt.Shape['*, *'], npt.Int]
CscMat = csc_matrix
CsrMat = csr_matrix


class LogEntry:
    """
    Logger entry
    """

    def __init__(self,
                 time: Union[str, None] = None,
                 msg="",
                 severity: LogSeverity = LogSeverity.Information,
                 device="",
                 value="",
                 expected_value="",
                 device_class="",
                 device_property=""):
        if time is None:
            self.time = "{date:%H:%M:%S}".format(date=datetime.datetime.now())
        else:
            self.time = time
        self.msg = str(msg)
        self.severity = severity
        self.device = device
        self.device_class = device_class
        self.device_property = device_property
        self.value = value
        self.expected_value = str(expected_value)

    def to_list(self) -> List[Any]:
        """
        Get list representation of this entry
        :return:
        """
        return [self.time, self.severity.value, self.msg,
                self.device_class, self.device_property, self.device,
                self.value, self.expected_value]

    def __str__(self):
        return "{0} {1}: {2} {3} {4} {5}".format(self.time,
                                                 self.severity.value,
                                                 self.msg,
                                                 self.device,
                                                 self.value,
                                                 self.expected_value)


class Logger:
    """
    Logger class
    """

    def __init__(self) -> None:

        self.entries: List[LogEntry] = list()

    def has_logs(self) -> bool:
        """
        Are there any logs?
        :return: True / False
        """
        return len(self.entries) > 0

    def add(self, msg: str, severity: LogSeverity = LogSeverity.Error, device="", value="", expected_value="",
            device_class='', device_property=''):
        """
        Add general entry
        :param msg: message
        :param severity: LogSeverity
        :param device: device label
        :param value: offending value
        :param expected_value: value that was expected
        :param device_class: class of the device (Bus, Branch, Wattmeter...)
        :param device_property: property of the device involved
        """
        self.entries.append(LogEntry(msg=str(msg),
                                     severity=severity,
                                     device=str(device),
                                     value=str(value),
                                     expected_value=str(expected_value),
                                     device_class=str(device_class),
                                     device_property=str(device_property)))

    def add_info(self, msg: str, device="", value="", expected_value="", device_class='', device_property=''):
        """
        Add info entry
        """
        self.add(msg=msg, severity=LogSeverity.Information, device=device, value=value,
                 expected_value=expected_value, device_class=device_class, device_property=device_property)

    def add_warning(self, msg: str, device="", value="", expected_value="", device_class='', device_property=''):
        """
        Add warning entry
        """
        self.add(msg=msg, severity=LogSeverity.Warning, device=device, value=value,
                 expected_value=expected_value, device_class=device_class, device_property=device_property)

    def add_error(self, msg: str, device="", value="", expected_value="", device_class='', device_property=''):
        """
        Add error entry
        """
        self.add(msg=msg, severity=LogSeverity.Error, device=device, value=value,
                 expected_value=expected_value, device_class=device_class, device_property=device_property)

    def to_dict(self) -> Dict[str, Dict[str, List[List[Any]]]]:
        """
        Get the logs sorted by severity and message
        :return: Dictionary[Dictionary[List[time, class, property, device, value, expected value]]]
        """
        by_severity = dict()

        for e in self.entries:
            by_msg = by_severity.setdefault(e.severity.value, dict())
            by_msg.setdefault(e.msg, list()).append([e.time, e.device_class, e.device_property,
                                                     e.device, e.value, e.expected_value])

        return by_severity

    def to_df(self) -> pd.DataFrame:
        """
        Get DataFrame
        :return: DataFrame
        """
        data = [e.to_list() for e in self.entries]
        df = pd.DataFrame(data=data, columns=['Time', 'Severity', 'Message', 'Class',
                                              'Property', 'Device', 'Value', 'Expected value'])
        df.set_index('Time', inplace=True)
        return df

    def print(self) -> None:
        """
        Print the logs
        """
        print(self.to_df())

    def __str__(self):
        return ''.join(str(e) + '\n' for e in self.entries)

    def __getitem__(self, key) -> LogEntry:
        return self.entries[key]

    def __iadd__(self, other: "Logger"):
        """
        += implementation
        :param other:
        :return:
        """
        if other is not None:
            self.entries += other.entries
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def size(self) -> int:
        """
        Number of logs
        :return: size
        """
        return len(self.entries)

    def count_type(self, severity: LogSeverity) -> int:
        """
        Count the number of entries of a certain severity
        :param severity: LogSeverity
        :return: number of occurrences
        """
        return sum(1 for entry in self.entries if entry.severity == severity)

    def info_count(self) -> int:
        """
        Count the number of information occurrences
        :return:
        """
        return self.count_type(LogSeverity.Information)

    def warning_count(self) -> int:
        """
        Count number of warnings
        :return:
        """
        return self.count_type(LogSeverity.Warning)

    def error_count(self) -> int:
        """
        Count number of errors
        :return:
        """
        return self.count_type(LogSeverity.Error)

    def contains(self, text: str) -> bool:
        """
        Is there any entry whose message contains the text?
        :param text: some text
        :return: bool
        """
        return any(text in e.msg for e in self.entries)


class ConvergenceReport:
    """
    Convergence report
    """

    def __init__(self) -> None:
        """
        Constructor
        """
        self.methods_ = list()
        self.converged_ = list()
        self.error_ = list()
        self.elapsed_ = list()
        self.iterations_ = list()

    def add(self, method, converged: bool, error: float, elapsed: float, iterations: int):
        """

        :param method:
        :param converged:
        :param error:
        :param elapsed:
        :param iterations:
        :return:
        """
        self.methods_.append(method)
        self.converged_.append(converged)
        self.error_.append(error)
        self.elapsed_.append(elapsed)
        self.iterations_.append(iterations)

    def converged(self) -> bool:
        """

        :return:
        """
        if len(self.converged_) > 0:
            return self.converged_[-1]
        else:
            return False

    def error(self) -> float:
        """

        :return:
        """
        if len(self.error_) > 0:
            return self.error_[-1]
        else:
            return 0.0

    def elapsed(self) -> float:
        """

        :return:
        """
        if len(self.elapsed_) > 0:
            return self.elapsed_[-1]
        else:
            return 0.0

    def iterations(self) -> int:
        """

        :return:
        """
        return int(sum(self.iterations_))

    def to_dataframe(self) -> pd.DataFrame:
        """

        :return:
        """
        data = {'Method': self.methods_,
                'Converged?': self.converged_,
                'Error': self.error_,
                'Elapsed (s)': self.elapsed_,
                'Iterations': self.iterations_}

        return pd.DataFrame(data)
