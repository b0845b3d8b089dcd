# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Devices.Parents.editable_device import EditableDevice
from GridStateEngine.Devices.measurement import Voltmeter, Ammeter, Wattmeter, Varmeter, Pmu
from GridStateEngine.Devices.Branches import *
from GridStateEngine.Devices.Injections import *
from GridStateEngine.Devices.Substation import *
from GridStateEngine.Devices.power_system import PowerSystem
from GridStateEngine.Devices.measurement_set import MeasurementSet, MeasurementDefaults
