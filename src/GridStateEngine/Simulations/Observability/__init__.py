# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from GridStateEngine.Simulations.Observability.observability_analysis import (ObservabilityOptions, Island,
                                                                              ObservabilityAnalysis,
                                                                              island_topological_flow,
                                                                              island_topological,
                                                                              restoration_gram)
from GridStateEngine.Simulations.Observability.pmu_placement import (PmuPlacement, pmu_placement,
                                                                     add_placement_pmus)
