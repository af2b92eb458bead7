# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""cfgate — localhost-only access gate with CORS origin reflection.

Guards a configuration-distribution HTTP service: every request gets CORS
headers when its ``Origin`` is allow-listed, and only requests from the
configured loopback addresses are forwarded downstream.
"""

from cfgate.core.config import Config
from cfgate.exceptions import CfgateException, ConfigurationException
from cfgate.security.gate import AccessGate, GateDecision, GateState

__version__ = "0.1.0"

__all__ = [
    "AccessGate",
    "CfgateException",
    "Config",
    "ConfigurationException",
    "GateDecision",
    "GateState",
    "__version__",
]
