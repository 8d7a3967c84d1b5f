# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
BIOS attribute validation and write.
"""

import logging
from typing import Any, Dict

from IrmcControl.RedfishFunctions.errors import BiosAttributeValidationError
from IrmcControl.RedfishFunctions.redfish_session import BOOT_ORDER_ATTRIBUTE, RedfishSession

# Complex attributes owned by dedicated flows
UNSUPPORTED_ATTRIBUTES = ("BootSources", BOOT_ORDER_ATTRIBUTE)


def to_comparable_string(value: Any) -> str:
    """Render a current attribute value the way planned values are written."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_attribute_supported(key: str) -> bool:
    return key not in UNSUPPORTED_ATTRIBUTES


class BiosAttributesReconciler:
    """Turns planned string attributes into the minimal typed change set and writes it."""

    def __init__(self, session: RedfishSession, logger: logging.Logger = None):
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    def validate_and_adjust(self, planned: Dict[str, str]) -> Dict[str, Any]:
        """
        Validate planned attributes against the system and drop unchanged ones.

        Args:
            planned (Dict[str, str]): Attribute name to requested value

        Returns:
            Dict[str, Any]: Attributes that differ from the current values,
            integer-typed where the current value is an integer

        Raises:
            BiosDataUnavailableError: If BIOS exposes no attributes yet
            BiosAttributeValidationError: For unknown, unsupported or unconvertible attributes,
                or when nothing is left to change
        """
        current = self.session.get_bios_attributes()
        adjusted: Dict[str, Any] = {}

        for key, new_value in planned.items():
            if key not in current:
                raise BiosAttributeValidationError(key, "not supported by the system")

            if not is_attribute_supported(key):
                raise BiosAttributeValidationError(key, "not supported by this resource")

            current_value = current[key]
            if isinstance(current_value, int) and not isinstance(current_value, bool):
                try:
                    new_int = int(str(new_value))
                except ValueError as e:
                    raise BiosAttributeValidationError(
                        key, f"has type int in current attributes, but new value conversion failed: {e}"
                    ) from e
                if new_int != current_value:
                    adjusted[key] = new_int
                    continue
            elif to_comparable_string(current_value) != str(new_value):
                adjusted[key] = new_value
                continue

            self.logger.info(f"Planned attribute '{key}' has same value as current one, so omit")

        if not adjusted:
            raise BiosAttributeValidationError(None, "Empty list of valid attributes to be applied")

        return adjusted

    def apply(self, adjusted: Dict[str, Any]) -> None:
        etag = self.session.get_pending_settings_etag()
        self.logger.info(f"Writing BIOS attributes {sorted(adjusted)}")
        self.session.patch_pending_settings(adjusted, etag)
