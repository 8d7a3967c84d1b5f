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
Persistent boot order validation and write.

A planned boot order is a list of structured boot strings. It may only
reorder the current PersistentBootConfigOrder: no unknown entries, the same
length, and every current entry present.
"""

import logging
from typing import List

from IrmcControl.control_types import BootOrderEntry
from IrmcControl.RedfishFunctions.errors import (
    BootOrderAttributeMissingError,
    BootOrderEntryNotFoundError,
    BootOrderIncompleteError,
    BootOrderLengthMismatchError,
    BootOrderUnknownEntryError,
)
from IrmcControl.RedfishFunctions.redfish_session import BOOT_ORDER_ATTRIBUTE, RedfishSession


def find_unknown_entries(current: List[BootOrderEntry], planned: List[str]) -> List[str]:
    known = {entry.structured_boot_string for entry in current}
    return [item for item in planned if item not in known]


def find_available_and_not_planned_entries(current: List[BootOrderEntry], planned: List[str]) -> List[str]:
    planned_set = set(planned)
    return [entry.structured_boot_string for entry in current if entry.structured_boot_string not in planned_set]


class BootOrderReconciler:
    """Validates a planned boot order against the current one and writes it."""

    def __init__(self, session: RedfishSession, logger: logging.Logger = None):
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    def read_current_boot_order(self) -> List[BootOrderEntry]:
        """
        Raises:
            BiosDataUnavailableError: If BIOS exposes no attributes yet
            BootOrderAttributeMissingError: If PersistentBootConfigOrder is absent
        """
        current = self.session.get_boot_order_attribute()
        if current is None:
            raise BootOrderAttributeMissingError(BOOT_ORDER_ATTRIBUTE)
        return current

    def validate(self, planned: List[str]) -> List[BootOrderEntry]:
        """
        Check that the planned order is a permutation of the current order.

        Args:
            planned (List[str]): Structured boot strings in the requested order

        Returns:
            List[BootOrderEntry]: Current boot order, read fresh

        Raises:
            BootOrderUnknownEntryError: Planned entries missing from the current order
            BootOrderLengthMismatchError: Planned and current lengths differ
            BootOrderIncompleteError: Current entries missing from the plan
        """
        current = self.read_current_boot_order()
        current_strings = [entry.structured_boot_string for entry in current]

        unknown = find_unknown_entries(current, planned)
        if unknown:
            for item in unknown:
                self.logger.error(f"Entry '{item}' is not on the list of supported boot entries {current_strings}")
            raise BootOrderUnknownEntryError(unknown, current_strings)

        if len(planned) != len(current):
            raise BootOrderLengthMismatchError(len(planned), len(current))

        missing = find_available_and_not_planned_entries(current, planned)
        if missing:
            raise BootOrderIncompleteError(missing)

        return current

    def apply(self, current: List[BootOrderEntry], planned: List[str]) -> None:
        """
        Write the planned order, pairing each entry with its current device name.

        Raises:
            BootOrderEntryNotFoundError: If a planned entry has no current counterpart
        """
        device_names = {entry.structured_boot_string: entry.device_name for entry in current}
        new_order = []
        for item in planned:
            if item not in device_names:
                raise BootOrderEntryNotFoundError(item)
            new_order.append(BootOrderEntry(item, device_names[item]).to_redfish())

        etag = self.session.get_pending_settings_etag()
        self.logger.info(f"Writing boot order {planned}")
        self.session.patch_pending_settings({BOOT_ORDER_ATTRIBUTE: new_order}, etag)

    def validate_and_apply(self, planned: List[str]) -> None:
        current = self.validate(planned)
        self.apply(current, planned)
