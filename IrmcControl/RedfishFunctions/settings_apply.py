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
Pending BIOS settings commit detection.

Pending BIOS changes are committed by BIOS during the next POST. While a
commit is outstanding the Bios/Settings resource lists only the attributes
still waiting to be applied; once it has finished the resource lists every
writable attribute. The attribute count is therefore used as the completion
signal, see is_settings_commit_finished().
"""

import logging
import time
from typing import Union

from IrmcControl.control_types import ResetType
from IrmcControl.RedfishFunctions.errors import PostExitPoweredOffError, SettingsApplyTimeoutError
from IrmcControl.RedfishFunctions.power_control import PowerStateController
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession

SETTINGS_POLL_INTERVAL = 2
COMMITTED_SETTINGS_MIN_KEYS = 5


def is_settings_commit_finished(pending_attributes_count: int) -> bool:
    """
    Decide whether the pending settings commit has finished.

    Args:
        pending_attributes_count (int): Number of keys in Bios/Settings Attributes

    Returns:
        bool: True once more than COMMITTED_SETTINGS_MIN_KEYS attributes are exposed
    """
    return pending_attributes_count > COMMITTED_SETTINGS_MIN_KEYS


class SettingsApplyWatcher:
    """Power on or reset the host, then wait until pending BIOS settings are committed."""

    def __init__(self, session: RedfishSession, power: PowerStateController, logger: logging.Logger = None):
        self.session = session
        self.power = power
        self.logger = logger or logging.getLogger(__name__)

    def wait_till_settings_applied(self, timeout: float, reset_type: Union[ResetType, str]) -> None:
        """
        Make pending settings take effect and wait for the commit to finish.

        The timeout covers the whole sequence, the power step included. BIOS
        may leave the host powered off after committing some settings, so
        PostExitPoweredOffError from the power step is not treated as a
        failure here.

        Args:
            timeout (float): Seconds allowed for the whole sequence
            reset_type (ResetType): Reset to use if the host is already on

        Raises:
            SettingsApplyTimeoutError: If the commit is not observed within timeout
            HostStateTimeoutError: If the power step times out
            RedfishRequestError: If a read fails
        """
        reset_type = ResetType.parse(reset_type)
        powered_on = self.power.is_powered_on()

        self.logger.info(f"Process will wait with {timeout} seconds timeout to finish")
        start_time = time.time()

        try:
            if not powered_on:
                self.power.change_power_state(True, timeout)
            else:
                self.power.reset_host(reset_type, timeout)
        except PostExitPoweredOffError as e:
            self.logger.warning(f"{e}, continuing to wait for BIOS settings")

        if time.time() - start_time > timeout:
            raise SettingsApplyTimeoutError(
                "Job timeout exceeded after reset/power on while operation has not finished", timeout
            )

        while True:
            keys_count = len(self.session.get_pending_settings_attributes())
            if is_settings_commit_finished(keys_count):
                self.logger.info(f"Number of keys {keys_count}")
                return

            time.sleep(SETTINGS_POLL_INTERVAL)
            if time.time() - start_time > timeout:
                raise SettingsApplyTimeoutError("Job timeout exceeded while operation has not finished", timeout)
