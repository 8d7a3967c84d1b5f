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
Host power state control.

PowerStateController issues reset actions and blocks until the host reaches
the expected state. Power-off completion is read from the ComputerSystem
power indicator. Power-on completion additionally follows BIOS POST: the host
is considered on only once BIOS has entered POST, left it again, and the
power indicator still reads On afterwards.
"""

import logging
import time
from typing import Union

from IrmcControl.control_types import PowerState, ResetType
from IrmcControl.RedfishFunctions.errors import HostStateTimeoutError, PostExitPoweredOffError
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession

POWER_POLL_INTERVAL = 2
POST_ENTRY_POLL_INTERVAL = 1
POST_EXIT_POLL_INTERVAL = 2


class PowerStateController:
    """Drives and observes host power transitions through a RedfishSession."""

    def __init__(self, session: RedfishSession, power_cycle_settle_seconds: float = 30, logger: logging.Logger = None):
        self.session = session
        self.power_cycle_settle_seconds = power_cycle_settle_seconds
        self.logger = logger or logging.getLogger(__name__)

    def is_powered_on(self) -> bool:
        return self.session.get_power_indicator() == PowerState.ON

    def wait_until_host_state_changed(self, expected_powered_on: bool, timeout: float) -> None:
        """
        Poll the power indicator every 2 seconds until it matches the expected state.

        Raises:
            HostStateTimeoutError: If the state is not reached within timeout
        """
        start_time = time.time()
        while True:
            if self.is_powered_on() == expected_powered_on:
                return

            if time.time() - start_time > timeout:
                raise HostStateTimeoutError("Host state has not been changed within given timeout", timeout)

            time.sleep(POWER_POLL_INTERVAL)

    def wait_until_host_state_changed_enhanced(self, expected_powered_on: bool, timeout: float) -> None:
        """
        Wait for a power transition, using the BIOS POST indicator for power-on.

        Args:
            expected_powered_on (bool): Target state of the transition
            timeout (float): Seconds allowed for the whole wait

        Raises:
            HostStateTimeoutError: If POST is not entered or left within timeout
            PostExitPoweredOffError: If BIOS left POST and the host is off
        """
        if not expected_powered_on:
            self.wait_until_host_state_changed(expected_powered_on, timeout)
            return

        start_time = time.time()

        while not self.session.get_post_phase_indicator():
            time.sleep(POST_ENTRY_POLL_INTERVAL)
            if time.time() - start_time > timeout:
                raise HostStateTimeoutError("BIOS did not enter POST within given timeout", timeout)

        self.logger.info("BIOS entered POST phase")

        while True:
            if not self.session.get_post_phase_indicator():
                if self.is_powered_on():
                    self.logger.info("BIOS exited POST phase, host is powered on")
                    return
                raise PostExitPoweredOffError()

            time.sleep(POST_EXIT_POLL_INTERVAL)
            if time.time() - start_time > timeout:
                raise HostStateTimeoutError("Operation not finished within given timeout", timeout)

    def change_power_state(self, power_on: bool, timeout: float) -> None:
        """
        Bring the host to the requested power state. No-op if already there.

        Power-on uses the On reset type, power-off uses ForceOff.
        """
        if self.is_powered_on() == power_on:
            self.logger.info(f"Host already powered {'on' if power_on else 'off'}")
            return

        reset_type = ResetType.ON if power_on else ResetType.FORCE_OFF
        self.session.issue_reset(reset_type)
        self.wait_until_host_state_changed_enhanced(power_on, timeout)

    def reset_host(self, reset_type: Union[ResetType, str], timeout: float) -> None:
        """
        Issue a reset unconditionally and wait for its expected outcome.

        GracefulShutdown and PushPowerButton are expected to leave the host off,
        every other reset type to leave it on.
        """
        reset_type = ResetType.parse(reset_type)
        self.session.issue_reset(reset_type)
        self.wait_until_host_state_changed_enhanced(reset_type.expects_powered_on, timeout)

    def reset_or_power_on_host_with_post_check(self, reset_type: Union[ResetType, str], timeout: float) -> None:
        """Power the host on if it is off, otherwise apply the given reset."""
        if not self.is_powered_on():
            self.change_power_state(True, timeout)
        else:
            self.reset_host(reset_type, timeout)

    def power_cycle_host(self, timeout: float) -> None:
        """
        Power cycle through the OEM reset action.

        The host must be observed off within timeout; the controller then
        brings it back on by itself, which is given a fixed settle time.
        """
        self.session.issue_oem_power_cycle()
        self.wait_until_host_state_changed(False, timeout)

        self.logger.info(f"Host powered off, waiting {self.power_cycle_settle_seconds} seconds for power cycle to settle")
        time.sleep(self.power_cycle_settle_seconds)
