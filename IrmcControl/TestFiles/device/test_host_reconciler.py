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

import logging
import unittest
from unittest.mock import MagicMock, patch

import pytest

from IrmcControl.control_types import ResetType
from IrmcControl.RedfishFunctions.config_utils import ReconcilerConfig
from IrmcControl.RedfishFunctions.endpoint_lock import EndpointLockRegistry
from IrmcControl.RedfishFunctions.errors import (
    BiosAttributeValidationError,
    BootOrderLengthMismatchError,
    HostStateTimeoutError,
)
from IrmcControl.RedfishFunctions.host_reconciler import HostReconciler
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession
from IrmcControl.TestFiles.test_mocks import (
    FakeClock,
    MockUtils,
    SimulatedController,
    make_boot_order,
    make_config_dict,
)

# Mark all tests in this file as device tests
pytestmark = pytest.mark.device

ENDPOINT = "10.0.0.10"


class TestHostReconciler(unittest.TestCase):
    """Integration tests of HostReconciler against a simulated controller."""

    def setUp(self):
        self.clock = FakeClock()
        self.registry = EndpointLockRegistry()
        self.logger = logging.getLogger("test_host_reconciler")

    def _reconciler(self, controller, **settings):
        config = ReconcilerConfig(config=make_config_dict(**settings))
        return HostReconciler(config, self.registry, session=controller, logger=self.logger)

    def test_reconcile_boot_order(self):
        """Test validate, write and settings apply under the endpoint lock."""
        controller = SimulatedController(
            self.clock, powered_on=True, boot_order=make_boot_order("A", "B", "C"), settings_sizes=[1, 2, 9]
        )
        reconciler = self._reconciler(controller)

        with self.clock.patch():
            reconciler.reconcile_boot_order(["C", "A", "B"], reset_type=ResetType.FORCE_RESTART)

        self.assertEqual(
            [entry.structured_boot_string for entry in reconciler.read_boot_order()],
            ["C", "A", "B"],
        )
        self.assertEqual(controller.reset_calls, [ResetType.FORCE_RESTART])
        self.assertEqual(controller.settings_reads, 3)
        self.assertFalse(self.registry.is_locked(ENDPOINT))

    def test_reconcile_boot_order_failure_releases_lock(self):
        """Test that a rejected plan leaves the endpoint unlocked and unchanged."""
        controller = SimulatedController(self.clock, powered_on=True, boot_order=make_boot_order("A", "B", "C"))
        reconciler = self._reconciler(controller)

        with self.assertRaises(BootOrderLengthMismatchError):
            reconciler.reconcile_boot_order(["A", "B"])

        self.assertFalse(self.registry.is_locked(ENDPOINT))
        self.assertEqual(controller.patches, [])
        self.assertEqual(controller.reset_calls, [])

    def test_apply_bios_attributes(self):
        """Test BIOS attributes write followed by settings apply from power off."""
        controller = SimulatedController(
            self.clock, powered_on=False, bios_attributes={"BootMode": "UEFI", "Cores": 8}, settings_sizes=[6]
        )
        reconciler = self._reconciler(controller)

        with self.clock.patch():
            written = reconciler.apply_bios_attributes({"BootMode": "UEFI", "Cores": "4"})

        self.assertEqual(written, {"Cores": 4})
        self.assertEqual(controller.patches[0]["attributes"], {"Cores": 4})
        self.assertEqual(controller.reset_calls, [ResetType.ON])
        self.assertFalse(self.registry.is_locked(ENDPOINT))

    def test_apply_bios_attributes_nothing_to_do(self):
        """Test that an unchanged plan writes nothing and powers nothing."""
        controller = SimulatedController(self.clock, bios_attributes={"BootMode": "UEFI"})
        reconciler = self._reconciler(controller)

        with self.assertRaises(BiosAttributeValidationError):
            reconciler.apply_bios_attributes({"BootMode": "UEFI"})

        self.assertEqual(controller.patches, [])
        self.assertEqual(controller.reset_calls, [])

    def test_failure_carries_logged_errors(self):
        """Test that a failed locked operation reports the ERROR lines it logged."""
        controller = SimulatedController(self.clock, powered_on=True, boot_order=make_boot_order("A", "B", "C"))
        reconciler = self._reconciler(controller)

        with self.assertRaises(BootOrderLengthMismatchError) as ctx:
            reconciler.reconcile_boot_order(["A", "B"])

        logged_errors = ctx.exception.context["logged_errors"]
        self.assertEqual(len(logged_errors), 1)
        self.assertIn("Boot order reconciliation failed on 10.0.0.10", logged_errors[0])
        self.assertIn("different length", logged_errors[0])

    def test_errors_of_earlier_operations_not_attached(self):
        """Test that each operation collects only its own ERROR lines."""
        controller = SimulatedController(self.clock, bios_attributes={"BootMode": "UEFI"})
        reconciler = self._reconciler(controller)

        with self.assertRaises(BiosAttributeValidationError):
            reconciler.apply_bios_attributes({"BootMode": "UEFI"})
        with self.assertRaises(BiosAttributeValidationError) as ctx:
            reconciler.apply_bios_attributes({"Unknown": "1"})

        logged_errors = ctx.exception.context["logged_errors"]
        self.assertEqual(len(logged_errors), 1)
        self.assertIn("Unknown", logged_errors[0])

    def test_default_reset_type_from_config(self):
        """Test that wait_till_settings_applied uses the configured reset type."""
        controller = SimulatedController(self.clock, powered_on=True, settings_sizes=[10])
        reconciler = self._reconciler(controller, system_reset_type="GracefulRestart")

        with self.clock.patch():
            with reconciler.locked("bios"):
                reconciler.wait_till_settings_applied()

        self.assertEqual(controller.reset_calls, [ResetType.GRACEFUL_RESTART])

    def test_default_power_timeout_from_config(self):
        """Test that power operations use power_timeout when none is given."""
        controller = SimulatedController(self.clock, powered_on=False, post_entry_delay=100)
        reconciler = self._reconciler(controller, power_timeout=5)

        with self.clock.patch():
            with self.assertRaises(HostStateTimeoutError) as ctx:
                reconciler.change_power_state(True)

        self.assertEqual(ctx.exception.timeout, 5)

    def test_power_operations(self):
        """Test power on, reset and power off through the facade."""
        controller = SimulatedController(self.clock, powered_on=False)
        reconciler = self._reconciler(controller)

        with self.clock.patch():
            with reconciler.locked("power"):
                reconciler.change_power_state(True, timeout=60)
                self.assertTrue(reconciler.is_powered_on())
                reconciler.reset_host("GracefulShutdown", timeout=60)

        self.assertFalse(reconciler.is_powered_on())
        self.assertEqual(controller.reset_calls, [ResetType.ON, ResetType.GRACEFUL_SHUTDOWN])

    def test_power_cycle_uses_configured_settle_time(self):
        """Test power cycle settle time from configuration."""
        controller = SimulatedController(self.clock, powered_on=True)
        reconciler = self._reconciler(controller, power_cycle_settle_seconds=12)

        with self.clock.patch():
            reconciler.power_cycle_host(timeout=60)

        self.assertEqual(self.clock.sleeps[-1], 12)
        self.assertEqual(controller.oem_power_cycle_calls, 1)

    def test_validate_and_apply_boot_order(self):
        """Test the single-step boot order write without settings apply."""
        controller = SimulatedController(self.clock, boot_order=make_boot_order("A", "B"))
        reconciler = self._reconciler(controller)

        with reconciler.locked("boot_order"):
            reconciler.validate_and_apply_boot_order(["B", "A"])

        self.assertEqual(len(controller.patches), 1)
        self.assertEqual(controller.reset_calls, [])

    def test_wait_for_task_end(self):
        """Test task polling with the configured task timeout."""
        controller = SimulatedController(self.clock)
        controller.add_task("/redfish/v1/TaskService/Tasks/1", "Completed", duration=20)
        reconciler = self._reconciler(controller)

        with self.clock.patch():
            success, error = reconciler.wait_for_task_end("/redfish/v1/TaskService/Tasks/1")

        self.assertTrue(success)
        self.assertIsNone(error)

    def test_reconcilers_share_endpoint_lock(self):
        """Test that reconcilers of one controller use the same lock."""
        first = self._reconciler(SimulatedController(self.clock))
        second = self._reconciler(SimulatedController(self.clock))

        with first.locked("power"):
            self.assertTrue(self.registry.is_locked(ENDPOINT))
            self.assertTrue(second.lock_registry.is_locked(second.endpoint))
        self.assertFalse(self.registry.is_locked(ENDPOINT))

    def test_builds_session_from_config(self):
        """Test that a session is built from the connection settings."""
        config = ReconcilerConfig(config=make_config_dict(oem_variant="fsas", redfish_timeout=15))

        with patch("IrmcControl.RedfishFunctions.host_reconciler.Utils", MockUtils):
            reconciler = HostReconciler(config, self.registry, logger=self.logger)

        self.assertIsInstance(reconciler.session, RedfishSession)
        self.assertEqual(reconciler.session.utils.bmc_ip, ENDPOINT)
        self.assertEqual(reconciler.session.utils.bmc_service_type, "https")
        self.assertEqual(reconciler.session.request_timeout, 15)
        self.assertEqual(reconciler.session.system_uri, "/redfish/v1/Systems/0")

        reconciler.close()
        reconciler.session.utils.close.assert_called_once()

    def test_default_logger_is_file_logger(self):
        """Test that without a logger the facade sets up host_reconciler logging."""
        config = ReconcilerConfig(config=make_config_dict())
        file_logger = MagicMock()

        with patch("IrmcControl.RedfishFunctions.host_reconciler.setup_logging", return_value=file_logger) as setup:
            reconciler = HostReconciler(config, self.registry, session=SimulatedController(self.clock))

        setup.assert_called_once_with("host_reconciler", console_output=False)
        self.assertIs(reconciler.logger, file_logger)


if __name__ == "__main__":
    unittest.main()
