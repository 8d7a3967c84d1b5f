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

import itertools
import unittest

import pytest

from IrmcControl.control_types import OemVariant
from IrmcControl.RedfishFunctions.boot_order import BootOrderReconciler
from IrmcControl.RedfishFunctions.errors import (
    BiosDataUnavailableError,
    BootOrderAttributeMalformedError,
    BootOrderAttributeMissingError,
    BootOrderEntryNotFoundError,
    BootOrderIncompleteError,
    BootOrderLengthMismatchError,
    BootOrderUnknownEntryError,
    BootOrderValidationError,
)
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession
from IrmcControl.TestFiles.test_mocks import FakeClock, MockUtils, SimulatedController, make_boot_order

# Mark all tests in this file as core tests
pytestmark = pytest.mark.core


class TestBootOrderValidation(unittest.TestCase):
    """Test cases for boot order validation."""

    def setUp(self):
        self.controller = SimulatedController(FakeClock(), boot_order=make_boot_order("A", "B", "C"))
        self.reconciler = BootOrderReconciler(self.controller)

    def test_permutation_passes(self):
        """Test that every permutation of the current order is accepted."""
        for planned in itertools.permutations(["A", "B", "C"]):
            current = self.reconciler.validate(list(planned))
            self.assertEqual([entry.structured_boot_string for entry in current], ["A", "B", "C"])

    def test_length_mismatch(self):
        """Test a planned order shorter than the current one."""
        with self.assertRaises(BootOrderLengthMismatchError) as ctx:
            self.reconciler.validate(["A", "B"])

        self.assertEqual(ctx.exception.planned_length, 2)
        self.assertEqual(ctx.exception.current_length, 3)
        self.assertIn("different length", str(ctx.exception))

    def test_unknown_entry(self):
        """Test a planned entry that the system does not offer."""
        with self.assertRaises(BootOrderUnknownEntryError) as ctx:
            self.reconciler.validate(["A", "B", "X"])

        self.assertEqual(ctx.exception.unknown_entries, ["X"])
        self.assertIn("did not pass validation", str(ctx.exception))

    def test_unknown_entries_reported_together(self):
        """Test that all unknown entries are reported, not only the first."""
        with self.assertRaises(BootOrderUnknownEntryError) as ctx:
            self.reconciler.validate(["X", "A", "Y"])

        self.assertEqual(ctx.exception.unknown_entries, ["X", "Y"])

    def test_unknown_checked_before_length(self):
        """Test that an unknown entry wins over a length mismatch."""
        with self.assertRaises(BootOrderUnknownEntryError):
            self.reconciler.validate(["X"])

    def test_missing_available_entry(self):
        """Test a planned order of right length that leaves an entry out."""
        with self.assertRaises(BootOrderIncompleteError) as ctx:
            self.reconciler.validate(["A", "A", "B"])

        self.assertEqual(ctx.exception.missing_entries, ["C"])
        self.assertIn("does not contain all available boot options", str(ctx.exception))

    def test_missing_attribute(self):
        """Test a BIOS without PersistentBootConfigOrder."""
        controller = SimulatedController(FakeClock(), boot_order=None)

        with self.assertRaises(BootOrderAttributeMissingError):
            BootOrderReconciler(controller).validate(["A"])

    def test_no_bios_data(self):
        """Test a BIOS that exposes no attributes at all."""
        controller = SimulatedController(FakeClock(), bios_attributes={}, boot_order=None)

        with self.assertRaises(BiosDataUnavailableError):
            BootOrderReconciler(controller).validate(["A"])

    def test_errors_share_base_class(self):
        """Test that validation failures can be caught together."""
        for planned in (["A"], ["A", "B", "X"], ["A", "A", "B"]):
            with self.assertRaises(BootOrderValidationError):
                self.reconciler.validate(planned)

    def test_failed_validation_writes_nothing(self):
        """Test that no write happens when validation fails."""
        with self.assertRaises(BootOrderValidationError):
            self.reconciler.validate_and_apply(["A", "B"])

        self.assertEqual(self.controller.patches, [])


class TestBootOrderApply(unittest.TestCase):
    """Test cases for writing a validated boot order."""

    def setUp(self):
        self.controller = SimulatedController(FakeClock(), boot_order=make_boot_order("A", "B", "C"))
        self.reconciler = BootOrderReconciler(self.controller)

    def test_reorder_keeps_device_names(self):
        """Test [A,B,C] planned as [C,A,B] writes device names per entry."""
        current = self.reconciler.validate(["C", "A", "B"])
        self.reconciler.apply(current, ["C", "A", "B"])

        self.assertEqual(len(self.controller.patches), 1)
        patch_call = self.controller.patches[0]
        self.assertEqual(
            patch_call["attributes"],
            {
                "PersistentBootConfigOrder": [
                    ["C", "Device C"],
                    ["A", "Device A"],
                    ["B", "Device B"],
                ]
            },
        )
        self.assertEqual(patch_call["etag"], 'W/"1"')

    def test_read_back_matches_plan(self):
        """Test that reading the order after apply yields the plan."""
        self.reconciler.validate_and_apply(["B", "C", "A"])

        order = self.reconciler.read_current_boot_order()
        self.assertEqual([entry.structured_boot_string for entry in order], ["B", "C", "A"])
        self.assertEqual([entry.device_name for entry in order], ["Device B", "Device C", "Device A"])

    def test_unmatched_entry_is_an_error(self):
        """Test that apply refuses an entry missing from the current order."""
        current = make_boot_order("A", "B")

        with self.assertRaises(BootOrderEntryNotFoundError):
            self.reconciler.apply(current, ["A", "Z"])

        self.assertEqual(self.controller.patches, [])


class TestBootOrderMalformedAttribute(unittest.TestCase):
    """Test cases for a boot order attribute the BIOS reports in an unexpected shape."""

    def setUp(self):
        self.utils = MockUtils()
        self.reconciler = BootOrderReconciler(RedfishSession(self.utils, oem_variant=OemVariant.TS_FUJITSU))

    def test_object_entry_is_a_validation_error(self):
        """Test that a JSON object entry fails validation instead of escaping as KeyError."""
        bios = {"Attributes": {"PersistentBootConfigOrder": [{"a": 1}]}}
        self.utils.configure_response("get_request", return_value=(True, bios))

        with self.assertRaises(BootOrderAttributeMalformedError) as ctx:
            self.reconciler.validate(["x"])

        self.assertEqual(ctx.exception.key, "PersistentBootConfigOrder")

    def test_malformed_attribute_writes_nothing(self):
        """Test that validate_and_apply stops before reading the ETag or patching."""
        bios = {"Attributes": {"PersistentBootConfigOrder": [None, None]}}
        self.utils.configure_response("get_request", return_value=(True, bios))

        with self.assertRaises(BootOrderValidationError):
            self.reconciler.validate_and_apply(["A", "B"])

        self.utils.get_etag.assert_not_called()
        self.utils.patch_request.assert_not_called()


if __name__ == "__main__":
    unittest.main()
