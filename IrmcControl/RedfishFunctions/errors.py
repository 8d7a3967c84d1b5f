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
Exception hierarchy for host control operations.

Four families are distinguished: transport/read failures, validation
failures, timeouts, and the single soft failure where BIOS leaves POST with
the host powered off.
"""

from typing import Any, Dict, List, Optional


class ReconcileError(Exception):
    """Base error with a human readable message and structured context."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(ReconcileError, ValueError):
    """Configuration file is missing fields or holds invalid values."""


class RedfishRequestError(ReconcileError):
    """A request to the management controller failed or returned unusable content."""

    def __init__(self, method: str, url_path: str, detail: Any):
        ctx = {"method": method, "url": url_path, "detail": detail}
        super().__init__(f"{method} {url_path} failed: {detail}", ctx)
        self.url_path = url_path
        self.detail = detail


class BiosDataUnavailableError(ReconcileError):
    """BIOS resource does not expose any attributes yet."""

    def __init__(self, resource: str):
        super().__init__(f"No BIOS data for BIOS attributes yet ({resource})", {"resource": resource})


# Validation


class BootOrderValidationError(ReconcileError):
    """Planned boot order cannot be applied to the current configuration."""


class BootOrderAttributeMissingError(BootOrderValidationError):
    def __init__(self, key: str):
        super().__init__(f"Missing {key} parameter in BIOS attributes", {"attribute": key})


class BootOrderAttributeMalformedError(BootOrderValidationError):
    def __init__(self, key: str, detail: str):
        super().__init__(f"{key} could not be unmarshalled: {detail}", {"attribute": key, "detail": detail})
        self.key = key


class BootOrderUnknownEntryError(BootOrderValidationError):
    def __init__(self, unknown_entries: List[str], current: List[str]):
        super().__init__(
            "Planned changes for boot order did not pass validation: "
            f"entries {unknown_entries} are not on the list of supported boot entries {current}",
            {"unknown_entries": unknown_entries},
        )
        self.unknown_entries = unknown_entries


class BootOrderLengthMismatchError(BootOrderValidationError):
    def __init__(self, planned_length: int, current_length: int):
        super().__init__(
            "Planned boot order has different length than currently configured boot order: "
            f"planned {planned_length}, current {current_length}",
            {"planned_length": planned_length, "current_length": current_length},
        )
        self.planned_length = planned_length
        self.current_length = current_length


class BootOrderIncompleteError(BootOrderValidationError):
    def __init__(self, missing_entries: List[str]):
        super().__init__(
            f"Planned boot order does not contain all available boot options: missing {missing_entries}",
            {"missing_entries": missing_entries},
        )
        self.missing_entries = missing_entries


class BootOrderEntryNotFoundError(BootOrderValidationError):
    """A planned entry has no device name in the current order; validation should make this unreachable."""

    def __init__(self, structured_boot_string: str):
        super().__init__(
            f"Boot entry '{structured_boot_string}' has no matching device in the current boot order",
            {"entry": structured_boot_string},
        )


class BiosAttributeValidationError(ReconcileError):
    def __init__(self, key: Optional[str], reason: str):
        prefix = f"Attribute '{key}': " if key else ""
        super().__init__(f"{prefix}{reason}", {"attribute": key})
        self.key = key


# Timeouts


class OperationTimeoutError(ReconcileError):
    """An operation did not reach its terminal state within the configured timeout."""

    def __init__(self, message: str, timeout: float):
        super().__init__(f"{message} (timeout {timeout}s)", {"timeout": timeout})
        self.timeout = timeout


class HostStateTimeoutError(OperationTimeoutError):
    pass


class SettingsApplyTimeoutError(OperationTimeoutError):
    pass


class TaskTimeoutError(OperationTimeoutError):
    pass


# Soft failure


class PostExitPoweredOffError(ReconcileError):
    """BIOS finished POST but the host ended up powered off."""

    def __init__(self):
        super().__init__("BIOS exited POST but host powered off")


# Operation failures


class TaskRetrievalError(ReconcileError):
    def __init__(self, location: str, detail: Any):
        super().__init__(f"Error during task {location} retrieval: {detail}", {"location": location})


class TaskFailedError(ReconcileError):
    """Task reached a terminal state other than Completed."""

    def __init__(self, location: str, state: Optional[str], task_log: Optional[str] = None):
        super().__init__(
            f"Task finished with TaskState {state}",
            {"location": location, "state": state, "task_log": task_log},
        )
        self.location = location
        self.state = state
        self.task_log = task_log
        # Set when the task log itself could not be read
        self.log_error: Optional[ReconcileError] = None


class TaskLogError(ReconcileError):
    def __init__(self, location: str, detail: Any):
        super().__init__(f"Error while reading task logs of {location}: {detail}", {"location": location})


class VolumeRequestError(ReconcileError):
    pass
