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
Type definitions for the host control engine.

This module contains the enumerations and small records shared by the power,
settings, boot order and task components: power states, reset types, task
states, the OEM namespace variant and boot order entries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class PowerState(Enum):
    """Power indicator values reported by the ComputerSystem resource."""

    ON = "On"
    OFF = "Off"
    POWERING_ON = "PoweringOn"
    POWERING_OFF = "PoweringOff"
    PAUSED = "Paused"

    @classmethod
    def from_redfish(cls, value: Optional[str]) -> "PowerState":
        """Map a PowerState string to the enum, treating unknown values as Off."""
        for member in cls:
            if member.value == value:
                return member
        return cls.OFF


class ResetType(Enum):
    """ComputerSystem.Reset action values."""

    ON = "On"
    FORCE_OFF = "ForceOff"
    GRACEFUL_SHUTDOWN = "GracefulShutdown"
    GRACEFUL_RESTART = "GracefulRestart"
    FORCE_RESTART = "ForceRestart"
    NMI = "Nmi"
    FORCE_ON = "ForceOn"
    PUSH_POWER_BUTTON = "PushPowerButton"
    POWER_CYCLE = "PowerCycle"

    @classmethod
    def parse(cls, value: Union[str, "ResetType"]) -> "ResetType":
        """
        Accept either a ResetType or its Redfish string value.

        Raises:
            ValueError: If the value is not a known reset type
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unsupported reset type '{value}'")

    @property
    def expects_powered_on(self) -> bool:
        """Whether the host is expected to end up powered on after this reset."""
        return self not in (ResetType.GRACEFUL_SHUTDOWN, ResetType.PUSH_POWER_BUTTON)


class TaskState(Enum):
    """Redfish TaskState values."""

    NEW = "New"
    STARTING = "Starting"
    RUNNING = "Running"
    SUSPENDED = "Suspended"
    INTERRUPTED = "Interrupted"
    PENDING = "Pending"
    STOPPING = "Stopping"
    COMPLETED = "Completed"
    KILLED = "Killed"
    EXCEPTION = "Exception"
    SERVICE = "Service"
    CANCELLING = "Cancelling"
    CANCELLED = "Cancelled"

    @classmethod
    def from_redfish(cls, value: Optional[str]) -> Optional["TaskState"]:
        for member in cls:
            if member.value == value:
                return member
        return None


def get_finished_task_states():
    """
    Get tuple of task states that indicate the task will not progress any more.

    Returns:
        Tuple[TaskState, ...]: Terminal task states
    """
    return (
        TaskState.COMPLETED,
        TaskState.EXCEPTION,
        TaskState.CANCELLED,
        TaskState.KILLED,
        TaskState.INTERRUPTED,
        TaskState.SUSPENDED,
    )


def is_task_finished(state: Optional[TaskState]) -> bool:
    return state in get_finished_task_states()


def is_task_finished_successfully(state: Optional[TaskState]) -> bool:
    return state == TaskState.COMPLETED


class OemVariant(Enum):
    """
    Vendor OEM namespace used by the controller firmware.

    Older firmware publishes its OEM extensions under ``ts_fujitsu`` with
    ``FTS`` prefixed actions, newer firmware uses ``Fsas`` for both.
    """

    TS_FUJITSU = ("ts_fujitsu", "FTS")
    FSAS = ("Fsas", "Fsas")

    def __init__(self, namespace: str, action_prefix: str):
        self.namespace = namespace
        self.action_prefix = action_prefix

    @classmethod
    def from_config(cls, value: str) -> Optional["OemVariant"]:
        """
        Resolve a configuration value; "auto" means detect at runtime.

        Raises:
            ValueError: If the value names no variant
        """
        normalized = (value or "auto").strip().lower()
        if normalized == "auto":
            return None
        for member in cls:
            if member.namespace.lower() == normalized:
                return member
        raise ValueError(f"Unknown OEM variant '{value}'")

    def post_phase_path(self):
        """Key path of the POST indicator inside the BIOS resource."""
        return ("Oem", self.namespace, "IsBiosInPostPhase")

    def task_log_uri(self, task_location: str) -> str:
        return f"{task_location.rstrip('/')}/Oem/{self.namespace}/Logs"

    def oem_reset_uri(self, system_uri: str) -> str:
        return f"{system_uri}/Actions/Oem/{self.action_prefix}ComputerSystem.Reset"

    def oem_reset_key(self) -> str:
        return f"{self.action_prefix}ResetType"


@dataclass(frozen=True)
class BootOrderEntry:
    """One entry of PersistentBootConfigOrder."""

    structured_boot_string: str
    device_name: str

    @classmethod
    def from_redfish(cls, raw) -> "BootOrderEntry":
        """Build an entry from the ``[structured_boot_string, device_name]`` wire pair."""
        structured = raw[0] if len(raw) > 0 and isinstance(raw[0], str) else ""
        device = raw[1] if len(raw) > 1 and isinstance(raw[1], str) else ""
        return cls(structured_boot_string=structured, device_name=device)

    def to_redfish(self):
        return [self.structured_boot_string, self.device_name]


@dataclass
class TaskStatus:
    """Snapshot of a task resource."""

    location: str
    state: Optional[TaskState]
    raw_state: Optional[str] = None
    percent_complete: Optional[int] = None
    log_location: Optional[str] = None
