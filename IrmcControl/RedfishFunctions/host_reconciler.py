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
Host reconciler - the entry point used by orchestration code.

HostReconciler binds one management controller, taken from a
ReconcilerConfig, to a shared EndpointLockRegistry and exposes the power,
BIOS settings, boot order, task and volume operations.

Single-step operations (change_power_state, reset_host, power_cycle_host,
wait_till_settings_applied, validate_and_apply_boot_order) expect the caller
to hold the endpoint lock. Composite operations (reconcile_boot_order,
apply_bios_attributes, create_volume, delete_volume) take it themselves.
The lock is not reentrant.

Usage:
    >>> registry = EndpointLockRegistry()
    >>> reconciler = HostReconciler(ReconcilerConfig("irmc.yaml"), registry)
    >>> with reconciler.locked("power"):
    ...     reconciler.change_power_state(True)
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple, Union

from IrmcControl.control_types import BootOrderEntry, ResetType
from IrmcControl.logging_utils import attach_error_collector, collect_errors, setup_logging
from IrmcControl.RedfishFunctions.bios_attributes import BiosAttributesReconciler
from IrmcControl.RedfishFunctions.boot_order import BootOrderReconciler
from IrmcControl.RedfishFunctions.config_utils import ReconcilerConfig
from IrmcControl.RedfishFunctions.endpoint_lock import EndpointLockRegistry
from IrmcControl.RedfishFunctions.errors import ReconcileError
from IrmcControl.RedfishFunctions.power_control import PowerStateController
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession
from IrmcControl.RedfishFunctions.settings_apply import SettingsApplyWatcher
from IrmcControl.RedfishFunctions.storage_volume import StorageVolumeManager
from IrmcControl.RedfishFunctions.task_poller import TaskPoller
from IrmcControl.RedfishFunctions.utils import Utils


class HostReconciler:
    """Reconciles the state of one host behind one iRMC."""

    def __init__(
        self,
        config: ReconcilerConfig,
        lock_registry: EndpointLockRegistry,
        session: Optional[RedfishSession] = None,
        logger: logging.Logger = None,
        console_output: bool = False,
    ):
        """
        Args:
            config (ReconcilerConfig): Validated configuration
            lock_registry (EndpointLockRegistry): Registry shared by all reconcilers of the process
            session (RedfishSession): Prebuilt session, built from config when None
            logger (logging.Logger): Logger, a file logger named host_reconciler when None
            console_output (bool): Also log to the console when creating the file logger
        """
        self.config = config
        self.lock_registry = lock_registry
        self.endpoint = config.endpoint
        self.logger = attach_error_collector(logger or setup_logging("host_reconciler", console_output=console_output))

        if session is None:
            session = self._create_session()
        self.session = session

        self.power = PowerStateController(
            self.session,
            power_cycle_settle_seconds=config.get_timeout("power_cycle_settle_seconds"),
            logger=self.logger,
        )
        self.settings_watcher = SettingsApplyWatcher(self.session, self.power, logger=self.logger)
        self.boot_order = BootOrderReconciler(self.session, logger=self.logger)
        self.bios_attributes = BiosAttributesReconciler(self.session, logger=self.logger)
        self.task_poller = TaskPoller(self.session, logger=self.logger)
        self.volumes = StorageVolumeManager(self.session, self.task_poller, logger=self.logger)

    def _create_session(self) -> RedfishSession:
        bmc = self.config.bmc
        utils = Utils(
            bmc_ip=bmc["ip"],
            bmc_username=bmc["username"],
            bmc_password=bmc["password"],
            bmc_service_port=bmc.get("port", 443),
            bmc_service_type=bmc.get("protocol", "https"),
            ssl_insecure=bmc.get("ssl_insecure", True),
            logger=self.logger,
        )
        return RedfishSession(
            utils,
            system_uri=self.config.system_uri,
            oem_variant=self.config.oem_variant,
            request_timeout=self.config.get_timeout("redfish_timeout"),
            logger=self.logger,
        )

    def _timeout(self, timeout: Optional[float], name: str) -> float:
        return self.config.get_timeout(name) if timeout is None else timeout

    # Locking

    def lock(self, resource: str = "") -> None:
        self.lock_registry.lock(self.endpoint, resource)

    def unlock(self, resource: str = "") -> None:
        self.lock_registry.unlock(self.endpoint, resource)

    @contextmanager
    def locked(self, resource: str = ""):
        with self.lock_registry.locked(self.endpoint, resource):
            yield

    @contextmanager
    def _locked_operation(self, resource: str, operation: str):
        """
        Hold the endpoint lock for one operation and collect its ERROR log lines.

        A ReconcileError leaving the block is logged and re-raised with the
        collected lines in context["logged_errors"].
        """
        with self.locked(resource), collect_errors() as logged_errors:
            try:
                yield
            except ReconcileError as e:
                self.logger.error(f"{operation} failed on {self.endpoint}: {e}")
                e.context["logged_errors"] = list(logged_errors)
                raise

    # Power

    def is_powered_on(self) -> bool:
        return self.power.is_powered_on()

    def change_power_state(self, power_on: bool, timeout: Optional[float] = None) -> None:
        self.power.change_power_state(power_on, self._timeout(timeout, "power_timeout"))

    def reset_host(self, reset_type: Union[ResetType, str], timeout: Optional[float] = None) -> None:
        self.power.reset_host(reset_type, self._timeout(timeout, "power_timeout"))

    def power_cycle_host(self, timeout: Optional[float] = None) -> None:
        self.power.power_cycle_host(self._timeout(timeout, "power_timeout"))

    # BIOS settings

    def wait_till_settings_applied(
        self, timeout: Optional[float] = None, reset_type: Union[ResetType, str, None] = None
    ) -> None:
        if reset_type is None:
            reset_type = self.config.settings["system_reset_type"]
        self.settings_watcher.wait_till_settings_applied(self._timeout(timeout, "settings_apply_timeout"), reset_type)

    def read_boot_order(self) -> List[BootOrderEntry]:
        return self.boot_order.read_current_boot_order()

    def validate_and_apply_boot_order(self, planned: List[str]) -> None:
        self.boot_order.validate_and_apply(planned)

    def reconcile_boot_order(
        self,
        planned: List[str],
        reset_type: Union[ResetType, str, None] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Validate and write a boot order, then wait until BIOS has committed it.
        Holds the endpoint lock for the whole sequence.
        """
        with self._locked_operation("boot_order", "Boot order reconciliation"):
            self.boot_order.validate_and_apply(planned)
            self.wait_till_settings_applied(timeout, reset_type)

    def apply_bios_attributes(
        self,
        planned: Dict[str, str],
        reset_type: Union[ResetType, str, None] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Write the BIOS attributes that differ from their current values and
        wait until BIOS has committed them. Holds the endpoint lock.

        Returns:
            Dict[str, Any]: The attributes that were written
        """
        with self._locked_operation("bios", "BIOS attributes reconciliation"):
            adjusted = self.bios_attributes.validate_and_adjust(planned)
            self.bios_attributes.apply(adjusted)
            self.wait_till_settings_applied(timeout, reset_type)
        return adjusted

    # Tasks and volumes

    def wait_for_task_end(self, location: str, timeout: Optional[float] = None) -> Tuple[bool, Optional[ReconcileError]]:
        return self.task_poller.wait_for_task_end(location, self._timeout(timeout, "task_timeout"))

    def create_volume(
        self, volumes_collection_url: str, payload: Dict[str, Any], timeout: Optional[float] = None
    ) -> str:
        with self._locked_operation("storage_volume", "Volume creation"):
            return self.volumes.create_volume(volumes_collection_url, payload, self._timeout(timeout, "task_timeout"))

    def delete_volume(self, volume_url: str, timeout: Optional[float] = None) -> None:
        with self._locked_operation("storage_volume", "Volume deletion"):
            self.volumes.delete_volume(volume_url, self._timeout(timeout, "volume_delete_timeout"))

    def close(self):
        """Close the HTTP session."""
        self.logger.info(f"Closing host reconciler for {self.endpoint}")
        self.session.close()
