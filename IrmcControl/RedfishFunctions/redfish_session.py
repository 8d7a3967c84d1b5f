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
Redfish session primitives used by the reconciliation engine.

RedfishSession maps the small set of reads and writes the engine needs onto
Redfish resources of one ComputerSystem. Every read is fetched fresh, nothing
is cached except the OEM namespace variant, which is resolved once per
session. Failed requests are raised as RedfishRequestError.
"""

import logging
from typing import Any, Dict, List, Optional

from IrmcControl.control_types import BootOrderEntry, OemVariant, PowerState, ResetType, TaskState, TaskStatus
from IrmcControl.RedfishFunctions.errors import (
    BiosDataUnavailableError,
    BootOrderAttributeMalformedError,
    RedfishRequestError,
)
from IrmcControl.RedfishFunctions.utils import Utils

SERVICE_ROOT = "/redfish/v1"
BOOT_ORDER_ATTRIBUTE = "PersistentBootConfigOrder"


class RedfishSession:
    """Collaborator session for one system behind one management controller."""

    def __init__(
        self,
        utils: Utils,
        system_uri: str = "/redfish/v1/Systems/0",
        oem_variant: Optional[OemVariant] = None,
        request_timeout: float = 30,
        logger: logging.Logger = None,
    ):
        """
        Args:
            utils (Utils): HTTP transport bound to the controller
            system_uri (str): ComputerSystem resource path
            oem_variant (OemVariant): Pinned OEM namespace, None to detect on first use
            request_timeout (float): Per request timeout in seconds
        """
        self.utils = utils
        self.system_uri = system_uri.rstrip("/")
        self.request_timeout = request_timeout
        self.logger = logger or logging.getLogger(__name__)
        self._oem_variant = oem_variant

    @property
    def bios_uri(self) -> str:
        return f"{self.system_uri}/Bios"

    @property
    def bios_settings_uri(self) -> str:
        return f"{self.system_uri}/Bios/Settings"

    @property
    def reset_uri(self) -> str:
        return f"{self.system_uri}/Actions/ComputerSystem.Reset"

    def _get(self, url_path: str) -> Any:
        success, data = self.utils.get_request(url_path, timeout=self.request_timeout)
        if not success:
            raise RedfishRequestError("GET", url_path, data)
        return data

    def _get_dict(self, url_path: str) -> Dict[str, Any]:
        data = self._get(url_path)
        if not isinstance(data, dict):
            raise RedfishRequestError("GET", url_path, f"Unexpected response body: {data}")
        return data

    def _post(self, url_path: str, payload: Optional[Dict[str, Any]]) -> Any:
        success, data = self.utils.post_request(url_path, payload, timeout=self.request_timeout)
        if not success:
            raise RedfishRequestError("POST", url_path, data)
        return data

    def detect_oem_variant(self) -> OemVariant:
        """
        Resolve the OEM namespace published by the controller.

        The service root advertises its OEM extensions under ``Oem``; older
        firmware only names the vendor. Firmware that names neither is
        treated as ``ts_fujitsu``. The result is cached for the session.

        Returns:
            OemVariant: Namespace variant to use for OEM resources
        """
        if self._oem_variant is not None:
            return self._oem_variant

        root = self._get_dict(SERVICE_ROOT)
        oem_keys = root.get("Oem") or {}
        vendor = str(root.get("Vendor", ""))

        if OemVariant.FSAS.namespace in oem_keys:
            variant = OemVariant.FSAS
        elif OemVariant.TS_FUJITSU.namespace in oem_keys:
            variant = OemVariant.TS_FUJITSU
        elif "fsas" in vendor.lower():
            variant = OemVariant.FSAS
        else:
            variant = OemVariant.TS_FUJITSU

        self.logger.info(f"Detected OEM namespace '{variant.namespace}' (vendor '{vendor}')")
        self._oem_variant = variant
        return variant

    # Power and POST

    def get_power_indicator(self) -> PowerState:
        system = self._get_dict(self.system_uri)
        return PowerState.from_redfish(system.get("PowerState"))

    def get_post_phase_indicator(self) -> bool:
        """Read the vendor POST indicator from the BIOS resource."""
        bios = self._get_dict(self.bios_uri)
        value: Any = bios
        for key in self.detect_oem_variant().post_phase_path():
            if not isinstance(value, dict) or key not in value:
                raise RedfishRequestError("GET", self.bios_uri, "POST phase indicator not present in BIOS resource")
            value = value[key]
        return bool(value)

    def issue_reset(self, reset_type: ResetType) -> None:
        self.logger.info(f"Requesting {reset_type.value} reset of {self.system_uri}")
        self._post(self.reset_uri, {"ResetType": reset_type.value})

    def issue_oem_power_cycle(self) -> None:
        oem = self.detect_oem_variant()
        url_path = oem.oem_reset_uri(self.system_uri)
        self.logger.info(f"Requesting OEM power cycle of {self.system_uri}")
        self._post(url_path, {oem.oem_reset_key(): ResetType.POWER_CYCLE.value})

    # BIOS

    def get_bios_attributes(self) -> Dict[str, Any]:
        """
        Read current BIOS attributes.

        Raises:
            BiosDataUnavailableError: If the resource exposes no attributes yet
        """
        bios = self._get_dict(self.bios_uri)
        attributes = bios.get("Attributes") or {}
        if not attributes:
            raise BiosDataUnavailableError(self.bios_uri)
        return attributes

    def get_boot_order_attribute(self) -> Optional[List[BootOrderEntry]]:
        """
        Read the current persistent boot order.

        Returns:
            List of boot entries, or None if the BIOS does not expose the attribute

        Raises:
            BootOrderAttributeMalformedError: If the attribute is not a list of
                [structured_boot_string, device_name] pairs
        """
        attributes = self.get_bios_attributes()
        if BOOT_ORDER_ATTRIBUTE not in attributes:
            return None
        raw_order = attributes[BOOT_ORDER_ATTRIBUTE] or []
        if not isinstance(raw_order, list):
            raise BootOrderAttributeMalformedError(BOOT_ORDER_ATTRIBUTE, f"expected a list, got {raw_order!r}")
        for item in raw_order:
            if not isinstance(item, (list, tuple)):
                raise BootOrderAttributeMalformedError(BOOT_ORDER_ATTRIBUTE, f"entry {item!r} is not a pair")
        return [BootOrderEntry.from_redfish(item) for item in raw_order]

    def get_pending_settings_attributes(self) -> Dict[str, Any]:
        settings = self._get_dict(self.bios_settings_uri)
        return settings.get("Attributes") or {}

    def get_pending_settings_etag(self) -> str:
        success, etag = self.utils.get_etag(self.bios_settings_uri, timeout=self.request_timeout)
        if not success:
            raise RedfishRequestError("GET", self.bios_settings_uri, etag)
        return etag

    def patch_pending_settings(self, attributes: Dict[str, Any], etag: str) -> None:
        success, data = self.utils.patch_request(
            self.bios_settings_uri,
            {"Attributes": attributes},
            headers={"If-Match": etag},
            timeout=self.request_timeout,
        )
        if not success:
            raise RedfishRequestError("PATCH", self.bios_settings_uri, data)

    # Tasks

    def get_task(self, location: str) -> TaskStatus:
        task = self._get_dict(location)
        raw_state = task.get("TaskState")
        return TaskStatus(
            location=location,
            state=TaskState.from_redfish(raw_state),
            raw_state=raw_state,
            percent_complete=task.get("PercentComplete"),
            log_location=self.detect_oem_variant().task_log_uri(location),
        )

    def get_task_log(self, location: str) -> bytes:
        log_uri = self.detect_oem_variant().task_log_uri(location)
        success, response = self.utils.get_raw_request(log_uri, timeout=self.request_timeout)
        if not success:
            raise RedfishRequestError("GET", log_uri, response)
        if response.status_code != 200:
            raise RedfishRequestError("GET", log_uri, f"Endpoint returned status {response.status_code}")
        return response.content

    # Collections

    def post_task_request(self, url_path: str, payload: Dict[str, Any]) -> Optional[str]:
        """POST a request that may start a task; return the task location if one was started."""
        data = self._post(url_path, payload)
        return data.get("Location") if isinstance(data, dict) else None

    def delete_task_request(self, url_path: str) -> Optional[str]:
        """DELETE a resource; return the task location if one was started."""
        success, data = self.utils.delete_request(url_path, timeout=self.request_timeout)
        if not success:
            raise RedfishRequestError("DELETE", url_path, data)
        return data.get("Location") if isinstance(data, dict) else None

    def get_collection_member_ids(self, collection_uri: str) -> List[str]:
        collection = self._get_dict(collection_uri)
        ids = []
        for member in collection.get("Members", []):
            odata_id = member.get("@odata.id", "")
            if odata_id:
                ids.append(odata_id.rstrip("/").rsplit("/", 1)[-1])
        return ids

    def close(self):
        self.utils.close()
