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
Storage volume create and delete requests supervised through Redfish tasks.
"""

import logging
from typing import Any, Dict, List

from IrmcControl.RedfishFunctions.errors import RedfishRequestError, VolumeRequestError
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession
from IrmcControl.RedfishFunctions.task_poller import TaskPoller

DEFAULT_VOLUME_DELETE_TIMEOUT = 300


def get_recently_created_volume_id(ids_after: List[str], ids_before: List[str]) -> str:
    """Return the first volume id present after creation but not before, or ""."""
    before = set(ids_before)
    for volume_id in ids_after:
        if volume_id not in before:
            return volume_id
    return ""


class StorageVolumeManager:
    """Creates and deletes volumes of one storage controller."""

    def __init__(self, session: RedfishSession, poller: TaskPoller, logger: logging.Logger = None):
        self.session = session
        self.poller = poller
        self.logger = logger or logging.getLogger(__name__)

    def create_volume(self, volumes_collection_url: str, payload: Dict[str, Any], timeout: float) -> str:
        """
        Request volume creation and wait for the creation task.

        Args:
            volumes_collection_url (str): Volumes collection of the storage controller
            payload (dict): Volume definition
            timeout (float): Seconds allowed for the creation task

        Returns:
            str: Id of the created volume, "" if it could not be determined

        Raises:
            VolumeRequestError: If the controller did not accept the request
            TaskFailedError: If the creation task failed
        """
        ids_before = self.session.get_collection_member_ids(volumes_collection_url)

        try:
            location = self.session.post_task_request(volumes_collection_url, payload)
        except RedfishRequestError as e:
            raise VolumeRequestError(f"Error while requesting POST on volume collection: {e}") from e
        if not location:
            raise VolumeRequestError("POST request on volume collection did not start a task")

        self.logger.info(f"Volume creation task started at {location}")
        self.poller.supervise_task(location, timeout, "volume creation")

        ids_after = self.session.get_collection_member_ids(volumes_collection_url)
        volume_id = get_recently_created_volume_id(ids_after, ids_before)
        if not volume_id:
            self.logger.warning(f"Could not determine id of the created volume in {volumes_collection_url}")
        else:
            self.logger.info(f"Created volume {volume_id}")
        return volume_id

    def delete_volume(self, volume_url: str, timeout: float = DEFAULT_VOLUME_DELETE_TIMEOUT) -> None:
        """
        Request volume deletion and wait for the deletion task.

        Raises:
            VolumeRequestError: If the controller did not accept the request
            TaskFailedError: If the deletion task failed
        """
        try:
            location = self.session.delete_task_request(volume_url)
        except RedfishRequestError as e:
            raise VolumeRequestError(f"Request to delete volume reported error: {e}") from e
        if not location:
            raise VolumeRequestError(f"DELETE request on {volume_url} did not start a task")

        self.logger.info(f"Volume deletion task started at {location}")
        self.poller.supervise_task(location, timeout, "volume deletion")
