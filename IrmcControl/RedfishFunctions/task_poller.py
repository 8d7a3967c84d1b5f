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
Redfish task polling.

Operations answered with 202 Accepted return the location of a task
resource. TaskPoller re-reads that resource until it reaches a finished
state and, when the task did not complete, fetches the OEM task log once so
the caller can report why.
"""

import logging
import time
from typing import Optional, Tuple

from IrmcControl.control_types import is_task_finished, is_task_finished_successfully
from IrmcControl.RedfishFunctions.errors import (
    RedfishRequestError,
    ReconcileError,
    TaskFailedError,
    TaskLogError,
    TaskRetrievalError,
    TaskTimeoutError,
)
from IrmcControl.RedfishFunctions.redfish_session import RedfishSession

TASK_POLL_INTERVAL = 5


class TaskPoller:
    """Polls a task resource to a finished state."""

    def __init__(self, session: RedfishSession, logger: logging.Logger = None):
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    def wait_for_task_end(self, location: str, timeout: float) -> Tuple[bool, Optional[ReconcileError]]:
        """
        Poll the task every 5 seconds until it finishes or the timeout expires.

        Args:
            location (str): Task resource path
            timeout (float): Seconds allowed for the task

        Returns:
            Tuple[bool, Optional[ReconcileError]]: (True, None) when the task completed,
            otherwise False and one of TaskRetrievalError, TaskFailedError or TaskTimeoutError
        """
        start_time = time.time()
        while True:
            try:
                status = self.session.get_task(location)
            except RedfishRequestError as e:
                return False, TaskRetrievalError(location, e.detail)

            self.logger.info(f"Task {location} state: {status.raw_state}, progress: {status.percent_complete}")

            if is_task_finished(status.state):
                if is_task_finished_successfully(status.state):
                    self.logger.info(f"Task {location} completed")
                    return True, None
                return False, TaskFailedError(location, status.raw_state)

            time.sleep(TASK_POLL_INTERVAL)

            if time.time() - start_time > timeout:
                return False, TaskTimeoutError(f"Task {location} has not finished within given timeout", timeout)

    def fetch_task_log(self, location: str) -> str:
        """
        Read the OEM log of a task.

        Raises:
            TaskLogError: If the log cannot be read
        """
        try:
            content = self.session.get_task_log(location)
        except RedfishRequestError as e:
            raise TaskLogError(location, e.detail) from e
        return content.decode("utf-8", errors="replace")

    def supervise_task(self, location: str, timeout: float, operation: str) -> None:
        """
        Wait for a task and raise with its log attached if it did not complete.

        Raises:
            TaskFailedError: Task finished in a state other than Completed
            TaskTimeoutError: Task did not finish within timeout
            TaskRetrievalError: Task resource could not be read
        """
        success, error = self.wait_for_task_end(location, timeout)
        if success:
            return

        self.logger.error(f"Task for {operation} reported error: {error}")

        try:
            task_log = self.fetch_task_log(location)
        except TaskLogError as log_error:
            self.logger.error(str(log_error))
            if isinstance(error, TaskFailedError):
                error.log_error = log_error
            raise error from log_error

        self.logger.error(f"Task logs for {operation}: {task_log}")
        if isinstance(error, TaskFailedError):
            error.task_log = task_log
            error.context["task_log"] = task_log
        raise error
