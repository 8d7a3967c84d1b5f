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
Per-endpoint mutual exclusion.

Each physical controller gets one lock, created on first use and kept for
the lifetime of the registry. The registry is an ordinary object: whoever
orchestrates operations creates one and passes it to every reconciler that
talks to the same set of controllers.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict


class EndpointLockRegistry:
    """Registry of blocking locks keyed by endpoint identity."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)
        self._registry_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _get_endpoint_lock(self, endpoint: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(endpoint)
            if lock is None:
                lock = threading.Lock()
                self._locks[endpoint] = lock
            return lock

    def lock(self, endpoint: str, resource: str = "") -> None:
        """
        Block until exclusive access to the endpoint is granted.

        Args:
            endpoint (str): Endpoint identity, usually the controller address
            resource (str): Name of the operation, only used for logging
        """
        self.logger.info(f"Before locking mutex for endpoint '{endpoint}', resource '{resource}'")
        self._get_endpoint_lock(endpoint).acquire()
        self.logger.info(f"Successfully locked mutex for endpoint '{endpoint}', resource '{resource}'")

    def unlock(self, endpoint: str, resource: str = "") -> None:
        """
        Release the endpoint lock taken by lock().

        Raises:
            RuntimeError: If the endpoint is not locked
        """
        self.logger.info(f"Before unlocking mutex for endpoint '{endpoint}', resource '{resource}'")
        self._get_endpoint_lock(endpoint).release()
        self.logger.info(f"Successfully unlocked mutex for endpoint '{endpoint}', resource '{resource}'")

    @contextmanager
    def locked(self, endpoint: str, resource: str = ""):
        """Hold the endpoint lock for the duration of a with block."""
        self.lock(endpoint, resource)
        try:
            yield
        finally:
            self.unlock(endpoint, resource)

    def is_locked(self, endpoint: str) -> bool:
        return self._get_endpoint_lock(endpoint).locked()
