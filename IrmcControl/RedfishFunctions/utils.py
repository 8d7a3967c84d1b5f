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
HTTP transport for Redfish requests against an iRMC management controller.

The Utils class sends GET, POST, PATCH and DELETE requests and reports the
outcome as a ``(success, payload)`` tuple. It never raises for HTTP level
failures; the session layer decides what a failed tuple means.

Asynchronous operations answer with ``202 Accepted`` and a ``Location``
header pointing at a task. For those responses the header value is merged
into the returned payload under ``"Location"`` so callers can hand it to the
task poller.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning


class Utils:
    """
    Utility class for interacting with Redfish endpoints.
    """

    def __init__(
        self,
        *,
        bmc_ip: str,
        bmc_username: str,
        bmc_password: str,
        bmc_service_port: Optional[int] = 443,
        bmc_service_type: str = "https",
        ssl_insecure: bool = True,
        logger: logging.Logger = None,
    ):
        """
        Initialize Utils with connection parameters.

        Args:
            bmc_ip (str): IP address or hostname of the management controller
            bmc_username (str): Username for authentication
            bmc_password (str): Password for authentication
            bmc_service_port (int): Port number for the service (default 443)
            bmc_service_type (str): URL scheme, "https" or "http"
            ssl_insecure (bool): Skip certificate verification
        """
        self.bmc_ip = bmc_ip
        self.bmc_username = bmc_username
        self.bmc_password = bmc_password
        self.bmc_service_port = bmc_service_port
        self.bmc_service_type = bmc_service_type
        self.verify = not ssl_insecure
        self.logger = logger or logging.getLogger(__name__)
        self.session = requests.Session()
        self.session.auth = (self.bmc_username, self.bmc_password)

        if ssl_insecure:
            urllib3.disable_warnings(InsecureRequestWarning)

    def build_url(self, url_path: str) -> str:
        url = f"{self.bmc_service_type}://{self.bmc_ip}"
        if self.bmc_service_port:
            url += f":{self.bmc_service_port}"
        return url + url_path

    @staticmethod
    def _decode_body(response) -> Any:
        if not response.text or response.text.strip() == "":
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    def _with_location(self, response, data: Any) -> Any:
        location = response.headers.get("Location")
        if location and response.status_code == 202:
            if not isinstance(data, dict):
                data = {}
            data = dict(data)
            data["Location"] = location
        return data

    def get_request(self, url_path: str, timeout: float = 30) -> Tuple[bool, Any]:
        """
        Send GET request to given URL. Return True and response if status code is 200-204.
        Return False and error message otherwise.
        """
        success, response = self.get_raw_request(url_path, timeout=timeout)
        if not success:
            return False, response
        if response.status_code in range(200, 205):
            return True, self._decode_body(response)
        return False, response.text

    def get_raw_request(self, url_path: str, timeout: float = 30) -> Tuple[bool, Any]:
        """
        Send GET request and return the requests.Response untouched.

        Used where the caller needs headers (ETag) or a binary body (task logs).
        Return False and error message if the request could not be sent.
        """
        try:
            url = self.build_url(url_path)
            self.logger.info(f"BMC Redfish GET Request: {url}")

            response = self.session.get(url, verify=self.verify, timeout=timeout)

            self.logger.info(f"BMC Redfish GET Response (Status {response.status_code}): {response.text}")
            return True, response
        except requests.exceptions.Timeout as e:
            self.logger.error(f"BMC Redfish GET Timeout: {e}")
            return False, f"Timeout Error {e}"
        except requests.exceptions.RequestException as e:
            self.logger.error(f"BMC Redfish GET Exception: {e}")
            return False, str(e)

    def get_etag(self, url_path: str, timeout: float = 30) -> Tuple[bool, str]:
        """
        Read the ETag of a resource, from the header or from ``@odata.etag``.
        """
        success, response = self.get_raw_request(url_path, timeout=timeout)
        if not success:
            return False, response
        if response.status_code not in range(200, 205):
            return False, response.text
        etag = response.headers.get("ETag")
        if not etag:
            body = self._decode_body(response)
            if isinstance(body, dict):
                etag = body.get("@odata.etag")
        if not etag:
            return False, f"No ETag returned for {url_path}"
        return True, etag

    def patch_request(
        self, url_path: str, data: Dict[str, Any], headers: Optional[Dict[str, str]] = None, timeout: float = 30
    ) -> Tuple[bool, Any]:
        """
        Send PATCH request to given URL. Return True and response if status code is 200-204.
        Return False and the decoded error body otherwise.
        """
        try:
            url = self.build_url(url_path)

            self.logger.info(f"BMC Redfish PATCH Request: {url}")
            self.logger.info(f"PATCH Data: {json.dumps(data, indent=2)}")

            response = self.session.patch(url, verify=self.verify, json=data, headers=headers, timeout=timeout)

            self.logger.info(f"BMC Redfish PATCH Response (Status {response.status_code}): {response.text}")
            resp_data = self._decode_body(response)
            if response.status_code in (200, 201, 202, 204):
                return True, self._with_location(response, resp_data)
            return False, resp_data if resp_data else response.text
        except requests.exceptions.RequestException as e:
            self.logger.error(f"BMC Redfish PATCH Exception: {e}")
            return False, str(e)

    def post_request(self, url_path: str, json_data: Optional[Dict[str, Any]] = None, timeout: float = 30):
        """
        Send POST request to given URL. Return True and response if status code is 200-204.
        Return False and error message otherwise.
        """
        try:
            url = self.build_url(url_path)

            self.logger.info(f"BMC Redfish POST Request: {url}")
            if json_data is not None:
                self.logger.info(f"POST Data: {json.dumps(json_data, indent=2)}")

            response = self.session.post(url, verify=self.verify, json=json_data, timeout=timeout)

            if response.status_code in (200, 201, 202, 204):
                if response.text.strip():
                    self.logger.info(f"BMC Redfish POST Response (Status {response.status_code}): {response.text}")
                else:
                    self.logger.info(f"BMC Redfish POST Response (Status {response.status_code}): Empty response")
                return True, self._with_location(response, self._decode_body(response))
            self.logger.info(f"BMC Redfish POST Response (Status {response.status_code}): {response.text}")
            return False, response.text
        except requests.exceptions.RequestException as e:
            self.logger.error(f"BMC Redfish POST Exception: {e}")
            return False, str(e)

    def delete_request(self, url_path: str, timeout: float = 30) -> Tuple[bool, Any]:
        """
        Send DELETE request to given URL. Return True and response if status code is 200-204.
        Return False and error message otherwise.
        """
        try:
            url = self.build_url(url_path)
            self.logger.info(f"BMC Redfish DELETE Request: {url}")

            response = self.session.delete(url, verify=self.verify, timeout=timeout)

            self.logger.info(f"BMC Redfish DELETE Response (Status {response.status_code}): {response.text}")
            if response.status_code in (200, 202, 204):
                return True, self._with_location(response, self._decode_body(response))
            return False, response.text
        except requests.exceptions.RequestException as e:
            self.logger.error(f"BMC Redfish DELETE Exception: {e}")
            return False, str(e)

    def close(self):
        self.session.close()
