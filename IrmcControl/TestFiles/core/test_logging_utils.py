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
import threading

import pytest
from rich.logging import RichHandler

from IrmcControl.logging_utils import (
    ErrorCollectorHandler,
    attach_error_collector,
    collect_errors,
    get_log_directory,
    set_log_directory,
    setup_logging,
)

pytestmark = [pytest.mark.core]


class TestLoggingUtils:
    def test_setup_logging_file_and_error_handlers(self, tmp_path):
        custom_dir = tmp_path / "logsdir"
        set_log_directory(str(custom_dir))

        logger = setup_logging("reconciler_file_only")
        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert any(isinstance(h, ErrorCollectorHandler) for h in logger.handlers)
        assert not any(isinstance(h, RichHandler) for h in logger.handlers)
        assert logger.propagate is False

        logger.info("hello from reconciler")
        for handler in logger.handlers:
            handler.flush()

        assert get_log_directory() == custom_dir
        log_file = custom_dir / "reconciler_file_only.log"
        assert log_file.exists()
        assert "hello from reconciler" in log_file.read_text(encoding="utf-8")

    def test_setup_logging_is_idempotent(self, tmp_path):
        set_log_directory(str(tmp_path / "idempotent"))

        first = setup_logging("reconciler_idempotent")
        handler_count = len(first.handlers)
        second = setup_logging("reconciler_idempotent")

        assert first is second
        assert len(second.handlers) == handler_count

    def test_console_output_adds_rich_handler(self, tmp_path):
        set_log_directory(str(tmp_path / "console"))

        logger = setup_logging("reconciler_console", console_output=True)

        assert any(isinstance(h, RichHandler) for h in logger.handlers)

    def test_attach_error_collector_once(self):
        logger = logging.getLogger("reconciler_injected")

        attach_error_collector(logger)
        attach_error_collector(logger)

        assert sum(isinstance(h, ErrorCollectorHandler) for h in logger.handlers) == 1

    def test_collect_errors_only_inside_block(self, tmp_path):
        set_log_directory(str(tmp_path / "collect"))
        logger = setup_logging("reconciler_collect")

        logger.error("error before block")
        with collect_errors() as logged_errors:
            logger.error("boot order rejected")
            logger.warning("only a warning")
            logger.error("task failed: %s", "Exception")
        logger.error("after block")

        assert logged_errors == ["boot order rejected", "task failed: Exception"]

    def test_nested_blocks(self, tmp_path):
        set_log_directory(str(tmp_path / "nested"))
        logger = setup_logging("reconciler_nested")

        with collect_errors() as outer:
            logger.error("outer")
            with collect_errors() as inner:
                logger.error("inner")

        assert outer == ["outer", "inner"]
        assert inner == ["inner"]

    def test_block_closed_on_exception(self, tmp_path):
        set_log_directory(str(tmp_path / "raising"))
        logger = setup_logging("reconciler_raising")

        with pytest.raises(RuntimeError):
            with collect_errors() as logged_errors:
                logger.error("before raise")
                raise RuntimeError("boom")
        logger.error("not collected")

        assert logged_errors == ["before raise"]

    def test_collection_is_per_thread(self, tmp_path):
        set_log_directory(str(tmp_path / "threads"))
        logger = setup_logging("reconciler_threads")
        other_thread_errors = []

        def other_thread():
            with collect_errors() as logged_errors:
                logger.error("from other thread")
            other_thread_errors.extend(logged_errors)

        with collect_errors() as main_errors:
            logger.error("from main thread")
            thread = threading.Thread(target=other_thread)
            thread.start()
            thread.join(timeout=5)

        assert main_errors == ["from main thread"]
        assert other_thread_errors == ["from other thread"]
