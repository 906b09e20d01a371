"""Unit tests for logging configuration."""
from __future__ import annotations

import logging

from liquidator.logging_setup import configure_logging


class TestConfigureLogging:
    def test_sets_root_level(self) -> None:
        configure_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        configure_logging("LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_quiets_aiohttp(self) -> None:
        configure_logging("DEBUG")
        assert logging.getLogger("aiohttp").level == logging.WARNING
