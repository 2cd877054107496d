"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from config.controller import ConfigController
from core.logging import logger as controller_logger


@pytest.fixture
def controller_log(caplog):
    """Capture records from the controller logger, which does not propagate."""

    controller_logger.addHandler(caplog.handler)
    yield caplog
    controller_logger.removeHandler(caplog.handler)


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    ConfigController._instance = None
    yield
    ConfigController._instance = None
