"""
Shared fixtures for the diagram recovery test suite.
"""

import pytest

from diagram_recovery.config import RecoveryConfig
from diagram_recovery.render_controller import RenderAttemptController
from diagram_recovery.tests.fakes import FakeMermaidBackend


@pytest.fixture
def config():
    return RecoveryConfig()


@pytest.fixture
def backend():
    return FakeMermaidBackend()


@pytest.fixture
def errors():
    return []


@pytest.fixture
def controller(backend, config, errors):
    return RenderAttemptController(backend, config=config, on_error=errors.append)
