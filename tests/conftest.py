"""
General-purpose fixtures for cardamom's testsuite.
"""
import logging
import os

import click_log
import pytest
from hypothesis import HealthCheck
from hypothesis import Verbosity
from hypothesis import settings

from .storage.dav._fakeserver import FakeCardDAVServer


@pytest.fixture(autouse=True)
def setup_logging():
    click_log.basic_config("cardamom").setLevel(logging.DEBUG)


settings.register_profile(
    "ci",
    settings(
        max_examples=1000,
        verbosity=Verbosity.verbose,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "deterministic",
    settings(
        derandomize=True,
        suppress_health_check=list(HealthCheck),
    ),
)
settings.register_profile("dev", settings(suppress_health_check=[HealthCheck.too_slow]))

if os.environ.get("DETERMINISTIC_TESTS", "false").lower() == "true":
    settings.load_profile("deterministic")
elif os.environ.get("CI", "false").lower() == "true":
    settings.load_profile("ci")
else:
    settings.load_profile("dev")


@pytest.fixture
def dav_server(monkeypatch):
    """An in-memory CardDAV server answering every request sent by requests."""
    server = FakeCardDAVServer()
    server.install(monkeypatch)
    return server
