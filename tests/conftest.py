"""Shared test configuration."""

from __future__ import annotations

import pytest

from vibeflow.adapters.memory import InMemoryChangeFeed, InMemoryRowStore, InMemoryStorage
from vibeflow.persistence.local import LocalGateway
from vibeflow.persistence.remote import RemoteGateway


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="Run slow timing tests"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="Need --run-slow to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def local(storage):
    return LocalGateway(storage)


@pytest.fixture
def feed():
    return InMemoryChangeFeed()


@pytest.fixture
def rows(feed):
    return InMemoryRowStore(feed=feed)


@pytest.fixture
def remote(rows):
    return RemoteGateway(rows)
