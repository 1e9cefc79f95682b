"""Root pytest configuration."""

import logging

import pytest

from pagenote.backend.models import User
from pagenote.workspace.service import Workspace
from tests.helpers import FakePageStore, FakeScheduler

# Library loggers are quiet unless a test opts in through caplog.
logging.getLogger("httpx").setLevel(logging.WARNING)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def store():
    return FakePageStore()


@pytest.fixture
def user():
    return User(id="user-1", email="ada@example.com")


@pytest.fixture
def reported_errors():
    return []


@pytest.fixture
def workspace(store, user, scheduler, reported_errors):
    ws = Workspace(store, user, autosave_delay=2.0, scheduler=scheduler, on_error=reported_errors.append)
    yield ws
    ws.close()
