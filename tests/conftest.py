"""
Shared fixtures: a deterministic clock, a failing diff provider, and a
snapshot store rooted in tmp_path.
"""

import pytest

from chronos.core.differ import DiffProvider
from chronos.errors import DiffProviderError
from chronos.store.ledger import SnapshotStore
from chronos.store.scope import ScopeResolver


class StepClock:
    def __init__(self, start: int = 1_000, step: int = 1_000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class FailingProvider(DiffProvider):
    name = "failing"

    async def diff(self, old_source, new_source) -> str:
        raise DiffProviderError("boom")


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def failing_provider():
    return FailingProvider()


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def global_root(tmp_path):
    return tmp_path / "global"


@pytest.fixture
def resolver(global_root, project):
    return ScopeResolver(global_root, project_root=project)


@pytest.fixture
def store(resolver, clock):
    return SnapshotStore(resolver, clock=clock)
