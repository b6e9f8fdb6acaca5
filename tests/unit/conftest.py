import pytest

from fakes import FakeCluster


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()
