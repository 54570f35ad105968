import pytest

from scalargrad.node import use_graph


@pytest.fixture
def graph():
    """Build each test's nodes in a fresh identity scope."""
    with use_graph() as g:
        yield g
