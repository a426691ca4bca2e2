"""Shared test fixtures."""

import enum

import pytest
import structlog

from rowshape import HostTypes, analyze


class Fruits(enum.Enum):
    APPLE = 1
    ORANGE = 2
    BANANA = 3


class NotAnEnum:
    pass


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def fruit_types():
    return HostTypes({"Fruits": Fruits, "NotAnEnum": NotAnEnum})


@pytest.fixture
def analyze_clean():
    """Analyze SQL and assert that no diagnostics were reported."""

    def run(source, host_types=None, **kwargs):
        result = analyze(source, host_types=host_types, **kwargs)
        assert result.diagnostics == (), [str(d) for d in result.diagnostics]
        return result

    return run
