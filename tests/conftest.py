from __future__ import annotations

import logging as py_logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from fakes import FakeClock, SteppingToken

_CONTRACT_TEST_FILES = {
    "test_runtime_contract.py",
    "test_registry.py",
    "test_delivery.py",
}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)

        if path.name in _CONTRACT_TEST_FILES:
            item.add_marker(pytest.mark.critical_regression)


@pytest.fixture(autouse=True)
def _reset_agentmux_logging() -> Iterator[None]:
    yield
    logger = py_logging.getLogger("agentmux")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(py_logging.NOTSET)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token(clock: FakeClock) -> SteppingToken:
    return SteppingToken(clock)
