import sys

import pytest
from loguru import logger

from handle_index import Mapping


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    # the CLI swaps loguru's sinks; put the default one back
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "user-db"


@pytest.fixture
def db(db_path):
    mapping = Mapping(db_path, segments=16, expected_keys=1000)
    yield mapping
    mapping.close()
