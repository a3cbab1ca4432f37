import logging
import sys
from pathlib import Path

import pytest

# Shared token doubles live beside this file
sys.path.insert(0, str(Path(__file__).parent))

from ledger_doubles import ADMIN, LEDGER, ManualClock, make_token  # noqa: E402


@pytest.fixture
def clock():
    return ManualClock(start_time=0)


@pytest.fixture
def token():
    """Principal token with the admin holding a large float."""
    token = make_token("Ledger Token", "LGR")
    token.mint(ADMIN, ADMIN, 10**24)
    return token


@pytest.fixture
def funded_admin(token):
    """Admin has approved the ledger for everything it holds."""
    token.approve(ADMIN, LEDGER, token.UINT256_MAX)
    return ADMIN


@pytest.fixture(autouse=True)
def reset_package_logger():
    """CLI runs reconfigure the package logger; put it back after each test."""
    package_logger = logging.getLogger("tokenledger")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)
