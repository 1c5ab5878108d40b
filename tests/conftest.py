import logging

import pytest
import torch

logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: Test is slow.")


@pytest.fixture(autouse=True)
def seed():
    # Random initializations need to be reproducible, and to differ between source and destination models.
    torch.manual_seed(0)
