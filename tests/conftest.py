import random

import numpy as np
import pytest

from Config import Config
from EventScheduler import SimPyScheduler
from SharedMedium import SharedMediumBackend
from TxStatistics import TxStatistics


@pytest.fixture(autouse=True)
def restore_config():
    saved = {k: v for k, v in vars(Config).items() if k.isupper()}
    random.seed(Config.SEED)
    np.random.seed(Config.SEED)
    yield
    for k, v in saved.items():
        setattr(Config, k, v)


@pytest.fixture
def scheduler():
    return SimPyScheduler()


@pytest.fixture
def backend(scheduler):
    return SharedMediumBackend(scheduler)


@pytest.fixture
def stats():
    return TxStatistics()
