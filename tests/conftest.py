from __future__ import annotations

from datetime import datetime

import pytest

from tests.fakes import Env


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 4, 9, 30, 0)


@pytest.fixture
def env():
    return Env()
