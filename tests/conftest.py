from __future__ import annotations

import pytest

from tests.fakes import FakeTelegram, FakeWebsite


@pytest.fixture
def fake_telegram() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture
def fake_website() -> FakeWebsite:
    return FakeWebsite()
