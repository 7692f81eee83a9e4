from __future__ import annotations

from collections.abc import Iterator

import pytest

from chatrelay.core.config import CONFIG_PATH_ENV, clear_config_cache

from ._fakes import FakeBackend, FakePlatform


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fresh_config_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()
