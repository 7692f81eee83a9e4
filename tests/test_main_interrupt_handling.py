from __future__ import annotations

import pytest

import chatrelay.__main__ as main_module
from chatrelay.core.config import SettingsError

EXPECTED_RUN_CALLS = 2
VALID_CONFIG = {"bot_token": "xoxb-test", "backend_url": "http://localhost:8080"}


class _InterruptingRunner:
    run_calls: list[str]

    def __init__(self) -> None:
        self.run_calls = []

    def __enter__(self) -> _InterruptingRunner:
        return self

    def __exit__(self, *_exc_info: object) -> bool:
        return False

    def get_loop(self) -> object:
        return object()

    def run(self, coro) -> None:  # noqa: ANN001
        self.run_calls.append(coro.__qualname__)
        coro.close()
        raise KeyboardInterrupt


@pytest.fixture
def quiet_main(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "configure_logging", lambda: None)
    monkeypatch.setattr(main_module, "install_global_exception_hooks", lambda: None)
    monkeypatch.setattr(
        main_module,
        "register_asyncio_exception_handler",
        lambda _loop: None,
    )


@pytest.mark.usefixtures("quiet_main")
def test_main_suppresses_secondary_keyboard_interrupt(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    runner = _InterruptingRunner()
    received_settings: list[object] = []

    async def _fake_main(settings: object) -> None:
        received_settings.append(settings)

    async def _fake_shutdown() -> None:
        return None

    monkeypatch.setattr(main_module.asyncio, "Runner", lambda: runner)
    monkeypatch.setattr(main_module, "load_config_or_empty", lambda: VALID_CONFIG)
    monkeypatch.setattr(main_module.chatrelay.entrypoint, "main", _fake_main)
    monkeypatch.setattr(main_module.chatrelay.entrypoint, "shutdown", _fake_shutdown)

    main_module.main()

    assert len(runner.run_calls) == EXPECTED_RUN_CALLS
    assert runner.run_calls[1].endswith("_fake_shutdown")


@pytest.mark.usefixtures("quiet_main")
def test_invalid_configuration_exits_before_starting_the_loop(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _runner_must_not_start() -> None:
        message = "event loop started with invalid settings"
        raise AssertionError(message)

    def _bad_settings(_config: object) -> None:
        message = "'bot_token' (SLACK_BOT_TOKEN) must be set"
        raise SettingsError(message)

    monkeypatch.setattr(main_module.asyncio, "Runner", _runner_must_not_start)
    monkeypatch.setattr(main_module, "load_config_or_empty", dict)
    monkeypatch.setattr(main_module, "load_settings", _bad_settings)

    with pytest.raises(SystemExit) as exc_info:
        main_module.main()

    assert exc_info.value.code == main_module.EXIT_CONFIG_ERROR
