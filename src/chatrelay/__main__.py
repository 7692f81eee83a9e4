"""Run the relay: ``python -m chatrelay``."""

import asyncio
import contextlib
import logging

import chatrelay.entrypoint
from chatrelay.core.config import (
    ConfigFileEmptyError,
    SettingsError,
    load_config_or_empty,
    load_settings,
)
from chatrelay.core.error_handling import (
    configure_logging,
    install_global_exception_hooks,
    register_asyncio_exception_handler,
)

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def main() -> None:
    """Validate configuration, then serve until interrupted."""
    configure_logging()
    install_global_exception_hooks()
    try:
        settings = load_settings(load_config_or_empty())
    except (SettingsError, ConfigFileEmptyError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc

    with asyncio.Runner() as runner:
        register_asyncio_exception_handler(runner.get_loop())
        try:
            runner.run(chatrelay.entrypoint.main(settings))
        except KeyboardInterrupt:
            # A second Ctrl+C while closing connections must not leak a traceback.
            with contextlib.suppress(KeyboardInterrupt):
                runner.run(chatrelay.entrypoint.shutdown())


if __name__ == "__main__":
    main()
