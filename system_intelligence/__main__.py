"""Run the System Intelligence service."""

from __future__ import annotations

import argparse
import logging
import sys

from aiohttp import web

from . import async_setup_app
from .config import load_config
from .const import SERVER_RUNNER_OPTIONS
from .exceptions import ConfigError

LOGGER = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Load configuration and serve the HTTP API until interrupted."""
    parser = argparse.ArgumentParser(prog="system_intelligence")
    parser.add_argument("-c", "--config", help="path to a YAML configuration file")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as err:
        logging.basicConfig(level=logging.ERROR)
        LOGGER.error("%s", err)  # noqa: TRY400
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    web.run_app(
        async_setup_app(config),
        host=config.http.host,
        port=config.http.port,
        print=None,
        **SERVER_RUNNER_OPTIONS,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
