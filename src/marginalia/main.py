"""Entry point for the Marginalia document and comment server."""

import structlog

from marginalia.app import App
from marginalia.config import Config
from marginalia.logging import setup_logging
from marginalia.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    structlog.get_logger(__name__).info("starting", host=config.host, port=config.port, content_path=config.content_path)
    run_server(App(config), config)


if __name__ == "__main__":
    main()
