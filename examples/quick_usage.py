"""Load config.yaml (next to this script, else the working dir) and log a few values.

    python examples/quick_usage.py
"""

from boot_core import config, log


def main():
    cfg = config.load_and_apply_logging()
    logger = log.get_logger(__name__)

    logger.info("Example started", extra={"port": cfg.server.port})
    logger.debug("Database", extra={"dsn": cfg.database.dsn()})
    logger.debug("Broker", extra={"url": cfg.rabbitmq.url()})


if __name__ == "__main__":
    main()
