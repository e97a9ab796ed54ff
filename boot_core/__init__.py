"""Boilerplate helpers for backend services: config, logging, HTTP envelope,
shapefile summary and RabbitMQ client.

Usage:
    from boot_core import config, log
    cfg = config.load_and_apply_logging()  # finds config.yaml, configures logging
    logger = log.get_logger(__name__)
    logger.info("Ready", extra={"port": cfg.server.port})

``http_result``, ``shp`` and ``rabbitmq`` pull in fastapi, pyshp and pika
respectively and are imported on demand:
    from boot_core import http_result, rabbitmq, shp
"""

from . import log, config  # re-export for convenience

__all__ = ["log", "config"]
