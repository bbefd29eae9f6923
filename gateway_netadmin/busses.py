import logging
import os

from pymessagebus import MessageBus
from pymessagebus.middleware.logger import (
    LoggingMiddlewareConfig,
    get_logger_middleware,
)

from gateway_netadmin.lib.logging_utils import BUS_LOGGER, env_level


def _env_on(name: str, default: str = "on") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


BUS_LOG_ENABLED = _env_on("NETADMIN_BUS_LOG", "on")
BUS_LOG_LEVEL = env_level("NETADMIN_BUS_LOG_LEVEL", "DEBUG")


def build_middlewares() -> list:
    middlewares = []
    if BUS_LOG_ENABLED:
        bus_logger = logging.getLogger(BUS_LOGGER)
        # received, succeeded, failed
        logging_config = LoggingMiddlewareConfig(
            BUS_LOG_LEVEL, BUS_LOG_LEVEL, logging.ERROR
        )
        middlewares.append(get_logger_middleware(bus_logger, logging_config))
    return middlewares


def create_message_bus() -> MessageBus:
    return MessageBus(middlewares=build_middlewares())


message_bus = create_message_bus()
