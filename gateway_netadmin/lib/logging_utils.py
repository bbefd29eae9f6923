import logging
import os
import sys

from gateway_netadmin.constants import IS_DEV

BUS_LOGGER = "gateway_netadmin.message_bus"
# Loggers that are chatty at DEBUG: every external command, every poll of wpa_cli
COMMAND_LOGGERS = ("gateway_netadmin.utils", "gateway_netadmin.lib.wifi_control")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def supports_color() -> bool:
    """True when stdout is a terminal that understands ANSI colors, unless overridden"""
    if _env_flag("FORCE_COLOR"):
        return True
    if _env_flag("NO_COLOR"):
        return False
    if sys.platform == "win32" and "ANSICON" not in os.environ:
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CustomFormatter(logging.Formatter):
    """Colors each record by level; plain text when colors are unsupported"""

    fmt = "%(asctime)s | %(levelname)8s | %(threadName)s | %(name)s: %(message)s"
    reset = "\x1b[0m"
    colors = {
        logging.DEBUG: "\x1b[38;5;244m",
        logging.INFO: "\x1b[38;5;255m",
        logging.WARNING: "\x1b[38;5;208m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }

    def __init__(self, use_color=None):
        super().__init__(self.fmt)
        self.use_color = supports_color() if use_color is None else use_color
        self.formatters = {
            level: logging.Formatter(color + self.fmt + self.reset)
            for level, color in self.colors.items()
        }

    def format(self, record):
        if not self.use_color:
            return super().format(record)
        formatter = self.formatters.get(record.levelno)
        return formatter.format(record) if formatter else super().format(record)


def create_console_handler(level=logging.DEBUG):
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(CustomFormatter())
    return handler


def env_level(name: str, default: str = "INFO") -> int:
    """Log level named by environment variable `name`, INFO if it names no level"""
    level = logging.getLevelName(os.environ.get(name, default).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level=logging.INFO, handlers=None):
    """
    Configures the root logger. NETADMIN_LOG_LEVEL overrides `level`, and
    NETADMIN_BUS_LOG_LEVEL sets the level of message bus traffic.
    """
    if IS_DEV:
        level = logging.DEBUG
    level = env_level("NETADMIN_LOG_LEVEL", logging.getLevelName(level))

    if handlers is None:
        handlers = [create_console_handler(level)]
    logging.basicConfig(encoding="utf-8", level=level, handlers=handlers, force=True)

    logging.getLogger(BUS_LOGGER).setLevel(
        env_level("NETADMIN_BUS_LOG_LEVEL", logging.getLevelName(level))
    )
    for name in COMMAND_LOGGERS:
        # Commands are only logged at DEBUG when explicitly asked for
        logging.getLogger(name).setLevel(logging.DEBUG if IS_DEV else max(level, logging.INFO))
