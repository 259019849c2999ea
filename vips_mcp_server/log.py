"""
Logging setup for the MCP server.

Everything goes to stderr: stdout carries the protocol stream when the
server runs over stdio.
"""
import logging
import os
import sys

LOGGER_NAME = "vips_mcp_server"
HANDLER_NAME = "vips_mcp_server.stderr"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level=None):
    """Configure the package logger.

    ``level`` may be a name ("info") or a logging constant. The
    VIPS_MCP_LOG_LEVEL environment variable wins over the argument so a
    deployment can turn on debug output without changing the command line.
    Calling this more than once updates the existing handler.
    """
    logger = logging.getLogger(LOGGER_NAME)

    env_level = (os.getenv("VIPS_MCP_LOG_LEVEL") or "").strip().lower()
    if env_level in LEVELS:
        level = LEVELS[env_level]
    elif isinstance(level, str):
        level = LEVELS.get(level.strip().lower(), logging.INFO)
    elif level is None:
        level = logging.INFO
    logger.setLevel(level)

    handler = next((h for h in logger.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.set_name(HANDLER_NAME)
        logger.addHandler(handler)

    handler.setFormatter(logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    return logger


def get_logger(name=None):
    """Return the package logger or one of its children."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
