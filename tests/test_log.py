import logging

from vips_mcp_server.log import HANDLER_NAME, LOGGER_NAME, get_logger, setup_logging


def package_handlers(logger):
    return [h for h in logger.handlers if h.get_name() == HANDLER_NAME]


def test_level_names(monkeypatch):
    monkeypatch.delenv("VIPS_MCP_LOG_LEVEL", raising=False)
    assert setup_logging("debug").level == logging.DEBUG
    assert setup_logging("WARNING").level == logging.WARNING
    assert setup_logging("bogus").level == logging.INFO
    assert setup_logging(logging.ERROR).level == logging.ERROR
    setup_logging("info")


def test_environment_overrides_argument(monkeypatch):
    monkeypatch.setenv("VIPS_MCP_LOG_LEVEL", "error")
    assert setup_logging("debug").level == logging.ERROR
    monkeypatch.delenv("VIPS_MCP_LOG_LEVEL")
    setup_logging("info")


def test_single_handler(monkeypatch):
    monkeypatch.delenv("VIPS_MCP_LOG_LEVEL", raising=False)
    setup_logging()
    setup_logging()
    assert len(package_handlers(logging.getLogger(LOGGER_NAME))) == 1


def test_child_loggers():
    assert get_logger().name == "vips_mcp_server"
    assert get_logger("images").name == "vips_mcp_server.images"
