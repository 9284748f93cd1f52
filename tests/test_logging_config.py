import logging

import pytest

from rogue_resident.logging_config import configure_logging, resolve_level


@pytest.fixture
def package_logger():
    logger = logging.getLogger("rogue_resident")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.mark.parametrize(
    "raw, expected",
    [("debug", logging.DEBUG), (" WARNING ", logging.WARNING), ("15", 15), ("", logging.INFO), ("chatty", logging.INFO)],
)
def test_resolve_level(raw, expected):
    assert resolve_level(logging.INFO, raw) == expected


def test_env_level_overrides_default(monkeypatch, package_logger):
    monkeypatch.setenv("RR_LOG_LEVEL", "error")
    configure_logging(logging.DEBUG)
    assert package_logger.level == logging.ERROR


def test_reconfiguring_keeps_one_console_handler(package_logger):
    configure_logging(logging.WARNING)
    configure_logging(logging.DEBUG)
    named = [h for h in package_logger.handlers if h.get_name() == "rogue_resident.console"]
    assert len(named) == 1
    assert package_logger.level == logging.DEBUG
