from __future__ import annotations

import logging

import pytest

from warband.logging_config import LOG_LEVEL_ENV, configure_logging, resolve_level


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    pkg_level = logging.getLogger("warband").level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.getLogger("warband").setLevel(pkg_level)


def test_resolve_level_default(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    assert resolve_level() == logging.INFO
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(logging.WARNING) == logging.WARNING


def test_resolve_level_from_env(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "error")
    assert resolve_level(logging.DEBUG) == logging.ERROR


def test_resolve_level_ignores_bad_env(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
    assert resolve_level("warning") == logging.WARNING


def test_configure_logging(monkeypatch, restore_logging):
    monkeypatch.setenv(LOG_LEVEL_ENV, "DEBUG")
    assert configure_logging() == logging.DEBUG
    assert logging.getLogger("warband").level == logging.DEBUG
    assert logging.getLogger().handlers
