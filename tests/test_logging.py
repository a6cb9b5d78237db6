import logging

import pytest

import pos_ledger


@pytest.mark.parametrize(
    ("name", "expected"),
    [("debug", logging.DEBUG), (" Warning ", logging.WARNING), ("loud", logging.INFO), (None, logging.INFO)],
)
def test_resolve_level(name, expected):
    assert pos_ledger._resolve_level(name, logging.INFO) == expected


def test_package_logger_keeps_console_quiet():
    consoles = [
        handler
        for handler in pos_ledger.log.handlers
        if type(handler) is logging.StreamHandler
    ]

    assert pos_ledger.log.name == "pos_ledger"
    assert consoles and all(handler.level == logging.WARNING for handler in consoles)
