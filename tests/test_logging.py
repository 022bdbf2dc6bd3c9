"""Tests for the logging setup helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from docassist.utils.logging import SecretMaskingFilter, mask_secrets, setup_logging


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Authorization: Bearer ya29.a0-token_x", "Authorization: Bearer ***"),
        ("invalid key sk-abc123456789 supplied", "invalid key *** supplied"),
        ("nothing secret here", "nothing secret here"),
        ("short sk-abc stays", "short sk-abc stays"),
    ],
)
def test_mask_secrets(text: str, expected: str) -> None:
    assert mask_secrets(text) == expected


def test_filter_masks_formatted_arguments() -> None:
    record = logging.LogRecord("docassist", logging.WARNING, __file__, 1, "Request failed: %s", ("key sk-secret-123",), None)

    assert SecretMaskingFilter().filter(record) is True
    assert record.getMessage() == "Request failed: key ***"


def test_setup_logging_writes_masked_records(tmp_path: Path) -> None:
    log_path = setup_logging(log_dir=tmp_path, force=True)
    try:
        logging.getLogger("docassist.test").warning("token Bearer abc.def")
        for handler in logging.getLogger().handlers:
            handler.flush()
    finally:
        setup_logging(log_dir=tmp_path / "after", force=True)

    assert log_path == tmp_path / "docassist.log"
    contents = log_path.read_text(encoding="utf-8")
    assert "Bearer ***" in contents
    assert "abc.def" not in contents


def test_setup_logging_is_idempotent_without_force(tmp_path: Path) -> None:
    first = setup_logging(log_dir=tmp_path / "one", force=True)

    assert setup_logging(log_dir=tmp_path / "two") == first


def test_dependency_loggers_are_quieted(tmp_path: Path) -> None:
    setup_logging(debug=True, log_dir=tmp_path, force=True)
    try:
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger().level == logging.DEBUG
    finally:
        setup_logging(log_dir=tmp_path, force=True)
