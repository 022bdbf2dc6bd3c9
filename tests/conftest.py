"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from docassist.ai.context_cache import ContextCache


@pytest.fixture
def cache() -> ContextCache:
    return ContextCache()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("DOCASSIST_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOCASSIST_LOG_DIR", str(tmp_path / "logs"))
