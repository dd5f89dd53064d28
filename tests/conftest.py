"""Pytest configuration shared by every mailquery suite.

What:
  Establish project import paths and define fixtures that apply a canned runtime
  configuration to every test.

Why:
  Tests must import the ``mailquery`` package from the source tree rather than
  an installed wheel, and the loader caches configuration globally. Without an
  explicit reset, results would depend on execution order or on credentials
  exported in the developer's shell.

How:
  Prepend ``mailquery/src`` to ``sys.path`` when present. The autouse
  :func:`runtime_config` fixture points ``MAILQUERY_CONFIG_PATH`` at the fixture
  file, removes credential overrides and clears the loader cache around each
  test.

Interfaces:
  :func:`runtime_config` (pytest fixture).

Invariants & Safety:
  - The path injection runs once at import time and only when the source tree is
    present.
  - The runtime configuration cache is cleared before and after every test.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailquery" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailquery.config.loader import CONFIG_ENV, PASSWORD_ENV, USERNAME_ENV, reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    Args:
      monkeypatch: Pytest helper injected automatically for environment control.
    """

    monkeypatch.setenv(CONFIG_ENV, str(CONFIG_PATH))
    monkeypatch.delenv(USERNAME_ENV, raising=False)
    monkeypatch.delenv(PASSWORD_ENV, raising=False)
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
