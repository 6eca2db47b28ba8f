# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolate-environment",
#       "name": "isolate_environment",
#       "anchor": "function-isolate-environment",
#       "kind": "function"
#     },
#     {
#       "id": "reset-default-client",
#       "name": "reset_default_client_state",
#       "anchor": "function-reset-default-client-state",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

This module configures shared pytest behaviour: ``src`` is placed on
``sys.path`` so the suite runs from a plain checkout, ``GUARDEDFETCH_*``
environment variables and the per-user config location are isolated from the
developer machine, and the process-default client is discarded between tests.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from GuardedFetch import client as client_module  # noqa: E402
from GuardedFetch import settings as settings_module  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Strip GUARDEDFETCH_* variables and point the user config at tmp_path."""
    for key in list(os.environ):
        if key.upper().startswith("GUARDEDFETCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(
        settings_module,
        "default_config_path",
        lambda: tmp_path / "user-config" / settings_module.CONFIG_FILE_NAME,
    )
    yield


@pytest.fixture(autouse=True)
def reset_default_client_state():
    """Discard the process-default client after each test."""
    yield
    if client_module._default_client is not None:
        asyncio.run(client_module.reset_default_client())
