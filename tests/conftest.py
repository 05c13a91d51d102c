"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from daemonAgent.config.settings import GovernanceSettings  # noqa: E402
from daemonAgent.config.store import StaticSettingsStore  # noqa: E402
from daemonAgent.persistence.audit import AuditTrail, MemoryAuditSink  # noqa: E402
from daemonAgent.runtime.orchestrator import Orchestrator  # noqa: E402
from daemonAgent.tools.builtin import build_default_catalog  # noqa: E402


@pytest.fixture
def catalog():
    return build_default_catalog()


@pytest.fixture
def make_orchestrator(catalog):
    """Build an Orchestrator around scripted collaborators.

    Keyword overrides not consumed here go to GovernanceSettings.
    """

    def _make(
        model_client,
        executors=None,
        *,
        level=1,
        scopes=(),
        store=None,
        confirmation=None,
        selector=None,
        sink=None,
        resolve_path=None,
        **governance_overrides,
    ):
        governance = GovernanceSettings(**{"cancel_grace_seconds": 0.2, **governance_overrides})
        kwargs = {}
        if resolve_path is not None:
            kwargs["resolve_path"] = resolve_path
        return Orchestrator(
            model_client=model_client,
            catalog=catalog,
            executors=executors or {},
            settings_store=store or StaticSettingsStore(level, scopes),
            governance=governance,
            confirmation=confirmation,
            selector=selector,
            audit=AuditTrail(sink if sink is not None else MemoryAuditSink()),
            **kwargs,
        )

    return _make
