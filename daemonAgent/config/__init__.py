"""Configuration: environment settings and policy stores."""

from .settings import (
    ControlSettings,
    GovernanceSettings,
    ModelSettings,
    ObservabilitySettings,
    Settings,
    get_settings,
)
from .store import StaticSettingsStore, YamlSettingsStore, parse_scopes, snapshot_from

__all__ = [
    "ControlSettings",
    "GovernanceSettings",
    "ModelSettings",
    "ObservabilitySettings",
    "Settings",
    "StaticSettingsStore",
    "YamlSettingsStore",
    "get_settings",
    "parse_scopes",
    "snapshot_from",
]
