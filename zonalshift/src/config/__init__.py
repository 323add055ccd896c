"""
Configuration module for zonal shift reconciler settings
"""

from .settings import (
    Settings,
    settings,
    KubernetesSettings,
    AWSSettings,
    ZoneSettings,
    ReconcilerSettings,
    DispatcherSettings,
    SNSSettings,
    APISettings,
    LoggingSettings
)

__all__ = [
    "Settings",
    "settings",
    "KubernetesSettings",
    "AWSSettings",
    "ZoneSettings",
    "ReconcilerSettings",
    "DispatcherSettings",
    "SNSSettings",
    "APISettings",
    "LoggingSettings"
]
