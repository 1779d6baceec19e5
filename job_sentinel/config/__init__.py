"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import ExtractionConfig, FetchConfig, GlobalConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "ExtractionConfig",
    "FetchConfig",
    "GlobalConfig",
]
