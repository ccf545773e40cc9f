"""Runtime configuration for Schoolmate."""

from schoolmate.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
