"""Plugin system: hook specifications and the plugin manager."""

from tilemap.plugins.hookspecs import PROJECT_NAME, hookimpl, hookspec
from tilemap.plugins.manager import PluginManager

__all__ = ["PROJECT_NAME", "PluginManager", "hookimpl", "hookspec"]
