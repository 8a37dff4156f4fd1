"""Plugin manager for tree builder discovery and lookup.

Uses pluggy for hook-based plugin registration.
"""

from typing import Any

import pluggy

from tilemap.contracts.errors import ConfigError
from tilemap.contracts.protocols import TreeBuilderProtocol
from tilemap.plugins.hookspecs import PROJECT_NAME, TileMapTreeBuilderSpec


class PluginManager:
    """Manages plugin registration and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        builder = manager.get_tree_builder("stratified")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(TileMapTreeBuilderSpec)

        # Cache - map name to builder class for duplicate detection
        self._tree_builders: dict[str, type[TreeBuilderProtocol]] = {}

    def register_builtin_plugins(self) -> None:
        """Register the tree builders shipped with tilemap.

        Call this once at startup to make built-in builders discoverable.
        """
        from tilemap.plugins.builtin import BuiltinTreeBuilders

        self.register(BuiltinTreeBuilders())

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods

        Raises:
            ValueError: If the plugin contributes a builder name already registered
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        new_builders: dict[str, type[TreeBuilderProtocol]] = {}
        for builders in self._pm.hook.tilemap_get_tree_builders():
            for cls in builders:
                name = cls.name
                if name in new_builders:
                    raise ValueError(f"Duplicate tree builder name: '{name}'. Already registered by {new_builders[name].__name__}")
                new_builders[name] = cls
        self._tree_builders = new_builders

    def get_tree_builders(self) -> list[type[TreeBuilderProtocol]]:
        """Get all registered tree builder classes."""
        return list(self._tree_builders.values())

    def get_tree_builder(self, name: str) -> TreeBuilderProtocol:
        """Instantiate the tree builder registered under name.

        Raises:
            ConfigError: If no builder has that name
        """
        if name not in self._tree_builders:
            available = sorted(self._tree_builders)
            raise ConfigError(f"Unknown tree builder: '{name}'. Available: {available}")
        return self._tree_builders[name]()
