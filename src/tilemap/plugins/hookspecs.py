"""pluggy hook specifications for tilemap plugins.

Plugins implement these hooks to contribute tree builders. The plugin
manager calls them during discovery.

Usage (implementing a plugin):
    from tilemap.plugins.hookspecs import hookimpl

    class MyPlugin:
        @hookimpl
        def tilemap_get_tree_builders(self):
            return [MyTreeBuilder]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from tilemap.contracts.protocols import TreeBuilderProtocol

# Project name for pluggy
PROJECT_NAME = "tilemap"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class TileMapTreeBuilderSpec:
    """Hook specifications for tree builder plugins."""

    @hookspec
    def tilemap_get_tree_builders(self) -> list[type["TreeBuilderProtocol"]]:  # type: ignore[empty-body]
        """Return tree builder classes.

        Returns:
            List of tree builder classes (not instances), each with a
            class-level `name`
        """
