"""Built-in plugin registrations."""

from tilemap.contracts.protocols import TreeBuilderProtocol
from tilemap.plugins.hookspecs import hookimpl
from tilemap.tree import StratifiedTreeBuilder


class BuiltinTreeBuilders:
    """Registers the tree builders shipped with tilemap."""

    @hookimpl
    def tilemap_get_tree_builders(self) -> list[type[TreeBuilderProtocol]]:
        return [StratifiedTreeBuilder]
