"""Graph domain: component graph with lookups, reverse dependencies, and cycle detection."""

from archgate.graph.component_graph import (
    MAX_COMPONENTS,
    MAX_CYCLE_DEPTH,
    Component,
    ComponentGraph,
    ImportRef,
    canonical_cycle_key,
)

__all__ = [
    "MAX_COMPONENTS",
    "MAX_CYCLE_DEPTH",
    "Component",
    "ComponentGraph",
    "ImportRef",
    "canonical_cycle_key",
]
