"""Order intake core: state machines, order lifecycle and notification dispatch."""
