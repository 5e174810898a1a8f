"""
Dashboard widgets: the block registry, display/setup renderers and the
fetchers that load their data.
"""

from blockboard.blocks.registry import (
    RegisteredBlock,
    UnknownBlockTypeError,
    block_types,
    resolve,
)

__all__ = ["RegisteredBlock", "UnknownBlockTypeError", "block_types", "resolve"]
