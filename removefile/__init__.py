"""Remove files and directory trees, with secure overwriting, callbacks and cancellation."""

__version__ = "0.1.0"

__all__ = ["checkint", "core", "randomness", "rename_unlink", "state", "sunlink", "tree_walker"]