"""Grouped image metadata store."""

__version__ = "1.0.0"
__description__ = (
    "Embedded key-value store grouping tagged image metadata into named collections"
)

__all__ = ["infrastructure", "models", "repositories", "utils"]
