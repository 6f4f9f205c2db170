"""Per-item export workers."""

from .item_exporter import ItemExporter, item_relative_path

__all__ = ["ItemExporter", "item_relative_path"]
