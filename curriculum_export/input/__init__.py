"""Item collection loading."""

from .items import load_source_items, parse_items

__all__ = ["load_source_items", "parse_items"]
