"""
Notion API access and image downloads.

This package handles every HTTP interaction of an export run.
"""

from .client import NotionClient
from .images import ImageLocalizer, image_filename

__all__ = [
    "NotionClient",
    "ImageLocalizer",
    "image_filename",
]
