"""
Curriculum Export - resumable Notion curriculum to Markdown exporter.

This package exports a Notion curriculum database into a tree of Markdown
files plus a ``curriculum.json`` manifest. Runs are resumable through a
progress file and tolerate upstream rate limits.

Main entry point is the CLI via the `curriculum-export` command.

Example:
    $ curriculum-export <database-id> ./curriculum https://example.com/repo
"""

__all__ = ["__version__", "run_export", "slugify", "slugify_path"]
__version__ = "0.1.0"

from .core.slug import slugify, slugify_path
from .runner import run_export
