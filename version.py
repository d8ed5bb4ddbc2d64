"""
Version information for SourceStack.

This file is the single source of truth for version numbers.
Both the package and the CLI import from here.
"""

__version__ = "0.1.0"
__version_info__ = (0, 1, 0)
