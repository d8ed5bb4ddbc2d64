"""SourceStack: harvest candidate fields from folders of resumes."""

from version import __version__

__all__ = ["__version__"]
