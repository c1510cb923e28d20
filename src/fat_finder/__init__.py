from __future__ import annotations

from .finder import Finder
from .finderconfig import FinderConfig
from .finderstore import FinderStore

__all__ = [
    "Finder",
    "FinderConfig",
    "FinderStore",
]
