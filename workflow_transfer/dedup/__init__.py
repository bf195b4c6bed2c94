"""Duplicate detection strategies."""

from .base import BaseDeduplicator
from .exact import ExactDeduplicator
from .fuzzy import FuzzyDeduplicator

__all__ = ["BaseDeduplicator", "ExactDeduplicator", "FuzzyDeduplicator"]
