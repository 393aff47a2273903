"""Enums for rule comparators."""
from enum import Enum


class Comparator(str, Enum):
    GT = "GT"
    LT = "LT"
    GTE = "GTE"
    LTE = "LTE"
    EQ = "EQ"

    @classmethod
    def parse(cls, raw):
        """Return the member for ``raw`` or None if it is not one of the five."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return None
