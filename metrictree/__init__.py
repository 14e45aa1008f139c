"""
metrictree - a BK-tree index for approximate-match queries over metric spaces.

Usage:
    from metrictree import build
    from metrictree.utils.distance import edit_distance

    tree = build(["cat", "cot", "dog"], edit_distance)
    tree.search_within("cat", 1)   # {"cat", "cot"}
"""

import logging

from .utils.bktree import InvalidInputError, MetricTree, build, build_from_comparator

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "InvalidInputError",
    "MetricTree",
    "build",
    "build_from_comparator",
]
