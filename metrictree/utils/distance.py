"""
Distance functions for metric trees.

A distance function takes two elements and returns a non-negative number. It
must satisfy, for the tree's searches to be complete:

    d(x, y) == 0  iff x and y are the same element for indexing purposes
    d(x, y) == d(y, x)
    d(x, z) <= d(x, y) + d(y, z)

None of these are checked at runtime.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

import imagehash
from PIL import Image, UnidentifiedImageError
from rapidfuzz.distance import Levenshtein

from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Number = Union[int, float]
DistanceFunction = Callable[[T, T], Number]
Comparator = Callable[[T, T], Number]


def from_comparator(comparator: Comparator) -> DistanceFunction:
    """
    Derive a distance function from a comparator: d(x, y) = |compare(x, y)|.

    Only a metric when the comparator's magnitude measures closeness
    (``lambda a, b: a - b`` on numbers is; a plain -1/0/1 ordering is not).
    """
    def distance(x, y):
        return abs(comparator(x, y))

    distance.__name__ = f"abs_{getattr(comparator, '__name__', 'comparator')}"
    return distance


def absolute_difference(x: Number, y: Number) -> Number:
    return abs(x - y)


def edit_distance(x: str, y: str) -> int:
    """Levenshtein distance: insertions, deletions and substitutions all cost 1."""
    return Levenshtein.distance(x, y)


def hamming_distance(x: imagehash.ImageHash, y: imagehash.ImageHash) -> int:
    """Number of differing bits between two perceptual hashes of the same size."""
    return int(x - y)


def image_hash(file_path: Union[str, os.PathLike], hash_size: int = 8) -> Optional[imagehash.ImageHash]:
    """
    Compute a perceptual hash for an image file.

    Returns None when the file cannot be opened as an image.
    """
    path = Path(file_path)
    try:
        with Image.open(path) as image:
            return imagehash.phash(image, hash_size=hash_size)
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Unable to hash %s: %s", path, exc)
        return None


__all__ = [
    "Comparator",
    "DistanceFunction",
    "absolute_difference",
    "edit_distance",
    "from_comparator",
    "hamming_distance",
    "image_hash",
]
