"""K-fold partitioning."""

import random
from typing import Any, Sequence

from .models import Example, Fold


def shuffled(data: Sequence[Example], seed: Any) -> list[Example]:
    """Return a copy of data in a seeded pseudo-random order."""
    items = list(data)
    random.Random(seed).shuffle(items)
    return items


def partition(data: Sequence[Example], seed: Any, num_folds: int) -> list[Fold]:
    """Split data into num_folds train/test folds.

    The shuffled example at index i goes to the test set of fold
    ``i % num_folds`` and to the train set of every other fold. A
    non-positive fold count yields no folds; more folds than examples yields
    folds with empty test sets.
    """
    if num_folds <= 0:
        return []

    trains: list[list[Example]] = [[] for _ in range(num_folds)]
    tests: list[list[Example]] = [[] for _ in range(num_folds)]

    for i, example in enumerate(shuffled(data, seed)):
        target = i % num_folds
        for j in range(num_folds):
            if j == target:
                tests[j].append(example)
            else:
                trains[j].append(example)

    return [Fold(train=tuple(trains[j]), test=tuple(tests[j])) for j in range(num_folds)]
