import enum
import logging
import numbers
import typing

import numpy as np

from fast_state.tensor import ARRAY_TYPES
from fast_state.traversal import is_leaf, map_structure
from fast_state.utils import Tag

logger = logging.getLogger(__name__)

# Stands for a leaf that can't be part of a snapshot.
# Dropped from keyed containers, kept as a placeholder in positional ones.
MISSING = Tag("<MISSING>")

# Numbers include booleans (placeholders) and numpy scalars. Enum members are the closest thing to symbols.
STATE_TYPES = (*ARRAY_TYPES, numbers.Number, np.generic, str, enum.Enum, type(None))


def is_serializable(value: typing.Any) -> bool:
    return isinstance(value, STATE_TYPES)


def _state(value: typing.Any) -> typing.Any:
    return value if is_serializable(value) else MISSING


def prune_missing(state: typing.Any) -> typing.Any:
    """
    Remove `MISSING` entries from keyed containers, recursively.
    A keyed container left empty by the pruning is itself considered missing.
    Positional containers keep their `MISSING` entries to avoid ambiguities.
    """
    if isinstance(state, dict):
        pruned = {}
        for key, value in state.items():
            if (value := prune_missing(value)) is not MISSING:
                pruned[key] = value
        return MISSING if state and not pruned else pruned
    if isinstance(state, (tuple, list)):
        return type(state)(prune_missing(value) for value in state)
    return state


def snapshot(x: typing.Any) -> typing.Any:
    """
    Return an object with the same nested structure as `x` according to `fast_state.traversal.children`,
    but made only of basic containers (dicts, tuples and lists).

    Besides arrays, the snapshot holds the leaves that are numbers, strings, enum members and `None`,
    so it is made of simple data types that can be easily serialized.
    Other leaves, ex. functions or random generators, are dropped.
    Leaves are not copied, so arrays in the snapshot share memory with `x`:
    later in-place changes to `x` (ex. a `load` into it) show up in the snapshot.
    Clone the arrays first to keep a fixed copy of the state.

    The snapshot can be passed to `fast_state.engine.state.load.load` to restore the state into a model.
    """
    state = prune_missing(map_structure(_state, x))
    if state is MISSING and not is_leaf(x):
        # Everything was pruned, but the root is still a container.
        return {}
    return state
