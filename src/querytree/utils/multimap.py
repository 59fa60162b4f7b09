"""
Multimap helpers

Append-or-create aggregation for `dict[key, list[value]]` indexes.
"""

from typing import MutableMapping, TypeVar


K = TypeVar("K")
V = TypeVar("V")


def add_one_to_multimap(multimap: MutableMapping[K, list[V]], key: K, value: V) -> None:
    """Append `value` to the list stored under `key`, creating the list if needed."""
    values = multimap.get(key)
    if values is None:
        multimap[key] = [value]
    else:
        values.append(value)
