"""Small shared helpers."""

from querytree.utils.multimap import add_one_to_multimap

__all__ = ["add_one_to_multimap"]
