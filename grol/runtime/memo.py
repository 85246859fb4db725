"""Memoization of function calls. Entries are keyed by the function's cache key and the hash keys of up to MAX_ARGS
arguments; calls with more arguments, or with an argument that is not hashable, are never cached.
"""

import logging

MAX_ARGS = 4

logger = logging.getLogger(__name__)

_PAD = ("<no arg>",)


def make_key(fn_key, args):
    """Returns the cache key for calling fn_key with args, or None if the call can't be cached."""
    if len(args) > MAX_ARGS:
        return None
    keys = []
    for arg in args:
        if not arg.hashable():
            return None
        keys.append(arg.hash_key())
    keys.extend([_PAD] * (MAX_ARGS - len(args)))
    return (fn_key, tuple(keys))


class Cache:
    """Results (and the output they printed) of earlier calls."""

    def __init__(self):
        self._store = {}
        self.hits = 0
        self.misses = 0

    def get(self, fn_key, args):
        """Returns (value, output) of a previous identical call, or None."""
        key = make_key(fn_key, args)
        if key is None:
            return None
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
            logger.debug("cache hit for %s", fn_key)
        return entry

    def set(self, fn_key, args, value, output=""):
        key = make_key(fn_key, args)
        if key is not None:
            self._store[key] = (value, output)

    def clear(self):
        self._store.clear()

    def __len__(self):
        return len(self._store)
