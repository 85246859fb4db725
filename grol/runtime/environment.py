"""Lexical scopes. Lookup walks outward through outer scopes, assignment always binds in the innermost scope.

Identifiers made of capital letters, digits and '_' (starting with a letter) are constants: once bound anywhere in
the lexical chain they can only be rebound to the same value.
"""

import re

from grol.runtime import registry
from grol.runtime.object import Error, Extension, Function, Null, same_value

CONSTANT = re.compile(r"[A-Z][A-Z0-9_]*\Z")


def is_constant(name):
    return CONSTANT.match(name) is not None


class Environment:
    """Binding table (insertion ordered) with an optional outer scope."""

    def __init__(self, outer=None, name=None):
        self.store = {}
        self.outer = outer
        self.name = name    # name of the function this scope runs, for stack traces
        self.num_set = 0    # number of successful set() calls, used to skip needless saves

    @classmethod
    def new_root(cls):
        env = cls()
        env.store.update(registry.initial_identifiers())
        return env

    def enclosed(self, name=None):
        return Environment(outer=self, name=name)

    def get(self, name):
        """Returns the value bound to name in this scope or an outer one, None if unbound."""
        env = self
        while env is not None:
            value = env.store.get(name)
            if value is not None:
                return value
            env = env.outer
        return None

    def set(self, name, value):
        """Binds name in this scope. Returns value, or an Error when name is a constant bound to another value."""
        if is_constant(name):
            old = self.get(name)
            if old is not None and not same_value(old, value):
                return Error(f"attempt to change constant {name} from {old.inspect()} to {value.inspect()}")
        self.store[name] = value
        self.num_set += 1
        return value

    def set_no_checks(self, name, value):
        """Binds name without the constant check, for self and '..'."""
        self.store[name] = value

    def names(self, prefix=""):
        """Names visible from this scope, innermost first, without duplicates."""
        seen = {}
        env = self
        while env is not None:
            for name in env.store:
                if name.startswith(prefix):
                    seen.setdefault(name, None)
            env = env.outer
        return list(seen)

    def save_globals(self, out, max_value_len=4000):
        """Writes this scope's user bindings as grol statements to out. Returns how many were written."""
        initial = registry.initial_identifiers()
        count = 0
        for name, value in self.store.items():
            if initial.get(name) is value:
                continue
            if isinstance(value, (Error, Extension, Null)):
                continue
            if isinstance(value, Function) and value.name == name:
                line = value.inspect()
            else:
                line = f"{name}={value.inspect()}"
            if max_value_len and len(line) > max_value_len:
                continue
            out.write(line + "\n")
            count += 1
        return count
