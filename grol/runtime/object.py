"""Runtime values of the grol language.

Values are immutable once built, except while a composite literal is being constructed. Hashable values (integers,
floats, booleans, strings, small arrays and maps made of hashable values) provide hash_key(), a Python hashable tuple
tagged with the value type so that 1 and 1.0 are distinct keys.
"""

import enum
import math

from grol.syntax.ast import quote_string

MAX_SMALL_ARRAY = 8       # arrays up to this length are hashable
MAX_OBJECT_SLICE = 1 << 26  # refuses to build arrays or strings larger than this


class ObjectType(enum.Enum):
    INTEGER = enum.auto()
    FLOAT = enum.auto()
    BOOLEAN = enum.auto()
    NIL = enum.auto()
    ERROR = enum.auto()
    RETURN = enum.auto()
    FUNC = enum.auto()
    STRING = enum.auto()
    ARRAY = enum.auto()
    MAP = enum.auto()
    QUOTE = enum.auto()
    MACRO = enum.auto()
    EXTENSION = enum.auto()
    ANY = enum.auto()  # only used in extension argument declarations

    def __str__(self):
        return self.name


def wrap_int64(value):
    """Wraps a Python int into the signed 64 bit range."""
    return ((value + (1 << 63)) & ((1 << 64) - 1)) - (1 << 63)


def format_float(value):
    """Shortest round-trip form of value, re-parseable by the lexer."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    return repr(value).replace("e+", "e")


class Object:
    """Superclass for every runtime value."""
    type = None

    def inspect(self):
        raise NotImplementedError

    def hashable(self):
        return False

    def hash_key(self):
        raise TypeError(f"{self.type} is not hashable")

    def __str__(self):
        return self.inspect()

    def __repr__(self):
        return f"{type(self).__name__}({self.inspect()})"


class Integer(Object):
    type = ObjectType.INTEGER

    def __init__(self, value):
        self.value = value

    def inspect(self):
        return str(self.value)

    def hashable(self):
        return True

    def hash_key(self):
        return (ObjectType.INTEGER, self.value)


class Float(Object):
    type = ObjectType.FLOAT

    def __init__(self, value):
        self.value = value

    def inspect(self):
        return format_float(self.value)

    def hashable(self):
        return True

    def hash_key(self):
        return (ObjectType.FLOAT, self.value)


class Boolean(Object):
    type = ObjectType.BOOLEAN

    def __init__(self, value):
        self.value = value

    def inspect(self):
        return "true" if self.value else "false"

    def hashable(self):
        return True

    def hash_key(self):
        return (ObjectType.BOOLEAN, self.value)


class Null(Object):
    type = ObjectType.NIL

    def inspect(self):
        return "nil"


TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()


def native_bool(value):
    return TRUE if value else FALSE


class String(Object):
    type = ObjectType.STRING

    def __init__(self, value):
        self.value = value

    def inspect(self):
        return quote_string(self.value)

    def hashable(self):
        return True

    def hash_key(self):
        return (ObjectType.STRING, self.value)


class Array(Object):
    """Small arrays (up to MAX_SMALL_ARRAY elements) of hashable elements are hashable, big ones never are."""
    type = ObjectType.ARRAY

    def __init__(self, elements):
        self.elements = elements

    @property
    def small(self):
        return len(self.elements) <= MAX_SMALL_ARRAY

    def inspect(self):
        return "[" + ",".join(e.inspect() for e in self.elements) + "]"

    def hashable(self):
        return self.small and all(e.hashable() for e in self.elements)

    def hash_key(self):
        return (ObjectType.ARRAY, tuple(e.hash_key() for e in self.elements))


class Map(Object):
    """Insertion ordered map from hashable values to values."""
    type = ObjectType.MAP

    def __init__(self):
        self._pairs = {}  # hash_key: (key, value)

    @classmethod
    def from_pairs(cls, pairs):
        result = cls()
        for key, value in pairs:
            result.set(key, value)
        return result

    def get(self, key):
        """Returns the value for key or None. key must be hashable."""
        entry = self._pairs.get(key.hash_key())
        return entry[1] if entry is not None else None

    def set(self, key, value):
        """Only for maps under construction: maps seen by grol code are never mutated."""
        hkey = key.hash_key()
        existing = self._pairs.get(hkey)
        self._pairs[hkey] = (existing[0] if existing is not None else key, value)

    def items(self):
        return list(self._pairs.values())

    def keys(self):
        return [key for key, _ in self._pairs.values()]

    def copy(self):
        result = Map()
        result._pairs = dict(self._pairs)
        return result

    def union(self, other):
        """Right biased union: left's keys in order, then the keys only other has."""
        result = self.copy()
        for key, value in other.items():
            result.set(key, value)
        return result

    def __len__(self):
        return len(self._pairs)

    def inspect(self):
        return "{" + ",".join(f"{k.inspect()}:{v.inspect()}" for k, v in self._pairs.values()) + "}"

    def hashable(self):
        return all(k.hashable() and v.hashable() for k, v in self._pairs.values())

    def hash_key(self):
        return (ObjectType.MAP, tuple((hkey, v.hash_key()) for hkey, (_, v) in self._pairs.items()))


class Error(Object):
    """Error value. stack holds the names of the functions being executed, innermost first."""
    type = ObjectType.ERROR
    MAX_STACK = 10

    def __init__(self, value, stack=None):
        self.value = value
        self.stack = stack or []

    def limited_stack(self):
        if len(self.stack) <= Error.MAX_STACK:
            return list(self.stack)
        half = Error.MAX_STACK // 2
        more = len(self.stack) - Error.MAX_STACK
        return self.stack[:half] + [f"... {more} more ..."] + self.stack[-half:]

    def inspect(self):
        if not self.stack:
            return f"<err: {self.value}>"
        if len(self.stack) == 1:
            return f"<err: {self.value} in {self.stack[0]}>"
        return f"<err: {self.value}, stack below:>\n" + "\n".join(self.limited_stack())


class ReturnValue(Object):
    """Carrier for return, break and continue while they unwind. control is the keyword."""
    type = ObjectType.RETURN

    def __init__(self, value, control="return"):
        self.value = value
        self.control = control

    def inspect(self):
        return self.value.inspect()


class Function(Object):
    type = ObjectType.FUNC

    def __init__(self, literal, env, name=None):
        self.literal = literal
        self.env = env
        self.name = name if name is not None else (literal.name.value() if literal.name is not None else None)
        self.parameters = [p.value() for p in literal.parameters]
        self.body = literal.body
        self.variadic = literal.variadic
        self.cache_key = literal.cache_key()
        self.free_names = literal.free_names()  # read from env when building cache keys

    @property
    def min_args(self):
        return len(self.parameters) - 1 if self.variadic else len(self.parameters)

    def named(self, name):
        """Same closure under another name."""
        return Function(self.literal, self.env, name)

    def inspect(self):
        name = f" {self.name}" if self.name else ""
        return f"func{name}(" + ",".join(self.parameters) + "){" + str(self.body) + "}"


class Macro(Object):
    type = ObjectType.MACRO

    def __init__(self, parameters, body, env):
        self.parameters = [p.value() for p in parameters]
        self.body = body
        self.env = env

    def inspect(self):
        return "macro(" + ",".join(self.parameters) + "){" + str(self.body) + "}"


class Quote(Object):
    type = ObjectType.QUOTE

    def __init__(self, node):
        self.node = node

    def inspect(self):
        return f"quote({self.node.format()})"


class Extension(Object):
    """Builtin function implemented in Python.

    callback(state_or_client_data, name, args) returns an Object. arg_types lists the expected type of the leading
    arguments (ObjectType.ANY accepts anything, integers are promoted where FLOAT is expected). max_args of -1 means
    unlimited. Extensions marked dont_cache make every function that calls them uncacheable.
    """
    type = ObjectType.EXTENSION

    def __init__(self, name, callback, min_args=0, max_args=-1, arg_types=None, help="", category="",
                 variadic=False, dont_cache=False, client_data=None):
        self.name = name
        self.callback = callback
        self.min_args = min_args
        self.max_args = max_args
        self.arg_types = arg_types or []
        self.help = help
        self.category = category
        self.variadic = variadic
        self.dont_cache = dont_cache
        self.client_data = client_data

    def usage(self):
        types = [str(t).lower() for t in self.arg_types]
        if self.variadic or self.max_args == -1:
            types.append("..")
        return f"{self.name}(" + ", ".join(types) + ")"

    def inspect(self):
        out = self.usage()
        if self.category or self.help:
            out += " //"
            if self.category:
                out += f" [{self.category}]"
            if self.help:
                out += f" {self.help}"
        return out


def same_value(a, b):
    """Whether rebinding a constant from a to b is a no-op."""
    if a is b:
        return True
    if a.type is not b.type:
        return False
    if a.hashable() and b.hashable():
        return a.hash_key() == b.hash_key()
    return a.inspect() == b.inspect()


def new_array(elements):
    """Returns an Array, or an Error when it would be unreasonably large."""
    if len(elements) > MAX_OBJECT_SLICE:
        return Error(f"requested object slice of {len(elements)} elements would exceed available memory")
    return Array(elements)
