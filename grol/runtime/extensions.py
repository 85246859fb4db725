"""Extensions: builtin functions implemented in Python, plus a few library functions written in grol itself.

init() registers everything once per process. Categories:

```
math            sin cos tan asin acos atan ln log10 sqrt exp floor ceil trunc round atan2 pow rand, PI E NaN Inf
string          sprintf puts
introspection   type int keys eval
io              read eof flush                      ; only with Config.unrestricted_ios
grol defined    printf abs log2 str
```
"""

import logging
import math
import random
import re

from grol.runtime import registry
from grol.runtime.evaluator import State
from grol.runtime.object import (NULL, Array, Error, Extension, Float, Integer, ObjectType, String, format_float,
                                 native_bool, wrap_int64)
from grol.syntax.parser import MAX_INT64, parse_int

logger = logging.getLogger(__name__)

MATH = "math"
STRING = "string"
INTROSPECTION = "introspection"
IO = "io"

GROL_DEFINED = {
    "printf": "func(format, ..) {print(sprintf(format, ..))}",
    "abs": "func(x) {if x < 0 {-x} else {x}}",
    "log2": "func(x) {ln(x) / ln(2)}",
    "str": "func(x) {sprintf(\"%v\", x)}",
}


class Config:
    """Which optional extensions init() registers."""

    def __init__(self, unrestricted_ios=True):
        self.unrestricted_ios = unrestricted_ios


_initialized = False


def init(config=None):
    """Registers the default extensions and identifiers. Only the first call does anything."""
    global _initialized
    if _initialized:
        return
    _initialized = True
    config = config if config is not None else Config()

    registry.add_identifier("PI", Float(math.pi))
    registry.add_identifier("E", Float(math.e))
    registry.add_identifier("NaN", Float(math.nan))
    registry.add_identifier("Inf", Float(math.inf))

    for name, fn in _FLOAT_FUNCTIONS.items():
        registry.create_function(Extension(name, _float_callback(fn), 1, 1, [ObjectType.FLOAT], category=MATH,
                                           help=f"{name} of x"))
    registry.create_function(Extension("round", _round, 1, 1, [ObjectType.FLOAT], category=MATH,
                                       help="closest integer, rounding half away from zero"))
    registry.create_function(Extension("atan2", _float_callback(math.atan2), 2, 2,
                                       [ObjectType.FLOAT, ObjectType.FLOAT], category=MATH, help="atan(y/x)"))
    registry.create_function(Extension("pow", _float_callback(_pow), 2, 2, [ObjectType.FLOAT, ObjectType.FLOAT],
                                       category=MATH, help="base raised to the power of exponent"))
    registry.create_function(Extension("rand", _rand, 0, 1, [ObjectType.INTEGER], category=MATH, dont_cache=True,
                                       help="random integer in [0, n) or float in [0, 1) without argument"))

    registry.create_function(Extension("sprintf", _sprintf, 1, -1, [ObjectType.STRING], category=STRING,
                                       variadic=True, help="formats arguments, like printf"))
    registry.create_function(Extension("puts", _puts, 0, -1, category=STRING, variadic=True,
                                       help="prints arguments separated by spaces, then a newline"))

    registry.create_function(Extension("type", _type, 1, 1, [ObjectType.ANY], category=INTROSPECTION,
                                       help="type of the argument as a string"))
    registry.create_function(Extension("int", _int, 1, 1, [ObjectType.ANY], category=INTROSPECTION,
                                       help="converts to an integer"))
    registry.create_function(Extension("keys", _keys, 1, 1, [ObjectType.MAP], category=INTROSPECTION,
                                       help="keys of the map, in order"))
    registry.create_function(Extension("eval", _eval, 1, 1, [ObjectType.STRING], category=INTROSPECTION,
                                       help="evaluates grol code"))

    if config.unrestricted_ios:
        registry.create_function(Extension("read", _read, 0, 0, category=IO, dont_cache=True,
                                           help="reads a line from standard input"))
        registry.create_function(Extension("eof", _eof, 0, 0, category=IO, dont_cache=True,
                                           help="whether read() reached the end of input"))
        registry.create_function(Extension("flush", _flush, 0, 0, category=IO, dont_cache=True,
                                           help="writes out buffered output"))

    state = State()
    for name, code in GROL_DEFINED.items():
        value = state.eval_string(code)
        if isinstance(value, Error):
            raise RuntimeError(f"defining {name}: {value.inspect()}")
        registry.add_identifier(name, value.named(name))
    logger.debug("extensions initialized: %d functions", len(registry.extra_functions()))


def _safe_float(fn, *args):
    try:
        return fn(*args)
    except OverflowError:
        return math.inf
    except (ValueError, ZeroDivisionError):
        return math.nan


def _ln(x):
    if x == 0:
        return -math.inf
    return math.log(x)


def _log10(x):
    if x == 0:
        return -math.inf
    return math.log10(x)


def _integral(fn):
    def wrapped(x):
        if math.isinf(x) or math.isnan(x):
            return x
        return float(fn(x))
    return wrapped


def _pow(base, exp):
    if base == 0 and exp < 0:
        return math.inf
    return math.pow(base, exp)


_FLOAT_FUNCTIONS = {
    "sin": math.sin, "cos": math.cos, "tan": math.tan, "asin": math.asin, "acos": math.acos, "atan": math.atan,
    "ln": _ln, "log10": _log10, "sqrt": math.sqrt, "exp": math.exp,
    "floor": _integral(math.floor), "ceil": _integral(math.ceil), "trunc": _integral(math.trunc),
}


def _float_callback(fn):
    def callback(state, name, args):
        return Float(_safe_float(fn, *(a.value for a in args)))
    return callback


def _round(state, name, args):
    x = args[0].value
    if math.isinf(x) or math.isnan(x):
        return Error(f"round: {format_float(x)} out of range")
    rounded = math.floor(x + 0.5) if x >= 0 else -math.floor(-x + 0.5)
    if not -MAX_INT64 - 1 <= rounded <= MAX_INT64:
        return Error(f"round: {format_float(x)} out of range")
    return Integer(rounded)


def _rand(state, name, args):
    if not args:
        return Float(random.random())
    n = args[0].value
    if n <= 0:
        return Error(f"rand: argument must be positive, got {n}")
    return Integer(random.randrange(n))


def _text(args):
    return " ".join(a.value if a.type is ObjectType.STRING else a.inspect() for a in args)


def _puts(state, name, args):
    state.out.write(_text(args) + "\n")
    return NULL


FORMAT_VERB = re.compile(r"%([-+ #0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")


def sprintf(fmt, args):
    """Formats args (grol values) following fmt. Mismatched verbs are reported inline, as %!d(STRING="x")."""
    out = []
    pos = 0
    arg_index = 0
    for m in FORMAT_VERB.finditer(fmt):
        out.append(fmt[pos:m.start()])
        pos = m.end()
        flags, width, precision, verb = m.groups()
        if verb == "%":
            out.append("%")
            continue
        if arg_index >= len(args):
            out.append(f"%!{verb}(MISSING)")
            continue
        arg = args[arg_index]
        arg_index += 1
        spec = "%" + flags + (width or "") + (f".{precision}" if precision is not None else "")

        if verb == "v":
            text = arg.value if arg.type is ObjectType.STRING else arg.inspect()
            out.append((spec + "s") % text)
        elif verb == "s" and arg.type is ObjectType.STRING:
            out.append((spec + "s") % arg.value)
        elif verb == "q" and arg.type is ObjectType.STRING:
            out.append((spec.split(".")[0] + "s") % arg.inspect())
        elif verb == "t" and arg.type is ObjectType.BOOLEAN:
            out.append((spec + "s") % arg.inspect())
        elif verb in ("d", "x", "X", "o", "b") and arg.type is ObjectType.INTEGER:
            if verb == "b":
                out.append((spec + "s") % format(arg.value, "b"))
            else:
                out.append((spec + verb) % arg.value)
        elif verb in ("f", "e", "E", "g", "G") and arg.type in (ObjectType.FLOAT, ObjectType.INTEGER):
            out.append((spec + verb) % float(arg.value))
        else:
            out.append(f"%!{verb}({arg.type}={arg.inspect()})")
    out.append(fmt[pos:])
    if arg_index < len(args):
        out.append("%!(EXTRA " + ", ".join(a.inspect() for a in args[arg_index:]) + ")")
    return "".join(out)


def _sprintf(state, name, args):
    return String(sprintf(args[0].value, args[1:]))


def _type(state, name, args):
    return String(str(args[0].type))


def _int(state, name, args):
    arg = args[0]
    if arg.type is ObjectType.INTEGER:
        return arg
    if arg.type is ObjectType.FLOAT:
        if math.isinf(arg.value) or math.isnan(arg.value):
            return Error(f"int: {arg.inspect()} out of range")
        return Integer(wrap_int64(int(arg.value)))
    if arg.type is ObjectType.BOOLEAN:
        return Integer(1 if arg.value else 0)
    if arg.type is ObjectType.STRING:
        try:
            return Integer(wrap_int64(parse_int(arg.value.strip())))
        except ValueError:
            return Error(f"int: can't parse {arg.inspect()}")
    return Error(f"int: not supported on {arg.type}")


def _keys(state, name, args):
    return Array(args[0].keys())


def _eval(state, name, args):
    return state.eval_string(args[0].value)


def _read(state, name, args):
    state.flush_output()
    line = state.stdin.readline()
    if not line:
        state.at_eof = True
        return NULL
    return String(line.rstrip("\n"))


def _eof(state, name, args):
    return native_bool(state.at_eof)


def _flush(state, name, args):
    state.flush_output()
    return NULL
