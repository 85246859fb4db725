"""Tree-walking evaluator for grol.

A State holds everything one evaluation context needs: the root and current environments, the separate macro
environment, the memoization cache and the output streams. Independent States share nothing but the read-only
extension registry.

Control flow never uses Python exceptions: errors are Error values and return/break/continue are ReturnValue
carriers, both of which short-circuit every enclosing construct. The function call boundary unwraps returns, for
loops consume break and continue.
"""

import io
import logging
import math
import sys

from grol.runtime import macro, registry
from grol.runtime.context import BACKGROUND
from grol.runtime.environment import Environment
from grol.runtime.memo import Cache
from grol.runtime.object import (FALSE, NULL, TRUE, Array, Error, Extension, Float, Function, Integer, Macro, Map,
                                 ObjectType, ReturnValue, String, native_bool, new_array, wrap_int64)
from grol.syntax import ast
from grol.syntax.parser import parse
from grol.syntax.token import TokenType

logger = logging.getLogger(__name__)
script_logger = logging.getLogger("grol.script")  # destination of log() when not in no-log mode

DEFAULT_MAX_DEPTH = 1000
RECURSION_LIMIT = 60000  # python frames needed for DEFAULT_MAX_DEPTH nested calls, with margin

NUMBERS = (ObjectType.INTEGER, ObjectType.FLOAT)


def equals(left, right):
    """Structural equality. Integers and floats compare numerically, functions by identity."""
    if left is right:
        return True
    if left.type in NUMBERS and right.type in NUMBERS:
        return left.value == right.value
    if left.type is not right.type:
        return False
    if left.type in (ObjectType.STRING, ObjectType.BOOLEAN):
        return left.value == right.value
    if left.type is ObjectType.NIL:
        return True
    if left.type is ObjectType.ARRAY:
        return len(left.elements) == len(right.elements) and \
            all(equals(a, b) for a, b in zip(left.elements, right.elements))
    if left.type is ObjectType.MAP:
        if len(left) != len(right):
            return False
        for key, value in left.items():
            other = right.get(key)
            if other is None or not equals(value, other):
                return False
        return True
    return False


def _truncated_divmod(a, b):
    """Division rounding toward zero, remainder with the sign of the dividend."""
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q, a - b * q


def _float_divide(a, b):
    if b != 0:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _float_mod(a, b):
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


class State:
    """Evaluation context."""

    def __init__(self, env=None, out=None, log_out=None, max_depth=DEFAULT_MAX_DEPTH, context=None):
        self.env = env if env is not None else Environment.new_root()
        self.root_env = self.env
        self.macro_env = Environment()
        self.extensions = registry.extra_functions()
        self.cache = Cache()

        self.out = out if out is not None else sys.stdout  # replaced by a buffer while a function runs
        self._real_out = self.out
        self._buffers = []
        self.log_out = log_out if log_out is not None else sys.stderr
        self.no_log = False
        self.stdin = sys.stdin
        self.at_eof = False

        self.max_depth = max_depth
        self.depth = 0
        self.context = context if context is not None else BACKGROUND
        self._stack = []
        self._no_cache = False

        if sys.getrecursionlimit() < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)

        self._dispatch = {
            ast.Statements: self._eval_statements,
            ast.Identifier: self._eval_identifier,
            ast.Comment: lambda node: NULL,
            ast.IntegerLiteral: lambda node: Integer(node.val),
            ast.FloatLiteral: lambda node: Float(node.val),
            ast.StringLiteral: lambda node: String(node.value()),
            ast.Boolean: lambda node: native_bool(node.val),
            ast.PrefixExpression: self._eval_prefix,
            ast.PostfixExpression: self._eval_postfix,
            ast.InfixExpression: self._eval_infix,
            ast.IndexExpression: self._eval_index,
            ast.CallExpression: self._eval_call,
            ast.Builtin: self._eval_builtin,
            ast.ArrayLiteral: self._eval_array,
            ast.MapLiteral: self._eval_map,
            ast.FunctionLiteral: self._eval_function_literal,
            ast.MacroLiteral: lambda node: Macro(node.parameters, node.body, self.env),
            ast.IfExpression: self._eval_if,
            ast.ForExpression: self._eval_for,
            ast.ReturnStatement: self._eval_return,
            ast.ControlExpression: lambda node: ReturnValue(NULL, node.value()),
        }

    def derive(self, env):
        """New state evaluating in env, sharing this state's streams and limits but not its cache."""
        state = State(env, self.out, self.log_out, self.max_depth, self.context)
        state.no_log = self.no_log
        return state

    def reset(self):
        """Forgets all bindings, macros and cached results."""
        self.env = self.root_env = Environment.new_root()
        self.macro_env = Environment()
        self.cache.clear()
        self._stack = []
        self.depth = 0

    def new_error(self, msg):
        """Error value carrying the current call chain."""
        return Error(msg, list(reversed(self._stack)))

    def _with_stack(self, result):
        if isinstance(result, Error) and not result.stack and self._stack:
            return self.new_error(result.value)
        return result

    def flush_output(self):
        """Writes out everything functions currently running have printed so far."""
        pending = []
        for buf in self._buffers:
            pending.append(buf.getvalue())
            buf.seek(0)
            buf.truncate()
        self._real_out.write("".join(pending))
        self._real_out.flush()

    # entry points

    def eval(self, node):
        """Evaluates node, unwrapping a top level return."""
        result = self.eval_internal(node)
        if isinstance(result, ReturnValue):
            if result.control != "return":
                return self.new_error(f"unexpected control type {result.control} outside of for loops")
            return result.value
        return result

    def define_macros(self, program):
        macro.define_macros(self, program)

    def expand_macros(self, program):
        return macro.expand_macros(self, program)

    def eval_string(self, code):
        """Parses, expands and evaluates code in this state."""
        program, parser = parse(code)
        if parser.errors:
            return self.new_error("parse errors: " + "; ".join(e.split("\n", 1)[0] for e in parser.errors))
        self.define_macros(program)
        program = self.expand_macros(program)
        return self.eval(program)

    def eval_internal(self, node):
        fn = self._dispatch.get(type(node))
        if fn is None:
            return self.new_error(f"unknown node type {type(node).__name__}")
        return fn(node)

    # statements, identifiers, literals

    def _eval_statements(self, node):
        result = NULL
        for stmt in node.statements:
            if isinstance(stmt, ast.Comment):
                continue
            result = self.eval_internal(stmt)
            if isinstance(result, (ReturnValue, Error)):
                return result
        return result

    def _eval_identifier(self, node):
        name = node.value()
        value = self.env.get(name)
        if value is not None:
            return value
        ext = self.extensions.get(name)
        if ext is not None:
            return ext
        return self.new_error(f"identifier not found: {name}")

    def _eval_expressions(self, nodes, spread=False):
        """Evaluates nodes left to right. Returns (values, None) or (None, error or return)."""
        values = []
        for node in nodes:
            value = self.eval_internal(node)
            if isinstance(value, (Error, ReturnValue)):
                return None, value
            if spread and isinstance(node, ast.Identifier) and node.value() == ".." and isinstance(value, Array):
                values.extend(value.elements)
            else:
                values.append(value)
        return values, None

    def _eval_array(self, node):
        elements, err = self._eval_expressions(node.elements)
        if err is not None:
            return err
        return self._with_stack(new_array(elements))

    def _eval_map(self, node):
        result = Map()
        for key_node in node.order:
            key = self.eval_internal(key_node)
            if isinstance(key, (Error, ReturnValue)):
                return key
            if not key.hashable():
                return self.new_error(f"{key.type} not usable as map key")
            value = self.eval_internal(node.pairs[key_node])
            if isinstance(value, (Error, ReturnValue)):
                return value
            result.set(key, value)
        return result

    def _eval_function_literal(self, node):
        fn = Function(node, self.env)
        if fn.name is not None:
            res = self.env.set(fn.name, fn)
            if isinstance(res, Error):
                return self.new_error(res.value)
        return fn

    # operators

    def _eval_prefix(self, node):
        right = self.eval_internal(node.right)
        if isinstance(right, (Error, ReturnValue)):
            return right
        if node.token.type is TokenType.BANG:
            if right is TRUE:
                return FALSE
            if right is FALSE:
                return TRUE
            return self.new_error(f"not of {right.inspect()}")
        if right.type is ObjectType.INTEGER:
            return Integer(wrap_int64(-right.value))
        if right.type is ObjectType.FLOAT:
            return Float(-right.value)
        return self.new_error(f"minus of {right.inspect()}")

    def _eval_postfix(self, node):
        name = node.prev.literal
        value = self.env.get(name)
        if value is None:
            return self.new_error(f"identifier not found: {name}")
        delta = 1 if node.token.type is TokenType.INCR else -1
        if value.type is ObjectType.INTEGER:
            new = Integer(wrap_int64(value.value + delta))
        elif value.type is ObjectType.FLOAT:
            new = Float(value.value + delta)
        else:
            return self.new_error(f"can't {node.token.literal} {value.type}")
        res = self.env.set(name, new)
        if isinstance(res, Error):
            return self.new_error(res.value)
        return value

    def _eval_infix(self, node):
        if node.token.type is TokenType.ASSIGN:
            return self._eval_assign(node)
        left = self.eval_internal(node.left)
        if isinstance(left, (Error, ReturnValue)):
            return left
        right = self.eval_internal(node.right)
        if isinstance(right, (Error, ReturnValue)):
            return right
        return self.eval_infix_values(node.token.type, left, right)

    def eval_infix_values(self, op, left, right):
        lt, rt = left.type, right.type
        if lt is ObjectType.INTEGER and rt is ObjectType.INTEGER:
            return self._eval_integer_infix(op, left.value, right.value)
        if lt in NUMBERS and rt in NUMBERS:
            return self._eval_float_infix(op, float(left.value), float(right.value))
        if op is TokenType.EQ:
            return native_bool(equals(left, right))
        if op is TokenType.NOTEQ:
            return native_bool(not equals(left, right))
        if op is TokenType.PLUS and lt is rt:
            if lt is ObjectType.STRING:
                return String(left.value + right.value)
            if lt is ObjectType.ARRAY:
                return self._with_stack(new_array(left.elements + right.elements))
            if lt is ObjectType.MAP:
                return left.union(right)
        if lt is not rt:
            return self.new_error(f"type mismatch: {lt} {op} {rt}")
        return self.new_error(f"unknown operator: {lt} {op} {rt}")

    def _eval_integer_infix(self, op, a, b):
        if op is TokenType.PLUS:
            return Integer(wrap_int64(a + b))
        if op is TokenType.MINUS:
            return Integer(wrap_int64(a - b))
        if op is TokenType.ASTERISK:
            return Integer(wrap_int64(a * b))
        if op in (TokenType.SLASH, TokenType.PERCENT):
            if b == 0:
                return self.new_error("division by zero")
            q, r = _truncated_divmod(a, b)
            return Integer(wrap_int64(q if op is TokenType.SLASH else r))
        return self._compare(op, a, b)

    def _eval_float_infix(self, op, a, b):
        if op is TokenType.PLUS:
            return Float(a + b)
        if op is TokenType.MINUS:
            return Float(a - b)
        if op is TokenType.ASTERISK:
            return Float(a * b)
        if op is TokenType.SLASH:
            return Float(_float_divide(a, b))
        if op is TokenType.PERCENT:
            return Float(_float_mod(a, b))
        return self._compare(op, a, b)

    def _compare(self, op, a, b):
        if op is TokenType.LT:
            return native_bool(a < b)
        if op is TokenType.GT:
            return native_bool(a > b)
        if op is TokenType.LTEQ:
            return native_bool(a <= b)
        if op is TokenType.GTEQ:
            return native_bool(a >= b)
        if op is TokenType.EQ:
            return native_bool(a == b)
        if op is TokenType.NOTEQ:
            return native_bool(a != b)
        return self.new_error(f"unknown operator: {op}")

    def _eval_assign(self, node):
        if isinstance(node.left, ast.IndexExpression):
            return self._eval_index_assign(node.left, node.right)
        name = node.left.value()
        value = self.eval_internal(node.right)
        if isinstance(value, (Error, ReturnValue)):
            return value
        if isinstance(value, Function) and isinstance(node.right, ast.FunctionLiteral) and value.name is None:
            value = value.named(name)
        res = self.env.set(name, value)
        if isinstance(res, Error):
            return self.new_error(res.value)
        return value

    def _eval_index_assign(self, target, value_node):
        if not isinstance(target.left, ast.Identifier):
            return self.new_error(f"index assignment to non identifier: {target.left}")
        name = target.left.value()
        container = self.env.get(name)
        if container is None:
            return self.new_error(f"identifier not found: {name}")
        index = self.eval_internal(target.index)
        if isinstance(index, (Error, ReturnValue)):
            return index
        value = self.eval_internal(value_node)
        if isinstance(value, (Error, ReturnValue)):
            return value

        if container.type is ObjectType.ARRAY and index.type is ObjectType.INTEGER:
            if not 0 <= index.value < len(container.elements):
                return self.new_error(f"index out of range: {index.value}")
            elements = list(container.elements)
            elements[index.value] = value
            updated = Array(elements)
        elif container.type is ObjectType.MAP:
            if not index.hashable():
                return self.new_error(f"{index.type} not usable as map key")
            updated = container.copy()
            updated.set(index, value)
        else:
            return self.new_error(f"index assignment not supported: {container.type}[{index.type}]")

        res = self.env.set(name, updated)
        if isinstance(res, Error):
            return self.new_error(res.value)
        return value

    def _eval_index(self, node):
        left = self.eval_internal(node.left)
        if isinstance(left, (Error, ReturnValue)):
            return left
        index = self.eval_internal(node.index)
        if isinstance(index, (Error, ReturnValue)):
            return index

        if left.type is ObjectType.ARRAY and index.type is ObjectType.INTEGER:
            i = index.value
            return left.elements[i] if 0 <= i < len(left.elements) else NULL
        if left.type is ObjectType.MAP:
            if not index.hashable():
                return self.new_error(f"{index.type} not usable as map key")
            value = left.get(index)
            return value if value is not None else NULL
        if left.type is ObjectType.STRING and index.type is ObjectType.INTEGER:
            i = index.value
            return String(left.value[i]) if 0 <= i < len(left.value) else NULL
        return self.new_error(f"index operator not supported: {left.type}[{index.type}]")

    # control flow

    def _eval_if(self, node):
        condition = self.eval_internal(node.condition)
        if isinstance(condition, (Error, ReturnValue)):
            return condition
        if condition is TRUE:
            return self.eval_internal(node.consequence)
        if condition is FALSE:
            if node.alternative is None:
                return NULL
            return self.eval_internal(node.alternative)
        return self.new_error(f"condition is not a boolean: {condition.inspect()}")

    def _eval_for(self, node):
        result = NULL
        while True:
            err = self.context.err()
            if err is not None:
                return self.new_error(err)
            condition = self.eval_internal(node.condition)
            if isinstance(condition, (Error, ReturnValue)):
                return condition
            if condition is FALSE:
                return result
            if condition is not TRUE:
                return self.new_error(f"for condition is not a boolean: {condition.inspect()}")

            value = self.eval_internal(node.body)
            if isinstance(value, Error):
                return value
            if isinstance(value, ReturnValue):
                if value.control == "break":
                    return result
                if value.control == "continue":
                    continue
                return value
            result = value

    def _eval_return(self, node):
        if node.return_value is None:
            return ReturnValue(NULL)
        value = self.eval_internal(node.return_value)
        if isinstance(value, (Error, ReturnValue)):
            return value
        return ReturnValue(value)

    # calls

    def _eval_call(self, node):
        fn = self.eval_internal(node.function)
        if isinstance(fn, (Error, ReturnValue)):
            return fn
        args, err = self._eval_expressions(node.arguments, spread=True)
        if err is not None:
            return err
        if isinstance(node.function, ast.Identifier):
            name = node.function.value()
        else:
            name = getattr(fn, "name", None) or "func"
        return self.apply_function(name, fn, args)

    def apply_function(self, name, fn, args):
        """Calls fn (a Function or an Extension) with already evaluated args."""
        if isinstance(fn, Extension):
            return self._apply_extension(fn, args)
        if not isinstance(fn, Function):
            return self.new_error(f"not a function: {fn.type}:{fn.inspect()}")
        err = self.context.err()
        if err is not None:
            return self.new_error(err)

        nargs = len(args)
        if nargs < fn.min_args or (not fn.variadic and nargs > len(fn.parameters)):
            at_least = " at least" if fn.variadic else ""
            return self.new_error(f"wrong number of arguments for {name}. got={nargs}, want{at_least}={fn.min_args}")

        fn_key = (fn.cache_key, fn.env, self._free_values(fn))
        cached = self.cache.get(fn_key, args)
        if cached is not None:
            value, output = cached
            self.out.write(output)
            return value

        if self.depth >= self.max_depth:
            return self.new_error(f"max depth {self.max_depth} reached")

        env = fn.env.enclosed(name)
        for param, arg in zip(fn.parameters[:fn.min_args], args):
            res = env.set(param, arg)
            if isinstance(res, Error):
                return self.new_error(res.value)
        if fn.variadic:
            env.set_no_checks("..", Array(list(args[fn.min_args:])))
        env.set_no_checks("self", fn)

        saved_env, saved_out, saved_no_cache = self.env, self.out, self._no_cache
        buf = io.StringIO()
        self.env, self.out, self._no_cache = env, buf, False
        self._buffers.append(buf)
        self._stack.append(name)
        self.depth += 1
        try:
            result = self.eval_internal(fn.body)
        finally:
            self.depth -= 1
            self._stack.pop()
            self._buffers.pop()
            uncacheable = self._no_cache
            self.env, self.out = saved_env, saved_out
            self._no_cache = saved_no_cache or uncacheable

        output = buf.getvalue()
        self.out.write(output)

        if isinstance(result, ReturnValue):
            if result.control != "return":
                return self.new_error(f"unexpected control type {result.control} outside of for loops")
            result = result.value
        if not isinstance(result, Error) and not uncacheable:
            self.cache.set(fn_key, args, result, output)
        return result

    @staticmethod
    def _free_values(fn):
        """Current values of the names fn's body may read from its closure, as part of its cache key: rebinding one
        of them (and only them) makes earlier results stale.
        """
        values = []
        for name in fn.free_names:
            value = fn.env.get(name)
            if value is not None and value.hashable():
                value = value.hash_key()
            values.append(value)  # others by identity, values are never mutated in place
        return tuple(values)

    def _apply_extension(self, ext, args):
        nargs = len(args)
        if nargs < ext.min_args or (ext.max_args != -1 and nargs > ext.max_args):
            return self.new_error(f"wrong number of arguments got={nargs}, want {ext.inspect()}")
        args = list(args)
        for i, want in enumerate(ext.arg_types[:nargs]):
            got = args[i]
            if want is ObjectType.ANY or got.type is want:
                continue
            if want is ObjectType.FLOAT and got.type is ObjectType.INTEGER:
                args[i] = Float(float(got.value))
                continue
            return self.new_error(f"wrong type of argument got={got.type}, want {ext.inspect()}")
        if ext.dont_cache:
            self._no_cache = True
        logger.debug("calling extension %s", ext.name)
        target = ext.client_data if ext.client_data is not None else self
        return self._with_stack(ext.callback(target, ext.name, args))

    # keyword builtins

    def _eval_builtin(self, node):
        kind = node.token.type
        name = node.token.literal
        if kind is TokenType.QUOTE:
            if len(node.parameters) != 1:
                return self.new_error(f"quote: wrong number of arguments. got={len(node.parameters)}, want=1")
            return macro.quote(self, node.parameters[0])
        if kind is TokenType.UNQUOTE:
            return self.new_error("unquote: only valid inside quote()")

        args, err = self._eval_expressions(node.parameters, spread=True)
        if err is not None:
            return err

        if kind in (TokenType.PRINT, TokenType.PRINTLN, TokenType.LOG, TokenType.ERROR):
            text = " ".join(a.value if a.type is ObjectType.STRING else a.inspect() for a in args)
            if kind is TokenType.ERROR:
                return self.new_error(text)
            if kind is TokenType.LOG:
                self._no_cache = True  # log lines are not replayed on cache hits
                if self.no_log:
                    self.log_out.write(text + "\n")
                else:
                    script_logger.info(text)
                return NULL
            self.out.write(text + "\n" if kind is TokenType.PRINTLN else text)
            return NULL

        if len(args) != 1:
            return self.new_error(f"{name}: wrong number of arguments. got={len(args)}, want=1")
        arg = args[0]
        if kind is TokenType.LEN:
            if arg.type is ObjectType.STRING:
                return Integer(len(arg.value))
            if arg.type is ObjectType.ARRAY:
                return Integer(len(arg.elements))
            if arg.type is ObjectType.MAP:
                return Integer(len(arg))
            if arg.type is ObjectType.NIL:
                return Integer(0)
        elif kind is TokenType.FIRST:
            if arg.type is ObjectType.ARRAY:
                return arg.elements[0] if arg.elements else NULL
            if arg.type is ObjectType.STRING:
                return String(arg.value[0]) if arg.value else NULL
        elif kind is TokenType.REST:
            if arg.type is ObjectType.ARRAY:
                return Array(arg.elements[1:]) if arg.elements else NULL
            if arg.type is ObjectType.STRING:
                return String(arg.value[1:]) if arg.value else NULL
        return self.new_error(f"{name}: not supported on {arg.type}")
