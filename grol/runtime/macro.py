"""Macros and quasi-quotation.

Macros are handled before evaluation, in two phases:
  1. define_macros() removes every top level `name = macro(...) {...}` statement and binds name in the macro
     environment, which is never visible to regular code.
  2. expand_macros() rewrites every call of a macro: each argument is wrapped, unevaluated, in its own Quote, the
     macro body is evaluated with the parameters bound to those Quotes, and the call is replaced by the node of the
     Quote the body returns.

quote(expr) returns expr's tree as a value, after replacing each unquote(e) in it by the tree of e's value.
"""

import logging

from grol.runtime.object import Boolean, Error, Float, Integer, Macro, Quote, String, format_float
from grol.syntax import ast
from grol.syntax.modify import modify
from grol.syntax.token import TokenType, by_type, intern, lookup_ident

logger = logging.getLogger(__name__)


def is_macro_definition(node):
    return isinstance(node, ast.InfixExpression) and node.token.type is TokenType.ASSIGN \
        and isinstance(node.left, ast.Identifier) and isinstance(node.right, ast.MacroLiteral)


def define_macros(state, program):
    """Moves the top level macro definitions of program into state.macro_env."""
    kept = []
    for stmt in program.statements:
        if is_macro_definition(stmt):
            name = stmt.left.value()
            state.macro_env.set_no_checks(name, Macro(stmt.right.parameters, stmt.right.body, state.macro_env))
            logger.debug("defined macro %s", name)
        else:
            kept.append(stmt)
    program.statements = kept


def _error_program(token, msg):
    """Program that evaluates to an error with msg."""
    node = ast.Builtin(by_type(TokenType.ERROR), [ast.StringLiteral(intern(TokenType.STRING, msg))])
    return ast.Statements(token, [node])


def expand_macros(state, program):
    """Returns a copy of program with every macro call expanded."""
    if not state.macro_env.store:
        return program
    failures = []
    count = 0

    def expand(node):
        nonlocal count
        if not isinstance(node, ast.CallExpression) or not isinstance(node.function, ast.Identifier):
            return node, True
        name = node.function.value()
        mac = state.macro_env.get(name)
        if not isinstance(mac, Macro):
            return node, True
        if len(node.arguments) != len(mac.parameters):
            failures.append(f"wrong number of macro arguments for {name}. "
                            f"got={len(node.arguments)}, want={len(mac.parameters)}")
            return node, False

        env = mac.env.enclosed(name)
        for param, arg in zip(mac.parameters, node.arguments):
            env.set_no_checks(param, Quote(arg))  # fresh Quote for every call site
        result = state.derive(env).eval(mac.body)
        if isinstance(result, Error):
            failures.append(result.value)
            return node, False
        if not isinstance(result, Quote):
            failures.append(f"macro should return Quote. got={result.type}")
            return node, False
        count += 1
        return result.node, True

    expanded, ok = modify(program, expand)
    if not ok:
        return _error_program(program.token, failures[-1])
    logger.debug("expanded %d macro call(s)", count)
    return expanded


def value_to_node(value):
    """AST node that evaluates to value. Values with no literal form become nil."""
    if isinstance(value, Quote):
        return value.node
    if isinstance(value, Boolean):
        return ast.Boolean(by_type(TokenType.TRUE if value.value else TokenType.FALSE), value.value)
    if isinstance(value, Integer):
        node = ast.IntegerLiteral(intern(TokenType.INT, str(abs(value.value))), abs(value.value))
        return _negate(node) if value.value < 0 else node
    if isinstance(value, Float):
        text = format_float(abs(value.value))
        if text in ("Inf", "NaN"):
            node = ast.Identifier(lookup_ident(text))
        else:
            node = ast.FloatLiteral(intern(TokenType.FLOAT, text), abs(value.value))
        return _negate(node) if value.value < 0 else node
    if isinstance(value, String):
        return ast.StringLiteral(intern(TokenType.STRING, value.value))
    return ast.Identifier(lookup_ident("nil"))


def _negate(node):
    return ast.PrefixExpression(by_type(TokenType.MINUS), node)


def quote(state, node):
    """Evaluates quote(node): a Quote of node where unquote() calls are replaced by their values."""
    errors = []

    def unquote(n):
        if not isinstance(n, ast.Builtin) or n.token.type is not TokenType.UNQUOTE:
            return n, True
        if len(n.parameters) != 1:
            errors.append(state.new_error(f"unquote: wrong number of arguments. got={len(n.parameters)}, want=1"))
            return n, False
        value = state.eval(n.parameters[0])
        if isinstance(value, Error):
            errors.append(value)
            return n, False
        return value_to_node(value), True

    quoted, ok = modify(node, unquote)
    if not ok:
        return errors[0]
    return Quote(quoted)
