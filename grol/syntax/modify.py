"""Generic tree rewriting. modify() walks a tree bottom up and lets a callback replace any node.

The source tree is never mutated: every visited node is shallow copied before its children are replaced, and leaves
are copied before being handed to the callback, so rewritten trees never alias the original.

The callback returns (new_node, ok). ok=False aborts the whole rewrite, which is how quote/unquote and macro
expansion stop on the first error.
"""

import copy

from grol.syntax import ast


def _modify_list(nodes, f):
    result = []
    for node in nodes:
        new, ok = modify(node, f)
        if not ok:
            return new, False
        result.append(new)
    return result, True


def modify(node, f):
    """Returns (rewritten copy of node, ok)."""
    node = copy.copy(node)

    if isinstance(node, ast.Statements):
        node.statements, ok = _modify_list(node.statements, f)
        if not ok:
            return node.statements, False

    elif isinstance(node, ast.PrefixExpression):
        node.right, ok = modify(node.right, f)
        if not ok:
            return node.right, False

    elif isinstance(node, ast.InfixExpression):
        node.left, ok = modify(node.left, f)
        if not ok:
            return node.left, False
        node.right, ok = modify(node.right, f)
        if not ok:
            return node.right, False

    elif isinstance(node, ast.IndexExpression):
        node.left, ok = modify(node.left, f)
        if not ok:
            return node.left, False
        node.index, ok = modify(node.index, f)
        if not ok:
            return node.index, False

    elif isinstance(node, ast.CallExpression):
        node.function, ok = modify(node.function, f)
        if not ok:
            return node.function, False
        node.arguments, ok = _modify_list(node.arguments, f)
        if not ok:
            return node.arguments, False

    elif isinstance(node, ast.Builtin):
        node.parameters, ok = _modify_list(node.parameters, f)
        if not ok:
            return node.parameters, False

    elif isinstance(node, ast.ArrayLiteral):
        node.elements, ok = _modify_list(node.elements, f)
        if not ok:
            return node.elements, False

    elif isinstance(node, ast.MapLiteral):
        pairs, order = {}, []
        for key in node.order:
            new_key, ok = modify(key, f)
            if not ok:
                return new_key, False
            new_value, ok = modify(node.pairs[key], f)
            if not ok:
                return new_value, False
            pairs[new_key] = new_value
            order.append(new_key)
        node.pairs, node.order = pairs, order

    elif isinstance(node, (ast.FunctionLiteral, ast.MacroLiteral)):
        node.parameters, ok = _modify_list(node.parameters, f)
        if not ok:
            return node.parameters, False
        node.body, ok = modify(node.body, f)
        if not ok:
            return node.body, False

    elif isinstance(node, ast.IfExpression):
        node.condition, ok = modify(node.condition, f)
        if not ok:
            return node.condition, False
        node.consequence, ok = modify(node.consequence, f)
        if not ok:
            return node.consequence, False
        if node.alternative is not None:
            node.alternative, ok = modify(node.alternative, f)
            if not ok:
                return node.alternative, False

    elif isinstance(node, ast.ForExpression):
        node.condition, ok = modify(node.condition, f)
        if not ok:
            return node.condition, False
        node.body, ok = modify(node.body, f)
        if not ok:
            return node.body, False

    elif isinstance(node, ast.ReturnStatement):
        if node.return_value is not None:
            node.return_value, ok = modify(node.return_value, f)
            if not ok:
                return node.return_value, False

    # identifiers, literals, comments, postfix and control nodes are leaves
    return f(node)
