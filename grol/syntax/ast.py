"""Abstract syntax tree for grol and its pretty-printer.

Every node keeps the token it was parsed from and knows how to print itself on a PrintState. Printing is the
canonical formatter: the output of a PrintState re-parses into an equivalent tree. Parenthesis are only emitted
where operator precedence requires them.

Two styles are available:

```
long     x = 1              compact     x=1;func f(a,b){a+b}
         func f(a, b) {
             a + b
         }
```

str(node) is the compact form, which is also used as the cache key of function literals.
"""

import enum

from grol.syntax.token import TokenType


class Precedence(enum.IntEnum):
    LOWEST = enum.auto()
    ASSIGN = enum.auto()
    EQUALS = enum.auto()
    LESSGREATER = enum.auto()
    SUM = enum.auto()
    PRODUCT = enum.auto()
    PREFIX = enum.auto()
    CALL = enum.auto()


PRECEDENCES = {
    TokenType.ASSIGN: Precedence.ASSIGN,
    TokenType.EQ: Precedence.EQUALS,
    TokenType.NOTEQ: Precedence.EQUALS,
    TokenType.LT: Precedence.LESSGREATER,
    TokenType.GT: Precedence.LESSGREATER,
    TokenType.LTEQ: Precedence.LESSGREATER,
    TokenType.GTEQ: Precedence.LESSGREATER,
    TokenType.PLUS: Precedence.SUM,
    TokenType.MINUS: Precedence.SUM,
    TokenType.ASTERISK: Precedence.PRODUCT,
    TokenType.SLASH: Precedence.PRODUCT,
    TokenType.PERCENT: Precedence.PRODUCT,
    TokenType.LPAREN: Precedence.CALL,
    TokenType.LBRACKET: Precedence.CALL,
}

_QUOTE_ESCAPES = {"\"": "\\\"", "\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r"}


def quote_string(s):
    """Returns s as a double quoted grol string literal."""
    out = ["\""]
    for ch in s:
        if ch in _QUOTE_ESCAPES:
            out.append(_QUOTE_ESCAPES[ch])
        elif not ch.isprintable():
            code = ord(ch)
            out.append(f"\\x{code:02x}" if code < 0x100 else f"\\u{code:04x}" if code < 0x10000 else f"\\U{code:08x}")
        else:
            out.append(ch)
    out.append("\"")
    return "".join(out)


class PrintState:
    """Accumulates the printed form of a tree."""

    def __init__(self, compact=False):
        self.compact = compact
        self.indent_level = 0
        self.precedence = Precedence.LOWEST
        self._out = []
        self._line_start = True

    def print(self, *strs):
        if self._line_start and self.indent_level > 1:
            self._out.append("\t" * (self.indent_level - 1))
        self._line_start = False
        self._out.extend(strs)

    def newline(self):
        self._out.append("\n")
        self._line_start = True

    def operand(self, node, precedence):
        """Prints node as an operand that requires at least precedence."""
        outer = self.precedence
        self.precedence = precedence
        node.pretty_print(self)
        self.precedence = outer

    def comma_list(self, nodes):
        for i, node in enumerate(nodes):
            if i:
                self.print("," if self.compact else ", ")
            self.operand(node, Precedence.LOWEST)

    def block(self, statements):
        """Prints statements in braces, also when printing a lone node."""
        if self.indent_level:
            statements.pretty_print(self)
        else:
            self.indent_level = 1
            statements.pretty_print(self)
            self.indent_level = 0

    def __str__(self):
        return "".join(self._out)


def starts_with_minus(node):
    """Whether the printed form of node starts with a '-'."""
    while True:
        if isinstance(node, PrefixExpression):
            return node.token.type is TokenType.MINUS
        if isinstance(node, InfixExpression):
            node = node.left
        elif isinstance(node, (CallExpression, IndexExpression)):
            node = node.function if isinstance(node, CallExpression) else node.left
        else:
            return False


class Node:
    """Superclass for every grol syntax node."""

    def __init__(self, token):
        self.token = token
        self._cls = type(self).__name__

    def value(self):
        return self.token.literal

    def pretty_print(self, ps):
        ps.print(self.token.literal)

    def children(self):
        return []

    def format(self, compact=False):
        ps = PrintState(compact)
        self.pretty_print(ps)
        return str(ps)

    def display(self, indents=0):
        """Recursively displays the tree with readable format.

        Format:
        <Node>(expr='<compact form>', nodes=[
            <Node>(expr='<compact form>'),
            ...
        ])
        """
        result = f"{'    ' * indents}{self._cls}(expr='{self}'"
        nodes = self.children()
        if nodes:
            result += ", nodes=["
            for node in nodes:
                result += "\n" + node.display(indents + 1) + ","
            result = result[:-1] + "\n" + "    " * indents + "])"
        else:
            result += ")"
        return result

    def __str__(self):
        return self.format(compact=True)

    def __repr__(self):
        return f"{self._cls}('{self}')"


class Statements(Node):
    """Sequence of statements: a program or a block."""

    def __init__(self, token, statements=None):
        super().__init__(token)
        self.statements = statements if statements is not None else []

    def children(self):
        return list(self.statements)

    def pretty_print(self, ps):
        block = ps.indent_level > 0
        if block:
            ps.print("{")
        ps.indent_level += 1

        stmts = [s for s in self.statements if not (ps.compact and isinstance(s, Comment))]
        if ps.compact:
            for i, stmt in enumerate(stmts):
                if i:
                    ps.print(";")
                ps.operand(stmt, Precedence.LOWEST)
        else:
            if block and stmts:
                ps.newline()
            for i, stmt in enumerate(stmts):
                if i:
                    prev = stmts[i - 1]
                    if isinstance(stmt, Comment) and stmt.same_line_as_previous:
                        ps.print(" ")
                    elif isinstance(prev, Comment) and prev.same_line_as_next \
                            and prev.token.type is TokenType.BLOCKCOMMENT:
                        ps.print(" ")
                    else:
                        if starts_with_minus(stmt):
                            ps.print(";")  # keeps '-' from continuing the previous expression
                        ps.newline()
                ps.operand(stmt, Precedence.LOWEST)
            if stmts:
                ps.newline()

        ps.indent_level -= 1
        if block:
            ps.print("}")


class Identifier(Node):

    def pretty_print(self, ps):
        ps.print(self.token.literal)


class Comment(Node):
    """Line (// ...) or block (/* ... */) comment kept for formatting."""

    def __init__(self, token, same_line_as_previous=False, same_line_as_next=False):
        super().__init__(token)
        self.same_line_as_previous = same_line_as_previous
        self.same_line_as_next = same_line_as_next


class IntegerLiteral(Node):

    def __init__(self, token, val):
        super().__init__(token)
        self.val = val


class FloatLiteral(Node):

    def __init__(self, token, val):
        super().__init__(token)
        self.val = val


class StringLiteral(Node):

    def pretty_print(self, ps):
        ps.print(quote_string(self.token.literal))


class Boolean(Node):

    def __init__(self, token, val):
        super().__init__(token)
        self.val = val


class PrefixExpression(Node):
    """'-x' or '!x'."""

    def __init__(self, token, right):
        super().__init__(token)
        self.right = right

    def children(self):
        return [self.right]

    def pretty_print(self, ps):
        wrap = ps.precedence > Precedence.PREFIX
        if wrap:
            ps.print("(")
        ps.print(self.token.literal)
        needs = Precedence.PREFIX
        if self.token.type is TokenType.MINUS and starts_with_minus(self.right):
            needs = Precedence.CALL  # '--' would lex as decrement
        ps.operand(self.right, needs)
        if wrap:
            ps.print(")")


class PostfixExpression(Node):
    """'x++' or 'x--'. prev is the identifier token."""

    def __init__(self, token, prev):
        super().__init__(token)
        self.prev = prev

    def pretty_print(self, ps):
        ps.print(self.prev.literal, self.token.literal)


class InfixExpression(Node):

    def __init__(self, token, left, right):
        super().__init__(token)
        self.left = left
        self.right = right

    def children(self):
        return [self.left, self.right]

    def pretty_print(self, ps):
        prec = PRECEDENCES[self.token.type]
        wrap = ps.precedence > prec
        if wrap:
            ps.print("(")

        right_assoc = self.token.type is TokenType.ASSIGN
        ps.operand(self.left, prec + 1 if right_assoc else prec)
        ps.print(self.token.literal if ps.compact else f" {self.token.literal} ")
        needs = prec if right_assoc else prec + 1
        if ps.compact and self.token.type is TokenType.MINUS and starts_with_minus(self.right):
            needs = Precedence.CALL
        ps.operand(self.right, needs)

        if wrap:
            ps.print(")")


class IndexExpression(Node):

    def __init__(self, token, left, index):
        super().__init__(token)
        self.left = left
        self.index = index

    def children(self):
        return [self.left, self.index]

    def pretty_print(self, ps):
        ps.operand(self.left, Precedence.CALL)
        ps.print("[")
        ps.operand(self.index, Precedence.LOWEST)
        ps.print("]")


class CallExpression(Node):

    def __init__(self, token, function, arguments):
        super().__init__(token)
        self.function = function
        self.arguments = arguments

    def children(self):
        return [self.function, *self.arguments]

    def pretty_print(self, ps):
        ps.operand(self.function, Precedence.CALL)
        ps.print("(")
        ps.comma_list(self.arguments)
        ps.print(")")


class Builtin(Node):
    """Call of a keyword builtin such as len(x) or quote(x)."""

    def __init__(self, token, parameters):
        super().__init__(token)
        self.parameters = parameters

    def children(self):
        return list(self.parameters)

    def pretty_print(self, ps):
        ps.print(self.token.literal, "(")
        ps.comma_list(self.parameters)
        ps.print(")")


class ArrayLiteral(Node):

    def __init__(self, token, elements):
        super().__init__(token)
        self.elements = elements

    def children(self):
        return list(self.elements)

    def pretty_print(self, ps):
        ps.print("[")
        ps.comma_list(self.elements)
        ps.print("]")


class MapLiteral(Node):
    """pairs maps key node to value node, order keeps the source order of the keys."""

    def __init__(self, token, pairs=None, order=None):
        super().__init__(token)
        self.pairs = pairs if pairs is not None else {}
        self.order = order if order is not None else []

    def children(self):
        return [n for key in self.order for n in (key, self.pairs[key])]

    def pretty_print(self, ps):
        ps.print("{")
        for i, key in enumerate(self.order):
            if i:
                ps.print("," if ps.compact else ", ")
            ps.operand(key, Precedence.LOWEST)
            ps.print(":")
            ps.operand(self.pairs[key], Precedence.LOWEST)
        ps.print("}")


class FunctionLiteral(Node):
    """func [name](params) {body}. variadic is set when the last parameter is '..'."""

    def __init__(self, token, name, parameters, body):
        super().__init__(token)
        self.name = name
        self.parameters = parameters
        self.body = body
        self.variadic = bool(parameters) and parameters[-1].value() == ".."

    def children(self):
        return [*self.parameters, self.body]

    def pretty_print(self, ps, with_name=True):
        ps.print("func")
        if with_name and self.name is not None:
            ps.print(" ", self.name.value())
        ps.print("(")
        ps.comma_list(self.parameters)
        ps.print(")" if ps.compact else ") ")
        ps.block(self.body)

    def cache_key(self):
        """Compact text of the function without its name."""
        ps = PrintState(compact=True)
        self.pretty_print(ps, with_name=False)
        return str(ps)

    def free_names(self):
        """Sorted names used in the body other than the parameters, self and '..'. Names assigned in the body are
        included: they may also be read before being set.
        """
        bound = {p.value() for p in self.parameters} | {"self", ".."}
        names = set()
        todo = [self.body]
        while todo:
            node = todo.pop()
            if isinstance(node, Identifier):
                names.add(node.value())
            elif isinstance(node, PostfixExpression):
                names.add(node.prev.literal)
            todo.extend(node.children())
        return tuple(sorted(names - bound))


class MacroLiteral(Node):

    def __init__(self, token, parameters, body):
        super().__init__(token)
        self.parameters = parameters
        self.body = body

    def children(self):
        return [*self.parameters, self.body]

    def pretty_print(self, ps):
        ps.print("macro(")
        ps.comma_list(self.parameters)
        ps.print(")" if ps.compact else ") ")
        ps.block(self.body)


class IfExpression(Node):

    def __init__(self, token, condition, consequence, alternative=None):
        super().__init__(token)
        self.condition = condition
        self.consequence = consequence
        self.alternative = alternative

    def children(self):
        nodes = [self.condition, self.consequence]
        if self.alternative is not None:
            nodes.append(self.alternative)
        return nodes

    def pretty_print(self, ps):
        ps.print("if ")
        ps.operand(self.condition, Precedence.LOWEST)
        if not ps.compact:
            ps.print(" ")
        ps.block(self.consequence)
        if self.alternative is None:
            return
        ps.print("else" if ps.compact else " else ")
        stmts = self.alternative.statements
        if len(stmts) == 1 and isinstance(stmts[0], IfExpression):
            if ps.compact:
                ps.print(" ")
            stmts[0].pretty_print(ps)
        else:
            ps.block(self.alternative)


class ForExpression(Node):

    def __init__(self, token, condition, body):
        super().__init__(token)
        self.condition = condition
        self.body = body

    def children(self):
        return [self.condition, self.body]

    def pretty_print(self, ps):
        ps.print("for ")
        ps.operand(self.condition, Precedence.LOWEST)
        if not ps.compact:
            ps.print(" ")
        ps.block(self.body)


class ReturnStatement(Node):

    def __init__(self, token, return_value=None):
        super().__init__(token)
        self.return_value = return_value

    def children(self):
        return [self.return_value] if self.return_value is not None else []

    def pretty_print(self, ps):
        wrap = ps.precedence > Precedence.LOWEST
        if wrap:
            ps.print("(")
        ps.print("return")
        if self.return_value is not None:
            ps.print(" ")
            ps.operand(self.return_value, Precedence.LOWEST)
        if wrap:
            ps.print(")")


class ControlExpression(Node):
    """break or continue."""
