"""Tokens for the grol language. Tokens are interned: the same (type, literal) pair always yields the same Token
object, so keywords and operators can be compared by identity.

Tokens fall in the following families:

```
<value>     ::= IDENT | INT | FLOAT | STRING | LINECOMMENT | BLOCKCOMMENT
<single>    ::= "=" "+" "-" "!" "*" "/" "%" "<" ">" "," ";" "(" ")" "{" "}" "[" "]" ":" "."
<double>    ::= "<=" ">=" "==" "!=" "++" "--" ".." ":="
<keyword>   ::= "func" "true" "false" "if" "else" "return" "for" "break" "continue" "macro"
<builtin>   ::= "len" "first" "rest" "print" "println" "log" "error" "quote" "unquote"
<end>       ::= EOF | EOL                 ; EOL only ends input in line mode
```
"""

import enum


class TokenType(enum.Enum):
    ILLEGAL = enum.auto()
    EOL = enum.auto()
    EOF = enum.auto()

    # value tokens, literal varies
    IDENT = enum.auto()
    INT = enum.auto()
    FLOAT = enum.auto()
    STRING = enum.auto()
    LINECOMMENT = enum.auto()
    BLOCKCOMMENT = enum.auto()

    # single character tokens
    ASSIGN = enum.auto()
    PLUS = enum.auto()
    MINUS = enum.auto()
    BANG = enum.auto()
    ASTERISK = enum.auto()
    SLASH = enum.auto()
    PERCENT = enum.auto()
    LT = enum.auto()
    GT = enum.auto()
    COMMA = enum.auto()
    SEMICOLON = enum.auto()
    LPAREN = enum.auto()
    RPAREN = enum.auto()
    LBRACE = enum.auto()
    RBRACE = enum.auto()
    LBRACKET = enum.auto()
    RBRACKET = enum.auto()
    COLON = enum.auto()
    DOT = enum.auto()

    # two character tokens
    LTEQ = enum.auto()
    GTEQ = enum.auto()
    EQ = enum.auto()
    NOTEQ = enum.auto()
    INCR = enum.auto()
    DECR = enum.auto()
    DOTDOT = enum.auto()
    DEFINE = enum.auto()

    # keywords
    FUNC = enum.auto()
    TRUE = enum.auto()
    FALSE = enum.auto()
    IF = enum.auto()
    ELSE = enum.auto()
    RETURN = enum.auto()
    FOR = enum.auto()
    BREAK = enum.auto()
    CONTINUE = enum.auto()
    MACRO = enum.auto()

    # builtins, parsed as keywords
    LEN = enum.auto()
    FIRST = enum.auto()
    REST = enum.auto()
    PRINT = enum.auto()
    PRINTLN = enum.auto()
    LOG = enum.auto()
    ERROR = enum.auto()
    QUOTE = enum.auto()
    UNQUOTE = enum.auto()

    def __str__(self):
        return self.name


class Token:
    """A (type, literal) pair. Do not instantiate directly, use intern()."""
    __slots__ = ("type", "literal")

    def __init__(self, type_, literal):
        self.type = type_
        self.literal = literal

    def __repr__(self):
        return f"Token({self.type}, {self.literal!r})"


_interned = {}


def intern(type_, literal):
    """Returns the unique Token for (type_, literal)."""
    key = (type_, literal)
    tok = _interned.get(key)
    if tok is None:
        tok = _interned[key] = Token(type_, literal)
    return tok


SINGLE_CHARS = {
    "=": TokenType.ASSIGN, "+": TokenType.PLUS, "-": TokenType.MINUS, "!": TokenType.BANG,
    "*": TokenType.ASTERISK, "/": TokenType.SLASH, "%": TokenType.PERCENT, "<": TokenType.LT, ">": TokenType.GT,
    ",": TokenType.COMMA, ";": TokenType.SEMICOLON, "(": TokenType.LPAREN, ")": TokenType.RPAREN,
    "{": TokenType.LBRACE, "}": TokenType.RBRACE, "[": TokenType.LBRACKET, "]": TokenType.RBRACKET,
    ":": TokenType.COLON, ".": TokenType.DOT,
}

DOUBLE_CHARS = {
    "<=": TokenType.LTEQ, ">=": TokenType.GTEQ, "==": TokenType.EQ, "!=": TokenType.NOTEQ,
    "++": TokenType.INCR, "--": TokenType.DECR, "..": TokenType.DOTDOT, ":=": TokenType.DEFINE,
}

KEYWORDS = {
    "func": TokenType.FUNC, "true": TokenType.TRUE, "false": TokenType.FALSE, "if": TokenType.IF,
    "else": TokenType.ELSE, "return": TokenType.RETURN, "for": TokenType.FOR, "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE, "macro": TokenType.MACRO,
}

BUILTINS = {
    "len": TokenType.LEN, "first": TokenType.FIRST, "rest": TokenType.REST, "print": TokenType.PRINT,
    "println": TokenType.PRINTLN, "log": TokenType.LOG, "error": TokenType.ERROR, "quote": TokenType.QUOTE,
    "unquote": TokenType.UNQUOTE,
}

# constant tokens, by type
_by_type = {}
for _table in (SINGLE_CHARS, DOUBLE_CHARS, KEYWORDS, BUILTINS):
    for _literal, _type in _table.items():
        _by_type[_type] = intern(_type, _literal)
_by_type[TokenType.EOL] = intern(TokenType.EOL, "")
_by_type[TokenType.EOF] = intern(TokenType.EOF, "")


def by_type(type_):
    """Returns the constant token of type_ (operators, keywords, builtins, EOL and EOF)."""
    return _by_type[type_]


def lookup_ident(literal):
    """Returns the keyword or builtin token for literal, or an interned IDENT token."""
    type_ = KEYWORDS.get(literal) or BUILTINS.get(literal)
    if type_ is not None:
        return _by_type[type_]
    return intern(TokenType.IDENT, literal)


