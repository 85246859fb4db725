"""Pratt parser for grol. Grammar (loosely, by precedence from lowest to highest):

```
<program>    ::= (<expr> [";"])*
<expr>       ::= <ident> "=" <expr>                      ; ':=' is the same as '='
               | <expr> ("==" | "!=") <expr>
               | <expr> ("<" | ">" | "<=" | ">=") <expr>
               | <expr> ("+" | "-") <expr>
               | <expr> ("*" | "/" | "%") <expr>
               | ("-" | "!") <expr>
               | <expr> "(" <list> ")"                   ; no whitespace before '(' or '['
               | <expr> "[" <expr> "]"
               | <ident> ["++" | "--"] | <int> | <float> | <string> | "true" | "false" | ".."
               | "(" <expr> ")" | "[" <list> "]" | "{" [<expr> ":" <expr> ("," <expr> ":" <expr>)*] "}"
               | "func" [<ident>] "(" <params> ")" <block> | "macro" "(" <params> ")" <block>
               | "if" <expr> <block> ["else" (<block> | <if>)] | "for" <expr> <block>
               | "return" [<expr>] | "break" | "continue" | <builtin> "(" <list> ")"
<block>      ::= "{" <program> "}"
```

Errors do not stop parsing early: every error is collected in Parser.errors. In line mode, running out of input where
more is expected sets continuation_needed instead of reporting an error.

Comments are kept as statements, so those between statements and at the end of a line survive formatting. Comments
inside array, map, argument and parameter lists are skipped: they are not part of the tree and formatting drops them.

Sources: Pratt, "Top down operator precedence" (1973).
"""

import logging

from grol.syntax import ast
from grol.syntax.ast import PRECEDENCES, Precedence
from grol.syntax.lexer import Lexer
from grol.syntax.token import BUILTINS, TokenType, by_type

logger = logging.getLogger(__name__)

MAX_INT64 = (1 << 63) - 1


def parse_int(literal):
    """Parses an integer literal (decimal, 0x, 0b, 0o, with '_' separators). Raises ValueError."""
    if len(literal) > 1 and literal[0] == "0" and literal[1] in "xXbBoO":
        return int(literal, 0)
    return int(literal, 10)


class Parser:
    """Parses the tokens produced by a Lexer into a Statements tree."""

    def __init__(self, lexer):
        self.l = lexer
        self.errors = []
        self._continuation = False

        self.cur_token = None
        self.peek_token = None
        self.prev_token = None
        self._cur_after_newline = False   # newline between prev_token and cur_token
        self._peek_after_newline = False  # newline between cur_token and peek_token
        self._cur_start = 0
        self._peek_start = 0

        self.prefix_parse_fns = {}
        self.infix_parse_fns = {}

        self._register_prefix(self.parse_identifier, TokenType.IDENT)
        self._register_prefix(self.parse_integer_literal, TokenType.INT)
        self._register_prefix(self.parse_float_literal, TokenType.FLOAT)
        self._register_prefix(self.parse_string_literal, TokenType.STRING)
        self._register_prefix(self.parse_boolean, TokenType.TRUE, TokenType.FALSE)
        self._register_prefix(self.parse_prefix_expression, TokenType.MINUS, TokenType.BANG)
        self._register_prefix(self.parse_grouped_expression, TokenType.LPAREN)
        self._register_prefix(self.parse_array_literal, TokenType.LBRACKET)
        self._register_prefix(self.parse_map_literal, TokenType.LBRACE)
        self._register_prefix(self.parse_function_literal, TokenType.FUNC)
        self._register_prefix(self.parse_macro_literal, TokenType.MACRO)
        self._register_prefix(self.parse_if_expression, TokenType.IF)
        self._register_prefix(self.parse_for_expression, TokenType.FOR)
        self._register_prefix(self.parse_return_statement, TokenType.RETURN)
        self._register_prefix(self.parse_control, TokenType.BREAK, TokenType.CONTINUE)
        self._register_prefix(self.parse_comment, TokenType.LINECOMMENT, TokenType.BLOCKCOMMENT)
        self._register_prefix(self.parse_dotdot, TokenType.DOTDOT)
        self._register_prefix(self.parse_illegal, TokenType.ILLEGAL)
        self._register_prefix(self.parse_builtin, *BUILTINS.values())

        for type_ in PRECEDENCES:
            self._register_infix(self.parse_infix_expression, type_)
        self._register_infix(self.parse_call_expression, TokenType.LPAREN)
        self._register_infix(self.parse_index_expression, TokenType.LBRACKET)

        self.next_token()
        self.next_token()

    def _register_prefix(self, fn, *types):
        for type_ in types:
            self.prefix_parse_fns[type_] = fn

    def _register_infix(self, fn, *types):
        for type_ in types:
            self.infix_parse_fns[type_] = fn

    @property
    def continuation_needed(self):
        """Whether (in line mode) the input ended before the current construct was complete."""
        return self._continuation or self.l.continuation_needed

    def next_token(self):
        self.prev_token = self.cur_token
        self.cur_token = self.peek_token
        self._cur_start = self._peek_start
        self._cur_after_newline = self._peek_after_newline
        self.peek_token = self.l.next_token()
        self._peek_after_newline = self.l.had_newline
        self._peek_start = self.l.token_start

    def _cur_is(self, type_):
        return self.cur_token.type is type_

    def _peek_is(self, type_):
        return self.peek_token.type is type_

    def _at_end(self, token):
        return token.type in (TokenType.EOF, TokenType.EOL)

    def _error(self, msg):
        line_num, line, col = self.l.current_line(self._cur_start)
        self.errors.append(f"{line_num}: {msg}:\n{line}\n{' ' * col}^")

    def expect_peek(self, type_):
        """Advances if the next token is of type_, otherwise records an error (or a continuation at EOL)."""
        if self._peek_is(type_):
            self.next_token()
            return True
        if self._peek_is(TokenType.EOL):
            self._continuation = True
            return False
        self._error(f"expected next token to be `{by_type(type_).literal}`, got `{_describe(self.peek_token)}` instead")
        return False

    def _peek_precedence(self):
        if self.l.had_whitespace and self.peek_token.type in (TokenType.LPAREN, TokenType.LBRACKET):
            return Precedence.LOWEST  # '(3)\n(4)' is two statements
        return PRECEDENCES.get(self.peek_token.type, Precedence.LOWEST)

    def parse_program(self):
        """Parses the whole input. Check errors and continuation_needed afterwards."""
        program = ast.Statements(self.cur_token)
        while not self._at_end(self.cur_token):
            stmt = self.parse_statement()
            if stmt is None:
                break
            program.statements.append(stmt)
            self.next_token()
        logger.debug("parsed %d statement(s), %d error(s)", len(program.statements), len(self.errors))
        return program

    def parse_statement(self):
        expr = self.parse_expression(Precedence.LOWEST)
        if expr is not None and self._peek_is(TokenType.SEMICOLON):
            self.next_token()
        return expr

    def parse_expression(self, precedence):
        if self._cur_is(TokenType.EOL):
            self._continuation = True
            return None
        prefix = self.prefix_parse_fns.get(self.cur_token.type)
        if prefix is None:
            self._error(f"no prefix parse function for `{_describe(self.cur_token)}` found")
            return None
        left = prefix()
        if left is None:
            return None

        while not self._peek_is(TokenType.SEMICOLON) and precedence < self._peek_precedence():
            infix = self.infix_parse_fns.get(self.peek_token.type)
            if infix is None:
                return left
            self.next_token()
            left = infix(left)
            if left is None:
                return None
        return left

    def parse_identifier(self):
        ident = ast.Identifier(self.cur_token)
        if self._peek_is(TokenType.INCR) or self._peek_is(TokenType.DECR):
            self.next_token()
            return ast.PostfixExpression(self.cur_token, ident.token)
        return ident

    def parse_dotdot(self):
        return ast.Identifier(self.cur_token)

    def parse_integer_literal(self):
        literal = self.cur_token.literal
        try:
            val = parse_int(literal)
        except ValueError:
            return self._float_from(literal)
        if val > MAX_INT64:
            return self._float_from(literal)
        return ast.IntegerLiteral(self.cur_token, val)

    def parse_float_literal(self):
        return self._float_from(self.cur_token.literal)

    def _float_from(self, literal):
        try:
            return ast.FloatLiteral(self.cur_token, float(literal))
        except ValueError:
            self._error(f"could not parse \"{literal}\" as float")
            return None

    def parse_string_literal(self):
        return ast.StringLiteral(self.cur_token)

    def parse_boolean(self):
        return ast.Boolean(self.cur_token, self._cur_is(TokenType.TRUE))

    def parse_comment(self):
        same_line_as_previous = self.prev_token is not None and not self._cur_after_newline
        same_line_as_next = not self._peek_after_newline and not self._at_end(self.peek_token)
        return ast.Comment(self.cur_token, same_line_as_previous, same_line_as_next)

    def parse_illegal(self):
        literal = self.cur_token.literal
        if literal.startswith("/*"):
            self._error("unterminated block comment")
        elif literal.startswith("\"") or literal.startswith("`"):
            self._error("unterminated string")
        else:
            self._error(f"illegal character `{literal}`")
        return None

    def parse_prefix_expression(self):
        token = self.cur_token
        self.next_token()
        right = self.parse_expression(Precedence.PREFIX)
        if right is None:
            return None
        return ast.PrefixExpression(token, right)

    def parse_infix_expression(self, left):
        token = self.cur_token
        precedence = PRECEDENCES[token.type]
        if token.type is TokenType.ASSIGN:
            if not isinstance(left, (ast.Identifier, ast.IndexExpression)):
                self._error(f"assignment to non identifier: {left}")
                return None
            precedence = Precedence.LOWEST  # right associative
        self.next_token()
        right = self.parse_expression(precedence)
        if right is None:
            return None
        return ast.InfixExpression(token, left, right)

    def parse_grouped_expression(self):
        self.next_token()
        expr = self.parse_expression(Precedence.LOWEST)
        if expr is None or not self.expect_peek(TokenType.RPAREN):
            return None
        return expr

    def parse_expression_list(self, end):
        """Parses a comma separated list up to end, skipping comments and allowing a trailing comma."""
        items = []
        while True:
            self._skip_peek_comments()
            if self._peek_is(end):
                self.next_token()
                return items
            self.next_token()
            if self._cur_is(TokenType.EOL):
                self._continuation = True
                return None
            item = self.parse_expression(Precedence.LOWEST)
            if item is None:
                return None
            items.append(item)
            self._skip_peek_comments()
            if self._peek_is(TokenType.COMMA):
                self.next_token()
                continue
            if not self.expect_peek(end):
                return None
            return items

    def _skip_peek_comments(self):
        """Skips comments inside lists, which the tree has no place for."""
        while self.peek_token.type in (TokenType.LINECOMMENT, TokenType.BLOCKCOMMENT):
            self.next_token()
            logger.debug("dropping comment in list: %s", self.cur_token.literal)

    def parse_array_literal(self):
        token = self.cur_token
        elements = self.parse_expression_list(TokenType.RBRACKET)
        if elements is None:
            return None
        return ast.ArrayLiteral(token, elements)

    def parse_map_literal(self):
        node = ast.MapLiteral(self.cur_token)
        while True:
            self._skip_peek_comments()
            if self._peek_is(TokenType.RBRACE):
                self.next_token()
                return node
            self.next_token()
            if self._cur_is(TokenType.EOL):
                self._continuation = True
                return None
            key = self.parse_expression(Precedence.LOWEST)
            if key is None or not self.expect_peek(TokenType.COLON):
                return None
            self.next_token()
            value = self.parse_expression(Precedence.LOWEST)
            if value is None:
                return None
            node.pairs[key] = value
            node.order.append(key)
            self._skip_peek_comments()
            if self._peek_is(TokenType.COMMA):
                self.next_token()
                continue
            if not self.expect_peek(TokenType.RBRACE):
                return None
            return node

    def parse_call_expression(self, function):
        token = self.cur_token
        arguments = self.parse_expression_list(TokenType.RPAREN)
        if arguments is None:
            return None
        return ast.CallExpression(token, function, arguments)

    def parse_index_expression(self, left):
        token = self.cur_token
        self.next_token()
        index = self.parse_expression(Precedence.LOWEST)
        if index is None or not self.expect_peek(TokenType.RBRACKET):
            return None
        return ast.IndexExpression(token, left, index)

    def parse_builtin(self):
        token = self.cur_token
        if not self.expect_peek(TokenType.LPAREN):
            return None
        parameters = self.parse_expression_list(TokenType.RPAREN)
        if parameters is None:
            return None
        return ast.Builtin(token, parameters)

    def parse_block_statement(self):
        """Parses '{' statements '}'. cur_token must be the '{'."""
        block = ast.Statements(self.cur_token)
        self.next_token()
        while not self._cur_is(TokenType.RBRACE):
            if self._cur_is(TokenType.EOL):
                self._continuation = True
                return None
            if self._cur_is(TokenType.EOF):
                self._error("expected next token to be `}`, got `EOF` instead")
                return None
            stmt = self.parse_statement()
            if stmt is None:
                return None
            block.statements.append(stmt)
            self.next_token()
        return block

    def parse_parameters(self):
        params = []
        while True:
            self._skip_peek_comments()
            if self._peek_is(TokenType.RPAREN):
                self.next_token()
                return params
            self.next_token()
            if self._cur_is(TokenType.EOL):
                self._continuation = True
                return None
            if not (self._cur_is(TokenType.IDENT) or self._cur_is(TokenType.DOTDOT)):
                self._error(f"expected identifier as parameter, got `{self.cur_token.literal}` instead")
                return None
            params.append(ast.Identifier(self.cur_token))
            self._skip_peek_comments()
            if self._peek_is(TokenType.COMMA):
                self.next_token()
                continue
            if not self.expect_peek(TokenType.RPAREN):
                return None
            return params

    def parse_function_literal(self):
        token = self.cur_token
        name = None
        if self._peek_is(TokenType.IDENT):
            self.next_token()
            name = ast.Identifier(self.cur_token)
        if not self.expect_peek(TokenType.LPAREN):
            return None
        params = self.parse_parameters()
        if params is None:
            return None
        if any(p.value() == ".." for p in params[:-1]):
            self._error("'..' can only be the last parameter")
            return None
        if not self.expect_peek(TokenType.LBRACE):
            return None
        body = self.parse_block_statement()
        if body is None:
            return None
        return ast.FunctionLiteral(token, name, params, body)

    def parse_macro_literal(self):
        token = self.cur_token
        if not self.expect_peek(TokenType.LPAREN):
            return None
        params = self.parse_parameters()
        if params is None or not self.expect_peek(TokenType.LBRACE):
            return None
        body = self.parse_block_statement()
        if body is None:
            return None
        return ast.MacroLiteral(token, params, body)

    def parse_if_expression(self):
        token = self.cur_token
        self.next_token()
        condition = self.parse_expression(Precedence.LOWEST)
        if condition is None or not self.expect_peek(TokenType.LBRACE):
            return None
        consequence = self.parse_block_statement()
        if consequence is None:
            return None
        node = ast.IfExpression(token, condition, consequence)
        if not self._peek_is(TokenType.ELSE):
            return node
        self.next_token()
        if self._peek_is(TokenType.IF):
            self.next_token()
            nested = self.parse_if_expression()
            if nested is None:
                return None
            node.alternative = ast.Statements(nested.token, [nested])
            return node
        if not self.expect_peek(TokenType.LBRACE):
            return None
        node.alternative = self.parse_block_statement()
        if node.alternative is None:
            return None
        return node

    def parse_for_expression(self):
        token = self.cur_token
        self.next_token()
        condition = self.parse_expression(Precedence.LOWEST)
        if condition is None or not self.expect_peek(TokenType.LBRACE):
            return None
        body = self.parse_block_statement()
        if body is None:
            return None
        return ast.ForExpression(token, condition, body)

    def parse_return_statement(self):
        token = self.cur_token
        if self.peek_token.type in (TokenType.SEMICOLON, TokenType.RBRACE, TokenType.EOF, TokenType.EOL,
                                    TokenType.LINECOMMENT, TokenType.BLOCKCOMMENT):
            return ast.ReturnStatement(token)
        self.next_token()
        value = self.parse_expression(Precedence.LOWEST)
        if value is None:
            return None
        return ast.ReturnStatement(token, value)

    def parse_control(self):
        return ast.ControlExpression(self.cur_token)


def _describe(token):
    return token.literal or str(token.type)


def parse(source, line_mode=False):
    """Convenience wrapper returning (program, parser)."""
    parser = Parser(Lexer(source, line_mode))
    return parser.parse_program(), parser
