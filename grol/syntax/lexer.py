"""Lexical analysis for grol. The lexer turns source text into interned tokens, one at a time.

Two modes are supported. In complete mode the end of input yields EOF and unterminated strings or block comments are
ILLEGAL tokens. In line mode (used by the interactive shell) the end of input yields EOL and unterminated strings or
block comments set continuation_needed so the caller can ask for more input.

Numbers are lexed greedily and are not validated here: "0x1F", "1_000", ".5", "1e3" and "1.23e-4" are all single
tokens, and "1.23e" lexes as FLOAT "1.23" followed by IDENT "e". A '.' directly followed by another '.' is not part of
a number so "1..5" stays three tokens.
"""

from grol.syntax.token import DOUBLE_CHARS, SINGLE_CHARS, TokenType, by_type, intern, lookup_ident

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "\"": "\"", "0": "\0", "a": "\a", "b": "\b", "f": "\f",
           "v": "\v", "'": "'"}


class Lexer:
    """Produces tokens from source text."""

    def __init__(self, source, line_mode=False):
        self.source = source
        self.line_mode = line_mode
        self.pos = 0

        self.had_whitespace = False  # whitespace before the last produced token
        self.had_newline = False     # newline before the last produced token
        self.continuation_needed = False
        self.token_start = 0

    def _current(self):
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _peek(self, offset=1):
        pos = self.pos + offset
        return self.source[pos] if pos < len(self.source) else ""

    def _skip_whitespace(self):
        self.had_whitespace = False
        self.had_newline = False
        while self._current() in (" ", "\t", "\r", "\n"):
            if self._current() == "\n":
                self.had_newline = True
            self.had_whitespace = True
            self.pos += 1

    def _end(self):
        return by_type(TokenType.EOL if self.line_mode else TokenType.EOF)

    def next_token(self):
        """Returns the next token. Repeated calls at the end of input keep returning EOF (or EOL)."""
        self._skip_whitespace()
        self.token_start = self.pos
        ch = self._current()

        if not ch:
            return self._end()

        two = ch + self._peek()
        if two == "//":
            return self._read_line_comment()
        if two == "/*":
            return self._read_block_comment()
        if two in DOUBLE_CHARS:
            self.pos += 2
            if two == ":=":  # declaration is plain assignment
                return by_type(TokenType.ASSIGN)
            return by_type(DOUBLE_CHARS[two])

        if ch.isdigit() or (ch == "." and self._peek().isdigit()):
            return self._read_number()
        if ch.isalpha() or ch == "_":
            return self._read_identifier()
        if ch == "\"":
            return self._read_string()
        if ch == "`":
            return self._read_raw_string()
        if ch in SINGLE_CHARS:
            self.pos += 1
            return by_type(SINGLE_CHARS[ch])

        self.pos += 1
        return intern(TokenType.ILLEGAL, ch)

    def _read_while(self, predicate):
        start = self.pos
        while self._current() and predicate(self._current()):
            self.pos += 1
        return self.source[start:self.pos]

    def _read_identifier(self):
        literal = self._read_while(lambda c: c.isalnum() or c == "_")
        return lookup_ident(literal)

    def _read_number(self):
        start = self.pos
        if self._current() == "0" and self._peek() in ("x", "X", "b", "B", "o", "O"):
            self.pos += 2
            self._read_while(lambda c: c.isalnum() or c == "_")
            return intern(TokenType.INT, self.source[start:self.pos])

        is_float = False
        self._read_while(lambda c: c.isdigit() or c == "_")
        if self._current() == "." and self._peek() != ".":
            is_float = True
            self.pos += 1
            self._read_while(lambda c: c.isdigit() or c == "_")
        if self._current() in ("e", "E"):
            nxt = self._peek()
            if nxt.isdigit() or (nxt in ("+", "-") and self._peek(2).isdigit()):
                is_float = True
                self.pos += 2
                self._read_while(str.isdigit)

        return intern(TokenType.FLOAT if is_float else TokenType.INT, self.source[start:self.pos])

    def _read_string(self):
        self.pos += 1  # opening quote
        chars = []
        while True:
            ch = self._current()
            if not ch:
                return self._unterminated(self.source[self.token_start:])
            self.pos += 1
            if ch == "\"":
                break
            if ch == "\\":
                esc = self._current()
                if not esc:
                    return self._unterminated(self.source[self.token_start:])
                self.pos += 1
                if esc in ESCAPES:
                    chars.append(ESCAPES[esc])
                elif esc in ("x", "u", "U"):
                    width = {"x": 2, "u": 4, "U": 8}[esc]
                    digits = self.source[self.pos:self.pos + width]
                    try:
                        chars.append(chr(int(digits, 16)))
                    except ValueError:
                        chars.append("\\" + esc)
                        continue
                    self.pos += width
                else:
                    chars.append("\\" + esc)
            else:
                chars.append(ch)
        return intern(TokenType.STRING, "".join(chars))

    def _read_raw_string(self):
        end = self.source.find("`", self.pos + 1)
        if end == -1:
            self.pos = len(self.source)
            return self._unterminated(self.source[self.token_start:])
        literal = self.source[self.pos + 1:end]
        self.pos = end + 1
        return intern(TokenType.STRING, literal)

    def _read_line_comment(self):
        end = self.source.find("\n", self.pos)
        if end == -1:
            end = len(self.source)
        literal = self.source[self.pos:end].rstrip("\r")
        self.pos = end
        return intern(TokenType.LINECOMMENT, literal)

    def _read_block_comment(self):
        end = self.source.find("*/", self.pos + 2)
        if end == -1:
            self.pos = len(self.source)
            return self._unterminated(self.source[self.token_start:])
        literal = self.source[self.pos:end + 2]
        self.pos = end + 2
        return intern(TokenType.BLOCKCOMMENT, literal)

    def _unterminated(self, literal):
        """In line mode more input may close the string or comment, otherwise it is an error."""
        self.pos = len(self.source)
        if self.line_mode:
            self.continuation_needed = True
            return by_type(TokenType.EOL)
        return intern(TokenType.ILLEGAL, literal)

    def current_line(self, pos=None):
        """Returns (line number, line text, column) of pos, by default the start of the last produced token."""
        start = min(self.token_start if pos is None else pos, len(self.source))
        line_start = self.source.rfind("\n", 0, start) + 1
        line_end = self.source.find("\n", start)
        if line_end == -1:
            line_end = len(self.source)
        line_num = self.source.count("\n", 0, start) + 1
        return line_num, self.source[line_start:line_end], start - line_start
