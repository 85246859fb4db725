"""Session control for grol. Runs source text through the whole pipeline (lex, parse, format, macros, eval), either
for files and strings given on the command line or line by line for the interactive shell.
"""

import io
import logging
import os
import sys

from termcolor import colored

from grol.lang.error import ErrorHandler, GenericException, ParseErrors
from grol.runtime import extensions, registry
from grol.runtime.context import Context
from grol.runtime.evaluator import DEFAULT_MAX_DEPTH, State
from grol.runtime.object import Error, ObjectType
from grol.syntax.lexer import Lexer
from grol.syntax.parser import Parser
from grol.syntax.token import BUILTINS, KEYWORDS

logger = logging.getLogger(__name__)


class Options:
    """Front-end settings. Unknown settings are rejected."""

    def __init__(self, **kwargs):
        self.show_parse = False
        self.parse_debug = False
        self.show_eval = True
        self.format_only = False
        self.compact = False
        self.all = True             # complete mode: the input is a whole program
        self.nil_and_err = False    # also print nil and error results
        self.no_color = False
        self.auto_load = False
        self.auto_save = False
        self.max_depth = DEFAULT_MAX_DEPTH
        self.max_duration = 0       # seconds, 0 is unlimited
        self.max_value_len = 4000   # longer values are not saved

        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise TypeError(f"unknown option {key}")
            setattr(self, key, value)


class Session:
    """Governs a grol session: one State, evaluated one input at a time."""
    SH_FILE = "<in>"           # interactive shell filename
    AUTO_SAVE_FILE = ".gr"

    def __init__(self, error_handler, options=None, out=None):
        self.error_handler = error_handler
        self.options = options if options is not None else Options()
        self.out = out if out is not None else sys.stdout

        extensions.init()
        self.state = self.new_state()
        self._saved_num_set = None

    def new_state(self):
        return State(out=self.out, max_depth=self.options.max_depth)

    def _color(self, text, color):
        if self.options.no_color:
            return text
        return colored(text, color)

    def eval_one(self, what, line_mode=None):
        """Runs what. Returns (continuation needed, error messages, formatted source). Raises ParseErrors. Input is
        parsed in line mode unless options.all is set.
        """
        if line_mode is None:
            line_mode = not self.options.all
        parser = Parser(Lexer(what, line_mode))
        program = parser.parse_program()
        if line_mode and parser.continuation_needed:
            return True, [], what
        if parser.errors:
            raise ParseErrors(parser.errors)

        formatted = program.format(self.options.compact)
        if self.options.format_only:
            self.out.write(formatted + "\n" if self.options.compact else formatted)
            return False, [], formatted
        if self.options.show_parse:
            self.out.write("== Parse ==> " + formatted + ("\n" if self.options.compact else ""))
        if self.options.parse_debug:
            self.out.write(program.display() + "\n")

        self.state.define_macros(program)
        if self.state.macro_env.store:
            program = self.state.expand_macros(program)
            if self.options.show_parse:
                self.out.write("== Macro ==> " + program.format(self.options.compact)
                               + ("\n" if self.options.compact else ""))

        if self.options.max_duration:
            self.state.context = Context(self.options.max_duration)
        result = self.state.eval(program)

        errors = []
        if isinstance(result, Error):
            errors.append(result.inspect())
        if self.options.show_eval and (self.options.nil_and_err or result.type not in (ObjectType.NIL,
                                                                                         ObjectType.ERROR)):
            self.out.write(self._color(result.inspect(), "red" if errors else "green") + "\n")
        return False, errors, formatted

    def run_string(self, what, name="<e>"):
        """Runs what as a complete program. A failure raises a GenericException."""
        self.error_handler.register_file(name)
        __, errors, __ = self.eval_one(what)
        if errors:
            raise GenericException("{}", errors[0], diagnosis=False)

    def run_file(self, path):
        """Runs the program in path ('-' is standard input)."""
        logger.debug("running %s", path)
        try:
            if path == "-":
                what = sys.stdin.read()
            else:
                with open(path, "r") as file:
                    what = file.read()
        except OSError:
            raise GenericException("'{}' could not be opened", path, diagnosis=False)
        self.run_string(what, path)

    def auto_load(self):
        """Evaluates the bindings saved by a previous session, if any."""
        if not os.path.exists(Session.AUTO_SAVE_FILE):
            return
        try:
            with open(Session.AUTO_SAVE_FILE, "r") as file:
                what = file.read()
        except OSError:
            raise GenericException("'{}' could not be opened", Session.AUTO_SAVE_FILE, diagnosis=False)
        result = self.state.eval_string(what)
        if isinstance(result, Error):
            self.error_handler.warn("loading '{}': {}", [Session.AUTO_SAVE_FILE, result.inspect()], diagnosis=False)
        self._saved_num_set = self.state.root_env.num_set
        logger.info("loaded %s", Session.AUTO_SAVE_FILE)

    def auto_save(self):
        """Saves the global bindings, unless nothing changed since the last load or save."""
        root = self.state.root_env
        if root.num_set == self._saved_num_set or root.num_set == 0:
            return
        tmp = Session.AUTO_SAVE_FILE + ".new"
        try:
            with open(tmp, "w") as file:
                count = root.save_globals(file, self.options.max_value_len)
            os.replace(tmp, Session.AUTO_SAVE_FILE)
        except OSError:
            raise GenericException("'{}' could not be saved", Session.AUTO_SAVE_FILE, diagnosis=False)
        self._saved_num_set = root.num_set
        logger.info("saved %d value(s) to %s", count, Session.AUTO_SAVE_FILE)

    def info(self):
        """Describes the language and the current session: keywords, builtins, extensions and global ids."""
        lines = ["keywords: " + " ".join(sorted(KEYWORDS)),
                 "builtins: " + " ".join(sorted(BUILTINS)),
                 "extensions:"]
        for name, ext in sorted(registry.extra_functions().items()):
            lines.append("  " + ext.inspect())
        lines.append("ids: " + " ".join(sorted(self.state.root_env.store)))
        return "\n".join(lines)


def eval_string(what, options=None):
    """Evaluates what in a new session and returns (output, error messages, formatted source). Output includes the
    printed result and log() lines.
    """
    if options is None:
        options = Options(no_color=True)
    out = io.StringIO()
    sess = Session(ErrorHandler(fatal=False, out=out), options, out=out)
    sess.state.no_log = True
    sess.state.log_out = out
    try:
        __, errors, formatted = sess.eval_one(what)
    except ParseErrors as e:
        return out.getvalue(), e.errors, ""
    return out.getvalue(), errors, formatted
