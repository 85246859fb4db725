"""Error handling for the grol front-end. grol code reports its own errors as Error values; only GenericExceptions are
expected to reach the ErrorHandler: if another type of error makes it all the way there, it is assumed to be an
internal issue.
"""

import sys

from termcolor import colored


def bold(text, color=None):
    return colored(text, color, attrs=["bold"])


class GenericException(Exception):
    """Error or warning raised by the front-end. msg is a str.format template; its slots are filled with exprs (a str
    or a list of str) in bold. exprs[0] is the offending source text, start:end the part of it to point at.
    """

    def __init__(self, msg, exprs=None, start=0, end=-1, diagnosis=True, internal=False):
        exprs = [exprs] if isinstance(exprs, str) else list(exprs or [])
        self.msg = msg.format(*map(bold, exprs))
        self.expr = exprs[0] if exprs else ""
        self.start = start
        self.end = len(self.expr) if end == -1 else end
        self.diagnosis = diagnosis
        self.internal = internal
        super().__init__(self.msg)

    def shows_source(self):
        return self.diagnosis and not self.internal and bool(self.expr)


class ParseErrors(GenericException):
    """Batch of parser error messages for one input."""

    def __init__(self, errors):
        super().__init__("{} parse error(s):\n{}", [str(len(errors)), "\n".join(errors)], diagnosis=False)
        self.errors = errors


class ErrorHandler:
    """Context manager that reports GenericExceptions, and any unexpected Python error, as grol errors. Keeps the
    file (and, for the shell, the line) being evaluated so that reports say where the error happened.
    """
    ERROR = "red"
    WARNING = "magenta"

    # python errors that grol code can trigger, reported without a python traceback
    EXPECTED = {
        KeyboardInterrupt: "keyboard interrupt",
        RecursionError: "maximum recursion depth exceeded",
    }

    def __init__(self, fatal=True, out=None):
        self.fatal = fatal
        self.out = out
        self.errors = 0
        self.traceback = {}  # path: (line, line_num), line is None while nothing is being evaluated

    def _print(self, msg):
        print(msg, file=self.out if self.out is not None else sys.stderr)

    def register_file(self, path):
        self.traceback[path] = (None, None)

    def register_line(self, path, line, line_num):
        """Marks line line_num of path as being evaluated."""
        self.traceback[path] = (line, line_num)

    def remove_line(self, path):
        """Marks the evaluation of the current line of path as done."""
        self.register_file(path)

    def _locations(self):
        return [f"  File '{path}', line {num}:\n    {line}\n"
                for path, (line, num) in self.traceback.items() if line]

    @staticmethod
    def diagnose(error, warning=False):
        """Returns error.expr with the start:end part bolded, and a ^~~ marker under it."""
        color = ErrorHandler.WARNING if warning else ErrorHandler.ERROR
        start = error.start
        end = max(error.end, start + 1)
        expr = error.expr
        marker = "^" + "~" * (end - start - 1)
        return (f"  {expr[:start]}{bold(expr[start:end], color)}{expr[end:]}\n"
                f"  {' ' * start}{bold(marker, color)}")

    def warn(self, *args, **kwargs):
        """Prints a warning built from GenericException(*args, **kwargs). Never exits."""
        warning = GenericException(*args, **kwargs)
        self._print(bold("warning: ", ErrorHandler.WARNING) + warning.msg)
        if warning.shows_source():
            self._print(ErrorHandler.diagnose(warning, warning=True))

    def throw(self, error):
        """Reports error, a GenericException, and exits with status 1 if the handler is fatal."""
        self.errors += 1

        locations = self._locations()
        report = "".join(locations)
        if len(locations) > 1:
            report = "Traceback:\n" + report
        if error.internal:
            report += bold("[internal] ", ErrorHandler.ERROR)
        self._print(report + bold("error: ", ErrorHandler.ERROR) + error.msg)
        if error.shows_source():
            self._print(ErrorHandler.diagnose(error))

        if self.fatal:
            sys.exit(1)
        self.traceback = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Swallows reported errors. SystemExit and internal errors keep propagating."""
        if exc_type is None:
            return False
        if issubclass(exc_type, SystemExit):
            return False
        if issubclass(exc_type, GenericException):
            self.throw(exc_val)
            return True
        if exc_type in ErrorHandler.EXPECTED:
            self.throw(GenericException(ErrorHandler.EXPECTED[exc_type]))
            return True
        self.throw(GenericException("unknown error: '{}'", f"{exc_type.__name__}: {exc_val}", internal=True))
        return False
