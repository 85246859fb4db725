"""Command line entry point of the grol interpreter: runs files or a string given with -e, reformats them, or starts
the interactive shell. Runs everything under a fatal ErrorHandler, so the first error exits with status 1.
"""

import argparse
import logging
import sys

from grol.lang.error import ErrorHandler
from grol.lang.session import Options, Session
from grol.lang.shell import Shell
from grol.runtime.evaluator import DEFAULT_MAX_DEPTH


def build_parser():
    parser = argparse.ArgumentParser(prog="grol", description="grol interpreter")
    parser.add_argument("files", help="files to run ('-' for standard input); the shell starts when none is given",
                        nargs="*")
    parser.add_argument("-e", dest="code", metavar="CODE", help="evaluates CODE and prints its result")
    parser.add_argument("-format", action="store_true", help="only formats the input")
    parser.add_argument("-compact", "-c", action="store_true", help="compact format (single line)")
    parser.add_argument("-parse", action="store_true", help="shows the formatted parse (and macro expansion)")
    parser.add_argument("-parse-debug", action="store_true", help="shows the parse tree")
    parser.add_argument("-no-auto", action="store_true", help="don't load/save the shell bindings in .gr")
    parser.add_argument("-max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="maximum call depth")
    parser.add_argument("-max-duration", type=float, default=0, help="maximum seconds per evaluation, 0 is unlimited")
    parser.add_argument("-shared-state", action="store_true", help="files share their bindings")
    parser.add_argument("-debug", action="store_true", help="debug logging")
    return parser


def main(argv=None):
    """Runs grol interpreter. Returns the exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="[%(levelname)s] %(message)s")

    with ErrorHandler() as error_handler:
        options = Options(show_parse=args.parse, parse_debug=args.parse_debug, format_only=args.format,
                          compact=args.compact, max_depth=args.max_depth, max_duration=args.max_duration)

        if args.code is not None:
            Session(error_handler, options).run_string(args.code)

        elif args.files:
            sess = Session(error_handler, options)
            for path in args.files:
                if not args.shared_state:
                    sess.state = sess.new_state()
                sess.run_file(path)

        else:
            options.auto_load = options.auto_save = not args.no_auto
            error_handler.fatal = False
            Shell(Session(error_handler, options)).cmdloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
