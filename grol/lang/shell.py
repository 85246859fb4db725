"""Handles interactive mode for the grol interpreter. Uses cmd as backend."""

import cmd


class Shell(cmd.Cmd):
    """grol interactive shell."""
    intro = "grol :: Python backend\nType 'help' for more information, 'info' for the available functions."
    prompt = "$ "
    secondary_prompt = "> "  # used for line continuations
    _tmp_prompt = "$ "       # also used for prompt swapping in line continuations

    def __init__(self, sess, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.sess = sess
        self.sess.options.nil_and_err = True
        self.sess.options.all = False

        self._tmp_line = ""
        self.line_num = 0

    def preloop(self):
        if self.sess.options.auto_load:
            with self.sess.error_handler:
                self.sess.auto_load()

    def onecmd(self, line):
        """Runs a shell command only for a line that is just the command word: 'info = 3' or 'help(x)' is grol code."""
        if line == "EOF" or (not self._tmp_line and line.strip() in ("", "help", "info", "exit")):
            return super().onecmd(line)
        return self.default(line)  # continuation lines are always code

    def default(self, line):
        """Evaluates grol code, asking for more lines while the input is incomplete."""
        with self.sess.error_handler:  # cmd.Cmd would end the loop on any exception
            self.line_num += 1
            what = self._tmp_line + line
            self.sess.error_handler.register_line(self.sess.SH_FILE, line, self.line_num)
            try:
                continuation, __, __ = self.sess.eval_one(what)
            except BaseException:
                self._reset_line()
                raise

            if continuation:
                self._tmp_line = what + "\n"
                self.prompt = self.secondary_prompt
            else:
                self._reset_line()
            self.sess.error_handler.remove_line(self.sess.SH_FILE)

    def _reset_line(self):
        self._tmp_line = ""
        self.prompt = self._tmp_prompt

    def do_help(self, arg):
        """Prints a short introduction to the language and the shell commands."""
        print("Welcome to the grol interpreter!\n\n"
              "grol is a small expression language with functions, closures, arrays, maps and macros. Every line \n"
              "is an expression; incomplete input (an open brace, string or comment) continues on the next line.\n\n"
              "Try it out by typing 'fact = func(n) {if n <= 1 {1} else {n * fact(n - 1)}}'. Then 'fact(5)' \n"
              "gives 120, computed once: function results are memoized.\n\n"
              "Commands: 'info' lists keywords, builtins, extensions and identifiers; 'exit' or EOF quits.",
              file=self.stdout)

    def do_info(self, arg):
        """Lists keywords, builtins, extensions and global identifiers."""
        print(self.sess.info(), file=self.stdout)

    def emptyline(self):
        """Do not repeat previous command on empty line."""
        return ""

    def do_EOF(self, arg):
        """End of input (Ctrl-D): same as exit."""
        print(file=self.stdout)
        return self.do_exit(arg)

    def do_exit(self, arg):
        """Exits interpreter, saving the global bindings if enabled."""
        if self.sess.options.auto_save:
            with self.sess.error_handler:
                self.sess.auto_save()
        return True
