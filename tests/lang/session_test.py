import io
import os
import tempfile
import unittest

from grol.lang.error import ErrorHandler, GenericException, ParseErrors
from grol.lang.session import Options, Session, eval_string

def new_session(**options):
    out = io.StringIO()
    options.setdefault("no_color", True)
    return Session(ErrorHandler(fatal=False, out=out), Options(**options), out=out), out

class SessionTestCase(unittest.TestCase):

    def test_eval_string(self):
        cases = {
            "1 + 2": ("3\n", [], "1 + 2\n"),
            "x = 1;x+1": ("2\n", [], "x = 1\nx + 1\n"),
            "println(\"a\"); nil": ("a\n", [], "println(\"a\")\nnil\n"),
            "log(\"hi\", 1); 5": ("hi 1\n5\n", [], "log(\"hi\", 1)\n5\n"),
            "1 / 0": ("", ["<err: division by zero>"], "1 / 0\n"),
            "\"a\"": ("\"a\"\n", [], "\"a\"\n"),
        }
        for case, result in cases.items():
            self.assertEqual(result, eval_string(case), case)

        output, errors, formatted = eval_string("x = ")
        self.assertEqual(("", ""), (output, formatted))
        self.assertEqual(1, len(errors))
        self.assertTrue(errors[0].startswith("1: no prefix parse function for `EOF` found"))

    def test_options(self):
        cases = [
            ({"format_only": True}, "x=1;y=2", "x = 1\ny = 2\n"),
            ({"format_only": True, "compact": True}, "x = 1\ny = 2", "x=1;y=2\n"),
            ({"show_parse": True}, "1+2", "== Parse ==> 1 + 2\n3\n"),
            ({"show_parse": True, "compact": True}, "m = macro(x) {quote(unquote(x) * 2)}; m(3)",
             "== Parse ==> m=macro(x){quote(unquote(x)*2)};m(3)\n== Macro ==> 3*2\n6\n"),
            ({"nil_and_err": True}, "1 / 0", "<err: division by zero>\n"),
            ({"nil_and_err": True}, "nil", "nil\n"),
            ({"show_eval": False}, "println(1); 2", "1\n"),
            ({"max_duration": 0.05}, "for true {}", ""),
        ]
        for options, case, result in cases:
            output, __, __ = eval_string(case, Options(no_color=True, **options))
            self.assertEqual(result, output, case)

        output, __, __ = eval_string("1", Options(no_color=True, parse_debug=True))
        self.assertIn("Statements(expr='1', nodes=[", output)

        __, errors, __ = eval_string("for true {}", Options(no_color=True, max_duration=0.05))
        self.assertEqual(["<err: context deadline exceeded>"], errors)

        self.assertRaises(TypeError, Options, colour=False)

    def test_eval_one(self):
        sess, out = new_session(all=False)
        self.assertEqual((True, [], "f = func(x) {"), sess.eval_one("f = func(x) {"))
        continuation, errors, __ = sess.eval_one("f = func(x) {\nx * 2}")
        self.assertFalse(continuation)
        self.assertEqual([], errors)
        sess.eval_one("f(21)")
        self.assertEqual("func f(x){x*2}\n42\n", out.getvalue())

        self.assertRaises(ParseErrors, sess.eval_one, "x = )")

    def test_run_string(self):
        sess, out = new_session()
        sess.run_string("x = 20")
        sess.run_string("x + 1")
        self.assertEqual("20\n21\n", out.getvalue())

        self.assertRaises(GenericException, sess.run_string, "1 / 0")
        self.assertRaises(ParseErrors, sess.run_string, "1 +")

    def test_run_file(self):
        sess, out = new_session()
        with tempfile.NamedTemporaryFile("w", suffix=".gr", delete=False) as file:
            file.write("greet = func(who) {println(\"hello\", who)}\ngreet(\"file\")\n")
        self.addCleanup(os.remove, file.name)
        sess.run_file(file.name)
        self.assertEqual("hello file\n", out.getvalue())
        self.assertIn(file.name, sess.error_handler.traceback)

        with self.assertRaises(GenericException) as cm:
            sess.run_file(file.name + ".missing")
        self.assertIn("could not be opened", cm.exception.msg)

    def test_auto_save(self):
        cwd = os.getcwd()
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.addCleanup(os.chdir, cwd)
        os.chdir(tmp.name)

        sess, __ = new_session()
        sess.auto_load()  # nothing saved yet
        sess.auto_save()  # nothing set yet
        self.assertFalse(os.path.exists(Session.AUTO_SAVE_FILE))

        sess.run_string("x = 42; func inc(a) {a + 1}; n = nil; 1")
        sess.auto_save()
        with open(Session.AUTO_SAVE_FILE) as file:
            self.assertEqual("x=42\nfunc inc(a){a+1}\n", file.read())
        self.assertFalse(os.path.exists(Session.AUTO_SAVE_FILE + ".new"))

        sess, out = new_session()
        sess.auto_load()
        sess.run_string("inc(x)")
        self.assertEqual("43\n", out.getvalue())

        os.remove(Session.AUTO_SAVE_FILE)
        sess.auto_save()  # unchanged since load
        self.assertFalse(os.path.exists(Session.AUTO_SAVE_FILE))

    def test_info(self):
        sess, __ = new_session()
        sess.run_string("myvar = 1")
        info = sess.info()
        for expected in ("keywords: break continue else", "builtins: error first len", "sqrt(float) // [math]",
                         "myvar", "printf"):
            self.assertIn(expected, info, expected)


if __name__ == '__main__':
    unittest.main()
