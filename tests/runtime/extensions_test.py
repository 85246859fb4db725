import io
import unittest

from grol.lang.error import GenericException
from grol.runtime import extensions, registry
from grol.runtime.evaluator import State
from grol.runtime.extensions import sprintf
from grol.runtime.object import NULL, TRUE, Array, Extension, Float, Function, Integer, ObjectType, String

def setUpModule():
    extensions.init()

def run(code, stdin=""):
    state = State(out=io.StringIO(), log_out=io.StringIO())
    state.no_log = True
    state.stdin = io.StringIO(stdin)
    return state, state.eval_string(code)

class ExtensionsTestCase(unittest.TestCase):

    def check(self, cases):
        for case, result in cases.items():
            __, value = run(case)
            self.assertEqual(result, value.inspect(), case)

    def test_math(self):
        self.check({
            "sqrt(16)": "4.0",
            "sqrt(-1)": "NaN",
            "pow(2, 10)": "1024.0",
            "pow(0, -1)": "Inf",
            "sin(0)": "0.0",
            "ln(0)": "-Inf",
            "exp(1000)": "Inf",
            "floor(2.7)": "2.0",
            "ceil(2.1)": "3.0",
            "trunc(-2.7)": "-2.0",
            "round(2.5)": "3",
            "round(-2.5)": "-3",
            "round(2.4)": "2",
            "round(Inf)": "<err: round: Inf out of range>",
            "atan2(1, 1) == PI / 4": "true",
            "abs(-3)": "3",
            "abs(2.5)": "2.5",
            "log2(1)": "0.0",
            "NaN == NaN": "false",
            "-Inf < 0": "true",
            "rand(0)": "<err: rand: argument must be positive, got 0>",
            "r = rand(10); if r >= 0 {r < 10} else {false}": "true",
            "type(rand())": "\"FLOAT\"",
        })

    def test_arguments(self):
        self.check({
            "sqrt(\"x\")": "<err: wrong type of argument got=STRING, want sqrt(float) // [math] sqrt of x>",
            "sqrt()": "<err: wrong number of arguments got=0, want sqrt(float) // [math] sqrt of x>",
            "keys(1, 2)": "<err: wrong number of arguments got=2, want keys(map) // [introspection] "
                          "keys of the map, in order>",
            "f = func() {sqrt(true)}; f()": "<err: wrong type of argument got=BOOLEAN, want sqrt(float) "
                                            "// [math] sqrt of x in f>",
        })

    def test_introspection(self):
        self.check({
            "type(1)": "\"INTEGER\"",
            "type(func() {})": "\"FUNC\"",
            "type(sqrt)": "\"EXTENSION\"",
            "int(3.9)": "3",
            "int(-3.9)": "-3",
            "int(\"0x10\")": "16",
            "int(\" 42 \")": "42",
            "int(true)": "1",
            "int(\"x\")": "<err: int: can't parse \"x\">",
            "int(nil)": "<err: int: not supported on NIL>",
            "keys({\"b\": 1, \"a\": 2})": "[\"b\",\"a\"]",
            "eval(\"1 + 2\")": "3",
            "x = 2; eval(\"x * 3\")": "6",
            "str(42)": "\"42\"",
            "str(1.5)": "\"1.5\"",
        })

    def test_sprintf(self):
        cases = [
            ("%d", [Integer(42)], "42"),
            ("%5.2f|%-4d|", [Float(3.14159), Integer(7)], " 3.14|7   |"),
            ("%x %X %o %b", [Integer(255)] * 4, "ff FF 377 11111111"),
            ("%v %v %v", [String("s"), Array([Integer(1)]), NULL], "s [1] nil"),
            ("%q %t", [String("a"), TRUE], "\"a\" true"),
            ("%e %g", [Float(1234.5), Float(0.5)], "1.234500e+03 0.5"),
            ("100%%", [], "100%"),
            ("%d", [String("x")], "%!d(STRING=\"x\")"),
            ("%d %d", [Integer(1)], "1 %!d(MISSING)"),
            ("%d", [Integer(1), Integer(2)], "1%!(EXTRA 2)"),
        ]
        for fmt, args, result in cases:
            self.assertEqual(result, sprintf(fmt, args), fmt)

    def test_output(self):
        state, result = run("puts(\"a\", 1)")
        self.assertIs(NULL, result)
        self.assertEqual("a 1\n", state.out.getvalue())

        state, __ = run("printf(\"%d-%s\\n\", 1, \"b\")")
        self.assertEqual("1-b\n", state.out.getvalue())

        state, result = run("a = read(); b = read(); [a, b, eof()]", stdin="line1\n")
        self.assertEqual("[\"line1\",nil,true]", result.inspect())

        state, __ = run("f = func() {print(\"x\"); flush(); print(\"y\")}; f(); f()")
        self.assertEqual("xyxy", state.out.getvalue())
        self.assertEqual(0, len(state.cache))

    def test_registry(self):
        extensions.init()  # idempotent
        functions = registry.extra_functions()
        self.assertTrue(registry.is_registered("sqrt"))
        self.assertFalse(registry.is_registered("exec"))
        self.assertEqual("pow(float, float) // [math] base raised to the power of exponent", functions["pow"].inspect())
        self.assertTrue(functions["flush"].dont_cache)

        with self.assertRaises(TypeError):
            functions["sqrt"] = None
        self.assertRaises(GenericException, registry.create_function, functions["sqrt"])
        self.assertRaises(GenericException, registry.create_function, "sqrt")
        self.assertRaises(GenericException, registry.create_function,
                          Extension("grol_test_bad", lambda state, name, args: NULL, 2, 1))

        identifiers = registry.initial_identifiers()
        for name in extensions.GROL_DEFINED:
            self.assertIsInstance(identifiers[name], Function, name)
            self.assertEqual(name, identifiers[name].name, name)
        self.assertEqual(ObjectType.FLOAT, identifiers["PI"].type)

    def test_client_data(self):
        if not registry.is_registered("grol_test_echo"):
            registry.create_function(Extension("grol_test_echo", lambda data, name, args: String(data + name),
                                               0, 0, client_data="hi:"))
        self.check({"grol_test_echo()": "\"hi:grol_test_echo\""})


if __name__ == '__main__':
    unittest.main()
