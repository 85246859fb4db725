import io
import unittest

from grol.runtime import extensions
from grol.runtime.evaluator import State
from grol.runtime.object import Error

def setUpModule():
    extensions.init()

def run(code, **kwargs):
    """Evaluates code in a new state. Returns (state, result)."""
    state = State(out=io.StringIO(), log_out=io.StringIO(), **kwargs)
    state.no_log = True
    return state, state.eval_string(code)

class EvaluatorTestCase(unittest.TestCase):

    def check(self, cases):
        for case, result in cases.items():
            __, value = run(case)
            self.assertEqual(result, value.inspect(), case)

    def test_scenarios(self):
        self.check({
            "5 + 5 + 5 + 5 - 10": "10",
            "fact = func(n){ if n<=1 {1} else {n*fact(n-1)} }; fact(5)": "120",
            "newAdder = func(x){ func(y){ x+y } }; addTwo=newAdder(2); addTwo(2)": "4",
            "unless = macro(c,a,b){ quote(if !(unquote(c)) { unquote(a) } else { unquote(b) }) }; "
            "unless(10>5, \"no\", \"yes\")": "\"yes\"",
            "m = {\"one\":1, \"two\":2}; m[\"two\"] + m[\"one\"]": "3",
            "f = func(n){ if n<2 {return 1}; n*f(n-1) }; f(50.0)": "3.0414093201713376e64",
        })

    def test_arithmetic(self):
        self.check({
            "7 / 2": "3",
            "-7 / 2": "-3",
            "-7 % 3": "-1",
            "7 % -3": "1",
            "7.0 / 2": "3.5",
            "7.5 % 2": "1.5",
            "1 + 2.5": "3.5",
            "1.0 / 0": "Inf",
            "-1.0 / 0": "-Inf",
            "0.0 / 0": "NaN",
            "1 / 0": "<err: division by zero>",
            "9223372036854775807 + 1": "-9223372036854775808",
            "99999999999999999999": "1e20",
            "0x10 + 0b11": "19",
            "2 > 1.5": "true",
            "1 == 1.0": "true",
            "1 != 2.5": "true",
        })

    def test_values(self):
        self.check({
            "\"a\" + \"b\"": "\"ab\"",
            "[1] + [2, 3]": "[1,2,3]",
            "{1: 2} + {3: 4, 1: 5}": "{1:5,3:4}",
            "\"ab\" == \"a\" + \"b\"": "true",
            "[1, [2]] == [1, [2]]": "true",
            "{\"a\": 1} == {\"a\": 1.0}": "true",
            "nil == nil": "true",
            "1 == \"1\"": "false",
            "f = func() {1}; g = func() {1}; [f == f, f == g]": "[true,false]",
            "{1: \"i\", 1.0: \"f\"}": "{1:\"i\",1.0:\"f\"}",
            "m = {\"one\": 1, 2: \"two\", true: 3.5, [1]: 4}; [m[\"one\"], m[2], m[true], m[[1]]]":
                "[1,\"two\",3.5,4]",
        })

    def test_errors(self):
        self.check({
            "foobar": "<err: identifier not found: foobar>",
            "-true": "<err: minus of true>",
            "!5": "<err: not of 5>",
            "1 + \"a\"": "<err: type mismatch: INTEGER PLUS STRING>",
            "true + false": "<err: unknown operator: BOOLEAN PLUS BOOLEAN>",
            "\"Hello\" - \"World\"": "<err: unknown operator: STRING MINUS STRING>",
            "5; true + false; 5": "<err: unknown operator: BOOLEAN PLUS BOOLEAN>",
            "5(1)": "<err: not a function: INTEGER:5>",
            "error(\"bad\", 1)": "<err: bad 1>",
            "f = func() {error(\"boom\")}; g = func() {f()}; g()": "<err: boom, stack below:>\nf\ng",
            "f = func() {x}; f()": "<err: identifier not found: x in f>",
        })

    def test_conditionals(self):
        self.check({
            "if true {1} else {2}": "1",
            "if false {1}": "nil",
            "if 1 > 2 {1} else if 2 > 1 {2} else {3}": "2",
            "if 1 {2}": "<err: condition is not a boolean: 1>",
            "for 1 {2}": "<err: for condition is not a boolean: 1>",
            "if 10 > 1 { if 10 > 1 { return 10 }; return 1 }": "10",
        })

    def test_loops(self):
        self.check({
            "i = 0; for i < 3 {i++}": "2",
            "x = 0; s = 0; for x < 10 {x++; if x % 2 == 0 {continue}; if x > 7 {break}; s = s + x}; s": "16",
            "f = func() {for true {return 7}}; f()": "7",
            "break": "<err: unexpected control type break outside of for loops>",
            "f = func() {continue}; f()": "<err: unexpected control type continue outside of for loops>",
        })

    def test_bindings(self):
        self.check({
            "x = 3 + 2; x": "5",
            "a = b = 2; a + b": "4",
            "x = 1; f = func() {x = 2; x}; [f(), x]": "[2,1]",
            "x = 1; f = func() {x}; a = f(); x = 2; [a, f()]": "[1,2]",
            "x = 5; y = x++; [x, y]": "[6,5]",
            "f = 1.5; f--; f": "0.5",
            "s = \"a\"; s++": "<err: can't ++ STRING>",
            "MAX = 3; MAX = 3; MAX": "3",
            "MAX = 3; MAX = 4": "<err: attempt to change constant MAX from 3 to 4>",
            "MAX = 3; f = func() {MAX = 4}; f()": "<err: attempt to change constant MAX from 3 to 4 in f>",
            "PI = 3": "<err: attempt to change constant PI from 3.141592653589793 to 3>",
            "a = [1, 2]; b = a; a[0] = 9; [a, b]": "[[9,2],[1,2]]",
            "m = {}; m[\"k\"] = 1; m[\"k\"] = 2; m": "{\"k\":2}",
            "a = [1]; a[5] = 1": "<err: index out of range: 5>",
        })

    def test_functions(self):
        self.check({
            "func(x) { x + 2; }": "func(x){x+2}",
            "f = func(x) {x}; f": "func f(x){x}",
            "identity = func(x) { return x; }; identity(5)": "5",
            "func(x) { x; }(5)": "5",
            "add = func(x, y) { x + y }; add(5 + 5, add(5, 5))": "20",
            "func g(x) {x * 2}; g(4)": "8",
            "func(n) {if n <= 1 {1} else {n * self(n - 1)}}(5)": "120",
            "fib = func(n) {if n < 2 {return n}; fib(n - 1) + fib(n - 2)}; fib(50)": "12586269025",
            "f = func(a, ..) {x = ..; [a, len(x)]}; f(1, 2, 3)": "[1,2]",
            "sum = func(a, b, c) {a + b + c}; g = func(..) {sum(..)}; g(1, 2, 3)": "6",
            "mk = func(x) {func(y) {x + y}}; a = mk(1); b = mk(2); [a(1), b(1)]": "[2,3]",
            "f = func(a, b) {a}; f(1)": "<err: wrong number of arguments for f. got=1, want=2>",
            "f = func(a, b) {a}; f(1, 2, 3)": "<err: wrong number of arguments for f. got=3, want=2>",
            "f = func(a, ..) {a}; f()": "<err: wrong number of arguments for f. got=0, want at least=1>",
        })

    def test_index(self):
        self.check({
            "[1, 2, 3][1]": "2",
            "[1, 2, 3][3]": "nil",
            "[1][-1]": "nil",
            "{\"a\": 1}[\"b\"]": "nil",
            "\"abc\"[1]": "\"b\"",
            "{\"a\": 1}[nil]": "<err: NIL not usable as map key>",
            "{nil: 1}": "<err: NIL not usable as map key>",
            "1[0]": "<err: index operator not supported: INTEGER[INTEGER]>",
        })

    def test_builtins(self):
        self.check({
            "len(\"héllo\")": "5",
            "len([1, 2])": "2",
            "len({1: 2})": "1",
            "len(nil)": "0",
            "len(1)": "<err: len: not supported on INTEGER>",
            "len(1, 2)": "<err: len: wrong number of arguments. got=2, want=1>",
            "first([1, 2])": "1",
            "first([])": "nil",
            "rest([1, 2, 3])": "[2,3]",
            "rest([])": "nil",
            "first(\"ab\")": "\"a\"",
            "rest(\"ab\")": "\"b\"",
        })

    def test_quote(self):
        self.check({
            "quote(1 + 2)": "quote(1 + 2)",
            "x = 3; quote(unquote(x) + 1)": "quote(3 + 1)",
            "quote(unquote(-2))": "quote(-2)",
            "quote(unquote(1.5 * -2))": "quote(-3.0)",
            "quote(unquote(\"s\"))": "quote(\"s\")",
            "quote(unquote(true))": "quote(true)",
            "quote(unquote([1]))": "quote(nil)",
            "q = quote(a); quote(unquote(q) + 1)": "quote(a + 1)",
            "unquote(1)": "<err: unquote: only valid inside quote()>",
            "quote(1, 2)": "<err: quote: wrong number of arguments. got=2, want=1>",
        })

    def test_output(self):
        state, __ = run("print(\"a\", 1); println(\"b\", [1, \"c\"])")
        self.assertEqual("a 1b [1,\"c\"]\n", state.out.getvalue())

        state, __ = run("log(\"x\", 2)")
        self.assertEqual("x 2\n", state.log_out.getvalue())

        state = State(out=io.StringIO())
        with self.assertLogs("grol.script", level="INFO") as logs:
            state.eval_string("log(\"to logger\")")
        self.assertEqual(["INFO:grol.script:to logger"], logs.output)

    def test_memo(self):
        state, __ = run("f = func(x) {x * 2}; f(1); f(1)")
        self.assertEqual(1, state.cache.hits)

        state, __ = run("f = func(x) {println(\"called\", x); x * 2}; f(1); f(1)")
        self.assertEqual(1, state.cache.hits)
        self.assertEqual("called 1\ncalled 1\n", state.out.getvalue())

        state, __ = run("g = func(x) {rand(); x}; h = func(x) {g(x)}; h(1); h(1)")
        self.assertEqual(0, state.cache.hits)
        self.assertEqual(0, len(state.cache))

        state, __ = run("f = func(a) {len(a)}; f([0, 0, 0, 0, 0, 0, 0, 0, 0]); f([0, 0, 0, 0, 0, 0, 0, 0, 0])")
        self.assertEqual(0, len(state.cache))

        state, __ = run("f = func(x) {log(\"side\", x); x}; f(1); f(1)")
        self.assertEqual("side 1\nside 1\n", state.log_out.getvalue())
        self.assertEqual(0, state.cache.hits)

    def test_memo_free_names(self):
        cases = {
            "f = func(x) {x * 2}; f(1); y = 2; f(1)": (1, 1),
            "fib = func(n) {if n < 2 {n} else {fib(n - 1) + fib(n - 2)}}; "
            "i = 0; for i < 3 {fib(10); i++}": (11, 8 + 2),
            "k = 1; f = func(x) {x + k}; f(1); k = 2; f(1)": (2, 0),
            "k = [1]; f = func(x) {x + k}; f([0]); k = [2]; f([0])": (2, 0),
            "g = func(x) {x}; f = func(x) {g(x)}; f(1); g = func(x) {x + 1}; f(1)": (4, 0),
            "f = func(x) {t = x + 1; t}; t = 5; f(1); f(1)": (1, 1),
        }
        for case, (misses, hits) in cases.items():
            state, __ = run(case)
            self.assertEqual((misses, hits), (state.cache.misses, state.cache.hits), case)

        __, result = run("k = 1; f = func(x) {x + k}; a = f(1); k = 2; [a, f(1)]")
        self.assertEqual("[2,3]", result.inspect())
        __, result = run("newAdder = func(x) {func(y) {x + y}}; a2 = newAdder(2); a3 = newAdder(3); [a2(1), a3(1)]")
        self.assertEqual("[3,4]", result.inspect())

    def test_max_depth(self):
        __, result = run("f = func(n) {f(n + 1)}; f(0)", max_depth=100)
        self.assertIsInstance(result, Error)
        self.assertEqual("max depth 100 reached", result.value)
        self.assertEqual(100, len(result.stack))
        self.assertEqual(Error.MAX_STACK + 1, len(result.limited_stack()))

    def test_state(self):
        state, result = run("x = 1")
        self.assertEqual(1, result.value)
        self.assertEqual(1, state.eval_string("x").value)

        derived = state.derive(state.env.enclosed())
        self.assertEqual(1, derived.eval_string("x").value)
        derived.eval_string("y = 2")
        self.assertEqual("<err: identifier not found: y>", state.eval_string("y").inspect())

        state.reset()
        self.assertEqual("<err: identifier not found: x>", state.eval_string("x").inspect())

        run("x = 5")
        self.assertEqual("<err: identifier not found: x>", State(out=io.StringIO()).eval_string("x").inspect())
        self.assertTrue(state.eval_string("x = ").value.startswith("parse errors: 1: no prefix parse function"))


if __name__ == '__main__':
    unittest.main()
