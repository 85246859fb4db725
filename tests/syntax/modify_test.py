import unittest

from grol.syntax import ast
from grol.syntax.modify import modify
from grol.syntax.parser import parse
from grol.syntax.token import TokenType, intern

def one_into_two(node):
    if isinstance(node, ast.IntegerLiteral) and node.val == 1:
        return ast.IntegerLiteral(intern(TokenType.INT, "2"), 2), True
    return node, True

def keep(node):
    return node, True

class ModifyTestCase(unittest.TestCase):

    def test_modify(self):
        cases = {
            "1": "2",
            "1 + 2": "2+2",
            "-1": "-2",
            "[1, 1]": "[2,2]",
            "{1: 1}": "{2:2}",
            "f(1)[1]": "f(2)[2]",
            "len(1)": "len(2)",
            "func(a) {1}": "func(a){2}",
            "macro(a) {1}": "macro(a){2}",
            "if 1 {1} else {1}": "if 2{2}else{2}",
            "for 1 {1}": "for 2{2}",
            "func() {return 1}": "func(){return 2}",
            "x = 1; y = 3": "x=2;y=3",
        }
        for case, result in cases.items():
            program, __ = parse(case)
            modified, ok = modify(program, one_into_two)
            self.assertTrue(ok, case)
            self.assertEqual(result, str(modified), case)
            self.assertEqual(str(parse(case)[0]), str(program), case)  # source untouched

    def test_clone(self):
        program, __ = parse("x = [a, {b: c}]")
        modified, ok = modify(program, keep)
        self.assertTrue(ok)
        self.assertEqual(str(program), str(modified))

        original = [program]
        copied = [modified]
        while original:
            node, clone = original.pop(), copied.pop()
            self.assertIsNot(node, clone, str(node))
            original.extend(node.children())
            copied.extend(clone.children())

    def test_veto(self):
        seen = []

        def stop_at_b(node):
            seen.append(str(node))
            if isinstance(node, ast.Identifier) and node.value() == "b":
                return node, False
            return node, True

        program, __ = parse("a + b; c")
        __, ok = modify(program, stop_at_b)
        self.assertFalse(ok)
        self.assertEqual(["a", "b"], seen)
        self.assertEqual("a+b;c", str(program))


if __name__ == '__main__':
    unittest.main()
