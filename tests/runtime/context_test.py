import io
import threading
import time
import unittest

from grol.runtime.context import CANCELLED, DEADLINE_EXCEEDED, Context
from grol.runtime.evaluator import State
from grol.runtime.object import Error

class ContextTestCase(unittest.TestCase):

    def test_err(self):
        ctx = Context()
        self.assertIsNone(ctx.err())
        ctx.cancel()
        self.assertEqual(CANCELLED, ctx.err())

        ctx = Context(timeout=0.001)
        time.sleep(0.01)
        self.assertEqual(DEADLINE_EXCEEDED, ctx.err())
        self.assertIsNone(Context(timeout=60).err())

    def test_cancel_loop(self):
        ctx = Context()
        state = State(out=io.StringIO(), context=ctx)
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        try:
            result = state.eval_string("for true {}")
        finally:
            timer.cancel()
        self.assertIsInstance(result, Error)
        self.assertEqual(CANCELLED, result.value)

    def test_deadline(self):
        state = State(out=io.StringIO(), context=Context(timeout=0.05))
        result = state.eval_string("x = 0; for true {x++}")
        self.assertIsInstance(result, Error)
        self.assertEqual(DEADLINE_EXCEEDED, result.value)

        state = State(out=io.StringIO(), context=Context(timeout=0.05))
        result = state.eval_string("f = func(n) {for true {}}; f(1)")
        self.assertEqual("<err: context deadline exceeded in f>", result.inspect())


if __name__ == '__main__':
    unittest.main()
