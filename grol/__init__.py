"""grol: a small dynamically-typed expression language with macros and memoized functions."""
