"""
Embedding example: run a program against host builtins and print its globals.

Run with:
    python examples/embed.py
"""

import sys

from starhost import BuiltinRegistry, Param, Session

PROGRAM = """
code_id = store_code("sg721_base.wasm", "sg721_base")
print(code_id)
print(greeting + ", world")
print(repeat("one"))
print(repeat("mur", 2))
squares = [x*x for x in range(10)]
"""


def build_registry():
    registry = BuiltinRegistry()
    registry.register("greeting", "hello")

    # repeat(s, n=1) behaves like the 'string * int' operation.
    @registry.builtin("repeat", Param("s", str), Param("n?", int, 1))
    def repeat(ctx, s, n):
        return s * n

    @registry.builtin("store_code", Param("wasm", str), Param("label?", str, "c"))
    def store_code(ctx, wasm, label):
        """Pretend to upload a contract and return its code id."""
        return 2

    return registry


def main():
    environment = build_registry().build()
    result = Session("apparent/filename.star").run(environment, PROGRAM)
    if not result.success:
        print(result.error.backtrace(), file=sys.stderr)
        return 1

    print("\nGlobals:")
    for name, value in result.globals.items():
        print(f"{name} ({value.type_name}) = {value.display_string()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
