"""Ex scripting language — public API."""

from __future__ import annotations

import logging
from typing import IO

from .ast import Block
from .emit import to_source
from .parse import ParseError as ParseError, Parser
from .runtime import (
    DEFAULT_MAX_DEPTH,
    ExError as ExError,
    Interpreter as Interpreter,
    Value,
)
from .stdlib import default_functions, default_methods
from .tokens import TokenizeError as TokenizeError, tokenize as tokenize

logging.getLogger(__name__).addHandler(logging.NullHandler())


def parse(source: str) -> Block:
    """Parse Ex source code into a program Block."""
    return Parser(tokenize(source)).parse_program()


def run(
    source: str,
    *,
    stdout: IO[str] | None = None,
    stdin: IO[str] | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Value | None:
    """Parse and run Ex source with the default std library.

    Returns the value left on top of the value channel, or None.
    """
    program = parse(source)
    interp = Interpreter(
        default_functions(stdout, stdin), default_methods(), max_depth=max_depth
    )
    return interp.run(program)


def emit(program: Block) -> str:
    """Emit a program Block back to Ex source text."""
    return to_source(program)
