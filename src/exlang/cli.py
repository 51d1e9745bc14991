"""Ex CLI — run .ex files, dump tokens or the normalized program, or a REPL."""

from __future__ import annotations

import logging
import sys
from typing import IO

from . import parse
from .emit import to_source
from .parse import ParseError
from .runtime import (
    DEFAULT_MAX_DEPTH,
    ExError,
    ExRuntimeFault,
    ExTypeError,
    Interpreter,
)
from .stdlib import default_functions, default_methods
from .tokens import TokenizeError, tokenize

logger = logging.getLogger(__name__)


USAGE: str = """\
exlang [OPTIONS] [FILE]

Run an Ex program. Without FILE, start an interactive session.

Options:
  --tokens           Print the token stream and exit
  --ast              Print the normalized program and exit
  --max-depth N      Maximum user function call depth (default 256)
  --verbose          Log interpreter activity to stderr
  --help             Show this help message
"""

PROMPT: str = "ex> "


def _report(e: Exception) -> str:
    if isinstance(e, TokenizeError):
        return "exlang: syntax error: " + str(e)
    if isinstance(e, ParseError):
        return "exlang: parse error: " + str(e)
    if isinstance(e, ExTypeError):
        return "exlang: type error: " + str(e)
    if isinstance(e, ExRuntimeFault):
        return "exlang: runtime error: " + str(e)
    return "exlang: error: " + str(e)


def _new_interpreter(max_depth: int) -> Interpreter:
    return Interpreter(default_functions(), default_methods(), max_depth=max_depth)


def repl(
    max_depth: int = DEFAULT_MAX_DEPTH,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
) -> int:
    """Line-at-a-time session; state persists until a line fails."""
    inp = stdin if stdin is not None else sys.stdin
    out = stdout if stdout is not None else sys.stdout
    interactive = inp.isatty()
    interp = _new_interpreter(max_depth)
    while True:
        if interactive:
            out.write(PROMPT)
            out.flush()
        line = inp.readline()
        if line == "":
            break
        text = line.rstrip("\r\n")
        if text.strip() == "exit":
            break
        if text.strip() == "":
            continue
        try:
            program = parse(text)
            result = interp.run(program)
        except (TokenizeError, ParseError, ExError) as e:
            print(_report(e), file=sys.stderr)
            logger.debug("discarding interpreter state after error")
            interp = _new_interpreter(max_depth)
            continue
        if result is not None:
            out.write(result.to_string() + "\n")
        interp.values.clear()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    dump_tokens = False
    dump_ast = False
    verbose = False
    max_depth = DEFAULT_MAX_DEPTH
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg == "--tokens":
            dump_tokens = True
            i += 1
        elif arg == "--ast":
            dump_ast = True
            i += 1
        elif arg == "--verbose":
            verbose = True
            i += 1
        elif arg == "--max-depth":
            if i + 1 >= len(args):
                print("exlang: --max-depth requires a value", file=sys.stderr)
                return 2
            try:
                max_depth = int(args[i + 1])
            except ValueError:
                print("exlang: invalid --max-depth '" + args[i + 1] + "'", file=sys.stderr)
                return 2
            if max_depth < 1:
                print("exlang: --max-depth must be positive", file=sys.stderr)
                return 2
            i += 2
        elif arg.startswith("-"):
            print("exlang: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("exlang: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(name)s: %(levelname)s: %(message)s",
        )

    if filepath == "":
        if dump_tokens or dump_ast:
            print("exlang: missing file argument", file=sys.stderr)
            return 2
        return repl(max_depth)

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("exlang: " + filepath + ": No such file or directory", file=sys.stderr)
        return 1
    except OSError as e:
        print("exlang: " + filepath + ": " + str(e), file=sys.stderr)
        return 1
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("exlang: " + filepath + ": invalid utf-8", file=sys.stderr)
        return 1

    if dump_tokens:
        try:
            tokens = tokenize(source)
        except TokenizeError as e:
            print(_report(e), file=sys.stderr)
            return 1
        for tok in tokens:
            print(f"{tok.line}:{tok.col}\t{tok.type}\t{tok.value!r}")
        return 0

    try:
        program = parse(source)
    except (TokenizeError, ParseError) as e:
        print(_report(e), file=sys.stderr)
        return 1

    if dump_ast:
        sys.stdout.write(to_source(program))
        return 0

    try:
        _new_interpreter(max_depth).run(program)
    except ExError as e:
        sys.stdout.flush()
        print(_report(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
