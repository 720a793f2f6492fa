from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional, Sequence

from .codegen import CompiledFunction, compile_decl
from .lexer_rd import tokenize
from .parser_rd import parse
from .stdlib import standard_library
from .token_types import Tok
from .tree import FnDecl
from .types import FnDeclError, Library

logger = logging.getLogger(__name__)

Scanner = Callable[[str, Library], List[Tok]]
ParserFn = Callable[[List[Tok]], FnDecl]
Compiler = Callable[[FnDecl, Library], CompiledFunction]


def compile_declaration(
    source: str,
    library: Optional[Library] = None,
    *,
    scanner: Optional[Scanner] = None,
    parser: Optional[ParserFn] = None,
    compiler: Optional[Compiler] = None,
) -> CompiledFunction:
    """
    Compile ``name(params) = expression [{clauses}]`` into a callable.

    Any of the three phases can be swapped out; each one defaults to the
    package's own implementation. The library defaults to a fresh standard
    library and is bound to the result.
    """
    if library is None:
        library = standard_library()

    scan = scanner or tokenize
    parse_tokens = parser or parse
    compile_ = compiler or compile_decl

    tokens = scan(source, library)
    decl = parse_tokens(tokens)
    fn = compile_(decl, library)

    logger.debug("compiled declaration %r", source)
    return fn


def _format_result(value: Optional[float]) -> str:
    if value is None:
        return "undefined"
    return repr(value)


def _build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="fndecl",
        description="Compile a function declaration and evaluate it.",
    )
    ap.add_argument("source", help="declaration, e.g. 'f(x)=x^2{x>=0}'; '-' reads stdin")
    ap.add_argument("args", nargs="*", type=float, help="argument values, one per parameter")
    ap.add_argument("--ast", action="store_true", help="print the parsed tree")
    ap.add_argument("--source", dest="show_source", action="store_true", help="print the generated code")
    ap.add_argument("-v", "--verbose", action="store_true", help="log each compilation phase")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = _build_arg_parser()
    opts = ap.parse_args(argv)

    if opts.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    source = opts.source
    if source == "-":
        source = sys.stdin.read().strip()
        if not source:
            raise SystemExit("No input provided on stdin")

    try:
        fn = compile_declaration(source)
    except FnDeclError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1

    if opts.ast:
        print(fn.pretty(), end="")
    if opts.show_source:
        print(fn.source)

    if opts.args or not (opts.ast or opts.show_source):
        if len(opts.args) != len(fn.params):
            print(
                f"{fn.name} expects {len(fn.params)} argument(s) ({', '.join(fn.params)}), got {len(opts.args)}",
                file=sys.stderr,
            )
            return 2
        print(_format_result(fn(*opts.args)))

    return 0


if __name__ == "__main__":
    sys.exit(main())
