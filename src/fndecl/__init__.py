"""Compile one-line mathematical function declarations into Python callables.

    >>> from fndecl import compile_declaration
    >>> f = compile_declaration("f(x)=x^2{x>=0}")
    >>> f(2), f(-2)
    (4.0, None)
"""

from .codegen import NO_RESULT, CompileError, CompiledFunction, compile_decl
from .lexer_rd import LexError, tokenize
from .parser_rd import ParseError, parse, parse_source
from .runner import compile_declaration
from .stdlib import standard_library
from .types import FnDeclError, LibFunction, Library, VARIANT_MARKER

__all__ = [
    "NO_RESULT",
    "VARIANT_MARKER",
    "CompileError",
    "CompiledFunction",
    "FnDeclError",
    "LexError",
    "LibFunction",
    "Library",
    "ParseError",
    "compile_decl",
    "compile_declaration",
    "parse",
    "parse_source",
    "standard_library",
    "tokenize",
]
