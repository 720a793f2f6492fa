from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Union
from typing_extensions import TypeAlias

# ---------- Library Model ----------

VARIANT_MARKER = "_"

OPCODES = frozenset({"add", "sub", "mul", "div", "pow", "mod", "abs", "neg", "fac"})

Number: TypeAlias = float
NumericFn: TypeAlias = Callable[..., Number]


class FnDeclError(Exception):
    """Base class for every error raised while compiling a declaration"""
    pass


def infer_arity(fn: Callable, variant: bool = False) -> int:
    """
    Count the positional parameters a call site must supply; 0 means any
    number of arguments.

    Without a variant only required parameters count. A variant function
    receives its subscript as the trailing parameter, which may carry a
    default, so every positional parameter but the last one counts; one
    with no positional parameters cannot receive it and raises ValueError.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return 0

    positional = []
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 0
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional.append(param)

    if variant:
        if not positional:
            raise ValueError("a variant function must take the variant as its last positional parameter")
        return len(positional) - 1
    return sum(1 for param in positional if param.default is inspect.Parameter.empty)


@dataclass(frozen=True)
class LibFunction:
    fn: NumericFn
    arity: int = 0

    @classmethod
    def of(cls, fn: Union[LibFunction, NumericFn], variant: bool = False) -> LibFunction:
        if isinstance(fn, LibFunction):
            return fn
        return cls(fn=fn, arity=infer_arity(fn, variant))


@dataclass
class Library:
    """
    Named functions, constants and algebraic operations a declaration is
    compiled against.

    Function names ending in VARIANT_MARKER take a subscript variant
    (``log_10(x)``), passed as the last actual argument.
    """

    functions: Dict[str, LibFunction] = field(default_factory=dict)
    constants: Dict[str, Number] = field(default_factory=dict)
    operations: Dict[str, NumericFn] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.functions = {name: _wrap_function(name, fn) for name, fn in self.functions.items()}

        unknown = set(self.operations) - OPCODES
        if unknown:
            raise ValueError(f"unknown library operations: {', '.join(sorted(unknown))}")

    def function_names(self) -> frozenset:
        """Reserved function words as written in source (variant marker stripped)"""
        return frozenset(strip_variant(name) for name in self.functions)

    def constant_names(self) -> frozenset:
        return frozenset(self.constants)

    def operation(self, opcode: str) -> Optional[NumericFn]:
        return self.operations.get(opcode)

    def copy(self) -> Library:
        return Library(dict(self.functions), dict(self.constants), dict(self.operations))

    def merge(
        self,
        functions: Optional[Mapping[str, Union[LibFunction, NumericFn]]] = None,
        constants: Optional[Mapping[str, Number]] = None,
        operations: Optional[Mapping[str, NumericFn]] = None,
    ) -> Library:
        """Return a new library with the given entries added or replaced."""
        merged = self.copy()
        merged.functions.update({name: _wrap_function(name, fn) for name, fn in (functions or {}).items()})
        merged.constants.update(constants or {})
        merged.operations.update(operations or {})
        return Library(merged.functions, merged.constants, merged.operations)


def strip_variant(name: str) -> str:
    return name[:-len(VARIANT_MARKER)] if has_variants(name) else name


def has_variants(name: str) -> bool:
    return len(name) > len(VARIANT_MARKER) and name.endswith(VARIANT_MARKER)


def _wrap_function(name: str, fn: Union[LibFunction, NumericFn]) -> LibFunction:
    try:
        return LibFunction.of(fn, has_variants(name))
    except ValueError as e:
        raise ValueError(f"library function '{name}': {e}") from e
