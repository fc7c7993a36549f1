"""tlang AST node definitions.

Expressions form a strict tree: every node owns its children and nothing is
shared. There is one value type (a 64-bit float), so nodes carry no type
annotations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tlang.errors import SourceLocation

# Reserved name for wrapped top-level expressions. It cannot be spelled by a
# user because identifiers must start with a letter.
ANONYMOUS_NAME = "__anon_expr"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass
class Expr:
    location: Optional[SourceLocation] = None


@dataclass
class NumberLiteral(Expr):
    value: float = 0.0


@dataclass
class VariableRef(Expr):
    """Resolved against the open function's parameters during emission."""
    name: str = ""


@dataclass
class BinaryOp(Expr):
    op: str = ""
    left: Expr = field(default_factory=Expr)
    right: Expr = field(default_factory=Expr)


@dataclass
class Call(Expr):
    callee: str = ""
    args: list[Expr] = field(default_factory=list)


@dataclass
class Conditional(Expr):
    """`if c then a else b`. An expression; both branches are required."""
    condition: Expr = field(default_factory=Expr)
    then_branch: Expr = field(default_factory=Expr)
    else_branch: Expr = field(default_factory=Expr)


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------

@dataclass
class Prototype:
    """A function signature, independent of whether a body exists.

    Parameter names are not checked for uniqueness; a repeated name shadows
    the earlier occurrence.
    """
    name: str = ""
    params: list[str] = field(default_factory=list)
    location: Optional[SourceLocation] = None

    @property
    def arity(self) -> int:
        return len(self.params)

    def __str__(self) -> str:
        return f"{self.name}({' '.join(self.params)})"


@dataclass
class FunctionDefinition:
    proto: Prototype = field(default_factory=Prototype)
    body: Optional[Expr] = None
    location: Optional[SourceLocation] = None

    @property
    def name(self) -> str:
        return self.proto.name

    @property
    def is_anonymous(self) -> bool:
        return self.proto.name == ANONYMOUS_NAME
