"""tlang session state — the symbol environment shared by the parser, emitter and loop.

One SessionState lives for the whole interactive session. Only the
evaluation loop mutates it, one top-level construct at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from llvmlite import ir
from llvmlite import binding as llvm

from tlang.ast_nodes import Prototype


@dataclass
class CompilationUnit:
    """One llvmlite module plus, once generated, its verified native counterpart.

    A unit holds the function generated for one top-level construct and the
    declarations of everything that function calls.
    """
    module: ir.Module
    compiled: Optional[llvm.ModuleRef] = None

    @property
    def name(self) -> str:
        return self.module.name

    def get_function(self, name: str) -> Optional[ir.Function]:
        value = self.module.globals.get(name)
        if isinstance(value, ir.Function):
            return value
        return None

    def defined_names(self) -> set[str]:
        return {f.name for f in self.module.functions if not f.is_declaration}

    def external_calls(self) -> list[str]:
        """Functions this unit declares but does not define."""
        return [f.name for f in self.module.functions if f.is_declaration]

    def __str__(self) -> str:
        return str(self.compiled) if self.compiled is not None else str(self.module)


class SessionState:
    """Prototype table, local bindings, and the currently open compilation unit."""

    def __init__(self, triple: str = "", data_layout: str = ""):
        self.triple = triple or llvm.get_process_triple()
        self.data_layout = data_layout
        self.prototypes: dict[str, Prototype] = {}
        self.named_values: dict[str, ir.Value] = {}
        self._unit_count = 0
        self.unit: CompilationUnit = self.open_unit()

    def open_unit(self, name: str = "") -> CompilationUnit:
        """Replace the open unit with an empty one and return it."""
        self._unit_count += 1
        module = ir.Module(name=name or f"tlang.unit{self._unit_count}")
        module.triple = self.triple
        if self.data_layout:
            module.data_layout = self.data_layout
        self.unit = CompilationUnit(module=module)
        return self.unit

    def register_prototype(self, proto: Prototype) -> None:
        self.prototypes[proto.name] = proto

    def bind_parameters(self, names: list[str], values: list[ir.Value]) -> None:
        """Reset local bindings to a function's parameters. Later duplicates win."""
        self.named_values.clear()
        for name, value in zip(names, values):
            self.named_values[name] = value
