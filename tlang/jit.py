"""tlang JIT — execution engine adapter over llvmlite's MCJIT.

The evaluation loop only needs three operations: add a compiled unit and get
a handle back, look a symbol up as a callable, and remove a unit by handle.
Everything else about machine code (relocation, cross-module linking, host
symbol lookup) stays inside LLVM.

LLVM aborts the whole process when a module calls a function it cannot
resolve, so every batch is checked against resident definitions and the
host process before it is handed over.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import functools
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, TYPE_CHECKING

from llvmlite import binding as llvm

from tlang.errors import CodegenError, unresolved_symbol

if TYPE_CHECKING:
    from tlang.session import CompilationUnit

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LLVM initialization
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=None)
def initialize_llvm() -> None:
    """Initialize the native target once per process and expose libm to the JIT."""
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()
    libm = ctypes.util.find_library("m")
    if libm:
        llvm.load_library_permanently(libm)
        logger.debug("loaded %s for external calls", libm)


def host_target_machine(opt_level: int = 2) -> llvm.TargetMachine:
    initialize_llvm()
    target = llvm.Target.from_triple(llvm.get_process_triple())
    return target.create_target_machine(opt=opt_level, jit=True)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModuleHandle:
    key: int
    name: str
    defines: frozenset[str] = field(default_factory=frozenset)


class JITEngine:
    """Adds, looks up and removes compiled units on one MCJIT engine."""

    def __init__(self, target_machine: Optional[llvm.TargetMachine] = None):
        initialize_llvm()
        self.target_machine = target_machine or host_target_machine()
        backing = llvm.parse_assembly("")
        backing.triple = self.target_machine.triple
        self._engine = llvm.create_mcjit_compiler(backing, self.target_machine)
        self._modules: dict[int, llvm.ModuleRef] = {}
        self._handles: dict[int, ModuleHandle] = {}
        self._keys = itertools.count(1)

    @property
    def resident_symbols(self) -> set[str]:
        symbols: set[str] = set()
        for handle in self._handles.values():
            symbols |= handle.defines
        return symbols

    def is_resident(self, handle: ModuleHandle) -> bool:
        return handle.key in self._handles

    def is_resolvable(self, name: str, extra: Iterable[str] = ()) -> bool:
        """Whether a call to `name` can be linked right now."""
        if name in extra or name in self.resident_symbols:
            return True
        return llvm.address_of_symbol(name) is not None

    def unresolved(self, units: list[CompilationUnit]) -> list[str]:
        defined: set[str] = set()
        for unit in units:
            defined |= unit.defined_names()
        missing: list[str] = []
        for unit in units:
            for name in unit.external_calls():
                if not self.is_resolvable(name, defined) and name not in missing:
                    missing.append(name)
        return missing

    def add_module(self, unit: CompilationUnit) -> ModuleHandle:
        return self.add_modules([unit])[0]

    def add_modules(self, units: list[CompilationUnit]) -> list[ModuleHandle]:
        """Hand a batch of generated units to the engine and finalize them together.

        Units in the same batch may call each other. Raises CodegenError if a
        call cannot be resolved; nothing from the batch is added in that case.
        """
        for unit in units:
            if unit.compiled is None:
                raise ValueError(f"compilation unit '{unit.name}' has not been generated")

        missing = self.unresolved(units)
        if missing:
            raise CodegenError([unresolved_symbol(name) for name in missing])

        handles: list[ModuleHandle] = []
        for unit in units:
            handle = ModuleHandle(
                key=next(self._keys),
                name=unit.name,
                defines=frozenset(unit.defined_names()),
            )
            self._engine.add_module(unit.compiled)
            self._modules[handle.key] = unit.compiled
            self._handles[handle.key] = handle
            handles.append(handle)
            logger.debug("added module %s (key=%d, defines=%s)",
                         handle.name, handle.key, sorted(handle.defines))
        self._engine.finalize_object()
        return handles

    def find_symbol(self, name: str, arity: int = 0) -> Optional[Callable[..., float]]:
        """Return a callable for a resident function, or None if absent."""
        if name not in self.resident_symbols:
            return None
        address = self._engine.get_function_address(name)
        if not address:
            return None
        prototype = ctypes.CFUNCTYPE(ctypes.c_double, *([ctypes.c_double] * arity))
        return prototype(address)

    def remove_module(self, handle: ModuleHandle) -> None:
        module = self._modules.pop(handle.key)
        del self._handles[handle.key]
        self._engine.remove_module(module)
        logger.debug("removed module %s (key=%d)", handle.name, handle.key)

    def close(self) -> None:
        for handle in list(self._handles.values()):
            self.remove_module(handle)
        self._engine.close()

    def __enter__(self) -> "JITEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
