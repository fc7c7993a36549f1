"""tlang REPL — the evaluation loop.

Reads one top-level construct at a time and decides what happens to it:

    fn name(params) body    compiled and kept callable for the rest of the session
    import name(params)     recorded as a forward or external declaration
    expression              compiled into a throwaway unit, run once, discarded
    ;                       ignored
    exit / end of input     ends the session

Errors never end the session. A syntax error drops the offending token and
the loop carries on from the next one; a code generation error is reported
and the loop continues after the construct that caused it.

Named functions are published to the JIT lazily: a unit stays pending until
every function it calls can be linked, so a definition may call an imported
prototype whose body only arrives later.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, TextIO

from tlang.ast_nodes import ANONYMOUS_NAME
from tlang.config import TlangConfig
from tlang.emit import LLVMEmitter
from tlang.errors import CodegenError, CompileError, ParseError, SourceLocation, TlangError
from tlang.formatters import make_formatter
from tlang.jit import JITEngine, ModuleHandle
from tlang.lexer import Lexer, TokenType
from tlang.optimizer import FunctionOptimizer
from tlang.parser import Parser
from tlang.session import CompilationUnit, SessionState

logger = logging.getLogger(__name__)


class OutcomeKind(Enum):
    DEFINITION = "definition"
    IMPORT = "import"
    VALUE = "value"
    ERROR = "error"
    EXIT = "exit"


@dataclass
class Outcome:
    """What one processed construct produced."""
    kind: OutcomeKind
    name: str = ""
    value: Optional[float] = None
    error: Optional[TlangError] = None
    ir: str = ""
    location: Optional[SourceLocation] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind.value}
        if self.name:
            d["name"] = self.name
        if self.value is not None:
            d["value"] = self.value
        if self.error is not None:
            d["error"] = self.error.to_dict()
        if self.ir:
            d["ir"] = self.ir
        return d


class Repl:
    """One interactive session over a character stream."""

    def __init__(
        self,
        stream: TextIO,
        config: Optional[TlangConfig] = None,
        out: Optional[TextIO] = None,
        engine: Optional[JITEngine] = None,
        filename: str = "<stdin>",
    ):
        self.config = config or TlangConfig()
        self.out = out
        self.formatter = make_formatter(self.config.output_format, self.config.color, out)

        self.lexer = Lexer(stream, filename)
        self.parser = Parser(self.lexer)
        self.engine = engine or JITEngine()
        self.state = SessionState(
            triple=self.engine.target_machine.triple,
            data_layout=str(self.engine.target_machine.target_data),
        )
        self.optimizer = FunctionOptimizer(self.config.opt_level)
        self.emitter = LLVMEmitter(self.state, self.optimizer)

        self.outcomes: list[Outcome] = []
        self._resident: dict[str, ModuleHandle] = {}
        self._pending: dict[str, CompilationUnit] = {}
        # Unit currently resident in the JIT for each named function.
        self._units: dict[str, CompilationUnit] = {}
        self._finished = False

    # -------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------

    def _write(self, text: str, newline: bool = True) -> None:
        if self.out is None or not text:
            return
        self.out.write(text + ("\n" if newline else ""))
        self.out.flush()

    def _prompt(self) -> None:
        if self.config.show_prompt:
            self._write(self.formatter.prompt(self.config.prompt), newline=False)

    def _report(self, outcome: Outcome) -> Outcome:
        self.outcomes.append(outcome)
        self._write(self.formatter.format_outcome(outcome))
        return outcome

    # -------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------

    def run(self) -> list[Outcome]:
        """Process constructs until end of input or `exit`."""
        self._prompt()
        self.parser.next_token()

        while True:
            tok = self.parser.current
            if tok.type == TokenType.EOF:
                break
            if tok.type == TokenType.EXIT:
                self._report(Outcome(OutcomeKind.EXIT, location=tok.location))
                break

            if tok.is_char(";"):
                self.parser.next_token()
            elif tok.type == TokenType.FN:
                self._step(self.handle_function_definition)
            elif tok.type == TokenType.IMPORT:
                self._step(self.handle_import)
            else:
                self._step(self.handle_top_level_expression)
            self._prompt()

        self._finish_session()
        return self.outcomes

    def _step(self, handler) -> None:
        try:
            handler()
        except ParseError as exc:
            self._recover(exc, skip=True)
        except CodegenError as exc:
            self._recover(exc, skip=False)

    def _recover(self, exc: CompileError, skip: bool) -> None:
        for error in exc.errors:
            logger.info("recovered from %s", error)
            self._report(Outcome(OutcomeKind.ERROR, error=error, location=error.location))
        if skip:
            dropped = self.parser.skip_token()
            logger.debug("resynchronising: dropped %r", dropped)

    # -------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------

    def handle_function_definition(self) -> Outcome:
        defn = self.parser.parse_function_definition()
        unit = self.state.unit
        try:
            func = self.emitter.emit_function(defn)
        finally:
            self.state.open_unit()

        self._pending[defn.name] = unit
        self._publish_pending()

        ir = str(unit.compiled.get_function(func.name)) if self.config.dump_ir else ""
        return self._report(Outcome(
            OutcomeKind.DEFINITION, name=defn.name, ir=ir, location=defn.location,
        ))

    def handle_import(self) -> Outcome:
        proto = self.parser.parse_import()
        try:
            decl = self.emitter.emit_import(proto)
            ir = str(decl) if self.config.dump_ir else ""
        finally:
            # Declarations are re-emitted on demand in whichever unit calls them.
            self.state.open_unit()
        return self._report(Outcome(
            OutcomeKind.IMPORT, name=proto.name, ir=ir, location=proto.location,
        ))

    def handle_top_level_expression(self) -> Outcome:
        defn = self.parser.parse_top_level_expression()
        unit = self.state.unit
        try:
            self.emitter.emit_function(defn)
            self._publish_pending()
            handle = self.engine.add_module(unit)
            try:
                entry = self.engine.find_symbol(ANONYMOUS_NAME)
                if entry is None:
                    raise RuntimeError(f"{ANONYMOUS_NAME} missing from unit {unit.name}")
                value = entry()
            finally:
                self.engine.remove_module(handle)
        finally:
            self.state.open_unit()
            self.state.prototypes.pop(ANONYMOUS_NAME, None)

        return self._report(Outcome(OutcomeKind.VALUE, value=value, location=defn.location))

    # -------------------------------------------------------------------
    # Publishing named functions
    # -------------------------------------------------------------------

    def _publish_pending(self) -> None:
        """Hand every pending unit whose calls can now be linked to the JIT."""
        ready = dict(self._pending)
        # Shrink to a fixpoint: a unit is ready once all of its calls resolve
        # against resident code, the host process, or other ready units.
        while ready:
            defined = set(ready)
            blocked = [
                name for name, unit in ready.items()
                if any(not self.engine.is_resolvable(callee, defined)
                       for callee in unit.external_calls())
            ]
            if not blocked:
                break
            for name in blocked:
                del ready[name]

        if not ready:
            if self._pending:
                logger.debug("still pending: %s", sorted(self._pending))
            return

        for name in ready:
            old = self._resident.pop(name, None)
            if old is not None:
                logger.debug("replacing resident definition of %s", name)
                self.engine.remove_module(old)
            del self._pending[name]

        names = list(ready)
        handles = self.engine.add_modules([ready[name] for name in names])
        self._resident.update(zip(names, handles))
        self._units.update((name, ready[name]) for name in names)
        logger.debug("published %s", names)

    # -------------------------------------------------------------------
    # Session end
    # -------------------------------------------------------------------

    def _finish_session(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self.config.dump_on_exit:
            for name in sorted(self._units):
                unit = self._units[name]
                self._write(self.formatter.format_dump(str(unit.compiled.get_function(name))))
        if self._pending:
            logger.info("session ended with unresolved definitions: %s", sorted(self._pending))

    def evaluate(self, text: str) -> list[Outcome]:
        """Feed `text` to a fresh loop over this session and return the new outcomes."""
        start = len(self.outcomes)
        self.lexer = Lexer.from_source(text, self.lexer.filename)
        self.parser = Parser(self.lexer)
        self._finished = False
        self.run()
        return self.outcomes[start:]

    def close(self) -> None:
        self.engine.close()

    def __enter__(self) -> "Repl":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate(source: str, config: Optional[TlangConfig] = None,
             out: Optional[TextIO] = None) -> list[Outcome]:
    """Run a whole program in a new session and return what each construct produced."""
    with Repl(io.StringIO(source), config=config, out=out, filename="<string>") as repl:
        return repl.run()
