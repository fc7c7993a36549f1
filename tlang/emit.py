"""tlang Emit — AST → LLVM IR via llvmlite.

Generates one function at a time into the session's open compilation unit.
Every value is a double. A function whose body fails to generate never
survives: the unit it was built in is dropped and replaced with an empty one.
Verification and optimization are LLVM's; this module writes neither.
"""

from __future__ import annotations

import logging
from typing import Optional

from llvmlite import ir
from llvmlite import binding as llvm

from tlang.ast_nodes import (
    Expr, NumberLiteral, VariableRef, BinaryOp, Call, Conditional,
    Prototype, FunctionDefinition,
)
from tlang.errors import (
    CodegenError, unknown_variable, unknown_function, argument_count,
    invalid_operator, redefinition, verification_failed,
)
from tlang.optimizer import FunctionOptimizer
from tlang.session import SessionState

logger = logging.getLogger(__name__)

DOUBLE = ir.DoubleType()

_ARITHMETIC = {
    "+": ("fadd", "addtmp"),
    "-": ("fsub", "subtmp"),
    "*": ("fmul", "multmp"),
    "/": ("fdiv", "divtmp"),
}

# Comparisons are unordered: a NaN operand compares true.
_COMPARISONS = {
    "<": "<",
    ">": ">",
    "=": "==",
}


class LLVMEmitter:
    """Emits LLVM IR for prototypes and function definitions."""

    def __init__(self, state: SessionState, optimizer: Optional[FunctionOptimizer] = None):
        self.state = state
        self.optimizer = optimizer
        self._builder: Optional[ir.IRBuilder] = None

    # -------------------------------------------------------------------
    # Prototypes
    # -------------------------------------------------------------------

    def emit_prototype(self, proto: Prototype) -> ir.Function:
        """Declare `proto` in the open unit unless it is already there."""
        existing = self.state.unit.get_function(proto.name)
        if existing is not None:
            return existing

        fn_type = ir.FunctionType(DOUBLE, [DOUBLE] * proto.arity)
        func = ir.Function(self.state.unit.module, fn_type, name=proto.name)
        for arg, param in zip(func.args, proto.params):
            arg.name = param
        return func

    def emit_import(self, proto: Prototype) -> ir.Function:
        """Record a forward/external declaration and declare it in the open unit."""
        self.state.register_prototype(proto)
        return self.emit_prototype(proto)

    def _resolve_callee(self, name: str) -> Optional[ir.Function]:
        # Functions already materialized in this unit first, then the
        # session-wide prototype table, declaring on demand.
        func = self.state.unit.get_function(name)
        if func is not None:
            return func
        proto = self.state.prototypes.get(name)
        if proto is not None:
            return self.emit_prototype(proto)
        return None

    # -------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------

    def emit_function(self, defn: FunctionDefinition) -> ir.Function:
        # The evaluation loop opens a fresh unit per construct; this only
        # triggers when the emitter is driven directly.
        existing = self.state.unit.get_function(defn.name)
        if existing is not None and not existing.is_declaration:
            raise CodegenError(redefinition(defn.name, defn.location))

        previous = self.state.prototypes.get(defn.name)
        self.state.register_prototype(defn.proto)
        func = self.emit_prototype(defn.proto)

        block = func.append_basic_block(name="entry")
        self._builder = ir.IRBuilder(block)
        self.state.bind_parameters(defn.proto.params, list(func.args))

        try:
            retval = self._emit_expr(defn.body)
            self._builder.ret(retval)
            self._finish(func)
        except CodegenError:
            self._discard(func)
            self._restore_prototype(defn.name, previous)
            raise
        finally:
            self.state.named_values.clear()
            self._builder = None
        return func

    def _finish(self, func: ir.Function) -> None:
        unit = self.state.unit
        try:
            compiled = llvm.parse_assembly(str(unit.module))
            compiled.verify()
        except RuntimeError as exc:
            raise CodegenError(verification_failed(func.name, str(exc)))
        if self.optimizer is not None:
            self.optimizer.run_on_function(compiled.get_function(func.name))
        unit.compiled = compiled

    def _discard(self, func: ir.Function) -> None:
        logger.debug("dropping partial function %s with unit %s", func.name, self.state.unit.name)
        self.state.open_unit()

    def _restore_prototype(self, name: str, previous: Optional[Prototype]) -> None:
        # A failed definition must not change the signature callers are checked against.
        if previous is None:
            self.state.prototypes.pop(name, None)
        else:
            self.state.prototypes[name] = previous

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _emit_expr(self, node: Expr) -> ir.Value:
        b = self._builder

        if isinstance(node, NumberLiteral):
            return ir.Constant(DOUBLE, node.value)

        if isinstance(node, VariableRef):
            value = self.state.named_values.get(node.name)
            if value is None:
                raise CodegenError(unknown_variable(node.name, node.location))
            return value

        if isinstance(node, BinaryOp):
            left = self._emit_expr(node.left)
            right = self._emit_expr(node.right)
            if node.op in _ARITHMETIC:
                method, name = _ARITHMETIC[node.op]
                return getattr(b, method)(left, right, name=name)
            if node.op in _COMPARISONS:
                cmp = b.fcmp_unordered(_COMPARISONS[node.op], left, right, name="cmptmp")
                return b.uitofp(cmp, DOUBLE, name="booltmp")
            raise CodegenError(invalid_operator(node.op, node.location))

        if isinstance(node, Call):
            callee = self._resolve_callee(node.callee)
            if callee is None:
                raise CodegenError(unknown_function(node.callee, node.location))
            if len(callee.args) != len(node.args):
                raise CodegenError(argument_count(
                    node.callee, len(callee.args), len(node.args), node.location,
                ))
            args = [self._emit_expr(arg) for arg in node.args]
            return b.call(callee, args, name="calltmp")

        if isinstance(node, Conditional):
            return self._emit_conditional(node)

        raise TypeError(f"cannot emit {type(node).__name__}")

    def _emit_conditional(self, node: Conditional) -> ir.Value:
        b = self._builder
        cond = self._emit_expr(node.condition)
        cond = b.fcmp_ordered("!=", cond, ir.Constant(DOUBLE, 0.0), name="ifcond")

        func = b.function
        then_bb = func.append_basic_block(name="then")
        else_bb = func.append_basic_block(name="else")
        merge_bb = func.append_basic_block(name="ifcont")
        b.cbranch(cond, then_bb, else_bb)

        # Each branch may end in a different block than it started in.
        b.position_at_end(then_bb)
        then_value = self._emit_expr(node.then_branch)
        b.branch(merge_bb)
        then_bb = b.block

        b.position_at_end(else_bb)
        else_value = self._emit_expr(node.else_branch)
        b.branch(merge_bb)
        else_bb = b.block

        b.position_at_end(merge_bb)
        phi = b.phi(DOUBLE, name="iftmp")
        phi.add_incoming(then_value, then_bb)
        phi.add_incoming(else_value, else_bb)
        return phi
