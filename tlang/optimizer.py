"""tlang optimizer — per-function LLVM pass pipeline.

All optimization is delegated to LLVM's function simplification pipeline.
Level 0 turns the optimizer into a no-op.
"""

from __future__ import annotations

import logging
from typing import Optional

from llvmlite import binding as llvm

from tlang.jit import host_target_machine

logger = logging.getLogger(__name__)


class FunctionOptimizer:
    """Runs the default function pipeline for a speed level on one function at a time."""

    def __init__(self, level: int = 2, target_machine: Optional[llvm.TargetMachine] = None):
        if not 0 <= level <= 3:
            raise ValueError(f"optimization level must be 0-3, got {level}")
        self.level = level
        self.runs = 0
        if level == 0:
            return
        self._target_machine = target_machine or host_target_machine(level)
        pto = llvm.create_pipeline_tuning_options(speed_level=level)
        self._pass_builder = llvm.create_pass_builder(self._target_machine, pto)
        self._fpm = self._pass_builder.getFunctionPassManager()

    def run_on_function(self, function: llvm.ValueRef) -> None:
        if self.level == 0:
            return
        self._fpm.run(function, self._pass_builder)
        self.runs += 1
        logger.debug("optimized %s at O%d", function.name, self.level)
