"""tlang CLI — Command-line interface for the tlang shell.

Usage:
    tlang                     Interactive session on standard input
    tlang program.tl          Run a source file
    tlang --dump-ir           Print generated IR after each definition
    tlang --format json       One JSON object per construct
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from tlang import __version__
from tlang.config import TlangConfig, load_config, OUTPUT_FORMATS
from tlang.repl import Repl


def _apply_overrides(config: TlangConfig, args: argparse.Namespace) -> TlangConfig:
    if args.dump_ir:
        config.dump_ir = True
    if args.dump_on_exit:
        config.dump_on_exit = True
    if args.no_prompt:
        config.show_prompt = False
    if args.opt_level is not None:
        config.opt_level = args.opt_level
    if args.output_format is not None:
        config.output_format = args.output_format
    if args.log_level is not None:
        config.log_level = args.log_level.upper()
    if args.no_color:
        config.color = "never"
    config.validate()
    return config


def cmd_run(args: argparse.Namespace) -> int:
    """Run a session over a file or standard input."""
    config = _apply_overrides(load_config(args.config), args)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.file is None:
        with Repl(sys.stdin, config=config, out=sys.stdout) as repl:
            repl.run()
        return 0

    if not os.path.exists(args.file):
        print(f"tlang: file not found: {args.file}", file=sys.stderr)
        return 1

    # Prompts only make sense for a human at the keyboard.
    config.show_prompt = False
    with open(args.file, "r") as f:
        with Repl(f, config=config, out=sys.stdout, filename=args.file) as repl:
            repl.run()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="tlang",
        description="tlang — a small JIT-compiled expression language",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("file", nargs="?", default=None, help="Source file (default: standard input)")
    parser.add_argument("--dump-ir", action="store_true", dest="dump_ir",
                        help="Print LLVM IR after each definition and import")
    parser.add_argument("--dump-on-exit", action="store_true", dest="dump_on_exit",
                        help="Print the IR of every defined function when the session ends")
    parser.add_argument("--no-prompt", action="store_true", dest="no_prompt",
                        help="Do not print the prompt")
    parser.add_argument("--no-color", action="store_true", dest="no_color",
                        help="Disable ANSI colors")
    parser.add_argument("--opt-level", type=int, choices=[0, 1, 2, 3], dest="opt_level",
                        help="Optimization level (default: 2)")
    parser.add_argument("--format", choices=list(OUTPUT_FORMATS), dest="output_format",
                        help="Output format (default: text)")
    parser.add_argument("--config", default=None,
                        help="Path to a .tlangrc.yml (default: nearest one found)")
    parser.add_argument("--log-level", dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper,
                        help="Logging level (default: WARNING)")
    parser.set_defaults(func=cmd_run)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
