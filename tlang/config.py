"""tlang Configuration — .tlangrc.yml support.

Loads session settings from .tlangrc.yml (or .tlangrc.yaml, .tlangrc.json)
found in the working directory or any parent. Command-line flags override
whatever the file says.

Example .tlangrc.yml:
    prompt: "tlang > "
    dump_ir: true         # print IR after each definition
    dump_on_exit: false
    opt_level: 2          # 0 disables the optimizer
    log_level: WARNING
    output_format: text   # or json
    color: auto           # auto, always, never
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json")
COLOR_MODES = ("auto", "always", "never")


@dataclass
class TlangConfig:
    """Session configuration."""
    prompt: str = "tlang > "
    show_prompt: bool = True
    # Print generated IR after each definition or import
    dump_ir: bool = False
    # Print the IR of every named function when the session ends
    dump_on_exit: bool = False
    # 0-3; 0 skips the optimizer entirely
    opt_level: int = 2
    log_level: str = "WARNING"
    output_format: str = "text"
    color: str = "auto"

    def validate(self) -> None:
        if not 0 <= self.opt_level <= 3:
            raise ValueError(f"opt_level must be between 0 and 3, got {self.opt_level}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}")
        if self.color not in COLOR_MODES:
            raise ValueError(f"color must be one of {COLOR_MODES}, got {self.color!r}")


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".tlangrc.yml",
    ".tlangrc.yaml",
    ".tlangrc.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> TlangConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, or it cannot be read or holds an invalid
    value, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return TlangConfig()

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as exc:
        logger.warning("cannot read config %s: %s", path, exc)
        return TlangConfig()

    try:
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.warning("ignoring malformed config %s: %s", path, exc)
        return TlangConfig()

    if not isinstance(data, dict):
        return TlangConfig()
    try:
        config = _dict_to_config(data)
    except (TypeError, ValueError) as exc:
        logger.warning("ignoring invalid config %s: %s", path, exc)
        return TlangConfig()
    logger.debug("loaded config from %s", path)
    return config


def _dict_to_config(data: Dict[str, Any]) -> TlangConfig:
    """Convert a parsed dict to TlangConfig."""
    config = TlangConfig()

    if "prompt" in data:
        config.prompt = str(data["prompt"])
    if "show_prompt" in data:
        config.show_prompt = bool(data["show_prompt"])
    if "dump_ir" in data:
        config.dump_ir = bool(data["dump_ir"])
    if "dump_on_exit" in data:
        config.dump_on_exit = bool(data["dump_on_exit"])
    if "opt_level" in data:
        config.opt_level = int(data["opt_level"])
    if "log_level" in data:
        config.log_level = str(data["log_level"]).upper()
    if "output_format" in data:
        config.output_format = str(data["output_format"])
    if "color" in data:
        # YAML reads bare `never`/`always` as strings but `on`/`off` as booleans.
        value = data["color"]
        if isinstance(value, bool):
            value = "always" if value else "never"
        config.color = str(value)

    config.validate()
    return config
