"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import TransmarkConfig


def load_config(cli_path: str | None = None) -> TransmarkConfig:
    """Load config with resolution order: explicit path > project-local > user-global > defaults."""
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./transmark.yaml"),
        Path.home() / ".transmark" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                if not isinstance(raw, dict):
                    raise ValueError(f"Config must be a YAML mapping: {path}")
                raw = _expand_env_vars(raw)
                return TransmarkConfig(**raw)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e

    return TransmarkConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for a new transmark.yaml
DEFAULT_CONFIG_TEMPLATE = """\
# transmark.yaml

# Translation pairs
trans_pairs:
  - source_dir: "docs/en"
    target_dir: "docs/ja"
    source_lang: "en"
    target_lang: "ja"

# Content hashing
hashing:
  algorithm: "sha256"
  length: 8                    # hex characters kept, minimum 6

# Snapshots of historical source text
snapshot:
  directory: ".transmark"
  file_name: "snapshot"
  gc_threshold_bytes: 5242880  # garbage_collect() is a no-op below this size

# Translation context
context:
  window: 1                    # neighbouring units on each side
  # terms_file: ".transmark/terms.yaml"

# Document splitting
document:
  unit_heading_level: 6        # headings up to this level start a unit
  # frontmatter_keys: [title, description]

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
