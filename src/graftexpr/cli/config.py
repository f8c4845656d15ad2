"""
Configuration file support for the graftexpr CLI.

Supports YAML and JSON config files with CLI argument override. A config
file mirrors the AnalysisConfig sections:

```yaml
input: data/kidney_transplant.csv
output: results/
loader:
  label_column: Y
explore:
  n_components: 10
testing:
  q_threshold: 0.10
  nulltype: mle
model:
  seed: 2024
  threshold_method: min_sensitivity
  min_sensitivity: 0.9
```
"""

import json
from argparse import Namespace
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from graftexpr.config import SECTIONS, AnalysisConfig


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("analysis.yaml"))
        >>> print(config['testing']['q_threshold'])
        0.1
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _explicit_arg_names(cli_args: Optional[List[str]]) -> set:
    """Names of the long options that appear in a raw argument list."""
    explicit = set()
    short_to_long = {'i': 'input', 'o': 'output', 'c': 'config'}
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values).
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit_args = _explicit_arg_names(cli_args)
    merged = Namespace(**vars(args))

    flat: Dict[str, Any] = {}
    for key in ('input', 'output'):
        if config.get(key) is not None:
            flat[key] = Path(config[key])
    for section in SECTIONS:
        for key, value in (config.get(section) or {}).items():
            flat[key] = value

    for arg_name, config_value in flat.items():
        if not hasattr(merged, arg_name):
            continue
        if arg_name in explicit_args:
            continue
        if config_value is not None:
            setattr(merged, arg_name, config_value)

    return merged


def config_from_args(args: Namespace) -> AnalysisConfig:
    """Collect an AnalysisConfig from parsed (and merged) CLI arguments."""
    sections = {}
    for name, cls in SECTIONS.items():
        values = {
            f.name: getattr(args, f.name)
            for f in fields(cls)
            if hasattr(args, f.name)
        }
        sections[name] = cls(**values)

    return AnalysisConfig(
        input=getattr(args, 'input', None),
        output=getattr(args, 'output', None),
        **sections,
    )
