"""
Configuration file support for the cooccurnet CLI.

Supports YAML and JSON config files with CLI argument override.

Example (YAML):

    input: data/counts.csv
    metadata: data/samples.csv
    output: results/
    category_column: biome
    network:
      min_coefficient: 0.6
      alpha: 0.05
      zero_total: drop
      min_samples: 5
      seed: 7
    filter:
      min_count: 0
      min_prevalence: 0.1
    workers: 4
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

__all__ = [
    'NetworkConfig',
    'FilterConfig',
    'ConfigSchema',
    'load_config',
    'merge_config_with_args',
    'validate_config',
]

VALID_METHODS = ['spearman']
VALID_ZERO_TOTAL = ['drop', 'zero', 'raise']


@dataclass
class NetworkConfig:
    """Association and graph parameters."""
    method: str = "spearman"
    min_coefficient: float = 0.6
    alpha: float = 0.05
    zero_total: str = "drop"
    min_samples: int = 3
    seed: Optional[int] = None
    weighted_modularity: bool = True


@dataclass
class FilterConfig:
    """Count-threshold prefilter."""
    min_count: float = 0.0
    min_prevalence: float = 0.0


@dataclass
class ConfigSchema:
    """
    Complete configuration schema for the compare command.

    Mirrors the CLI argument structure for consistency.
    """
    input: Optional[Path] = None
    metadata: Optional[Path] = None
    output: Optional[Path] = None
    category_column: Optional[str] = None
    categories: Optional[List[str]] = None
    workers: int = 1
    network: NetworkConfig = field(default_factory=NetworkConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)


# (config section or None for top level, config key) -> argparse dest
_ARG_MAPPINGS = {
    (None, 'input'): 'input',
    (None, 'metadata'): 'metadata',
    (None, 'output'): 'output',
    (None, 'category_column'): 'category_column',
    (None, 'categories'): 'categories',
    (None, 'workers'): 'workers',
    ('network', 'min_coefficient'): 'min_coefficient',
    ('network', 'alpha'): 'alpha',
    ('network', 'zero_total'): 'zero_total',
    ('network', 'min_samples'): 'min_samples',
    ('network', 'seed'): 'seed',
    ('network', 'weighted_modularity'): 'weighted_modularity',
    ('filter', 'min_count'): 'min_count',
    ('filter', 'min_prevalence'): 'min_prevalence',
}

_PATH_ARGS = ('input', 'metadata', 'output')

_SHORT_TO_LONG = {
    'i': 'input',
    'o': 'output',
    'm': 'metadata',
    'c': 'category_column',
    'v': 'verbose',
}


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
        >>> config = load_config(Path("run.yaml"))
        >>> print(config['network']['min_coefficient'])
        0.6
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(
            f"Unsupported config format: {suffix}. "
            f"Use .yaml, .yml, or .json"
        )

    try:
        with open(config_path, 'r') as f:
            if suffix == '.json':
                config = json.load(f)
            else:
                config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_arg_names(cli_args: Optional[List[str]]) -> set:
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            if name.startswith('no_'):
                explicit.add(name[3:])
            explicit.add(name)
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in _SHORT_TO_LONG:
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def merge_config_with_args(config: Dict[str, Any], args: Namespace,
                           cli_args: Optional[List[str]] = None) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values)
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit_args = _explicit_arg_names(cli_args)
    merged = Namespace(**vars(args))

    for (section, key), arg_name in _ARG_MAPPINGS.items():
        source = config if section is None else config.get(section) or {}
        if key not in source:
            continue
        config_value = source[key]
        if config_value is not None and arg_name in _PATH_ARGS:
            config_value = Path(config_value)
        setattr(merged, arg_name, _merge_value(
            getattr(merged, arg_name, None),
            config_value,
            arg_name in explicit_args,
        ))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If configuration is invalid
    """
    network = config.get('network') or {}
    filter_cfg = config.get('filter') or {}

    if not isinstance(network, dict) or not isinstance(filter_cfg, dict):
        raise ValueError("'network' and 'filter' config sections must be mappings")

    if 'method' in network and network['method'] not in VALID_METHODS:
        raise ValueError(
            f"Invalid association method '{network['method']}'. "
            f"Choose from: {', '.join(VALID_METHODS)}"
        )

    if 'zero_total' in network and network['zero_total'] not in VALID_ZERO_TOTAL:
        raise ValueError(
            f"Invalid zero_total policy '{network['zero_total']}'. "
            f"Choose from: {', '.join(VALID_ZERO_TOTAL)}"
        )

    if 'min_coefficient' in network:
        value = network['min_coefficient']
        if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
            raise ValueError(f"min_coefficient must be a number in [0, 1], got: {value}")

    if 'alpha' in network:
        value = network['alpha']
        if not isinstance(value, (int, float)) or not 0.0 < value <= 1.0:
            raise ValueError(f"alpha must be a number in (0, 1], got: {value}")

    if 'min_samples' in network:
        value = network['min_samples']
        if not isinstance(value, int) or value < 3:
            raise ValueError(f"min_samples must be an integer >= 3, got: {value}")

    if 'min_prevalence' in filter_cfg:
        value = filter_cfg['min_prevalence']
        if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
            raise ValueError(f"min_prevalence must be a number in [0, 1], got: {value}")

    if 'workers' in config:
        value = config['workers']
        if not isinstance(value, int) or value < 1:
            raise ValueError(f"workers must be a positive integer, got: {value}")

    if network.get('seed') is not None:
        value = network['seed']
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"seed must be a non-negative integer, got: {value}")

    if 'weighted_modularity' in network and not isinstance(network['weighted_modularity'], bool):
        raise ValueError(
            f"weighted_modularity must be true or false, got: {network['weighted_modularity']}"
        )
