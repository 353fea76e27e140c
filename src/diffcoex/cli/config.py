"""
Configuration file support for the diffcoex CLI.

Supports YAML and JSON config files with CLI argument override. A config for
the dispersion command looks like:

```yaml
condition_a: data/control.csv
condition_b: data/treated.csv
modules: data/modules.txt
output: results/control_vs_treated

permutation:
  n_permutations: 5000
  seed: 20240101
  workers: 4

correlation:
  ties: ordinal

report:
  fdr: BH
  alpha: 0.05
```
"""

import json
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

VALID_TIES = ('ordinal', 'average')
VALID_FDR = ('BH', 'BY', 'bonferroni')


# top-level config key -> argparse dest
_PATH_KEYS = {
    'condition_a': 'condition_a',
    'condition_b': 'condition_b',
    'modules': 'modules',
    'output': 'output',
}

# config section -> {config key: argparse dest}
_SECTION_KEYS = {
    'permutation': {
        'n_permutations': 'permutations',
        'seed': 'seed',
        'workers': 'workers',
    },
    'correlation': {
        'ties': 'ties',
    },
    'report': {
        'fdr': 'fdr',
        'alpha': 'alpha',
    },
}

_SHORT_TO_LONG = {
    'm': 'modules',
    'o': 'output',
    'n': 'permutations',
    'j': 'workers',
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
        >>> print(config['permutation']['n_permutations'])
        5000
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


def explicit_arg_names(cli_args: Optional[List[str]]) -> set:
    """argparse dest names of the options that appear in a raw argument list."""
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) >= 2 and arg[1] in _SHORT_TO_LONG:
            # -n50 carries its value attached
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def merge_config_with_args(config: Dict[str, Any], args: Namespace, cli_args: Optional[List[str]] = None) -> Namespace:
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
    explicit_args = explicit_arg_names(cli_args)
    merged = Namespace(**vars(args))

    for config_key, arg_name in _PATH_KEYS.items():
        if config_key in config and hasattr(merged, arg_name):
            config_value = config[config_key]
            if config_value is not None:
                config_value = Path(config_value)
            setattr(merged, arg_name, _merge_value(
                getattr(merged, arg_name),
                config_value,
                arg_name in explicit_args,
            ))

    for section, keys in _SECTION_KEYS.items():
        values = config.get(section) or {}
        for config_key, arg_name in keys.items():
            if config_key in values and hasattr(merged, arg_name):
                setattr(merged, arg_name, _merge_value(
                    getattr(merged, arg_name),
                    values[config_key],
                    arg_name in explicit_args,
                ))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Raises:
        ValueError: If configuration is invalid
    """
    for section in _SECTION_KEYS:
        if section in config and not isinstance(config[section], dict):
            raise ValueError(f"Config section '{section}' must be a mapping")

    permutation = config.get('permutation') or {}
    if 'n_permutations' in permutation:
        n = permutation['n_permutations']
        if not isinstance(n, int) or isinstance(n, bool) or n <= 0:
            raise ValueError(f"n_permutations must be a positive integer, got: {n}")
    if 'workers' in permutation:
        workers = permutation['workers']
        if not isinstance(workers, int) or isinstance(workers, bool) or workers <= 0:
            raise ValueError(f"workers must be a positive integer, got: {workers}")
    if permutation.get('seed') is not None:
        seed = permutation['seed']
        if not isinstance(seed, int) or isinstance(seed, bool) or seed < 0:
            raise ValueError(f"seed must be a non-negative integer, got: {seed}")

    ties = (config.get('correlation') or {}).get('ties')
    if ties is not None and ties not in VALID_TIES:
        raise ValueError(
            f"Invalid tie method '{ties}'. "
            f"Choose from: {', '.join(VALID_TIES)}"
        )

    report = config.get('report') or {}
    fdr = report.get('fdr')
    if fdr is not None and fdr not in VALID_FDR:
        raise ValueError(
            f"Invalid FDR method '{fdr}'. "
            f"Choose from: {', '.join(VALID_FDR)}"
        )
    if 'alpha' in report:
        alpha = report['alpha']
        if not isinstance(alpha, (int, float)) or not (0 < alpha < 1):
            raise ValueError(f"alpha must be in (0, 1), got: {alpha}")
