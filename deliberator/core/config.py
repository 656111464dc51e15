"""
Configuration management for the Deliberator reasoning core
"""

import os
import yaml
from typing import Dict, Any, Optional
from pathlib import Path
from .exceptions import ConfigurationError


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be numeric, got {raw!r}")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = _env_float(name, default)
    return int(value) if value is not None else None


class Config:
    """Configuration manager with environment-specific settings"""

    def __init__(self, config_path: Optional[str] = None, environment: str = "default"):
        self.environment = environment
        self._config = self._load_config(config_path)

    def _load_config(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from YAML files"""

        # Default configuration
        default_config = {
            'sampling': {
                'nb_samples': _env_int('DELIBERATOR_NB_SAMPLES', 1000),
                'max_sampling_time': _env_float('DELIBERATOR_MAX_SAMPLING_TIME', 0.25),  # seconds
                'max_workers': _env_int('DELIBERATOR_MAX_WORKERS', 4),
                'batch_size': 50,
                'seed': _env_int('DELIBERATOR_SEED', None)
            },
            'planning': {
                'horizon': _env_int('DELIBERATOR_HORIZON', 1),
                'discount_factor': _env_float('DELIBERATOR_DISCOUNT_FACTOR', 0.8),
                'nb_best_actions': _env_int('DELIBERATOR_NB_BEST_ACTIONS', 100),
                'nb_best_observations': _env_int('DELIBERATOR_NB_BEST_OBSERVATIONS', 3),
                'min_observation_prob': _env_float('DELIBERATOR_MIN_OBSERVATION_PROB', 0.1),
                'timeout': _env_float('DELIBERATOR_PLANNER_TIMEOUT', None),  # None = 2 x max_sampling_time
                'utility_epsilon': 0.001,
                'max_propagation_rounds': 10
            },
            'learning': {
                'max_snapshots': _env_int('DELIBERATOR_MAX_SNAPSHOTS', 32)
            },
            'logging': {
                'level': os.getenv('DELIBERATOR_LOG_LEVEL', 'INFO'),
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            }
        }

        # Try to load from file if provided
        if config_path:
            config_file = Path(config_path)
            if not config_file.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
        else:
            # Look for config files in standard locations
            possible_paths = [
                Path('config') / f'{self.environment}.yaml',
                Path('config') / 'default.yaml'
            ]

            config_file = None
            for path in possible_paths:
                if path.exists():
                    config_file = path
                    break

        if config_file and config_file.exists():
            try:
                with open(config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {config_file}: {e}")
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(f"Config file {config_file} must contain a mapping")
                default_config = self._deep_merge(default_config, file_config)

        return default_config

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value using dot notation (e.g., 'planning.horizon')"""
        keys = path.split('.')
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, path: str, value: Any) -> None:
        """Set config value using dot notation"""
        keys = path.split('.')
        config = self._config

        for key in keys[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    @property
    def sampling(self) -> Dict[str, Any]:
        """Inference engine settings"""
        settings = dict(self.get('sampling', {}))
        if int(settings.get('nb_samples', 0)) < 1:
            raise ConfigurationError("sampling.nb_samples must be at least 1")
        if float(settings.get('max_sampling_time', 0)) <= 0:
            raise ConfigurationError("sampling.max_sampling_time must be positive")
        if int(settings.get('max_workers', 0)) < 1:
            raise ConfigurationError("sampling.max_workers must be at least 1")
        if int(settings.get('batch_size', 0)) < 1:
            raise ConfigurationError("sampling.batch_size must be at least 1")
        return settings

    @property
    def planning(self) -> Dict[str, Any]:
        """Forward planner settings, with the timeout resolved"""
        settings = dict(self.get('planning', {}))
        if int(settings.get('horizon', 0)) < 1:
            raise ConfigurationError("planning.horizon must be at least 1")
        discount = float(settings.get('discount_factor', 0))
        if not 0.0 < discount <= 1.0:
            raise ConfigurationError("planning.discount_factor must lie in (0, 1]")
        if int(settings.get('nb_best_actions', 0)) < 1 or int(settings.get('nb_best_observations', 0)) < 1:
            raise ConfigurationError("planning.nb_best_actions and nb_best_observations must be at least 1")
        if settings.get('timeout') is None:
            settings['timeout'] = 2 * float(self.sampling['max_sampling_time'])
        return settings

    @property
    def learning(self) -> Dict[str, Any]:
        """Reward learner settings, seeded like the sampler unless set explicitly"""
        settings = dict(self.get('learning', {}))
        if int(settings.get('max_snapshots', 0)) < 1:
            raise ConfigurationError("learning.max_snapshots must be at least 1")
        if settings.get('seed') is None:
            settings['seed'] = self.get('sampling.seed')
        return settings

    @property
    def logging(self) -> Dict[str, str]:
        """Logging configuration"""
        return self.get('logging', {})

    def to_dict(self) -> Dict[str, Any]:
        """Return full configuration as dictionary"""
        return self._config.copy()
