"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

APP_DIR_NAME = 'feishu-docs-exporter'

DEFAULT_CONFIG: Dict[str, Any] = {
    'feishu': {
        'app_id': None,
        'app_secret': None,
        'base_url': 'https://open.feishu.cn'
    },
    'output': {
        'image_dir': 'static',
        'title_as_filename': False,
        'use_html_tags': False,
        'skip_img_download': False,
        'dump_json': False,
        'web_base_url': 'https://www.feishu.cn'
    },
    'crawl': {
        'max_concurrency': 10,
        'cancel_on_error': True
    },
    'advanced': {
        'request_timeout': 60,
        'max_retries': 3,
        'retry_backoff_factor': 1.0,
        'page_size': 500
    },
    'logging': {
        'level': None,
        'file': None
    }
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are filled in from DEFAULT_CONFIG.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a deep copy of config with DEFAULT_CONFIG filled in underneath."""
        return _deep_merge(copy.deepcopy(DEFAULT_CONFIG), config)

    @staticmethod
    def default_config_path() -> Path:
        """Per-user configuration file location (XDG config dir)."""
        base = os.getenv('XDG_CONFIG_HOME') or os.path.join(os.path.expanduser('~'), '.config')
        return Path(base) / APP_DIR_NAME / 'config.yaml'

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'feishu.app_id')
        cls._validate_required_field(config, 'feishu.app_secret')

        base_url = get_nested(config, 'feishu.base_url', 'https://open.feishu.cn')
        cls._validate_url(base_url, 'feishu.base_url')

        image_dir = get_nested(config, 'output.image_dir', 'static')
        if not isinstance(image_dir, str) or not image_dir.strip():
            raise ValueError("output.image_dir must be a non-empty string")
        if os.path.isabs(image_dir):
            raise ValueError("output.image_dir must be relative to the output directory")

        for flag in ('title_as_filename', 'use_html_tags', 'skip_img_download', 'dump_json'):
            value = get_nested(config, f'output.{flag}', False)
            if not isinstance(value, bool):
                raise ValueError(f"output.{flag} must be a boolean")

        max_concurrency = get_nested(config, 'crawl.max_concurrency', 10)
        if not isinstance(max_concurrency, int) or isinstance(max_concurrency, bool) or max_concurrency < 1:
            raise ValueError("crawl.max_concurrency must be a positive integer")

        cancel_on_error = get_nested(config, 'crawl.cancel_on_error', True)
        if not isinstance(cancel_on_error, bool):
            raise ValueError("crawl.cancel_on_error must be a boolean")

        timeout = get_nested(config, 'advanced.request_timeout', 60)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

        page_size = get_nested(config, 'advanced.page_size', 500)
        if not isinstance(page_size, int) or not 1 <= page_size <= 500:
            raise ValueError("advanced.page_size must be an integer between 1 and 500")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('feishu', 'output', 'crawl', 'logging'):
            if section not in merged or merged[section] is None:
                merged[section] = {}

        if getattr(args, 'app_id', None):
            merged['feishu']['app_id'] = args.app_id

        if getattr(args, 'app_secret', None):
            merged['feishu']['app_secret'] = args.app_secret

        if getattr(args, 'dump', False):
            merged['output']['dump_json'] = True

        if getattr(args, 'title_as_filename', None) is not None:
            merged['output']['title_as_filename'] = args.title_as_filename

        if getattr(args, 'skip_img_download', None) is not None:
            merged['output']['skip_img_download'] = args.skip_img_download

        if getattr(args, 'concurrency', None):
            merged['crawl']['max_concurrency'] = args.concurrency

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Unsubstituted ${VAR} means the environment variable is not set
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: Any, field_name: str) -> None:
        """Validate URL format."""
        if not isinstance(url, str):
            raise ValueError(f"{field_name} must be a string")
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "feishu.app_id")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
