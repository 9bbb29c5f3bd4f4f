"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    'source': {
        'vault_path': './vault',
        'include': ['**/*.md', '**/*.canvas'],
        'exclude': ['.obsidian/**', '.trash/**'],
    },
    'export': {
        'output_directory': './site',
        'incremental_export': True,
        'flatten_export_paths': False,
        'fix_links': True,
        'inline_media': False,
        'relative_header_links': False,
        'add_head_tag': True,
        'add_title': True,
        'title_property': 'title',
        'show_default_icons': True,
        'default_media_icon': 'lucide//file-image',
        'default_file_icon': 'lucide//file',
        'site_url': '',
        'site_name': '',
        'author_name': '',
        'index_file': 'site-lib/metadata.json',
        'prune_stale_records': False,
        'immutable_fonts': True,
        'attachment_handling': {
            'max_file_size': 52428800,
            'skip_file_types': [],
        },
    },
    'assets': {
        'directory': None,
        'target_directory': 'site-lib',
    },
    'renderer': {
        'type': 'markdown',
        'extensions': ['extra', 'sane_lists'],
    },
    'logging': {
        'level': 'WARNING',
        'file': None,
        'progress_bars': True,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are filled from DEFAULT_CONFIG.

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

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)

        return cls.with_defaults(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge a configuration over DEFAULT_CONFIG."""
        return _deep_merge(copy.deepcopy(DEFAULT_CONFIG), config)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'source.vault_path')
        vault_path = get_nested(config, 'source.vault_path')
        if vault_path and not os.path.isdir(vault_path):
            raise ValueError(f"source.vault_path '{vault_path}' is not a valid directory")

        cls._validate_required_field(config, 'export.output_directory')
        output_dir = get_nested(config, 'export.output_directory')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        for flag in ('incremental_export', 'flatten_export_paths', 'fix_links', 'inline_media',
                     'relative_header_links', 'add_head_tag', 'add_title', 'show_default_icons',
                     'prune_stale_records', 'immutable_fonts'):
            value = get_nested(config, f'export.{flag}', False)
            if not isinstance(value, bool):
                raise ValueError(f"export.{flag} must be a boolean")

        title_property = get_nested(config, 'export.title_property', 'title')
        if not isinstance(title_property, str) or not title_property:
            raise ValueError("export.title_property must be a non-empty string")

        site_url = get_nested(config, 'export.site_url', '')
        if site_url:
            cls._validate_url(site_url, 'export.site_url')

        index_file = get_nested(config, 'export.index_file', 'site-lib/metadata.json')
        if not index_file or os.path.isabs(str(index_file)):
            raise ValueError("export.index_file must be a path relative to the output directory")

        max_file_size = get_nested(config, 'export.attachment_handling.max_file_size', 0)
        if not isinstance(max_file_size, int) or max_file_size < 0:
            raise ValueError("export.attachment_handling.max_file_size must be a non-negative integer")

        assets_dir = get_nested(config, 'assets.directory')
        if assets_dir and not os.path.isdir(assets_dir):
            raise ValueError(f"assets.directory '{assets_dir}' is not a valid directory")

        renderer_type = get_nested(config, 'renderer.type', 'markdown')
        if renderer_type not in ['markdown']:
            raise ValueError("renderer.type must be 'markdown'")

        level = get_nested(config, 'logging.level', 'WARNING')
        if str(level).upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"logging.level '{level}' is not a valid log level")

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

        # Ensure nested dictionaries exist
        for section in ('source', 'export', 'logging'):
            if section not in merged:
                merged[section] = {}

        if getattr(args, 'vault', None):
            merged['source']['vault_path'] = args.vault

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'incremental', None) is not None:
            merged['export']['incremental_export'] = args.incremental

        if getattr(args, 'site_url', None):
            merged['export']['site_url'] = args.site_url

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0) or 0
        if verbose >= 2:
            merged['logging']['level'] = 'DEBUG'
        elif verbose >= 1:
            merged['logging']['level'] = 'INFO'

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

        # Check for unsubstituted environment variables
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


@dataclass
class ExportOptions:
    """Typed view of the 'export' configuration section.

    Each option switches exactly one behavior of the exporter.
    """

    incremental_export: bool = True
    flatten_export_paths: bool = False
    fix_links: bool = True
    inline_media: bool = False
    relative_header_links: bool = False
    add_head_tag: bool = True
    add_title: bool = True
    title_property: str = 'title'
    show_default_icons: bool = True
    default_media_icon: str = 'lucide//file-image'
    default_file_icon: str = 'lucide//file'
    site_url: str = ''
    site_name: str = ''
    author_name: str = ''
    index_file: str = 'site-lib/metadata.json'
    prune_stale_records: bool = False
    immutable_fonts: bool = True
    max_attachment_size: int = 52428800
    skip_file_types: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportOptions':
        """
        Build options from a configuration dictionary.

        Args:
            config: Full configuration (only the 'export' section is read)

        Returns:
            ExportOptions with defaults for missing keys
        """
        export_config = config.get('export', {}) or {}
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in export_config.items() if key in known}

        attachment_config = export_config.get('attachment_handling', {}) or {}
        if 'max_file_size' in attachment_config:
            values['max_attachment_size'] = attachment_config['max_file_size']
        if 'skip_file_types' in attachment_config:
            values['skip_file_types'] = list(attachment_config['skip_file_types'] or [])

        return cls(**values)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base (override wins)."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "export.output_directory")
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


__all__ = ['ConfigLoader', 'ExportOptions', 'DEFAULT_CONFIG', 'get_nested']
