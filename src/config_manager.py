#!/usr/bin/env python3
"""
Configuration Manager for Chat Migrator
Handles loading and managing configuration files.
"""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

class ConfigManager:
    """Manages configuration files and settings"""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "chat_migrator"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config manager with optional custom config path"""
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_FILE
        self.config_dir = self.config_path.parent

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, creating default if needed"""
        try:
            if not self.config_path.exists():
                logger.info(f"Config file not found at {self.config_path}, creating default")
                self._create_default_config()

            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)

            logger.debug(f"Loaded config from {self.config_path}")
            return self._merge_defaults(config or {})

        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {self.config_path}: {e}")
            logger.info("Using default configuration")
            return self._get_default_config()

    def save_config(self, config: Dict[str, Any]) -> None:
        """Save configuration to file"""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(config, f, default_flow_style=False, allow_unicode=True)

            logger.info(f"Saved config to {self.config_path}")

        except OSError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")
            raise

    def _create_default_config(self) -> None:
        """Create default configuration file"""
        self.save_config(self._get_default_config())

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration dictionary"""
        return {
            'scraper': {
                'max_retries': 3,
                'min_delay': 1.5,
                'max_delay': 4.0,
                'backoff_multiplier': 1.5,
                'jitter_range': 0.5,
                'timeout': 30,
                'save_progress_interval': 5,
                'login_timeout': 120,
                'base_url': 'https://chatgpt.com',
                'headless': False,
                'slow_mo': 100,
                'user_data_dir': '',
                'max_conversations': 0
            },
            'selectors': {},
            'storage': {
                'progress_dir': str(self.DEFAULT_CONFIG_DIR / 'progress'),
                'progress_key': 'chatgpt-scrape-progress'
            },
            'output': {
                'directory': '~/Documents/ChatMigrator',
                'indent': 2,
                'filename_template': 'conversations_{source}_{timestamp}.json',
                'report_template': 'scrape_report_{timestamp}.json'
            },
            'export': {
                'download_timeout': 60,
                'max_retries': 3
            }
        }

    def _merge_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Fill sections missing from a user file with their defaults"""
        merged = self._get_default_config()
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                section = copy.deepcopy(merged[key])
                section.update(value)
                merged[key] = section
            else:
                merged[key] = value
        return merged

    def get_nested_value(self, config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
        """Get nested configuration value using dot notation (e.g., 'scraper.timeout')"""
        keys = key_path.split('.')
        value = config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def update_config(self, updates: Dict[str, Any]) -> None:
        """Update configuration with new values"""
        config = self.load_config()
        config.update(updates)
        self.save_config(config)
