"""Configuration management for the legal proof system."""

from .config import SystemConfig, ZKConfig, CircuitConfig, load_config, save_config, load_policies

__all__ = ['SystemConfig', 'ZKConfig', 'CircuitConfig', 'load_config', 'save_config', 'load_policies']
