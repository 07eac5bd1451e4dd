"""Configuration template substitution utilities."""

import os
import re
from pathlib import Path

import yaml
from loguru import logger
from pydantic_core import ValidationError

from src.finstream.runtime.config.config_data import ConfigData


# ${NAME}, ${NAME:-default} or ${NAME:?message}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<op>[-?])(?P<arg>[^}]*))?\}")


def substitute_env_vars(text: str) -> str:
    """Resolve ``${...}`` placeholders in ``text`` from the environment.

    ``${NAME:-default}`` falls back to ``default``; the other two forms are
    required and raise ``ValueError`` when ``NAME`` is unset.
    """

    def resolve(match: re.Match[str]) -> str:
        name, op, arg = match.group("name", "op", "arg")
        value = os.getenv(name)
        if value is not None:
            return value
        if op == "-":
            return arg
        if op == "?":
            raise ValueError(f"Required environment variable {name}: {arg}")
        raise ValueError(f"Required environment variable {name} not set")

    return _PLACEHOLDER.sub(resolve, text)


def apply_environment_overrides(env_mode: str) -> None:
    """Copy ``<ENV>_FOO`` variables onto ``FOO`` for the active environment."""
    prefix = f"{env_mode.upper()}_"
    overrides = [
        (var, value) for var, value in os.environ.items() if var.startswith(prefix)
    ]
    for var_name, var_value in overrides:
        new_var_name = var_name[len(prefix) :]
        os.environ[new_var_name] = var_value
        logger.debug(f"Set environment variable {new_var_name} from {var_name}")


def load_templated_yaml(file_path: Path, env_mode: str = "development") -> ConfigData:
    """
    Load a YAML file with environment variable substitution.

    Args:
        file_path: Path to the YAML file
        env_mode: Active environment; selects the override variable prefix

    Returns:
        Parsed and validated configuration

    Raises:
        ValueError: If required environment variables are missing or the
            file does not describe a valid configuration
        FileNotFoundError: If the YAML file doesn't exist
    """
    with open(file_path) as f:
        content = f.read()

    logger.info(f"Loading configuration for environment: {env_mode}")
    apply_environment_overrides(env_mode)

    substituted_content = substitute_env_vars(content)

    try:
        loaded = yaml.safe_load(substituted_content)
        if not loaded:
            raise ValueError("Failed to parse YAML")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e

    try:
        config = ConfigData(**loaded.get("config", {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    if config.oidc.tenants:
        enabled = {}
        for name, tenant in config.oidc.tenants.items():
            if tenant.enabled:
                enabled[name] = tenant
            else:
                logger.info(f"Skipping disabled tenant '{name}'")
        config.oidc.tenants = enabled

    if not config.oidc.tenants:
        logger.warning("No token tenants are enabled; every request will be rejected")

    return config


def load_config(file_path: Path, env_mode: str = "development") -> ConfigData:
    """Load ``file_path`` if it exists, otherwise fall back to defaults."""
    if not file_path.exists():
        logger.warning(f"{file_path} not found; using default configuration")
        return ConfigData()
    return load_templated_yaml(file_path, env_mode)
