from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel

from src.finstream.runtime.config.config_data import ConfigData
from src.finstream.runtime.config.config_template import load_config
from src.finstream.runtime.settings import EnvironmentVariables


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


_env = EnvironmentVariables()
_default_config = load_config(_env.config_path, _env.environment)
_default_context = AppContext(config=_default_config)

_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=_default_context
)


def get_context() -> AppContext:
    """Get the current application context."""
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    """Set the current application context.

    Args:
        context: AppContext instance to set as current.
    """
    return _app_context.set(context)


def _explicit_values(model: BaseModel) -> dict[str, Any]:
    """Collect the values assigned on ``model`` and on the models it contains.

    A nested model that was assigned whole is taken in full. One that was
    only mutated in place contributes just its own assigned fields. A dict of
    models is taken in full once any member carries an assignment.
    """
    assigned = model.model_fields_set
    values: dict[str, Any] = {}

    for name in type(model).model_fields:
        value = getattr(model, name)

        if isinstance(value, BaseModel):
            nested = value.model_dump() if name in assigned else _explicit_values(value)
            if nested:
                values[name] = nested
        elif isinstance(value, dict):
            touched = name in assigned or any(
                isinstance(v, BaseModel) and _explicit_values(v) for v in value.values()
            )
            if touched:
                values[name] = {
                    k: v.model_dump() if isinstance(v, BaseModel) else v
                    for k, v in value.items()
                }
        elif name in assigned:
            values[name] = value

    return values


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _merge_configs(base_config: ConfigData, override_config: ConfigData) -> ConfigData:
    merged = _deep_merge(base_config.model_dump(), _explicit_values(override_config))
    return ConfigData.model_validate(merged)


@contextmanager
def with_context(config_override: ConfigData | None = None):
    """Context manager for temporarily overriding the application context.

    The override is merged with the current context, so partial overrides
    inherit every value they do not set.

    Example:
        override = ConfigData()
        override.jwt.clock_skew = 0
        with with_context(override):
            assert get_config().jwt.clock_skew == 0
    """
    if config_override is None:
        yield
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    merged_config = _merge_configs(get_context().config, config_override)
    token = set_context(replace(get_context(), config=merged_config))
    try:
        yield
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the entire current configuration."""
    set_context(replace(get_context(), config=config))


def get_config() -> ConfigData:
    """Convenience function to get the current configuration."""
    return get_context().config
