"""Configuration loading for the assist runtime."""

from typing import Any

__all__ = ["ConfigController", "load_config"]


def load_config() -> dict[str, Any]:
    """Return the merged configuration from the process-wide controller."""

    from config.controller import ConfigController

    return ConfigController.get_instance().get_config()


def __getattr__(name: str):
    if name == "ConfigController":
        from config.controller import ConfigController

        return ConfigController
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
