"""Configuration loading for the offline-mode controller."""

__all__ = ["CONFIG_DIR_ENV", "ConfigController"]


def __getattr__(name: str):
    if name == "ConfigController":
        from config.controller import ConfigController

        return ConfigController
    if name == "CONFIG_DIR_ENV":
        from config.controller import CONFIG_DIR_ENV

        return CONFIG_DIR_ENV
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
