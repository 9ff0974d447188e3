from uptimer.targets.registry import (
    CheckConfig,
    ConfigError,
    TargetConfig,
    TargetRegistry,
)

__all__ = [
    "CheckConfig",
    "ConfigError",
    "TargetConfig",
    "TargetRegistry",
]
