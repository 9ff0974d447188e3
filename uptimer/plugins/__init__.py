"""Provider loading and lifecycle."""

from .loader import (
    LoadError,
    Provider,
    ProviderContext,
    SetupError,
    load_builtin_providers,
    load_providers,
    setup_provider,
    shutdown_provider,
)
