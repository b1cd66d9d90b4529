from .loader import DEFAULT_CONFIG_TEMPLATE, load_config
from .models import (
    ContextConfig,
    DocumentConfig,
    HashingConfig,
    SnapshotConfig,
    TransmarkConfig,
    TransPair,
)

__all__ = [
    "DEFAULT_CONFIG_TEMPLATE",
    "ContextConfig",
    "DocumentConfig",
    "HashingConfig",
    "SnapshotConfig",
    "TransPair",
    "TransmarkConfig",
    "load_config",
]
