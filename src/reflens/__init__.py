"""reflens: multi-strategy code reference search."""

__version__ = "0.1.0"

from .config import Config
from .entities import EnhancedRecord, MatchRecord, SearchResult
from .errors import ConfigError, InvalidSearchRequest, ReflensError

__all__ = [
    "__version__",
    "Config",
    "ConfigError",
    "EnhancedRecord",
    "InvalidSearchRequest",
    "MatchRecord",
    "ReflensError",
    "SearchResult",
]
