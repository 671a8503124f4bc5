"""catmatch - Standardisation de listes de matériaux contre le catalogue CATMAT."""

from catmatch.config import CatmatchError, ConfigError, ConfigFileError, ValidationError

__all__ = [
    "__version__",
    "CatmatchError",
    "ConfigError",
    "ConfigFileError",
    "ValidationError",
]

__version__ = "0.1.0"
