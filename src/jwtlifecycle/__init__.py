"""Core package for JWT access/refresh token lifecycle and revocation."""

from jwtlifecycle.bearer import authenticate_headers, extract_bearer_token
from jwtlifecycle.codec import TokenCodec, parse_expiry
from jwtlifecycle.core import FailurePolicy, TokenLifecycleManager, generate_jti
from jwtlifecycle.errors import (
    CacheError,
    CacheUnavailableError,
    ConfigurationError,
    SignatureOrFormatError,
    TokenCreationError,
    TokenExpiredError,
    TokenLifecycleError,
    TokenRevokedError,
    TokenValidationError,
)
from jwtlifecycle.keysets import KeySetCache, KeySetEntry
from jwtlifecycle.revocation import RevocationSet
from jwtlifecycle.service import TokenConfig, TokenService, load_token_config_from_dict
from jwtlifecycle.stores import CacheBackend, ExpiringStore, RedisExpiringStore, SQLiteExpiringStore

__all__ = [
    "__version__",
    "TokenService",
    "TokenConfig",
    "load_token_config_from_dict",
    "TokenLifecycleManager",
    "FailurePolicy",
    "generate_jti",
    "TokenCodec",
    "parse_expiry",
    "CacheBackend",
    "ExpiringStore",
    "SQLiteExpiringStore",
    "RedisExpiringStore",
    "RevocationSet",
    "KeySetCache",
    "KeySetEntry",
    "extract_bearer_token",
    "authenticate_headers",
    "TokenLifecycleError",
    "ConfigurationError",
    "TokenCreationError",
    "TokenValidationError",
    "SignatureOrFormatError",
    "TokenExpiredError",
    "TokenRevokedError",
    "CacheUnavailableError",
    "CacheError",
]

__version__ = "0.1.0"
