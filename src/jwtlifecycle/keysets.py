"""Cache de JWKS por URL do provedor de identidade."""

from dataclasses import dataclass
from typing import Any, List, Optional

from jwtlifecycle.stores import ExpiringStore


@dataclass(frozen=True)
class KeySetEntry:
    """Chaves de verificacao publicadas por um provedor e o instante de expiracao."""

    keys: List[Any]
    expires_at: float


class KeySetCache(ExpiringStore):
    """Limita as chamadas ao endpoint JWKS dos provedores guardando as chaves com TTL."""

    def set(  # type: ignore[override]
        self, provider_url: str, keys: List[Any], ttl_seconds: float
    ) -> None:
        expires_at = self._time_fn() + ttl_seconds
        self._put(provider_url, KeySetEntry(keys=list(keys), expires_at=expires_at), expires_at)

    def get(self, provider_url: str) -> Optional[KeySetEntry]:
        return super().get(provider_url)

    def has(self, provider_url: str) -> bool:
        return provider_url in self

    def size(self) -> int:
        return len(self)
