"""Blacklist de identificadores de token (jti) com TTL."""

from typing import Optional

from jwtlifecycle.errors import ConfigurationError
from jwtlifecycle.stores import CacheBackend, ExpiringStore, maybe_await

DEFAULT_REVOCATION_TTL = 3600


class RevocationSet:
    """Conjunto de jti revogados sobre qualquer CacheBackend.

    Presenca de um jti significa rejeitar o token independentemente da
    assinatura, ate a entrada expirar. Um default_ttl menor que a vida restante
    do token revoga por menos tempo que o necessario; cabe a quem chama passar
    ttl_seconds quando conhece o exp do token.
    """

    def __init__(
        self,
        store: Optional[CacheBackend] = None,
        default_ttl: int = DEFAULT_REVOCATION_TTL,
        prefix: str = "revoked:",
    ) -> None:
        """Inicializa a blacklist.

        Args:
            store (Optional[CacheBackend]): Backend de armazenamento. Usa um ExpiringStore
                em memoria se nao informado.
            default_ttl (int): TTL em segundos usado quando add nao recebe ttl_seconds.
            prefix (str): Prefixo das chaves gravadas no backend.

        Raises:
            ConfigurationError: Se default_ttl nao for um inteiro positivo.
        """
        if isinstance(default_ttl, bool) or not isinstance(default_ttl, int) or default_ttl <= 0:
            raise ConfigurationError("default_ttl deve ser um inteiro positivo")
        self._store = store if store is not None else ExpiringStore()
        self._default_ttl = default_ttl
        self._prefix = prefix

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def key_for(self, jti: str) -> str:
        """Chave gravada no backend para jti.

        Raises:
            ValueError: Se jti nao for uma string nao vazia.
        """
        if not isinstance(jti, str) or not jti.strip():
            raise ValueError("jti deve ser uma string nao vazia")
        return f"{self._prefix}{jti}"

    async def add(self, jti: str, ttl_seconds: Optional[float] = None) -> None:
        """Revoga jti por ttl_seconds (ou default_ttl)."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        await maybe_await(self._store.set(self.key_for(jti), True, ttl))

    async def is_blacklisted(self, jti: str) -> bool:
        return await maybe_await(self._store.get(self.key_for(jti))) is not None

    async def remove(self, jti: str) -> None:
        await maybe_await(self._store.delete(self.key_for(jti)))
