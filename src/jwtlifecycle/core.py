"""Ciclo de vida de tokens JWT: emissao, verificacao e invalidacao.

Este módulo combina o TokenCodec com um cache injetado para acrescentar jti
unico, invalidacao preguicosa por token e controle de TTL. Existe uma instancia
por papel de token (access e refresh), sem subclasses.

Classes principais:
    - TokenLifecycleManager: emite, verifica, invalida e decodifica tokens
    - FailurePolicy: politica aplicada quando o cache nao responde a tempo
"""

import asyncio
import logging
import secrets
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from redis.exceptions import TimeoutError as RedisTimeoutError

from jwtlifecycle.codec import TokenCodec
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
from jwtlifecycle.revocation import RevocationSet
from jwtlifecycle.stores import CacheBackend, maybe_await

DEFAULT_JTI_BYTES = 16

# Falhas de leitura tratadas pela FailurePolicy: wait_for, socket do Redis e builtin.
CACHE_TIMEOUT_ERRORS = (asyncio.TimeoutError, TimeoutError, RedisTimeoutError)


class FailurePolicy(Enum):
    """Como tratar um cache que nao respondeu dentro de cache_timeout."""

    FAIL_CLOSED = "fail_closed"
    FAIL_OPEN = "fail_open"


def generate_jti(num_bytes: int = DEFAULT_JTI_BYTES) -> str:
    """Gera um identificador aleatorio em hexadecimal com 2 * num_bytes caracteres."""
    return secrets.token_hex(num_bytes)


class TokenLifecycleManager:
    """Emite, verifica e revoga tokens de um papel (access ou refresh).

    Dois mecanismos de revogacao coexistem e nao devem ser unificados:

    * marcador de invalidacao em ``token:<jti>``: fail-open. Se o marcador nao
      estiver no cache (despejado, nunca gravado), o token e aceito.
    * RevocationSet: fail-closed por presenca. Se o jti estiver la, o token e
      rejeitado mesmo com assinatura valida.
    """

    def __init__(
        self,
        codec: TokenCodec,
        logger: logging.Logger,
        cache: Optional[CacheBackend] = None,
        revocation_set: Optional[RevocationSet] = None,
        jti_bytes: int = DEFAULT_JTI_BYTES,
        cache_timeout: Optional[float] = None,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_CLOSED,
        name: str = "token",
    ) -> None:
        """Inicializa o gerenciador.

        Args:
            codec (TokenCodec): Codec configurado para este papel.
            logger: Logger do servico.
            cache (Optional[CacheBackend]): Cache dos marcadores de invalidacao.
            revocation_set (Optional[RevocationSet]): Blacklist consultada na verificacao.
            jti_bytes (int): Bytes aleatorios do jti gerado.
            cache_timeout (Optional[float]): Limite em segundos para cada chamada ao cache.
            failure_policy (FailurePolicy): Politica para timeouts do cache na verificacao.
            name (str): Nome do papel, usado nos logs.

        Raises:
            ConfigurationError: Se jti_bytes, cache_timeout ou failure_policy forem invalidos.
        """
        if isinstance(jti_bytes, bool) or not isinstance(jti_bytes, int) or jti_bytes <= 0:
            raise ConfigurationError("jti_bytes deve ser um inteiro positivo")
        if cache_timeout is not None and cache_timeout <= 0:
            raise ConfigurationError("cache_timeout deve ser positivo")
        if not isinstance(failure_policy, FailurePolicy):
            raise ConfigurationError("failure_policy deve ser FailurePolicy")

        self._codec = codec
        self._logger = logger
        self._cache = cache
        self._revocation_set = revocation_set
        self._jti_bytes = jti_bytes
        self._cache_timeout = cache_timeout
        self._failure_policy = failure_policy
        self._name = name

        logger.debug(
            "TokenLifecycleManager(%s) inicializado com algoritmo: %s", name, codec.algorithm
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def codec(self) -> TokenCodec:
        return self._codec

    @property
    def ttl_seconds(self) -> int:
        return self._codec.ttl_seconds

    @staticmethod
    def cache_key(jti: str) -> str:
        return f"token:{jti}"

    async def _call_cache(self, operation: str, key: str, call: Callable[[], Any]) -> Any:
        """Executa uma chamada ao cache com timeout opcional.

        Raises:
            asyncio.TimeoutError: Se cache_timeout for excedido.
            TimeoutError: Se o proprio backend sinalizar timeout (ex.: socket do Redis).
            CacheError: Para qualquer outra falha do backend.
        """
        try:
            if self._cache_timeout is None:
                return await maybe_await(call())
            return await asyncio.wait_for(maybe_await(call()), timeout=self._cache_timeout)
        except CACHE_TIMEOUT_ERRORS:
            raise
        except Exception as e:
            self._logger.exception("Falha no cache (%s) key=%s", operation, key)
            raise CacheError(f"Falha no cache durante {operation} de {key}: {e}") from e

    async def _write_marker(
        self, cache: CacheBackend, jti: str, invalidate: bool, ttl_seconds: float
    ) -> None:
        key = self.cache_key(jti)
        try:
            await self._call_cache(
                "set", key, lambda: cache.set(key, {"invalidate": invalidate}, ttl_seconds)
            )
        except CACHE_TIMEOUT_ERRORS as e:
            self._logger.error("Timeout ao gravar marcador %s", key)
            raise CacheUnavailableError(f"Cache nao respondeu ao gravar {key}") from e

    async def create_token(self, payload: Mapping[str, Any]) -> str:
        """Cria um token assinado e registra o marcador de invalidacao.

        Args:
            payload (Mapping[str, Any]): Claims da aplicacao. E copiado; um jti e gerado
                se ausente.

        Returns:
            str: Token JWT assinado.

        Raises:
            TypeError: Se payload nao for um mapeamento.
            TokenCreationError: Se o jti informado nao for uma string nao vazia, ou se a
                assinatura falhar.
            CacheUnavailableError: Se o cache exceder cache_timeout.
            CacheError: Se o cache falhar.
        """
        if not isinstance(payload, Mapping):
            raise TypeError("payload deve ser um mapeamento")

        claims: Dict[str, Any] = dict(payload)
        jti = claims.get("jti")
        if jti is None:
            claims["jti"] = generate_jti(self._jti_bytes)
            self._logger.debug("jti gerado automaticamente: %s", claims["jti"])
        elif not isinstance(jti, str) or not jti.strip():
            raise TokenCreationError("jti deve ser uma string nao vazia")

        token = self._codec.sign(claims)

        if self._cache is not None:
            await self._write_marker(self._cache, claims["jti"], False, self._codec.ttl_seconds)
        return token

    def _apply_failure_policy(self, what: str, error: BaseException) -> bool:
        """Decide o resultado de uma leitura que excedeu cache_timeout.

        Returns:
            bool: False (nao revogado) sob FAIL_OPEN.

        Raises:
            CacheUnavailableError: Sob FAIL_CLOSED.
        """
        politica = self._failure_policy.value
        if self._failure_policy is FailurePolicy.FAIL_OPEN:
            self._logger.warning("Timeout ao consultar %s; politica %s aceita", what, politica)
            return False
        self._logger.warning("Timeout ao consultar %s; politica %s rejeita", what, politica)
        raise CacheUnavailableError(f"Cache nao respondeu ao consultar {what}") from error

    async def _is_invalidated(self, cache: CacheBackend, jti: str) -> bool:
        key = self.cache_key(jti)
        try:
            entry = await self._call_cache("get", key, lambda: cache.get(key))
        except CACHE_TIMEOUT_ERRORS as e:
            return self._apply_failure_policy(key, e)
        return isinstance(entry, Mapping) and entry.get("invalidate") is True

    async def _is_blacklisted(self, revocation_set: RevocationSet, jti: str) -> bool:
        key = revocation_set.key_for(jti)
        try:
            return await self._call_cache(
                "get", key, lambda: revocation_set.is_blacklisted(jti)
            )
        except CACHE_TIMEOUT_ERRORS as e:
            return self._apply_failure_policy(key, e)

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """Verifica o token e consulta os mecanismos de revogacao.

        Returns:
            Dict[str, Any]: Payload decodificado.

        Raises:
            SignatureOrFormatError: Token malformado, algoritmo ou assinatura invalidos.
            TokenExpiredError: Token expirado.
            TokenRevokedError: jti na blacklist ou marcador com invalidate=True.
            CacheUnavailableError: Timeout do cache com politica fail_closed.
            CacheError: Falha do backend de cache.
        """
        try:
            payload = self._codec.verify(token)
        except TokenExpiredError:
            self._logger.info("JWT %s expirado", self._name)
            raise
        except SignatureOrFormatError as e:
            self._logger.warning("JWT %s invalido: %s", self._name, e)
            raise
        except TokenValidationError:
            self._logger.exception("Erro inesperado ao verificar JWT %s", self._name)
            raise

        jti = payload.get("jti")
        if jti is None:
            return payload
        if not isinstance(jti, str) or not jti.strip():
            self._logger.warning("JWT %s com jti invalido", self._name)
            raise SignatureOrFormatError("jti deve ser uma string nao vazia")

        if self._revocation_set is not None and await self._is_blacklisted(
            self._revocation_set, jti
        ):
            self._logger.warning("JWT %s rejeitado pela blacklist. jti=%s", self._name, jti)
            raise TokenRevokedError("Token revogado", reason="blacklisted")

        if self._cache is not None and await self._is_invalidated(self._cache, jti):
            self._logger.warning("JWT %s invalidado. jti=%s", self._name, jti)
            raise TokenRevokedError("Token invalidado", reason="invalidated")

        return payload

    def remaining_ttl(self, payload: Mapping[str, Any]) -> int:
        """Segundos ate o exp do payload (mais leeway), no minimo 1.

        Sem exp numerico, usa o TTL configurado do papel.
        """
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return self._codec.ttl_seconds
        return max(int(exp) - self._codec.now() + self._codec.leeway, 1)

    async def invalidate_token(self, token: str) -> None:
        """Marca o token como invalidado no cache.

        O token e decodificado sem verificar assinatura nem expiracao: um token
        expirado ou ja invalidado ainda precisa ter seu jti registrado. O marcador
        vive pelo tempo restante do token, para que qualquer verificacao ate o exp
        encontre invalidate=True.

        Raises:
            TokenLifecycleError: Se nenhum cache estiver configurado.
            SignatureOrFormatError: Se o token nao puder ser decodificado ou nao tiver jti.
            CacheUnavailableError: Se o cache exceder cache_timeout.
            CacheError: Se o cache falhar.
        """
        if self._cache is None:
            raise TokenLifecycleError("Cache nao configurado; impossivel invalidar token")

        payload = self._codec.decode_unchecked(token)
        if payload is None:
            raise SignatureOrFormatError("Formato de token invalido")
        jti = payload.get("jti")
        if not isinstance(jti, str) or not jti.strip():
            raise SignatureOrFormatError("Formato de token invalido; jti ausente")

        ttl_seconds = self.remaining_ttl(payload)
        await self._write_marker(self._cache, jti, True, ttl_seconds)
        self._logger.info("JWT %s invalidado. jti=%s ttl=%s", self._name, jti, ttl_seconds)

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decodifica sem verificar; nao use para autorizar."""
        return self._codec.decode_unchecked(token)
