"""Fachada de tokens de acesso e refresh.

Resolve a configuracao (segredo ou par de chaves, expiracao por papel), cria os
dois TokenLifecycleManager e expoe create/verify/invalidate/decode por papel.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from jwtlifecycle.codec import HS256, RS256, SUPPORTED_ALGORITHMS, TokenCodec, parse_expiry
from jwtlifecycle.core import FailurePolicy, TokenLifecycleManager
from jwtlifecycle.errors import ConfigurationError, SignatureOrFormatError
from jwtlifecycle.revocation import DEFAULT_REVOCATION_TTL, RevocationSet
from jwtlifecycle.stores import CacheBackend, ExpiringStore

DEFAULT_ACCESS_EXPIRES_IN = "15m"
DEFAULT_REFRESH_EXPIRES_IN = "7d"


@dataclass(frozen=True)
class TokenConfig:
    """Configuracao do TokenService."""

    algorithm: str = HS256
    access_secret: Optional[str] = None
    refresh_secret: Optional[str] = None
    access_expires_in: Union[int, str] = DEFAULT_ACCESS_EXPIRES_IN
    refresh_expires_in: Union[int, str] = DEFAULT_REFRESH_EXPIRES_IN
    private_key_path: Optional[str] = None
    public_key_path: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    leeway: int = 0
    revocation_ttl: int = DEFAULT_REVOCATION_TTL
    cache_timeout: Optional[float] = None
    failure_policy: Optional[FailurePolicy] = None

    def __post_init__(self) -> None:
        if not isinstance(self.algorithm, str) or not self.algorithm.strip():
            raise ConfigurationError("JWTLIFECYCLE_ALGORITHM deve ser uma string valida")

        algoritmo = self.algorithm.strip().upper()
        object.__setattr__(self, "algorithm", algoritmo)
        if algoritmo not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(
                "JWTLIFECYCLE_ALGORITHM nao suportado. Use HS256 ou RS256."
            )

        if algoritmo == HS256:
            if not isinstance(self.access_secret, str) or not self.access_secret.strip():
                raise ConfigurationError("JWT_SECRET deve ser uma string valida para HS256")
            if not isinstance(self.refresh_secret, str) or not self.refresh_secret.strip():
                raise ConfigurationError(
                    "REFRESH_TOKEN_SECRET deve ser uma string valida para HS256"
                )
        else:
            if not self.private_key_path or not self.public_key_path:
                raise ConfigurationError(
                    "RS256 exige JWTLIFECYCLE_PRIVATE_KEY_PATH e JWTLIFECYCLE_PUBLIC_KEY_PATH"
                )

        # Falha na construcao, nao no primeiro uso.
        parse_expiry(self.access_expires_in)
        parse_expiry(self.refresh_expires_in)

        opcionais = (("JWTLIFECYCLE_ISSUER", self.issuer), ("JWTLIFECYCLE_AUDIENCE", self.audience))
        for nome, valor in opcionais:
            if valor is not None and (not isinstance(valor, str) or not valor.strip()):
                raise ConfigurationError(f"{nome} deve ser uma string nao vazia")

        if isinstance(self.leeway, bool) or not isinstance(self.leeway, int) or self.leeway < 0:
            raise ConfigurationError("JWTLIFECYCLE_LEEWAY deve ser um inteiro nao negativo")

        if (
            isinstance(self.revocation_ttl, bool)
            or not isinstance(self.revocation_ttl, int)
            or self.revocation_ttl <= 0
        ):
            raise ConfigurationError("JWTLIFECYCLE_REVOCATION_TTL deve ser um inteiro positivo")

        if self.cache_timeout is not None and (
            isinstance(self.cache_timeout, bool)
            or not isinstance(self.cache_timeout, (int, float))
            or self.cache_timeout <= 0
        ):
            raise ConfigurationError("JWTLIFECYCLE_CACHE_TIMEOUT deve ser um numero positivo")

        if self.failure_policy is not None and not isinstance(self.failure_policy, FailurePolicy):
            raise ConfigurationError("JWTLIFECYCLE_CACHE_FAILURE_POLICY invalida")


def _parse_failure_policy(raw: Any) -> Optional[FailurePolicy]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, FailurePolicy):
        return raw
    try:
        return FailurePolicy(str(raw).strip().lower())
    except ValueError as e:
        raise ConfigurationError(
            "JWTLIFECYCLE_CACHE_FAILURE_POLICY deve ser fail_closed ou fail_open"
        ) from e


def load_token_config_from_dict(app_config: Dict[str, Any]) -> TokenConfig:
    """Carrega configuracoes do TokenService a partir de um dict.

    Args:
        app_config: Dicionario de configuracao da aplicacao.

    Returns:
        TokenConfig: Configuracao validada do servico.

    Raises:
        ConfigurationError: Se faltar material de assinatura ou algum valor for invalido.
    """
    app_config.setdefault("JWTLIFECYCLE_ALGORITHM", HS256)
    app_config.setdefault("JWT_EXPIRES_IN", DEFAULT_ACCESS_EXPIRES_IN)
    app_config.setdefault("REFRESH_TOKEN_EXPIRES_IN", DEFAULT_REFRESH_EXPIRES_IN)
    app_config.setdefault("JWTLIFECYCLE_LEEWAY", 0)
    app_config.setdefault("JWTLIFECYCLE_REVOCATION_TTL", DEFAULT_REVOCATION_TTL)

    cache_timeout = app_config.get("JWTLIFECYCLE_CACHE_TIMEOUT")
    try:
        leeway = int(app_config.get("JWTLIFECYCLE_LEEWAY") or 0)
        revocation_ttl = int(app_config["JWTLIFECYCLE_REVOCATION_TTL"])
        timeout = float(cache_timeout) if cache_timeout not in (None, "") else None
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Valor numerico invalido na configuracao: {e}") from e

    return TokenConfig(
        algorithm=str(app_config.get("JWTLIFECYCLE_ALGORITHM")),
        access_secret=app_config.get("JWT_SECRET"),
        refresh_secret=app_config.get("REFRESH_TOKEN_SECRET"),
        access_expires_in=app_config["JWT_EXPIRES_IN"],
        refresh_expires_in=app_config["REFRESH_TOKEN_EXPIRES_IN"],
        private_key_path=app_config.get("JWTLIFECYCLE_PRIVATE_KEY_PATH"),
        public_key_path=app_config.get("JWTLIFECYCLE_PUBLIC_KEY_PATH"),
        issuer=app_config.get("JWTLIFECYCLE_ISSUER") or None,
        audience=app_config.get("JWTLIFECYCLE_AUDIENCE") or None,
        leeway=leeway,
        revocation_ttl=revocation_ttl,
        cache_timeout=timeout,
        failure_policy=_parse_failure_policy(app_config.get("JWTLIFECYCLE_CACHE_FAILURE_POLICY")),
    )


def _read_key_file(path: str, label: str) -> bytes:
    try:
        return Path(path).resolve().read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Nao foi possivel ler {label} em {path}: {e}") from e


class TokenService:
    """Serviço para emissão, validação e revogação de tokens de acesso e refresh."""

    def __init__(
        self,
        config: TokenConfig,
        logger: logging.Logger,
        cache: Optional[CacheBackend] = None,
        revocation_set: Optional[RevocationSet] = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        """Inicializa o serviço de tokens.

        Args:
            config (TokenConfig): Configurações validadas.
            logger: Logger do serviço.
            cache (Optional[CacheBackend]): Cache compartilhado dos marcadores de invalidacao.
                Usa um ExpiringStore em memoria se nao informado.
            revocation_set (Optional[RevocationSet]): Blacklist compartilhada pelos dois papeis.
                Se nao informada, e criada sobre o mesmo cache.
            time_fn (Callable[[], float]): Relogio usado pelos codecs e stores padrao.

        Raises:
            ConfigurationError: Se as chaves RS256 nao puderem ser lidas ou forem invalidas.
        """
        self._config = config
        self._logger = logger

        failure_policy = config.failure_policy
        if failure_policy is None:
            failure_policy = FailurePolicy.FAIL_CLOSED
            logger.warning("JWTLIFECYCLE_CACHE_FAILURE_POLICY nao informada; usando fail_closed")

        self._cache = cache if cache is not None else ExpiringStore(time_fn=time_fn)
        if revocation_set is None:
            revocation_set = RevocationSet(store=self._cache, default_ttl=config.revocation_ttl)
        self._revocation_set = revocation_set

        if config.algorithm == RS256:
            private_key = _read_key_file(str(config.private_key_path), "chave privada")
            public_key = _read_key_file(str(config.public_key_path), "chave publica")
            access_signing: Union[str, bytes] = private_key
            refresh_signing: Union[str, bytes] = private_key
            verify_key: Optional[bytes] = public_key
        else:
            access_signing = str(config.access_secret)
            refresh_signing = str(config.refresh_secret)
            verify_key = None

        self._access = self._build_manager(
            "access", access_signing, verify_key, config.access_expires_in, failure_policy, time_fn
        )
        self._refresh = self._build_manager(
            "refresh",
            refresh_signing,
            verify_key,
            config.refresh_expires_in,
            failure_policy,
            time_fn,
        )

        logger.debug("TokenService inicializado com algoritmo: %s", config.algorithm)

    def _build_manager(
        self,
        name: str,
        signing_key: Union[str, bytes],
        verify_key: Optional[bytes],
        expires_in: Union[int, str],
        failure_policy: FailurePolicy,
        time_fn: Callable[[], float],
    ) -> TokenLifecycleManager:
        codec = TokenCodec(
            signing_key=signing_key,
            algorithm=self._config.algorithm,
            expires_in=expires_in,
            verify_key=verify_key,
            leeway=self._config.leeway,
            issuer=self._config.issuer,
            audience=self._config.audience,
            time_fn=time_fn,
        )
        return TokenLifecycleManager(
            codec=codec,
            logger=self._logger,
            cache=self._cache,
            revocation_set=self._revocation_set,
            cache_timeout=self._config.cache_timeout,
            failure_policy=failure_policy,
            name=name,
        )

    @property
    def access(self) -> TokenLifecycleManager:
        return self._access

    @property
    def refresh(self) -> TokenLifecycleManager:
        return self._refresh

    @property
    def revocation_set(self) -> RevocationSet:
        return self._revocation_set

    async def create_access_token(self, payload: Mapping[str, Any]) -> str:
        return await self._access.create_token(payload)

    async def verify_access_token(self, token: str) -> Dict[str, Any]:
        return await self._access.verify_token(token)

    async def invalidate_access_token(self, token: str) -> None:
        """Invalida um access token (ex.: logout)."""
        await self._access.invalidate_token(token)

    def decode_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        return self._access.decode_token(token)

    async def create_refresh_token(self, payload: Mapping[str, Any]) -> str:
        return await self._refresh.create_token(payload)

    async def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        return await self._refresh.verify_token(token)

    async def invalidate_refresh_token(self, token: str) -> None:
        await self._refresh.invalidate_token(token)

    def decode_refresh_token(self, token: str) -> Optional[Dict[str, Any]]:
        return self._refresh.decode_token(token)

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decodifica qualquer token sem verificar assinatura nem expiracao."""
        return self._access.decode_token(token)

    async def revoke_token(self, token: str) -> str:
        """Coloca o jti do token na blacklist pelo tempo de vida restante.

        Funciona para tokens de acesso e refresh; a assinatura nao e verificada.

        Returns:
            str: jti revogado.

        Raises:
            SignatureOrFormatError: Se o token nao puder ser decodificado ou nao tiver jti.
        """
        payload = self._access.decode_token(token)
        if payload is None:
            raise SignatureOrFormatError("Formato de token invalido")
        jti = payload.get("jti")
        if not isinstance(jti, str) or not jti.strip():
            raise SignatureOrFormatError("Formato de token invalido; jti ausente")

        ttl_seconds = self._access.remaining_ttl(payload)
        await self._revocation_set.add(jti, ttl_seconds)
        self._logger.info("jti %s adicionado a blacklist por %s s", jti, ttl_seconds)
        return jti
