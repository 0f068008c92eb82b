"""Assinatura e verificacao de tokens JWT sensivel ao algoritmo.

Classes principais:
    - TokenCodec: assina, verifica e decodifica (sem verificacao) tokens JWT
    - parse_expiry: converte especificacoes de expiracao ("15m", "7d", 3600) em segundos
"""

import re
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from jwtlifecycle.errors import (
    ConfigurationError,
    SignatureOrFormatError,
    TokenCreationError,
    TokenExpiredError,
    TokenValidationError,
)

HS256 = "HS256"
RS256 = "RS256"
SUPPORTED_ALGORITHMS = (HS256, RS256)

KeyMaterial = Union[str, bytes]
ExpirySpec = Union[int, str]

_EXPIRY_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_expiry(expiry: ExpirySpec) -> int:
    """Converte uma especificacao de expiracao em segundos.

    Args:
        expiry (ExpirySpec): Inteiro positivo de segundos, ou string "<inteiro><unidade>"
            com unidade s, m, h ou d.

    Returns:
        int: Numero de segundos.

    Raises:
        ConfigurationError: Para qualquer outro formato ou valor nao positivo.
    """
    if isinstance(expiry, bool):
        raise ConfigurationError(f"Formato de expiracao invalido: {expiry!r}")
    if isinstance(expiry, int):
        seconds = expiry
    elif isinstance(expiry, str):
        match = _EXPIRY_RE.match(expiry)
        if not match:
            raise ConfigurationError(f"Formato de expiracao invalido: {expiry!r}")
        seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    else:
        raise ConfigurationError(f"Formato de expiracao invalido: {expiry!r}")

    if seconds <= 0:
        raise ConfigurationError(f"Expiracao deve ser positiva: {expiry!r}")
    return seconds


def _as_bytes(material: KeyMaterial) -> bytes:
    return material.encode("utf-8") if isinstance(material, str) else material


def load_rsa_private_key(material: KeyMaterial) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(_as_bytes(material), password=None)
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Chave privada invalida: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError("Chave privada deve ser RSA para RS256")
    return key


def load_rsa_public_key(material: KeyMaterial) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(_as_bytes(material))
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise ConfigurationError(f"Chave publica invalida: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise ConfigurationError("Chave publica deve ser RSA para RS256")
    return key


class TokenCodec:
    """Assina e verifica tokens com um unico algoritmo configurado.

    HS256 usa o mesmo segredo para assinar e verificar. RS256 assina com a chave
    privada e verifica somente com a chave publica.
    """

    def __init__(
        self,
        signing_key: KeyMaterial,
        algorithm: str = HS256,
        expires_in: ExpirySpec = "15m",
        verify_key: Optional[KeyMaterial] = None,
        leeway: int = 0,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        """Inicializa o codec.

        Args:
            signing_key (KeyMaterial): Segredo (HS256) ou chave privada PEM (RS256).
            algorithm (str): HS256 ou RS256.
            expires_in (ExpirySpec): Especificacao de expiracao aceita por parse_expiry.
            verify_key (Optional[KeyMaterial]): Chave publica PEM, obrigatoria em RS256.
            leeway (int): Tolerancia de relogio em segundos.
            issuer (Optional[str]): Valor de iss gravado e exigido, se informado.
            audience (Optional[str]): Valor de aud gravado e exigido, se informado.
            time_fn (Callable[[], float]): Relogio usado para iat, exp e verificacao.

        Raises:
            ConfigurationError: Se o algoritmo nao for suportado, faltar material de
                assinatura ou a expiracao for invalida.
        """
        if not isinstance(algorithm, str) or algorithm.strip().upper() not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(
                f"Algoritmo nao suportado: {algorithm!r}. Use {' ou '.join(SUPPORTED_ALGORITHMS)}."
            )
        if not signing_key:
            raise ConfigurationError("signing_key deve ser informado")
        if isinstance(leeway, bool) or not isinstance(leeway, int) or leeway < 0:
            raise ConfigurationError("leeway deve ser um inteiro nao negativo")

        self._algorithm = algorithm.strip().upper()
        self._ttl_seconds = parse_expiry(expires_in)
        self._leeway = leeway
        self._issuer = issuer
        self._audience = audience
        self._time_fn = time_fn

        self._signing_key: Any
        self._verify_key: Any
        if self._algorithm == RS256:
            if not verify_key:
                raise ConfigurationError("RS256 exige verify_key (chave publica)")
            self._signing_key = load_rsa_private_key(signing_key)
            self._verify_key = load_rsa_public_key(verify_key)
        else:
            self._signing_key = signing_key
            self._verify_key = signing_key

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @property
    def leeway(self) -> int:
        return self._leeway

    def now(self) -> int:
        return int(self._time_fn())

    def sign(self, payload: Mapping[str, Any]) -> str:
        """Assina payload acrescentando iat e exp calculados agora.

        Args:
            payload (Mapping[str, Any]): Claims do token. Nao e modificado.

        Returns:
            str: Token JWT compacto.

        Raises:
            TokenCreationError: Se o payload nao puder ser codificado ou assinado.
        """
        agora = self.now()
        claims: Dict[str, Any] = dict(payload)
        claims["iat"] = agora
        claims["exp"] = agora + self._ttl_seconds
        if self._issuer:
            claims["iss"] = self._issuer
        if self._audience:
            claims["aud"] = self._audience

        try:
            token = jwt.encode(claims, key=self._signing_key, algorithm=self._algorithm)
        except (TypeError, ValueError, jwt.InvalidKeyError) as e:
            raise TokenCreationError(f"Falha ao gerar token: {e}") from e

        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def verify(self, token: str) -> Dict[str, Any]:
        """Verifica algoritmo, assinatura e expiracao e retorna o payload.

        Tokens cujo cabecalho declara outro algoritmo sao rejeitados, sem fallback.

        Raises:
            TokenExpiredError: Se exp ja passou (considerando leeway).
            SignatureOrFormatError: Se o token for malformado, usar outro algoritmo, tiver
                assinatura invalida ou iss/aud divergentes.
            TokenValidationError: Para falhas inesperadas de decodificacao.
        """
        if not isinstance(token, str) or not token.strip():
            raise SignatureOrFormatError("Token ausente")

        try:
            payload = jwt.decode(
                token,
                key=self._verify_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                audience=self._audience,
                options={
                    # exp e verificado abaixo com o relogio injetado.
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_aud": bool(self._audience),
                    "require": ["exp"],
                },
            )
        except jwt.InvalidAlgorithmError as e:
            raise SignatureOrFormatError(f"Algoritmo do token nao permitido: {e}") from e
        except jwt.InvalidSignatureError as e:
            raise SignatureOrFormatError("Assinatura invalida") from e
        except jwt.InvalidTokenError as e:
            raise SignatureOrFormatError(f"Token invalido: {e}") from e
        except Exception as e:
            raise TokenValidationError("Falha inesperada ao validar token") from e

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise SignatureOrFormatError("Claim exp deve ser numerica")
        if exp <= self.now() - self._leeway:
            raise TokenExpiredError("Token expirado")
        return payload

    def decode_unchecked(self, token: str) -> Optional[Dict[str, Any]]:
        """Decodifica o payload sem verificar assinatura nem expiracao.

        Nunca use o resultado para autorizar uma acao; serve apenas para extrair
        metadados como o jti de um token que sera revogado.
        """
        if not isinstance(token, str) or not token.strip():
            return None
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
        return payload if isinstance(payload, dict) else None
