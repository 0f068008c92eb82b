"""Extracao do token bearer de envelopes de transporte.

Adaptadores (HTTP, filas) entregam o token cru ao TokenService e anexam o
payload retornado ao proprio contexto; nunca interpretam a validade do token.
"""

from typing import Any, Dict, Mapping, MutableMapping, Optional

from jwtlifecycle.errors import SignatureOrFormatError
from jwtlifecycle.service import TokenService


def extract_bearer_token(header: Any) -> str:
    """Extrai o token de um cabecalho "Bearer <token>".

    Raises:
        SignatureOrFormatError: Se o cabecalho estiver ausente ou fora do formato.
    """
    if not isinstance(header, str) or not header.strip():
        raise SignatureOrFormatError("Cabecalho authorization ausente ou invalido")
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise SignatureOrFormatError(
            "Formato invalido do cabecalho authorization. Esperado 'Bearer <token>'."
        )
    return parts[1]


def _authorization_header(headers: Mapping[str, Any]) -> Optional[Any]:
    for name, value in headers.items():
        if isinstance(name, str) and name.lower() == "authorization":
            return value
    return None


async def authenticate_headers(
    service: TokenService,
    headers: Optional[Mapping[str, Any]],
    attach_to: Optional[MutableMapping[str, Any]] = None,
    field: str = "user",
) -> Dict[str, Any]:
    """Verifica o access token do cabecalho authorization e anexa o payload.

    Args:
        service (TokenService): Servico que verifica o token.
        headers (Optional[Mapping[str, Any]]): Cabecalhos da requisicao ou mensagem.
        attach_to (Optional[MutableMapping[str, Any]]): Contexto onde gravar o payload.
        field (str): Nome do campo usado em attach_to.

    Returns:
        Dict[str, Any]: Payload verificado.

    Raises:
        TokenValidationError: Se o cabecalho ou o token forem rejeitados.
    """
    token = extract_bearer_token(_authorization_header(headers or {}))
    payload = await service.verify_access_token(token)
    if attach_to is not None:
        attach_to[field] = payload
    return payload
