"""Hierarquia de erros do jwtlifecycle."""


class TokenLifecycleError(Exception):
    """Erro base para o jwtlifecycle."""


class ConfigurationError(TokenLifecycleError, ValueError):
    """Lançado na construção quando a configuração é inválida ou incompleta."""


class TokenCreationError(TokenLifecycleError):
    """Lançado quando um token JWT não pode ser criado."""


class TokenValidationError(TokenLifecycleError):
    """Lançado quando um token JWT não pode ser aceito.

    Todas as subclasses significam o mesmo para quem chama: o portador nao esta
    autenticado. A distincao existe apenas para log e diagnostico.
    """


class SignatureOrFormatError(TokenValidationError):
    """Token malformado, assinado com outro algoritmo ou com assinatura invalida."""


class TokenExpiredError(TokenValidationError):
    """Claim exp do token ja passou."""


class TokenRevokedError(TokenValidationError):
    """Token revogado pela blacklist ou pelo marcador de invalidacao."""

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class CacheUnavailableError(TokenValidationError):
    """Cache nao respondeu a tempo e a politica configurada e fail-closed."""


class CacheError(TokenLifecycleError):
    """Falha do backend de cache durante uma operacao."""
