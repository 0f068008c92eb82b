import logging
from typing import Tuple

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from jwtlifecycle import ExpiringStore, TokenConfig, load_token_config_from_dict

BASE_TIME = 1_700_000_000.0


class FakeClock:
    """Relogio controlado pelos testes; injetado via time_fn."""

    def __init__(self, start: float = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def generate_rsa_pem_pair() -> Tuple[bytes, bytes]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@pytest.fixture()
def logger() -> logging.Logger:
    logger = logging.getLogger("jwtlifecycle-tests")
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock) -> ExpiringStore:
    return ExpiringStore(time_fn=clock)


@pytest.fixture(scope="session")
def rsa_keys() -> Tuple[bytes, bytes]:
    return generate_rsa_pem_pair()


@pytest.fixture(scope="session")
def other_rsa_keys() -> Tuple[bytes, bytes]:
    return generate_rsa_pem_pair()


@pytest.fixture()
def rsa_key_files(tmp_path, rsa_keys) -> Tuple[str, str]:
    private_pem, public_pem = rsa_keys
    private_path = tmp_path / "private.pem"
    public_path = tmp_path / "public.pem"
    private_path.write_bytes(private_pem)
    public_path.write_bytes(public_pem)
    return str(private_path), str(public_path)


@pytest.fixture()
def config() -> TokenConfig:
    return load_token_config_from_dict(
        {
            "JWT_SECRET": "access-test-secret-with-enough-length",
            "REFRESH_TOKEN_SECRET": "refresh-test-secret-with-enough-length",
            "JWT_EXPIRES_IN": "1h",
            "REFRESH_TOKEN_EXPIRES_IN": "7d",
            "JWTLIFECYCLE_CACHE_FAILURE_POLICY": "fail_closed",
        }
    )
