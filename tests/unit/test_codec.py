import jwt
import pytest

from jwtlifecycle import (
    ConfigurationError,
    SignatureOrFormatError,
    TokenCodec,
    TokenCreationError,
    TokenExpiredError,
    parse_expiry,
)

SECRET = "codec-test-secret-with-enough-length"


@pytest.mark.parametrize(
    "expiry, seconds",
    [(3600, 3600), ("1s", 1), ("15m", 900), ("1h", 3600), ("7d", 604800), ("90m", 5400)],
)
def test_parse_expiry_valid(expiry, seconds) -> None:
    assert parse_expiry(expiry) == seconds


@pytest.mark.parametrize(
    "expiry", ["15", "1w", "", "m", "1.5h", " 1h", "-1h", 0, -5, True, 1.5, None]
)
def test_parse_expiry_invalid(expiry) -> None:
    with pytest.raises(ConfigurationError):
        parse_expiry(expiry)


def test_sign_and_verify_hs256(clock) -> None:
    codec = TokenCodec(SECRET, expires_in="1h", time_fn=clock)
    payload = {"userId": "1"}

    token = codec.sign(payload)
    decoded = codec.verify(token)

    assert decoded["userId"] == "1"
    assert decoded["iat"] == int(clock())
    assert decoded["exp"] == int(clock()) + 3600
    assert payload == {"userId": "1"}


def test_verify_before_and_after_expiry(clock) -> None:
    codec = TokenCodec(SECRET, expires_in="1s", time_fn=clock)
    token = codec.sign({"userId": "1"})

    clock.advance(0.5)
    assert codec.verify(token)["userId"] == "1"

    clock.advance(1.0)
    with pytest.raises(TokenExpiredError):
        codec.verify(token)


def test_leeway_tolerates_clock_skew(clock) -> None:
    codec = TokenCodec(SECRET, expires_in=10, leeway=5, time_fn=clock)
    token = codec.sign({})

    clock.advance(12)
    assert "exp" in codec.verify(token)

    clock.advance(3)
    with pytest.raises(TokenExpiredError):
        codec.verify(token)


def test_wrong_secret_is_rejected(clock) -> None:
    token = TokenCodec("secret-a-with-enough-length-123", time_fn=clock).sign({})

    with pytest.raises(SignatureOrFormatError, match="Assinatura invalida"):
        TokenCodec("secret-b-with-enough-length-123", time_fn=clock).verify(token)


def test_tampered_token_is_rejected(clock) -> None:
    codec = TokenCodec(SECRET, time_fn=clock)
    header, payload, signature = codec.sign({"role": "user"}).split(".")
    forged_payload = jwt.utils.base64url_encode(b'{"role":"admin","exp":9999999999}').decode()

    with pytest.raises(SignatureOrFormatError):
        codec.verify(".".join([header, forged_payload, signature]))


@pytest.mark.parametrize("token", ["", "   ", "not-a-token", "a.b.c"])
def test_malformed_tokens_are_rejected(token) -> None:
    with pytest.raises(SignatureOrFormatError):
        TokenCodec(SECRET).verify(token)


def test_token_without_exp_is_rejected() -> None:
    token = jwt.encode({"userId": "1"}, SECRET, algorithm="HS256")

    with pytest.raises(SignatureOrFormatError):
        TokenCodec(SECRET).verify(token)


def test_rs256_sign_and_verify(rsa_keys, clock) -> None:
    private_pem, public_pem = rsa_keys
    codec = TokenCodec(private_pem, algorithm="RS256", verify_key=public_pem, time_fn=clock)

    token = codec.sign({"userId": "1"})

    assert jwt.get_unverified_header(token)["alg"] == "RS256"
    assert codec.verify(token)["userId"] == "1"


def test_rs256_mismatched_key_pair_is_rejected(rsa_keys, other_rsa_keys, clock) -> None:
    private_pem, _ = rsa_keys
    _, other_public_pem = other_rsa_keys
    signer = TokenCodec(private_pem, algorithm="RS256", verify_key=rsa_keys[1], time_fn=clock)
    verifier = TokenCodec(
        other_rsa_keys[0], algorithm="RS256", verify_key=other_public_pem, time_fn=clock
    )

    with pytest.raises(SignatureOrFormatError):
        verifier.verify(signer.sign({"userId": "1"}))


def test_hs256_token_rejected_by_rs256_codec(rsa_keys, clock) -> None:
    private_pem, public_pem = rsa_keys
    rs_codec = TokenCodec(private_pem, algorithm="RS256", verify_key=public_pem, time_fn=clock)
    hs_token = TokenCodec(SECRET, time_fn=clock).sign({"userId": "1"})

    with pytest.raises(SignatureOrFormatError, match="Algoritmo"):
        rs_codec.verify(hs_token)


def test_unsigned_token_is_rejected(clock) -> None:
    token = jwt.encode({"userId": "1", "exp": 9_999_999_999}, None, algorithm="none")

    with pytest.raises(SignatureOrFormatError):
        TokenCodec(SECRET, time_fn=clock).verify(token)


def test_issuer_and_audience_are_enforced(clock) -> None:
    signer = TokenCodec(SECRET, issuer="auth", audience="api", time_fn=clock)
    token = signer.sign({})

    decoded = signer.verify(token)
    assert decoded["iss"] == "auth"
    assert decoded["aud"] == "api"

    with pytest.raises(SignatureOrFormatError):
        TokenCodec(SECRET, issuer="other", audience="api", time_fn=clock).verify(token)
    with pytest.raises(SignatureOrFormatError):
        TokenCodec(SECRET, issuer="auth", audience="web", time_fn=clock).verify(token)


def test_decode_unchecked_ignores_signature_and_expiry(clock) -> None:
    codec = TokenCodec(SECRET, expires_in="1s", time_fn=clock)
    token = codec.sign({"userId": "1", "jti": "abc"})
    clock.advance(10)

    other = TokenCodec("another-secret-with-enough-length", time_fn=clock)
    payload = other.decode_unchecked(token)

    assert payload["jti"] == "abc"
    assert other.decode_unchecked("garbage") is None
    assert other.decode_unchecked("") is None


def test_sign_rejects_non_serializable_payload() -> None:
    with pytest.raises(TokenCreationError, match="Falha ao gerar token"):
        TokenCodec(SECRET).sign({"bad": {1, 2}})


@pytest.mark.parametrize("algorithm", ["ES256", "none", "", None])
def test_unsupported_algorithm(algorithm) -> None:
    with pytest.raises(ConfigurationError, match="Algoritmo"):
        TokenCodec(SECRET, algorithm=algorithm)


def test_algorithm_is_normalized() -> None:
    assert TokenCodec(SECRET, algorithm=" hs256 ").algorithm == "HS256"


def test_missing_signing_key() -> None:
    with pytest.raises(ConfigurationError, match="signing_key"):
        TokenCodec("")


def test_rs256_requires_public_key(rsa_keys) -> None:
    with pytest.raises(ConfigurationError, match="verify_key"):
        TokenCodec(rsa_keys[0], algorithm="RS256")


def test_rs256_rejects_invalid_pem(rsa_keys) -> None:
    with pytest.raises(ConfigurationError, match="Chave privada"):
        TokenCodec(b"not a pem", algorithm="RS256", verify_key=rsa_keys[1])
    with pytest.raises(ConfigurationError, match="Chave publica"):
        TokenCodec(rsa_keys[0], algorithm="RS256", verify_key=b"not a pem")


def test_invalid_expiry_raises_at_construction() -> None:
    with pytest.raises(ConfigurationError, match="expiracao"):
        TokenCodec(SECRET, expires_in="1 hour")


def test_negative_leeway() -> None:
    with pytest.raises(ConfigurationError, match="leeway"):
        TokenCodec(SECRET, leeway=-1)
