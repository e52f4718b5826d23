try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.services.credential_cipher import CredentialCipher


def test_cipher_hides_plaintext_and_decrypts_it_back() -> None:
    cipher = CredentialCipher(secret="super-secret-key")

    encrypted = cipher.encrypt("ya29.sensitive-token")

    assert "sensitive" not in encrypted
    assert cipher.decrypt(encrypted) == "ya29.sensitive-token"


def test_cipher_rejects_ciphertext_from_another_secret() -> None:
    encrypted = CredentialCipher(secret="first").encrypt("token")

    with pytest.raises(ValueError):
        CredentialCipher(secret="second").decrypt(encrypted)


def test_cipher_passes_missing_refresh_token_through() -> None:
    cipher = CredentialCipher(secret="secret")

    assert cipher.encrypt_optional(None) is None
    assert cipher.decrypt_optional(None) is None


def test_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        CredentialCipher(secret="")
