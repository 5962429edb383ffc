"""
Key material: the password salt and the JWT signing key pair.

Loaded once at startup from ``SECURITY_DIR`` and generated on first run.
Losing ``password.salt`` makes every stored password hash unverifiable, so
the directory must be persisted and backed up with the database.
"""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from knowmark.core.exceptions import KeyMaterialError

logger = logging.getLogger(__name__)

PASSWORD_SALT = "password.salt"
USER_AUTH_PRIVATE = "user_auth.pem"
USER_AUTH_PUBLIC = "user_auth.pem.pub"

SALT_SIZE = 16
RSA_PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class KeyMaterial:
    salt: bytes = field(repr=False)
    private_key_pem: bytes = field(repr=False)
    public_key_pem: bytes


def _read(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise KeyMaterialError(f"unable to read '{path}': {exc}") from exc


def _write(path: Path, data: bytes, *, private: bool = False) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600 if private else 0o644)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        if private:
            path.chmod(0o600)
    except OSError as exc:
        raise KeyMaterialError(f"unable to write '{path}': {exc}") from exc


def _load_salt(directory: Path, generate: bool) -> bytes:
    path = directory / PASSWORD_SALT
    logger.info("Loading password salt...")
    salt = _read(path)
    if salt is not None and len(salt) == SALT_SIZE:
        logger.info("Salt found and loaded.")
        return salt

    if salt is not None:
        # A salt of the wrong size is never regenerated.
        raise KeyMaterialError(
            f"salt file '{path}' holds {len(salt)} bytes, expected {SALT_SIZE}"
        )
    if not generate:
        raise KeyMaterialError(f"salt not found in '{path}'")

    logger.info("Salt not found in '%s'. Generating a new password salt.", path)
    salt = secrets.token_bytes(SALT_SIZE)
    _write(path, salt, private=True)
    return salt


def generate_key_pair(key_size: int) -> tuple[bytes, bytes]:
    """Return a fresh ``(private_pem, public_pem)`` RSA pair."""
    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def _check_key_pair(private_pem: bytes, public_pem: bytes) -> None:
    try:
        private_key = serialization.load_pem_private_key(private_pem, password=None)
        public_key = serialization.load_pem_public_key(public_pem)
    except (ValueError, TypeError) as exc:
        raise KeyMaterialError(f"user auth keys are not valid PEM: {exc}") from exc

    if not isinstance(private_key, rsa.RSAPrivateKey) or not isinstance(
        public_key, rsa.RSAPublicKey
    ):
        raise KeyMaterialError("user auth keys must be RSA keys")
    if private_key.public_key().public_numbers() != public_key.public_numbers():
        raise KeyMaterialError("user auth public key does not match the private key")


def _load_key_pair(directory: Path, generate: bool, key_size: int) -> tuple[bytes, bytes]:
    private_path = directory / USER_AUTH_PRIVATE
    public_path = directory / USER_AUTH_PUBLIC

    logger.info("Loading JWT signing keys...")
    private_pem = _read(private_path)
    public_pem = _read(public_path)

    if private_pem and public_pem:
        _check_key_pair(private_pem, public_pem)
        logger.info("Loaded JWT keys.")
        return private_pem, public_pem

    if not generate:
        raise KeyMaterialError(
            f"unable to load private and/or public user auth key(s) from '{directory}'"
        )

    logger.info(
        "Unable to load private and/or public user auth key(s). Generating a new pair."
    )
    logger.info("Generating a %d-bit RSA key. This may take a while...", key_size)
    private_pem, public_pem = generate_key_pair(key_size)
    _write(private_path, private_pem, private=True)
    _write(public_path, public_pem)
    logger.info("Done generating JWT keys.")
    return private_pem, public_pem


def load_key_material(
    directory: str | Path,
    *,
    generate: bool = True,
    key_size: int = 4096,
) -> KeyMaterial:
    """Load the salt and signing keys from *directory*, creating what is missing.

    Raises :class:`KeyMaterialError` if the directory cannot be created, if
    generated material cannot be persisted, or if material is missing while
    *generate* is off. The app must not start with ephemeral keys.
    """
    directory = Path(directory)
    if generate:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise KeyMaterialError(
                f"unable to create directory for storing security information: {exc}"
            ) from exc

    salt = _load_salt(directory, generate)
    private_pem, public_pem = _load_key_pair(directory, generate, key_size)
    return KeyMaterial(salt=salt, private_key_pem=private_pem, public_key_pem=public_pem)
