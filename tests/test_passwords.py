"""Tests for the SHA-256 + bcrypt password hasher."""

import pytest

from knowmark.core.security import PASSWORD_HASH_SIZE, PasswordHash, hash_password, verify_password

SALT = bytes(range(16))
OTHER_SALT = bytes(range(16, 32))
ROUNDS = 4


def test_hash_is_deterministic():
    first = hash_password("S3cret!!9", SALT, rounds=ROUNDS)
    second = hash_password("S3cret!!9", SALT, rounds=ROUNDS)
    assert first == second
    assert bytes(first) == bytes(second)


def test_hash_has_fixed_size():
    for password in ("short", "x" * 1024, "pässwörd ✓"):
        assert len(bytes(hash_password(password, SALT, rounds=ROUNDS))) == PASSWORD_HASH_SIZE


@pytest.mark.parametrize(
    "a,b",
    [
        ("S3cret!!9", "S3cret!!0"),
        ("password1", "Password1"),
        # Differ only past bcrypt's 72-byte limit; the pre-hash keeps them apart.
        ("a" * 100 + "1", "a" * 100 + "2"),
    ],
)
def test_distinct_passwords_hash_differently(a, b):
    assert hash_password(a, SALT, rounds=ROUNDS) != hash_password(b, SALT, rounds=ROUNDS)


def test_salt_changes_the_hash():
    assert hash_password("S3cret!!9", SALT, rounds=ROUNDS) != hash_password(
        "S3cret!!9", OTHER_SALT, rounds=ROUNDS
    )


def test_rounds_change_the_hash():
    assert hash_password("S3cret!!9", SALT, rounds=4) != hash_password("S3cret!!9", SALT, rounds=5)


def test_nul_bytes_are_accepted():
    assert hash_password("abc\x00def", SALT, rounds=ROUNDS) != hash_password("abc", SALT, rounds=ROUNDS)


def test_verify_password():
    stored = hash_password("correct horse", SALT, rounds=ROUNDS)
    assert verify_password("correct horse", stored, SALT, rounds=ROUNDS)
    assert not verify_password("correct h0rse", stored, SALT, rounds=ROUNDS)


def test_hash_does_not_leak_through_repr():
    stored = hash_password("correct horse", SALT, rounds=ROUNDS)
    assert repr(stored) == "PasswordHash()"


def test_wrong_size_is_rejected():
    with pytest.raises(ValueError):
        PasswordHash(b"\x00" * 24)
