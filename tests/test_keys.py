"""Tests for loading and generating key material."""

import os
import stat

import pytest

from knowmark.core.exceptions import KeyMaterialError
from knowmark.core.keys import (
    PASSWORD_SALT,
    SALT_SIZE,
    USER_AUTH_PRIVATE,
    USER_AUTH_PUBLIC,
    generate_key_pair,
    load_key_material,
)


def test_generates_and_persists_missing_material(tmp_path):
    directory = tmp_path / "security"
    keys = load_key_material(directory, key_size=2048)

    assert len(keys.salt) == SALT_SIZE
    assert (directory / PASSWORD_SALT).read_bytes() == keys.salt
    assert (directory / USER_AUTH_PRIVATE).read_bytes() == keys.private_key_pem
    assert (directory / USER_AUTH_PUBLIC).read_bytes() == keys.public_key_pem
    assert keys.public_key_pem.startswith(b"-----BEGIN PUBLIC KEY-----")


def test_secret_files_are_owner_only(tmp_path):
    previous = os.umask(0o022)
    try:
        load_key_material(tmp_path, key_size=2048)
    finally:
        os.umask(previous)

    for name in (PASSWORD_SALT, USER_AUTH_PRIVATE):
        assert stat.S_IMODE((tmp_path / name).stat().st_mode) == 0o600
    assert stat.S_IMODE((tmp_path / USER_AUTH_PUBLIC).stat().st_mode) == 0o644


def test_reload_returns_identical_material(tmp_path):
    first = load_key_material(tmp_path, key_size=2048)
    second = load_key_material(tmp_path, key_size=2048)
    assert first == second


def test_repr_does_not_expose_secrets(key_material):
    text = repr(key_material)
    assert "salt=" not in text
    assert "private_key_pem=" not in text


def test_missing_material_is_fatal_when_generation_is_disabled(tmp_path):
    with pytest.raises(KeyMaterialError):
        load_key_material(tmp_path, generate=False)


def test_missing_keys_with_existing_salt_is_fatal_when_generation_is_disabled(tmp_path):
    (tmp_path / PASSWORD_SALT).write_bytes(b"\x01" * SALT_SIZE)
    with pytest.raises(KeyMaterialError):
        load_key_material(tmp_path, generate=False)


def test_truncated_salt_is_never_replaced(tmp_path):
    (tmp_path / PASSWORD_SALT).write_bytes(b"short")
    with pytest.raises(KeyMaterialError):
        load_key_material(tmp_path, key_size=2048)
    assert (tmp_path / PASSWORD_SALT).read_bytes() == b"short"


def test_unusable_directory_is_fatal(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    with pytest.raises(KeyMaterialError):
        load_key_material(blocker / "security", key_size=2048)


def test_mismatched_key_pair_is_fatal(tmp_path):
    private_pem, _ = generate_key_pair(2048)
    _, other_public_pem = generate_key_pair(2048)
    (tmp_path / PASSWORD_SALT).write_bytes(b"\x02" * SALT_SIZE)
    (tmp_path / USER_AUTH_PRIVATE).write_bytes(private_pem)
    (tmp_path / USER_AUTH_PUBLIC).write_bytes(other_public_pem)

    with pytest.raises(KeyMaterialError):
        load_key_material(tmp_path, key_size=2048)


def test_corrupt_key_file_is_fatal(tmp_path):
    (tmp_path / PASSWORD_SALT).write_bytes(b"\x03" * SALT_SIZE)
    (tmp_path / USER_AUTH_PRIVATE).write_bytes(b"not a key")
    (tmp_path / USER_AUTH_PUBLIC).write_bytes(b"not a key either")

    with pytest.raises(KeyMaterialError):
        load_key_material(tmp_path, key_size=2048)
