"""
Tests for salt derivation and generation.
"""
import re

import pytest

from session_auth.security import derive_salt, generate_salt


def test_derive_salt_is_deterministic():
    """Test that the same secret and user salt always give the same result."""
    assert derive_salt("secret", "666") == derive_salt("secret", "666")


def test_derive_salt_format():
    """Test that the effective salt is a 64 character hex digest."""
    salt = derive_salt("secret", "666")
    assert re.fullmatch(r"[0-9a-f]{64}", salt)


def test_derive_salt_depends_on_both_inputs():
    """Test that changing either input changes the effective salt."""
    base = derive_salt("secret", "666")

    assert derive_salt("other-secret", "666") != base
    assert derive_salt("secret", "667") != base
    # Not a plain concatenation of the two inputs
    assert derive_salt("secret6", "66") != base


def test_derive_salt_with_one_blank_input():
    """Test that a salt can be derived when only one input is present."""
    assert derive_salt("secret", "")
    assert derive_salt("secret", None)
    assert derive_salt("", "666")


def test_derive_salt_without_any_input():
    """Test that deriving from nothing is refused."""
    with pytest.raises(ValueError):
        derive_salt("", "")
    with pytest.raises(ValueError):
        derive_salt("  ", None)


def test_generate_salt():
    """Test generating random per-user salts."""
    salt = generate_salt()

    assert len(salt) == 32
    assert generate_salt() != salt
    assert len(generate_salt(8)) == 16
