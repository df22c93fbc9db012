"""
Tests for record key derivation.
"""

import hashlib

from ruletable.utils.crypto import derive_key


class TestDeriveKey:
    """Tests for derive_key function."""

    def test_key_format(self):
        """Test that keys are 64 lowercase hex characters."""
        key = derive_key("p", ["alice", "data1", "read"])

        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)

    def test_deterministic(self):
        """Test that the same content always gives the same key."""
        assert derive_key("p", ["alice", "data1", "read"]) == derive_key("p", ("alice", "data1", "read"))

    def test_known_value(self):
        """Test the exact canonical encoding so keys stay stable across releases."""
        expected = hashlib.sha256(b"1:p5:alice5:data14:read").hexdigest()
        assert derive_key("p", ["alice", "data1", "read"]) == expected

    def test_type_tag_is_part_of_key(self):
        """Test that p and g rules with the same fields differ."""
        assert derive_key("p", ["alice", "admin"]) != derive_key("g", ["alice", "admin"])

    def test_separator_in_values_is_unambiguous(self):
        """Test that values containing commas cannot collide with extra fields."""
        assert derive_key("p", ["a,b"]) != derive_key("p", ["a", "b"])
        assert derive_key("p", ["1:a"]) != derive_key("p", ["", "a"])

    def test_trailing_empty_field_is_significant(self):
        """Test that field count is part of the identity."""
        assert derive_key("p", ["alice", "data1", "read"]) != derive_key("p", ["alice", "data1", "read", ""])

    def test_case_and_whitespace_preserved(self):
        """Test that no normalization happens before hashing."""
        assert derive_key("p", ["Alice"]) != derive_key("p", ["alice"])
        assert derive_key("p", ["alice "]) != derive_key("p", ["alice"])

    def test_unicode_values(self):
        """Test that multi-byte values are length-prefixed by bytes."""
        expected = hashlib.sha256("1:p6:ålice".encode("utf-8")).hexdigest()
        assert derive_key("p", ["ålice"]) == expected
