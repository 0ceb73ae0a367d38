"""Tests for key generation and checksums."""

import re
from datetime import UTC, datetime

from assetvault.lib.keys import (
    ID_ALPHABET,
    ID_LENGTH,
    MAX_NAME_LENGTH,
    checksum,
    generate_key,
    random_id,
    sanitize_filename,
)

KEY_PATTERN = re.compile(r"^assets/\d{4}/\d{2}/[A-Za-z0-9_-]{10}-My_Photo\.jpg$")


class TestSanitizeFilename:
    def test_replaces_unsafe_characters(self):
        assert sanitize_filename("My Photo.jpg") == "My_Photo.jpg"
        assert sanitize_filename("a/b\\c?.png") == "a_b_c_.png"

    def test_keeps_safe_characters(self):
        assert sanitize_filename("report-v2_final.PDF") == "report-v2_final.PDF"

    def test_truncates_long_names(self):
        name = "x" * 80 + ".jpg"
        assert len(sanitize_filename(name)) == MAX_NAME_LENGTH

    def test_empty_name_gets_placeholder(self):
        assert sanitize_filename("") == "file"

    def test_unicode_is_replaced(self):
        assert sanitize_filename("café.jpg") == "caf_.jpg"


class TestGenerateKey:
    def test_layout(self):
        key = generate_key("My Photo.jpg")
        assert KEY_PATTERN.match(key), key

    def test_uses_given_date(self):
        key = generate_key("a.png", now=datetime(2024, 3, 9, tzinfo=UTC))
        assert key.startswith("assets/2024/03/")

    def test_custom_prefix(self):
        key = generate_key("a.png", prefix="thumbnails/video/")
        assert key.startswith("thumbnails/video/")
        assert "//" not in key

    def test_identical_inputs_get_distinct_keys(self):
        keys = {generate_key("same.jpg") for _ in range(200)}
        assert len(keys) == 200

    def test_random_id(self):
        value = random_id()
        assert len(value) == ID_LENGTH
        assert set(value) <= set(ID_ALPHABET)


class TestChecksum:
    def test_deterministic(self):
        assert checksum(b"hello") == checksum(b"hello")

    def test_md5_hex(self):
        assert checksum(b"hello") == "5d41402abc4b2a76b9719d911017c592"

    def test_differs_for_different_content(self):
        assert checksum(b"a") != checksum(b"b")
