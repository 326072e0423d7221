"""Test utility functions"""

from datetime import datetime, timezone

from kiosk_cache.core.file_manager import extension_from_url, sanitize_filename
from kiosk_cache.utils import (
    code_candidates,
    ensure_directory,
    format_bytes_mb,
    normalize_activation_key,
    parse_remote_timestamp,
)


class TestCodeCandidates:
    """Test candidate code forms"""

    def test_raw_numeric_code(self):
        """Raw code is tried first, then the padded form"""
        assert code_candidates("1009") == ["1009", "01009"]

    def test_padded_code(self):
        """Padded code is tried first, then the stripped form"""
        assert code_candidates("01009") == ["01009", "1009"]

    def test_over_padded_code(self):
        """Extra zeros yield all three forms"""
        assert code_candidates("001009") == ["001009", "01009", "1009"]

    def test_full_width_code(self):
        """A code already at full width without zeros has one form"""
        assert code_candidates("12345") == ["12345"]

    def test_non_numeric_code(self):
        """Non-numeric codes are not padded"""
        assert code_candidates("AB12") == ["AB12"]

    def test_whitespace_and_empty(self):
        """Whitespace is trimmed and blank codes yield nothing"""
        assert code_candidates(" 7 ") == ["7", "00007"]
        assert code_candidates("   ") == []

    def test_all_zeros(self):
        """Zero code keeps a single zero when stripped"""
        assert code_candidates("00000") == ["00000", "0"]


class TestActivationKeyNormalization:
    """Test activation key normalization"""

    def test_trims_and_uppercases(self):
        assert normalize_activation_key("  abcd-1234 ") == "ABCD-1234"

    def test_spaces_become_dashes(self):
        assert normalize_activation_key("abcd 1234 efgh") == "ABCD-1234-EFGH"

    def test_each_space_becomes_a_dash(self):
        assert normalize_activation_key("AB  CD") == "AB--CD"
        assert normalize_activation_key(" ab\tcd ") == "AB\tCD"

    def test_empty(self):
        assert normalize_activation_key("   ") == ""


class TestParseRemoteTimestamp:
    """Test the ordered timestamp parsing chain"""

    def test_rfc3339_with_z(self):
        parsed = parse_remote_timestamp("2026-03-10T08:30:00Z")
        assert parsed == datetime(2026, 3, 10, 8, 30, tzinfo=timezone.utc)

    def test_rfc3339_with_offset(self):
        """Offsets are converted to UTC"""
        parsed = parse_remote_timestamp("2026-03-10T08:30:00-03:00")
        assert parsed == datetime(2026, 3, 10, 11, 30, tzinfo=timezone.utc)

    def test_postgres_style_with_fraction_and_offset(self):
        parsed = parse_remote_timestamp("2026-03-10 08:30:00.123456+00:00")
        assert parsed == datetime(2026, 3, 10, 8, 30, 0, 123456, tzinfo=timezone.utc)

    def test_naive_with_fraction_assumed_utc(self):
        parsed = parse_remote_timestamp("2026-03-10T08:30:00.250")
        assert parsed == datetime(2026, 3, 10, 8, 30, 0, 250000, tzinfo=timezone.utc)

    def test_naive_without_fraction_assumed_utc(self):
        parsed = parse_remote_timestamp("2026-03-10T08:30:00")
        assert parsed == datetime(2026, 3, 10, 8, 30, tzinfo=timezone.utc)

    def test_date_only_is_end_of_day(self):
        parsed = parse_remote_timestamp("2026-03-10")
        assert parsed == datetime(2026, 3, 10, 23, 59, 59, tzinfo=timezone.utc)

    def test_unparseable_is_absent(self):
        assert parse_remote_timestamp("next tuesday") is None
        assert parse_remote_timestamp("") is None
        assert parse_remote_timestamp(None) is None


class TestFileHelpers:
    """Test file naming helpers"""

    def test_extension_from_url(self):
        assert extension_from_url("https://cdn/x/01009.WEBM?token=abc") == ".webm"
        assert extension_from_url("https://cdn/x/01009.mkv") == ".mkv"

    def test_extension_defaults_to_mp4(self):
        assert extension_from_url("https://cdn/x/download?id=5") == ".mp4"
        assert extension_from_url("https://cdn/x/file.txt") == ".mp4"

    def test_sanitize_filename(self):
        assert sanitize_filename("01/009") == "01_009"
        assert sanitize_filename("") == "Unknown"
        assert sanitize_filename(" .hidden. ") == "hidden"

    def test_ensure_directory(self, temp_dir):
        target = temp_dir / "a" / "b"
        assert ensure_directory(target) == target
        assert target.is_dir()

    def test_format_bytes_mb(self):
        assert format_bytes_mb(0) == 0.0
        assert format_bytes_mb(1048576) == 1.0
        assert format_bytes_mb(1572864) == 1.5
