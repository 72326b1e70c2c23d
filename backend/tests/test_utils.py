import pytest

from compliance.services.storage_service import KeyClock, LocalObjectStore, generate_key
from compliance.utils.filesystem import sanitize_filename
from compliance.utils.rut import compute_check_digit, format_rut, is_valid_rut, is_well_formed


class TestRut:
    @pytest.mark.parametrize("raw,expected", [
        ("123456785", "12.345.678-5"),
        ("12.345.678-5", "12.345.678-5"),
        ("12345678-5", "12.345.678-5"),
        ("7654321-k", "7.654.321-K"),
        ("1-9", "1-9"),
    ])
    def test_format(self, raw, expected):
        assert format_rut(raw) == expected

    def test_check_digit(self):
        assert compute_check_digit("12345678") == "5"
        assert compute_check_digit("76123456") == "0"

    def test_valid(self):
        assert is_valid_rut("12.345.678-5")
        assert not is_valid_rut("12.345.678-4")

    def test_well_formed_ignores_check_digit(self):
        assert is_well_formed("76.123.456-7")
        assert not is_well_formed("K-123")
        assert not is_well_formed("")


class TestStorageKeys:
    def test_sanitize_drops_directories(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\temp\\my file (1).pdf") == "my_file__1_.pdf"
        assert sanitize_filename("..") == "file"

    def test_key_shape(self):
        key = generate_key("documents/w1", "Cédula frente.png")
        scope, name = key.rsplit("/", 1)
        assert scope == "documents/w1"
        stamp, filename = name.split("-", 1)
        assert stamp.isdigit()
        assert filename == "C_dula_frente.png"

    def test_clock_never_repeats(self):
        clock = KeyClock()
        stamps = [clock.next() for _ in range(500)]
        assert len(set(stamps)) == 500
        assert stamps == sorted(stamps)

    def test_store_round_trip_and_delete(self, tmp_path):
        store = LocalObjectStore(tmp_path)
        store.put("a/b/1-x.txt", b"hello")
        assert store.exists("a/b/1-x.txt")
        assert store.get("a/b/1-x.txt") == b"hello"
        assert store.delete("a/b/1-x.txt")
        assert store.get("a/b/1-x.txt") is None
        assert not store.delete("a/b/1-x.txt")

    def test_store_rejects_escaping_keys(self, tmp_path):
        from compliance.errors import InternalError

        store = LocalObjectStore(tmp_path / "root")
        with pytest.raises(InternalError):
            store.put("../outside.txt", b"x")
        assert not store.exists("../outside.txt")
