"""Unit tests for address normalization and fingerprinting."""

import pytest

from directory_api.lib.geocoder.address import (
    address_fingerprint,
    clean_address,
    fingerprint_for,
    normalize_address,
)
from directory_api.lib.geocoder.base import InvalidAddressError
from directory_api.models.geocode_cache import FINGERPRINT_LENGTH, GeocodeCache


class TestCleanAddress:
    """Tests for clean_address."""

    def test_collapses_whitespace_and_trims(self) -> None:
        assert clean_address("  1234   Main St,\tMontreal \n") == "1234 Main St, Montreal"

    def test_preserves_case(self) -> None:
        assert clean_address("1234 Main ST") == "1234 Main ST"

    def test_folds_unicode_spaces(self) -> None:
        assert clean_address("1234\u00a0Main\u3000St") == "1234 Main St"

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n"])
    def test_blank_raises(self, raw: str) -> None:
        with pytest.raises(InvalidAddressError, match="empty"):
            clean_address(raw)

    def test_non_string_raises(self) -> None:
        with pytest.raises(InvalidAddressError, match="string"):
            clean_address(None)  # type: ignore[arg-type]

    def test_invalid_address_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            clean_address(" ")


class TestNormalizeAddress:
    """Tests for normalize_address."""

    def test_docstring_example(self) -> None:
        assert normalize_address("1234  Main St ,Montreal ") == "1234 main st, montreal"

    def test_case_insensitive(self) -> None:
        assert normalize_address("1234 MAIN ST, MONTREAL") == normalize_address("1234 main st, montreal")

    def test_comma_spacing(self) -> None:
        assert normalize_address("a,b , c ,  d") == "a, b, c, d"

    def test_idempotent(self) -> None:
        once = normalize_address("  55 Rue  Saint-Paul O ,Montréal, QC ")
        assert normalize_address(once) == once

    def test_accents_preserved(self) -> None:
        assert normalize_address("Montréal") == "montréal"

    def test_blank_raises(self) -> None:
        with pytest.raises(InvalidAddressError):
            normalize_address("   ")


class TestFingerprint:
    """Tests for address_fingerprint and fingerprint_for."""

    def test_fingerprint_is_sha256_hex(self) -> None:
        fp = address_fingerprint("1234 main st, montreal")
        assert len(fp) == FINGERPRINT_LENGTH
        assert all(c in "0123456789abcdef" for c in fp)

    def test_fingerprint_fits_cache_key_column(self) -> None:
        column = GeocodeCache.__table__.c.address_fingerprint
        assert column.type.length == len(fingerprint_for("1234 Main St, Montreal"))

    def test_known_digest(self) -> None:
        # sha256("abc")
        assert address_fingerprint("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_equivalent_addresses_share_fingerprint(self) -> None:
        variants = [
            "1234 Main St, Montreal, Quebec",
            "1234  main st ,montreal,  QUEBEC",
            "\t1234 MAIN ST,MONTREAL,QUEBEC  ",
        ]
        assert len({fingerprint_for(v) for v in variants}) == 1

    def test_distinct_addresses_differ(self) -> None:
        assert fingerprint_for("1234 Main St, Montreal") != fingerprint_for("1235 Main St, Montreal")
