"""Tests for sector classification."""

import numpy as np
import pytest

from sectors import Sector, classify_segment


class TestClassifySegment:
    @pytest.mark.parametrize("segment", [
        "Bancos", "BANCOS", "Banco Múltiplo", "Regional Bank", "Investment Banking",
    ])
    def test_bank_labels(self, segment):
        assert classify_segment(segment) is Sector.BANK

    @pytest.mark.parametrize("segment", [
        "Seguradoras", "seguradoras", "Life Insurance", "Property & Insurance Brokers",
    ])
    def test_insurance_labels(self, segment):
        assert classify_segment(segment) is Sector.INSURANCE

    @pytest.mark.parametrize("segment", [
        "Energia Elétrica", "Motores, Compressores e Outros", "Software", "",
    ])
    def test_everything_else_is_universal(self, segment):
        assert classify_segment(segment) is Sector.UNIVERSAL

    @pytest.mark.parametrize("segment", [None, np.nan, 42])
    def test_missing_or_non_text_is_universal(self, segment):
        assert classify_segment(segment) is Sector.UNIVERSAL

    def test_bank_marker_checked_first(self):
        """A label carrying both markers resolves to the bank model."""
        assert classify_segment("Bank Insurance Holdings") is Sector.BANK


class TestSectorEnum:
    def test_closed_set(self):
        assert {s.value for s in Sector} == {"Universal", "Bank", "Insurance"}

    def test_string_valued(self):
        assert Sector("Bank") is Sector.BANK
        assert Sector.INSURANCE == "Insurance"
