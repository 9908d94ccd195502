"""
Tests for derby detection and derby reward bonuses.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.derby import DerbyType, RivalryLevel, derby_bonus, detect_derby, is_derby


def test_helsinki_derby():
    derby = detect_derby("HJK Helsinki", "HIFK Helsinki")
    assert derby is not None
    assert derby.derby_type is DerbyType.HELSINKI_DERBY
    assert derby.rivalry_level is RivalryLevel.HIGH
    assert derby.city == "Helsinki"
    assert derby.bonus_multiplier == 2.0
    assert "Enhanced odds" in derby.features


def test_espoo_club_counts_as_helsinki_derby():
    derby = detect_derby("FC Honka", "HJK Helsinki")
    assert derby is not None
    assert derby.derby_type is DerbyType.HELSINKI_DERBY


def test_stockholm_derby_either_order():
    assert detect_derby("AIK Stockholm", "Djurgården Stockholm").derby_type is DerbyType.STOCKHOLM_DERBY
    assert detect_derby("Hammarby Stockholm", "AIK Stockholm").derby_type is DerbyType.STOCKHOLM_DERBY


def test_clasicos_and_regional():
    assert detect_derby("HJK Helsinki", "KuPS Kuopio").derby_type is DerbyType.FINNISH_CLASICO
    assert detect_derby("Malmö FF", "IFK Göteborg").derby_type is DerbyType.SWEDISH_CLASICO
    regional = detect_derby("FC Inter Turku", "TPS Turku")
    assert regional.derby_type is DerbyType.REGIONAL_DERBY
    assert regional.rivalry_level is RivalryLevel.LOW
    assert regional.bonus_multiplier == 1.5


def test_not_a_derby():
    assert detect_derby("FC Haka", "AC Oulu") is None
    assert detect_derby("HJK Helsinki", "FC Haka") is None
    # both configured but no rivalry declared
    assert not is_derby("FC Lahti", "Malmö FF")


def test_derby_bonus():
    assert derby_bonus(100, DerbyType.HELSINKI_DERBY, "XP") == 200
    assert derby_bonus(1000, DerbyType.FINNISH_CLASICO, "BETPOINTS") == 1500
    assert derby_bonus(5, DerbyType.REGIONAL_DERBY, "DIAMONDS") == 7
    with pytest.raises(ValueError):
        derby_bonus(5, DerbyType.REGIONAL_DERBY, "GOLD")
