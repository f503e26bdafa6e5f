import json

import pytest

from settings_store import (
    ROLE_ADMIN, ROLE_MASTER, ROLE_VIEWER, SettingsProvider, SettingsValueError,
    merge_settings, validate_settings,
)


def test_defaults_without_cache(tmp_path):
    provider = SettingsProvider(str(tmp_path / "cache.json"))
    assert provider.fares()["inGarrisonFull"] == 1200
    assert provider.section("logistics")["maxBookingDays"] == 31


def test_merge_keeps_missing_keys():
    merged = merge_settings({"id": "app", "fares": {"inGarrisonFull": 1000}})
    assert merged["fares"]["inGarrisonFull"] == 1000
    assert merged["fares"]["outGarrisonHalf"] == 1000
    assert "id" not in merged


def test_store_record_is_cached_and_reloaded(tmp_path):
    cache = tmp_path / "cache.json"
    provider = SettingsProvider(str(cache))
    provider.on_store_change([{"id": "other"}, {"id": "app", "fares": {"outGarrisonFull": 1750}}])
    assert provider.fares()["outGarrisonFull"] == 1750
    assert json.loads(cache.read_text(encoding="utf-8"))["fares"]["outGarrisonFull"] == 1750

    # a fresh process bootstraps from the snapshot
    assert SettingsProvider(str(cache)).fares()["outGarrisonFull"] == 1750


def test_corrupt_cache_falls_back_to_defaults(tmp_path):
    cache = tmp_path / "cache.json"
    cache.write_text("{not json", encoding="utf-8")
    assert SettingsProvider(str(cache)).fares()["inGarrisonFull"] == 1200


def test_roles_and_public_view(tmp_path):
    provider = SettingsProvider(str(tmp_path / "cache.json"))
    assert provider.role_for_pin("4856") == ROLE_ADMIN
    assert provider.role_for_pin("0560") == ROLE_MASTER
    assert provider.role_for_pin("") == ROLE_VIEWER
    assert provider.role_for_pin("1111") == ROLE_VIEWER

    public = provider.public()
    assert "adminPin" not in public["security"]
    assert "masterPin" not in public["security"]
    assert provider.current()["security"]["adminPin"] == "4856"


def test_validate_settings_rejects_bad_rates_and_caps():
    with pytest.raises(SettingsValueError):
        validate_settings({"fares": {"inGarrisonFull": -1200}})
    with pytest.raises(SettingsValueError):
        validate_settings({"fares": {"outGarrisonHalf": "cheap"}})
    with pytest.raises(SettingsValueError):
        validate_settings({"fares": {"inGarrisonHalf": True}})
    with pytest.raises(SettingsValueError):
        validate_settings({"logistics": {"maxBookingDays": "a month"}})
    with pytest.raises(SettingsValueError):
        validate_settings({"logistics": {"maxBookingDays": 2.5}})


def test_validate_settings_cleans_values():
    record = {"fares": {"inGarrisonFull": "99.999", "currencySymbol": "৳"},
              "logistics": {"maxBookingDays": "14"}}
    out = validate_settings(record)
    assert out["fares"]["inGarrisonFull"] == 100
    assert out["fares"]["currencySymbol"] == "৳"
    assert out["logistics"]["maxBookingDays"] == 14
    assert record["fares"]["inGarrisonFull"] == "99.999"
