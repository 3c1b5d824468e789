from __future__ import annotations

from jobtrack._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "form_id": "5695685",
        "key": "demo",
        "token": {"value": "SECRET"},
        "password": "pw",
        "nested": {"lat": 41.9, "lng": -87.6, "label": "New GPS"},
    }

    redacted = redact_for_log(payload)
    assert redacted["form_id"] == "5695685"
    assert redacted["key"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["token"] == "<redacted>"
    assert redacted["nested"]["lat"] == "<redacted>"
    assert redacted["nested"]["lng"] == "<redacted>"
    assert redacted["nested"]["label"] == "New GPS"


def test_redact_for_log_masks_coordinates_in_gps_strings() -> None:
    redacted = redact_for_log({"value": "Lat:41.908566,Lon:-87.677826,Acc:6.5,Time:1700000000"})

    assert redacted["value"] == "Lat:<redacted>,Lon:<redacted>,Acc:6.5,Time:1700000000"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
