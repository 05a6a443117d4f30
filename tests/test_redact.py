from __future__ import annotations

from statebridge._redact import render_for_log


def test_render_for_log_redacts_key_material() -> None:
    payload = {
        "state": "ON",
        "network_key": [1, 2, 3],
        "nested": {"install_code": "ABCD", "linkquality": 120},
    }

    rendered = render_for_log(payload)
    assert rendered["state"] == "ON"
    assert rendered["network_key"] == "<redacted>"
    assert rendered["nested"]["install_code"] == "<redacted>"
    assert rendered["nested"]["linkquality"] == 120


def test_render_for_log_truncates_long_strings_and_bytes() -> None:
    rendered = render_for_log({"image": "x" * 600, "frame": b"\x00\x01"}, max_string=10)

    assert rendered["image"].startswith("x" * 10)
    assert "<truncated>" in rendered["image"]
    assert rendered["frame"] == "<bytes:2b>"
