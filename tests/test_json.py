"""Tests for the JSON interchange form."""

from __future__ import annotations

import json

import pytest

import save_builder as sb
from lw_json import main, save_from_dict, save_to_dict
from lw_parser import load_save, parse_save
from lw_serializer import serialize_save


def test_json_form_is_plain_data() -> None:
    d = save_to_dict(parse_save(sb.sample_save()))

    text = json.dumps(d)
    assert json.loads(text) == d
    assert d["mods"]["MHG"] == [0, 91, 3, 0]
    assert d["components"][0]["custom_data"] == {"kind": "switch", "color": [255, 0, 10], "on": True, "extra": ""}
    assert d["components"][1]["custom_data"] == {"kind": "display", "color_mode": 7, "extra": ""}
    assert d["components"][2]["custom_data"] == {"kind": "unknown", "raw": "010203040506"}
    assert d["wires"][0]["start"] == {"type": "output", "component": 10, "index": 0}
    assert d["states"] == "06"


def test_json_round_trip_rebuilds_same_bytes() -> None:
    data = sb.sample_save()

    rebuilt = save_from_dict(json.loads(json.dumps(save_to_dict(parse_save(data)))))

    assert serialize_save(rebuilt) == data


def test_nan_rotations_survive_json() -> None:
    data = sb.nan_rotation_save()

    d = json.loads(json.dumps(save_to_dict(parse_save(data))))

    assert d["components"][0]["rotation"][0] == {"nan_bits": "7f800001"}
    assert d["wires"][0]["rotation"] == {"nan_bits": "ffc00005"}
    assert serialize_save(save_from_dict(d)) == data


def test_from_dict_seeds_allocators_like_the_parser() -> None:
    parsed = parse_save(sb.sample_save())

    rebuilt = save_from_dict(save_to_dict(parsed))

    assert rebuilt.highest_state_id == parsed.highest_state_id
    assert rebuilt.highest_address == parsed.highest_address


def test_from_dict_rejects_foreign_documents() -> None:
    with pytest.raises(ValueError):
        save_from_dict({"format": "something-else"})


def test_from_dict_rejects_unknown_custom_data_kind() -> None:
    d = save_to_dict(parse_save(sb.sample_save()))
    d["components"][0]["custom_data"] = {"kind": "hologram"}

    with pytest.raises(ValueError):
        save_from_dict(d)


def test_cli_converts_both_ways(tmp_path, monkeypatch, capsys) -> None:
    save_path = tmp_path / "data.logicworld"
    json_path = tmp_path / "world.json"
    back_path = tmp_path / "back.logicworld"
    save_path.write_bytes(sb.sample_save())

    monkeypatch.setattr("sys.argv", ["lw_json.py", str(save_path), "-o", str(json_path), "--pretty"])
    assert main() == 0
    monkeypatch.setattr("sys.argv", ["lw_json.py", str(json_path), "-o", str(back_path), "--to-binary"])
    assert main() == 0

    assert back_path.read_bytes() == save_path.read_bytes()
    assert len(load_save(str(back_path)).components) == 4


def test_cli_reports_bad_input(tmp_path, monkeypatch, capsys) -> None:
    bad = tmp_path / "broken.logicworld"
    out = tmp_path / "out.json"
    bad.write_bytes(b"not a save at all, clearly")

    monkeypatch.setattr("sys.argv", ["lw_json.py", str(bad), "-o", str(out)])

    assert main() == 1
    assert "ERROR: validating header" in capsys.readouterr().out
    assert not out.exists()
