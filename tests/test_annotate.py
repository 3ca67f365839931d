"""Tests for note-file loading, two-hand annotation and export."""

import json

import pytest

from src.fingering_rl.annotate import (
    annotations_to_json_bytes,
    generate_fingering,
    load_note_groups,
    save_annotations,
    to_entries,
)
from src.fingering_rl.config import FingeringConfig
from src.fingering_rl.errors import InvalidInputError
from src.fingering_rl.types import FingerAssignment as FA
from src.fingering_rl.types import make_groups


@pytest.fixture
def small_config(fast_config):
    return FingeringConfig(solver=fast_config)


def test_load_note_groups(tmp_path):
    path = tmp_path / "notes.json"
    path.write_text(
        json.dumps(
            {
                "right": [[{"pitch": 60, "duration": 480}], [{"pitch": 67}, {"pitch": 64}]],
                "left": [[{"pitch": 48, "duration": 960}]],
            }
        ),
        encoding="utf-8",
    )
    hands = load_note_groups(path)
    assert [[n.pitch for n in g] for g in hands["right"]] == [[60], [67, 64]]
    assert hands["right"][1][0].position == 480
    assert hands["left"][0][0].duration == 960
    assert hands["left"][0][0].channel == 1


def test_load_note_groups_missing_hand_is_empty(tmp_path):
    path = tmp_path / "notes.json"
    path.write_text(json.dumps({"right": [[{"pitch": 60}]]}), encoding="utf-8")
    assert load_note_groups(path)["left"] == []


def test_load_note_groups_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_note_groups(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"right": [[{"duration": 10}]]}), encoding="utf-8")
    with pytest.raises(ValueError, match="Malformed"):
        load_note_groups(bad)

    not_object = tmp_path / "list.json"
    not_object.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_note_groups(not_object)


def test_generate_fingering_both_hands(small_config):
    right = make_groups([[60], [62], [64, 67]])
    left = make_groups([[48], [43, 48]], channel=1)
    reported = []
    result = generate_fingering(
        right, left, config=small_config, max_workers=1, on_progress=reported.append
    )

    assert [len(f) for f in result["right"]] == [1, 1, 2]
    assert [len(f) for f in result["left"]] == [1, 2]
    assert reported == sorted(reported)
    assert reported[-1] == pytest.approx(100)


def test_invalid_left_hand_rejected_before_right_hand_trains(small_config):
    reported = []
    with pytest.raises(InvalidInputError) as excinfo:
        generate_fingering(
            make_groups([[60], [62]]),
            [()],
            config=small_config,
            on_progress=reported.append,
        )
    assert excinfo.value.category == "empty_group"
    assert reported == []


def test_generate_fingering_skips_empty_hand(small_config):
    result = generate_fingering(make_groups([[60], [62]]), [], config=small_config)
    assert len(result["right"]) == 2
    assert result["left"] == []


def test_generate_fingering_nothing_to_do(small_config):
    assert generate_fingering([], [], config=small_config) == {"right": [], "left": []}


def test_to_entries_numbers_positions():
    entries = to_entries([(FA(60, 1),), (FA(64, 2), FA(67, 4)), (FA(62, 1),)])
    assert [e["position"] for e in entries] == [0, 1, 2, 3]
    assert [e["pitch"] for e in entries] == [60, 64, 67, 62]
    assert [e["finger"] for e in entries] == [1, 2, 4, 1]


def test_export(tmp_path):
    result = {"right": [(FA(60, 1),)], "left": [(FA(48, 5), FA(55, 1))]}
    payload = json.loads(annotations_to_json_bytes(result))
    assert payload["left"] == [
        {"pitch": 48, "finger": 5, "position": 0},
        {"pitch": 55, "finger": 1, "position": 1},
    ]

    written = save_annotations(result, tmp_path / "out" / "notes_fingering.json")
    assert written.exists()
    assert json.loads(written.read_text(encoding="utf-8")) == payload
