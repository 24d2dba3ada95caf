"""Tests for the cue-navigator command-line interface.

HOW: Caption files are written to tmp_path; main() is called with an
explicit argv and stdout/stderr are captured with capsys.
"""

from __future__ import annotations

import json

import pytest

from cue_navigator.cli import build_parser, load_track, main

CUES = [
    {"id": "c1", "start_time": 0.0, "end_time": 2.0, "text": "Hello there,"},
    {"id": "c2", "start_time": 2.0, "end_time": 4.0, "text": "my friend."},
    {"id": "c3", "startTime": 4.5, "endTime": 8.0, "text": "How are you today?"},
]

AUTO = {
    "is_auto_generated": True,
    "cues": [
        {"id": "a1", "start_time": 10.0, "end_time": 10.3, "text": "A"},
        {"id": "a2", "start_time": 10.3, "end_time": 10.6, "text": "A B"},
        {"id": "a3", "start_time": 10.6, "end_time": 11.5, "text": "A B C"},
    ],
}


@pytest.fixture
def track_file(tmp_path):
    path = tmp_path / "track.json"
    path.write_text(json.dumps(CUES), encoding="utf-8")
    return path


@pytest.fixture
def auto_file(tmp_path):
    path = tmp_path / "auto.json"
    path.write_text(json.dumps(AUTO), encoding="utf-8")
    return path


class TestLoadTrack:
    def test_list_of_cues_with_mixed_key_styles(self, track_file):
        track = load_track(track_file)
        assert len(track.cues) == 3
        assert track.cues[2].start_time == 4.5
        assert track.is_auto_generated is False

    def test_object_form(self, auto_file):
        track = load_track(auto_file)
        assert track.is_auto_generated is True
        assert [c.id for c in track.cues] == ["a1", "a2", "a3"]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_track(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "shape.json"
        path.write_text(json.dumps({"items": []}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_track(path)

    @pytest.mark.parametrize("payload", [[1, "x"], {"cues": [{"id": "a"}, None]}])
    def test_non_object_cue_entries(self, tmp_path, payload):
        path = tmp_path / "entries.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        with pytest.raises(ValueError, match="is not an object"):
            load_track(path)


class TestCommands:
    def test_sentences_json(self, track_file, capsys):
        main(["sentences", str(track_file), "--json"])
        rows = json.loads(capsys.readouterr().out)
        assert [r["text"] for r in rows] == ["Hello there, my friend.", "How are you today?"]
        assert rows[1]["start"] == 4.5

    def test_sentences_plain(self, track_file, capsys):
        main(["sentences", str(track_file)])
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("Hello there, my friend.")

    def test_groups(self, auto_file, capsys):
        main(["groups", str(auto_file), "--json"])
        rows = json.loads(capsys.readouterr().out)
        assert [r["text"] for r in rows] == ["A B C"]
        assert rows[0]["start"] == 10.0

    def test_navigate_next(self, track_file, capsys):
        main(["navigate", str(track_file), "--at", "1.0", "--direction", "next", "--json"])
        row = json.loads(capsys.readouterr().out)[0]
        assert row["to"] == 4.5
        assert row["source"] == "sentence"
        assert row["text"] == "How are you today?"

    def test_navigate_plain_line(self, track_file, capsys):
        main(["navigate", str(track_file), "--at", "5.0", "--direction", "replay"])
        out = capsys.readouterr().out
        assert out.startswith("replay 5.00 -> 4.50 via sentence")

    def test_missing_file_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["sentences", str(tmp_path / "missing.json")])
        assert exc_info.value.code == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_file_exits_1(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("[", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["groups", str(path)])
        assert exc_info.value.code == 1
        assert "Invalid JSON" in capsys.readouterr().err

    def test_non_object_cue_entry_exits_1(self, tmp_path, capsys):
        path = tmp_path / "entries.json"
        path.write_text(json.dumps([{"id": "a", "text": "Hi."}, 7]), encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["sentences", str(path)])
        assert exc_info.value.code == 1
        assert "cue 1 is not an object" in capsys.readouterr().err

    def test_serve_runs_api(self, monkeypatch):
        calls = []
        monkeypatch.setattr("cue_navigator.server.app.run_api", lambda host, port: calls.append((host, port)))
        main(["serve", "--host", "127.0.0.1", "--port", "9001"])
        assert calls == [("127.0.0.1", 9001)]


class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_navigate_requires_position(self, track_file):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["navigate", str(track_file)])

    def test_invalid_direction(self, track_file):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["navigate", str(track_file), "--at", "1", "--direction", "up"])
