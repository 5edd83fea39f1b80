"""Tests for the command-line driver."""

import json

import pytest

from avatarpose.app import build_parser, main
from avatarpose.retarget.motion_asset import motion_asset_to_dict
from avatarpose.scene.builtin_rigs import demo_motion_asset


def test_demo_run(capsys):
    assert main(["--frames", "10", "--seed", "1"]) == 0
    out = capsys.readouterr().out
    assert "clip=idle" in out
    assert "expr blink" in out
    assert "bone head" in out


def test_play_and_expressions(capsys):
    code = main(["--frames", "30", "--play", "wave", "--fade", "0", "--emotion", "happy",
                 "--surprise", "--gaze", "1,1.5,1", "--seed", "2"])
    assert code == 0
    out = capsys.readouterr().out
    assert "clip=wave" in out
    assert "expr happy" in out
    assert "expr surprised" in out


def test_clip_files_and_failures(tmp_path, capsys):
    good = tmp_path / "wave.json"
    good.write_text(json.dumps(motion_asset_to_dict(demo_motion_asset("wave"))))
    code = main(["--frames", "2", "--clip", f"wave={good}",
                 "--clip", f"gone={tmp_path / 'gone.json'}", "--play", "wave"])
    assert code == 1
    out = capsys.readouterr().out
    assert "FAILED gone" in out
    assert "clip=wave" in out


def test_missing_skeleton_file(tmp_path):
    assert main(["--skeleton", str(tmp_path / "nope.json"), "--frames", "1"]) == 1


def test_unknown_bone_reported(capsys):
    main(["--frames", "1", "--bones", "head,tail"])
    assert "bone tail" in capsys.readouterr().out


@pytest.mark.parametrize("bad", [["--clip", "noequals"], ["--gaze", "1,2"], ["--gaze", "a,b,c"]])
def test_parser_rejects_bad_values(bad):
    with pytest.raises(SystemExit):
        build_parser().parse_args(bad)


def test_export_demo_files_run_back_through_cli(tmp_path, capsys):
    assert main(["--export-demo", str(tmp_path)]) == 0
    names = sorted(p.name for p in tmp_path.iterdir())
    assert names == ["idle.json", "idle2.json", "looking.json", "target_skeleton.json", "wave.json"]

    code = main(["--frames", "5", "--skeleton", str(tmp_path / "target_skeleton.json"),
                 "--clip", f"wave={tmp_path / 'wave.json'}", "--play", "wave"])
    assert code == 0
    assert "clip=wave" in capsys.readouterr().out


def test_dump_clips(tmp_path):
    out = tmp_path / "clips"
    assert main(["--frames", "1", "--dump-clips", str(out)]) == 0
    wave = json.loads((out / "wave.json").read_text())
    assert wave["name"] == "wave"
    assert wave["duration"] == 1.5
    assert {t["property"] for t in wave["tracks"]} <= {"quaternion", "position"}
    assert sorted(p.stem for p in out.iterdir()) == ["idle", "idle2", "looking", "wave"]
