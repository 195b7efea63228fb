from __future__ import annotations

import json
import os

import pytest

from shadowfuzz.integration.cli import main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("SHADOWFUZZ_"):
            monkeypatch.delenv(key)


def test_json_report(capsys):
    rc = main(["--runs", "1", "--depth", "10", "--policy", "discriminate", "--json"])
    out = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert out["ok"] is True
    assert out["totals"]["steps"] == 10


def test_text_summary(capsys):
    rc = main(["--runs", "1", "--depth", "5", "--policy", "strict", "--seed", "4"])
    out = capsys.readouterr().out
    assert rc == 0
    assert out.startswith("[shadowfuzz] ok policy=strict")


def test_config_file_and_flags(tmp_path, capsys):
    path = tmp_path / "campaign.yaml"
    path.write_text("campaign:\n  runs: 1\n  depth: 4\n  policy: strict\n", encoding="utf-8")
    rc = main(["--config", str(path), "--depth", "6", "--json"])
    out = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert out["config"]["policy"] == "strict"
    assert out["config"]["depth"] == 6


def test_config_error_exit_code(capsys):
    assert main(["--runs", "0"]) == 2
    assert "config error" in capsys.readouterr().err


def test_unknown_fault_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        main(["--fault", "nope"])
    assert exc.value.code == 2


def test_boolean_flags_can_switch_a_yaml_setting_off(tmp_path, capsys):
    path = tmp_path / "campaign.yaml"
    path.write_text(
        "campaign:\n  runs: 1\n  depth: 3\n  policy: strict\n  abort_on_failure: true\n  loose_apply_on_revert: true\n",
        encoding="utf-8",
    )
    rc = main(["--config", str(path), "--no-abort-on-failure", "--no-loose-apply-on-revert", "--json"])
    out = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert out["config"]["abort_on_failure"] is False
    assert out["config"]["loose_apply_on_revert"] is False


def test_boolean_flag_left_out_keeps_the_yaml_setting(tmp_path, capsys):
    path = tmp_path / "campaign.yaml"
    path.write_text("campaign:\n  runs: 1\n  depth: 3\n  abort_on_failure: true\n", encoding="utf-8")
    main(["--config", str(path), "--json"])
    out = json.loads(capsys.readouterr().out)
    assert out["config"]["abort_on_failure"] is True


def test_fresh_seeds_flag(capsys):
    rc = main(["--runs", "1", "--depth", "4", "--fresh-seeds", "3", "--json"])
    out = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert out["config"]["fresh_seeds"] == 3
