from __future__ import annotations

import pytest

from shadowfuzz.integration.config import CampaignConfig, load_config, load_yaml_config
from shadowfuzz.state import UnderflowMode


def test_defaults():
    cfg = load_config(env={})
    assert cfg == CampaignConfig()
    assert cfg.policy == "discriminate"
    assert cfg.underflow is UnderflowMode.PANIC


def test_env_values_are_parsed_and_bounded():
    cfg = load_config(
        env={
            "SHADOWFUZZ_RUNS": "3",
            "SHADOWFUZZ_DEPTH": "0x10",
            "SHADOWFUZZ_POLICY": " Strict ",
            "SHADOWFUZZ_ABORT_ON_FAILURE": "yes",
            "SHADOWFUZZ_REUSE_PERCENT": "250",
            "SHADOWFUZZ_MAX_BATCH_LEN": "not-a-number",
        }
    )
    assert cfg.runs == 3
    assert cfg.depth == 16
    assert cfg.policy == "strict"
    assert cfg.abort_on_failure is True
    assert cfg.reuse_percent == 100
    assert cfg.max_batch_len == CampaignConfig().max_batch_len


def test_env_policy_is_still_validated():
    with pytest.raises(ValueError, match="policy"):
        load_config(env={"SHADOWFUZZ_POLICY": "paranoid"})


def test_yaml_then_env_then_overrides(tmp_path):
    path = tmp_path / "campaign.yaml"
    path.write_text("campaign:\n  runs: 2\n  depth: 9\n  policy: loose\n  underflow_mode: saturate\n", encoding="utf-8")
    cfg = load_config(path, env={"SHADOWFUZZ_DEPTH": "11"}, overrides={"runs": 5, "seed": None})
    assert cfg.runs == 5
    assert cfg.depth == 11
    assert cfg.policy == "loose"
    assert cfg.underflow is UnderflowMode.SATURATE
    assert cfg.seed == 0


def test_config_path_from_env(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("runs: 4\n", encoding="utf-8")
    assert load_config(env={"SHADOWFUZZ_CONFIG": str(path)}).runs == 4


def test_empty_yaml(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_yaml_config(path) == {}


def test_unknown_yaml_key(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("runz: 3\n", encoding="utf-8")
    with pytest.raises(ValueError, match="unknown config keys: runz"):
        load_config(path, env={})


def test_yaml_type_errors(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("runs: many\n", encoding="utf-8")
    with pytest.raises(ValueError, match="runs must be an int"):
        load_config(path, env={})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"runs": 0},
        {"depth": -1},
        {"policy": "nope"},
        {"underflow_mode": "clamp"},
        {"reuse_percent": 101},
        {"max_mint_amount": 0},
        {"fresh_seeds": 0},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        CampaignConfig(**kwargs)


def test_to_dict_round_trips():
    cfg = CampaignConfig(runs=2, policy="strict")
    assert CampaignConfig(**cfg.to_dict()) == cfg


def test_population_and_revert_settings_from_env():
    cfg = load_config(env={"SHADOWFUZZ_FRESH_SEEDS": "5", "SHADOWFUZZ_LOOSE_APPLY_ON_REVERT": "off"})
    assert cfg.fresh_seeds == 5
    assert cfg.loose_apply_on_revert is False
    assert CampaignConfig().loose_apply_on_revert is True
