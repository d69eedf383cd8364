import json

import pytest

from letterboxd_collections import ListConfig, build_list_configs, load_config


def write_config(tmp_path, payload):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_defaults_are_merged_under_the_file(tmp_path):
    path = write_config(
        tmp_path,
        {
            "jellyfin": {"api_key": "abc123", "base_url": "http://jellyfin:8096/"},
            "lists": [{"name": " Top 250 ", "url": "https://letterboxd.com/dave/list/top/"}],
        },
    )

    config = load_config(path)

    assert config["jellyfin"]["base_url"] == "http://jellyfin:8096"
    assert config["letterboxd"]["base_url"] == "https://letterboxd.com"
    assert config["runtime"]["run_mode"] == "continuous"
    assert config["runtime"]["refresh_interval_hours"] == 24
    assert build_list_configs(config) == [
        ListConfig(name="Top 250", url="https://letterboxd.com/dave/list/top/")
    ]


def test_missing_lists_load_as_empty(tmp_path):
    config = load_config(write_config(tmp_path, {"jellyfin": {"api_key": "abc123"}}))

    assert config["lists"] == []


def test_missing_file_is_reported(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


@pytest.mark.parametrize("api_key", ["", "   ", "YOUR_JELLYFIN_API_KEY"])
def test_api_key_is_required(tmp_path, api_key):
    with pytest.raises(ValueError, match="jellyfin.api_key"):
        load_config(write_config(tmp_path, {"jellyfin": {"api_key": api_key}}))


@pytest.mark.parametrize(
    "lists",
    [
        "https://letterboxd.com/dave/list/top/",
        ["https://letterboxd.com/dave/list/top/"],
        [{"name": "", "url": "https://letterboxd.com/dave/list/top/"}],
        [{"name": "Top"}],
    ],
)
def test_malformed_lists_are_rejected(tmp_path, lists):
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path, {"jellyfin": {"api_key": "abc123"}, "lists": lists}))


def test_runtime_values_are_clamped_and_validated(tmp_path):
    config = load_config(
        write_config(
            tmp_path,
            {
                "jellyfin": {"api_key": "abc123"},
                "runtime": {
                    "run_mode": " ONCE ",
                    "refresh_interval_hours": 0,
                    "log_file_max_bytes": 10,
                    "dashboard_event_lines": 100,
                },
            },
        )
    )

    assert config["runtime"]["run_mode"] == "once"
    assert config["runtime"]["refresh_interval_hours"] == 1
    assert config["runtime"]["log_file_max_bytes"] == 1024
    assert config["runtime"]["dashboard_event_lines"] == 20


def test_unknown_run_mode_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="run_mode"):
        load_config(
            write_config(tmp_path, {"jellyfin": {"api_key": "abc123"}, "runtime": {"run_mode": "hourly"}})
        )
