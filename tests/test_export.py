from __future__ import annotations

import csv
import json
from unittest.mock import MagicMock, patch

import requests

from stroop_sequential.export import (
    DataSink,
    build_payload,
    local_export_filename,
    save_local_copy,
    save_results_csv,
    serialize_log,
)
from stroop_sequential.records import RECORD_FIELDS, SessionLog, build_trial_record
from stroop_sequential.response import Resolution
from stroop_sequential.stimuli import StimulusSpec

P = "stroop_sequential.export.requests.post"


def _log(n=2):
    log = SessionLog()
    for i in range(n):
        record = build_trial_record(
            StimulusSpec("AZUL", "blue", True),
            Resolution(response=True, reaction_time_ms=400.0 + i, timestamp="t"),
            log.last,
            participant_id="AS-k1-ZZ99",
            block=0,
            trial_in_block=i,
            global_trial=i,
            block_size=n,
        )
        log = log.append(record)
    return log


def test_transmit_posts_json_payload():
    log = _log()
    with patch(P) as post:
        post.return_value = MagicMock(status_code=200)
        result = DataSink("https://example.org/sink", timeout_s=3).transmit("AS-k1-ZZ99", log)

    assert result.delivered
    post.assert_called_once()
    args, kwargs = post.call_args
    assert args == ("https://example.org/sink",)
    assert kwargs["json"] == {"participantId": "AS-k1-ZZ99", "data": log.to_json()}
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 3


def test_http_error_status_is_not_delivered():
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
    with patch(P, return_value=response):
        result = DataSink("https://example.org/sink").transmit("AS-k1-ZZ99", _log())
    assert not result.delivered
    assert "503" in result.error


def test_missing_url_skips_the_request():
    with patch(P) as post:
        result = DataSink("").transmit("AS-k1-ZZ99", _log())
    post.assert_not_called()
    assert not result.delivered


def test_payload_and_serialization_agree():
    log = _log(3)
    payload = build_payload("AS-k1-ZZ99", log)
    assert json.loads(serialize_log(log)) == payload["data"]


def test_save_local_copy(tmp_path):
    log = _log(3)
    path = save_local_copy(log, "AS-k1-ZZ99", tmp_path / "out")
    assert path.name == local_export_filename("AS-k1-ZZ99") == "stroop-data-AS-k1-ZZ99.json"
    assert path.read_bytes() == serialize_log(log)


def test_save_results_csv(tmp_path):
    log = _log(2)
    path = save_results_csv(log, "AS-k1-ZZ99", tmp_path, participant_info={"session": "1"})
    with path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert tuple(rows[0]) == RECORD_FIELDS
    assert [row["trialInBlock"] for row in rows] == ["0", "1"]
    info = json.loads(path.with_suffix(".json").read_text(encoding="utf-8"))
    assert info == {"participantId": "AS-k1-ZZ99", "trials": 2, "session": "1"}
