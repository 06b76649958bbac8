"""Serialization and delivery of the finished session log.

Delivery to the remote data sink is best effort: any transport failure is
caught and reported as ``delivered=False``.  The local JSON copy is always
available through :func:`serialize_log` regardless of that outcome.
"""
from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from .records import RECORD_FIELDS, SessionLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    error: Optional[str] = None


def build_payload(participant_id: str, log: SessionLog) -> Dict[str, Any]:
    return {"participantId": participant_id, "data": log.to_json()}


def serialize_log(log: SessionLog) -> bytes:
    """Return the pretty-printed JSON array of every record in ``log``."""

    return log.to_json_bytes()


def local_export_filename(participant_id: str) -> str:
    return f"stroop-data-{participant_id or 'unknown'}.json"


class DataSink:
    """POST the session payload as JSON to ``url``.

    Nothing in the response body is interpreted; the outcome is reduced to
    a :class:`DeliveryResult`.
    """

    def __init__(self, url: str, *, timeout_s: float = 10.0):
        self.url = url
        self.timeout_s = timeout_s

    def transmit(self, participant_id: str, log: SessionLog) -> DeliveryResult:
        if not self.url:
            logger.info("No data sink configured; %d records kept locally only", len(log))
            return DeliveryResult(delivered=False, error="no data sink configured")
        payload = build_payload(participant_id, log)
        try:
            response = requests.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Could not send %d records to %s: %s", len(log), self.url, exc)
            return DeliveryResult(delivered=False, error=str(exc))
        logger.info("Sent %d records for %s to %s", len(log), participant_id, self.url)
        return DeliveryResult(delivered=True)


def save_local_copy(log: SessionLog, participant_id: str, directory: str | Path) -> Path:
    """Write the JSON export into ``directory`` and return its path."""

    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = output_dir / local_export_filename(participant_id)
    filename.write_bytes(serialize_log(log))
    return filename


def save_results_csv(
    log: SessionLog,
    participant_id: str,
    directory: str | Path,
    *,
    experiment_name: str = "stroop_sequential",
    participant_info: Optional[Dict[str, Any]] = None,
) -> Path:
    """Save one CSV row per record, plus the participant info as JSON."""

    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)
    filename = output_dir / f"{experiment_name}_{participant_id or 'unknown'}.csv"
    with filename.open("w", newline="", encoding="utf-8") as csv_file:
        writer = csv.DictWriter(csv_file, fieldnames=list(RECORD_FIELDS))
        writer.writeheader()
        for row in log.to_json():
            writer.writerow(row)

    # Store the participant info alongside the CSV for reference
    info = {"participantId": participant_id, "trials": len(log)}
    info.update(participant_info or {})
    with filename.with_suffix(".json").open("w", encoding="utf-8") as info_file:
        json.dump(info, info_file, indent=2)
    return filename


__all__ = [
    "DataSink",
    "DeliveryResult",
    "build_payload",
    "serialize_log",
    "local_export_filename",
    "save_local_copy",
    "save_results_csv",
]
