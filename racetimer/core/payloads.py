"""
payloads.py

Decoding and encoding of timing authority request/response bodies.
Every decoder raises MalformedResponse when the body does not have the
expected shape; nothing here touches the network.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping

from racetimer.core.errors import MalformedResponse
from racetimer.core.model import LapResult, RaceMode, RaceResult, Racer, Result


def decode_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedResponse(f"Body is not valid JSON: {exc}") from exc


def _require_list(value: Any, what: str) -> List[Any]:
    if not isinstance(value, list):
        raise MalformedResponse(f"Expected a JSON array of {what}, got {type(value).__name__}")
    return value


def _require_int(entry: Mapping[str, Any], key: str) -> int:
    if key not in entry:
        raise MalformedResponse(f"Missing field '{key}' in {dict(entry)!r}")
    value = entry[key]
    # bool is an int subclass but never a valid id or duration
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"Field '{key}' must be numeric, got {value!r}")
    return int(value)


def _name_of(entry: Mapping[str, Any], racer_id: int) -> str:
    name = entry.get("name")
    if name is None:
        return f"Racer {racer_id}"
    return str(name)


def _entries(value: Any, what: str) -> List[Dict[str, Any]]:
    entries = _require_list(value, what)
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedResponse(f"Expected {what} objects, got {entry!r}")
    return entries


def decode_racers(body: bytes) -> List[Racer]:
    """Decode ``GET /racers``: a JSON array of ``{id, name}``, unique by id."""
    racers: List[Racer] = []
    seen = set()
    for entry in _entries(decode_json(body), "racers"):
        racer_id = _require_int(entry, "id")
        if racer_id in seen:
            raise MalformedResponse(f"Duplicate racer id {racer_id} in roster")
        seen.add(racer_id)
        racers.append(Racer(id=racer_id, name=_name_of(entry, racer_id)))
    return racers


def decode_mode(body: bytes) -> RaceMode:
    """Decode ``GET /mode``: plain text ``race`` or ``lap``."""
    try:
        text = body.decode("utf-8").strip().lower()
    except UnicodeDecodeError as exc:
        raise MalformedResponse(f"Mode is not valid text: {exc}") from exc
    try:
        return RaceMode(text)
    except ValueError as exc:
        raise MalformedResponse(f"Unknown race mode {text!r}") from exc


def _decode_race_result(entry: Mapping[str, Any]) -> RaceResult:
    racer_id = _require_int(entry, "racer")
    position = _require_int(entry, "position")
    if position < 1:
        raise MalformedResponse(f"Position must be >= 1, got {position}")
    return RaceResult(
        racer=racer_id,
        name=_name_of(entry, racer_id),
        position=position,
        time=_require_int(entry, "time"),
    )


def _decode_lap_result(entry: Mapping[str, Any]) -> LapResult:
    racer_id = _require_int(entry, "racer")
    return LapResult(
        racer=racer_id,
        name=_name_of(entry, racer_id),
        lap_time=_require_int(entry, "lapTime"),
        timestamp=_require_int(entry, "timestamp"),
    )


def _decode_result(entry: Mapping[str, Any]) -> Result:
    if "position" in entry:
        return _decode_race_result(entry)
    if "lapTime" in entry or "timestamp" in entry:
        return _decode_lap_result(entry)
    raise MalformedResponse(f"Result is neither a race nor a lap entry: {dict(entry)!r}")


def decode_results(body: bytes) -> List[Result]:
    """Decode ``GET /results``; each entry's own fields decide its shape."""
    return [_decode_result(e) for e in _entries(decode_json(body), "results")]


def encode_racer(racer: Racer) -> bytes:
    return json.dumps({"id": racer.id, "name": racer.name}).encode("utf-8")


def encode_mode(mode: RaceMode) -> bytes:
    return mode.value.encode("utf-8")
