"""Batch wire format for container RPC.

One HTTP request carries a batch of calls; one response carries their
outcomes in the same order::

    request:  [{"method": "ns__f", "args": [1], "kwargs": {}} , ...]
    response: [{"result": 2}, {"error": {"type": "ValueError", "message": "..."}}]

Arguments and results must be JSON-serializable.  Nothing outside this
module depends on the exact encoding, only on the batching contract:
N calls in, N ordered outcomes out.
"""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class RpcCall:
    method: str
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RpcOutcome:
    """Result of one call. ``error`` is ``(type_name, message)`` on failure."""

    result: Any = None
    error: tuple[str, str] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WireError(ValueError):
    """A batch payload that does not follow the wire format."""


def encode_calls(calls: Sequence[RpcCall]) -> bytes:
    return json.dumps(
        [{"method": c.method, "args": list(c.args), "kwargs": dict(c.kwargs)} for c in calls]
    ).encode("utf-8")


def decode_calls(body: bytes) -> list[RpcCall]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"Batch is not valid JSON: {exc}"
        raise WireError(msg) from exc
    if not isinstance(payload, list):
        msg = "Batch must be a JSON array"
        raise WireError(msg)

    calls: list[RpcCall] = []
    for item in payload:
        if not isinstance(item, dict) or not isinstance(item.get("method"), str):
            msg = f"Malformed call entry: {item!r}"
            raise WireError(msg)
        args = item.get("args", [])
        kwargs = item.get("kwargs", {})
        if not isinstance(args, list) or not isinstance(kwargs, dict):
            msg = f"Malformed arguments for {item['method']!r}"
            raise WireError(msg)
        calls.append(RpcCall(item["method"], tuple(args), kwargs))
    return calls


def encode_outcomes(outcomes: Sequence[RpcOutcome]) -> bytes:
    out: list[dict[str, Any]] = []
    for o in outcomes:
        if o.error is None:
            out.append({"result": o.result})
        else:
            out.append({"error": {"type": o.error[0], "message": o.error[1]}})
    return json.dumps(out).encode("utf-8")


def decode_outcomes(body: bytes, expected: int) -> list[RpcOutcome]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"Response is not valid JSON: {exc}"
        raise WireError(msg) from exc
    if not isinstance(payload, list) or len(payload) != expected:
        msg = f"Expected {expected} outcome(s), got {payload!r}"
        raise WireError(msg)

    outcomes: list[RpcOutcome] = []
    for item in payload:
        if isinstance(item, dict) and "error" in item:
            err = item["error"] or {}
            outcomes.append(
                RpcOutcome(error=(str(err.get("type", "Error")), str(err.get("message", ""))))
            )
        elif isinstance(item, dict):
            outcomes.append(RpcOutcome(result=item.get("result")))
        else:
            msg = f"Malformed outcome: {item!r}"
            raise WireError(msg)
    return outcomes
