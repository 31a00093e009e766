from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

# Process-wide counters for embedding calls and search/ingest fallbacks
_agg: Dict[str, Any] = {"embedding": {}, "fallbacks": {}}


def now() -> float:
    return time.perf_counter()


def elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


def reset_metrics() -> None:
    _agg["embedding"] = {}
    _agg["fallbacks"] = {}


def _percentile(values: List[int], p: float) -> Optional[int]:
    if not values:
        return None
    s = sorted(values)
    k = max(0, min(len(s) - 1, int(round((p / 100.0) * (len(s) - 1)))))
    return int(s[k])


def _summarize_latencies(values: List[int]) -> Dict[str, Optional[int]]:
    if not values:
        return {"p50": None, "p95": None, "p99": None, "max": None}
    return {
        "p50": _percentile(values, 50),
        "p95": _percentile(values, 95),
        "p99": _percentile(values, 99),
        "max": max(values),
    }


def record_embedding(provider: str, model: str, *, texts: int = 0, latency_ms: int = 0, ok: bool = True) -> None:
    key = f"{provider}:{model}"
    emb = _agg["embedding"].setdefault(key, {"calls": 0, "texts": 0, "errors": 0, "latency_ms": []})
    emb["calls"] += 1
    emb["texts"] += int(texts)
    if latency_ms:
        emb["latency_ms"].append(int(latency_ms))
    if not ok:
        emb["errors"] += 1


def record_fallback(kind: str) -> None:
    fb = _agg["fallbacks"]
    fb[kind] = int(fb.get(kind, 0)) + 1


def snapshot() -> Dict[str, Any]:
    out: Dict[str, Any] = {"embedding": {}, "fallbacks": dict(_agg["fallbacks"])}
    for key, v in _agg["embedding"].items():
        out["embedding"][key] = {
            "calls": int(v.get("calls", 0)),
            "texts": int(v.get("texts", 0)),
            "errors": int(v.get("errors", 0)),
            "latency": _summarize_latencies(v.get("latency_ms", []) or []),
        }
    return out
