from __future__ import annotations

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from requests import RequestException

from megaverse.errors import DimensionMismatch, FetchFailure


def _classify_exception(exc: Exception) -> Tuple[str, str, str, List[str]]:
    message = str(exc) or exc.__class__.__name__
    message_lower = message.lower()

    if isinstance(exc, FetchFailure):
        fixes = ["Retry the run; reconciliation is safe to repeat."]
        if exc.reason == "RateLimitExhausted":
            fixes.append("Lower `--concurrency` or raise `--max-attempts`.")
        elif "404" in exc.detail or "not found" in exc.detail.lower():
            fixes.append("Verify `CANDIDATE_ID` is correct.")
        return (
            "FetchFailure",
            f"Could not retrieve the {exc.snapshot} grid.",
            "Both the current map and the goal are needed before any change is made.",
            fixes,
        )

    if isinstance(exc, DimensionMismatch):
        return (
            "DimensionMismatch",
            "Map and goal have different shapes.",
            "The observed and desired grids must have the same number of rows and columns.",
            ["Check that the goal belongs to this map.", "Retry once the map has been created."],
        )

    if isinstance(exc, FileNotFoundError):
        return (
            "MissingFile",
            "Required file not found.",
            "A file or path referenced by the run could not be located.",
            [
                "Verify the path exists and is readable.",
                "Check for typos in file names or arguments.",
            ],
        )

    if isinstance(exc, (TimeoutError, ConnectionError, RequestException)):
        return (
            "NetworkError",
            "Network connection failed.",
            "The reconciler could not reach the megaverse API.",
            [
                "Check network access and firewall settings.",
                "Retry after confirming the service is reachable.",
            ],
        )

    if "candidate_id" in message_lower and (
        "not found" in message_lower or "missing" in message_lower
    ):
        return (
            "MissingCandidateId",
            "Candidate ID is missing.",
            "The caller identity is required for every API call.",
            [
                "Set `CANDIDATE_ID` in your environment or `.env` file.",
                "Or pass `--candidate-id`.",
            ],
        )

    if isinstance(exc, ValueError):
        return (
            "InvalidInput",
            "Invalid input or configuration.",
            "A provided argument or setting is not valid for this run.",
            ["Double-check CLI args and megaverse.yml values."],
        )

    return (
        "RuntimeError",
        "Unexpected runtime error.",
        "An unexpected error occurred during reconciliation.",
        ["Review the stack trace for details.", "Retry with `--verbose` for more logs."],
    )


def build_error_payload(
    exc: Exception,
    *,
    context: Optional[Dict[str, Any]] = None,
    trace: Optional[str] = None,
) -> Dict[str, Any]:
    error_type, summary, explanation, suggested_fixes = _classify_exception(exc)
    payload = {
        "error_type": error_type,
        "exception_type": exc.__class__.__name__,
        "message": str(exc),
        "summary": summary,
        "explanation": explanation,
        "suggested_fixes": suggested_fixes,
        "context": context or {},
        "traceback": trace or traceback.format_exc(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return payload


def format_user_message(payload: Dict[str, Any]) -> str:
    lines = [
        f"Error: {payload.get('summary')}",
        payload.get("message", ""),
        payload.get("explanation", ""),
    ]
    fixes = payload.get("suggested_fixes") or []
    if fixes:
        lines.append("Suggested fixes:")
        lines.extend([f"- {fix}" for fix in fixes])
    return "\n".join(line for line in lines if line)
