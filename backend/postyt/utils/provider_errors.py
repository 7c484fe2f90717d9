from __future__ import annotations

import json
from typing import Any

import requests
from googleapiclient.errors import HttpError


def response_payload(response: requests.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _fallback_detail(response: requests.Response) -> str:
    raw = response.text.strip()
    return raw[:600] if raw else f"HTTP {response.status_code}"


def extract_graph_error(response: requests.Response) -> str:
    """Extract a readable error message from a Meta Graph API error response."""
    err = response_payload(response).get("error", {})
    if isinstance(err, dict):
        message = str(err.get("message") or "").strip()
        code = err.get("code")
        subcode = err.get("error_subcode")
        fbtrace = err.get("fbtrace_id")
        parts: list[str] = []
        if message:
            parts.append(message)
        if code is not None:
            parts.append(f"code={code}")
        if subcode is not None:
            parts.append(f"subcode={subcode}")
        if fbtrace:
            parts.append(f"fbtrace={fbtrace}")
        if parts:
            return " | ".join(parts)
    elif isinstance(err, str) and err:
        # Instagram Login token endpoints answer {"error_type", "error_message"}
        return err
    payload = response_payload(response)
    if payload.get("error_message"):
        return str(payload["error_message"])
    return _fallback_detail(response)


def extract_tiktok_error(response: requests.Response) -> str:
    """TikTok wraps errors as {"error": {"code", "message", "log_id"}} or OAuth style fields."""
    payload = response_payload(response)
    err = payload.get("error")
    if isinstance(err, dict):
        code = str(err.get("code") or "").strip()
        message = str(err.get("message") or "").strip()
        log_id = err.get("log_id")
        parts = [part for part in (message, f"code={code}" if code and code != "ok" else "") if part]
        if log_id:
            parts.append(f"log_id={log_id}")
        if parts:
            return " | ".join(parts)
    if isinstance(err, str) and err:
        description = str(payload.get("error_description") or "").strip()
        return f"{err}: {description}" if description else err
    return _fallback_detail(response)


def extract_twitter_error(response: requests.Response) -> str:
    payload = response_payload(response)
    parts: list[str] = []
    for key in ("title", "detail"):
        if payload.get(key):
            parts.append(str(payload[key]))
    errors = payload.get("errors")
    if isinstance(errors, list):
        for item in errors:
            if isinstance(item, dict) and item.get("message"):
                parts.append(str(item["message"]))
    if payload.get("error_description"):
        parts.append(str(payload["error_description"]))
    elif isinstance(payload.get("error"), str):
        parts.append(str(payload["error"]))
    if parts:
        return " | ".join(parts)
    return _fallback_detail(response)


def extract_http_error_detail(exc: HttpError) -> str:
    """Return a readable message from Google API HttpError."""
    try:
        payload = json.loads(exc.content.decode("utf-8"))
        error = payload.get("error", {})
        message = error.get("message")
        reasons = [
            str(item.get("reason", ""))
            for item in error.get("errors", [])
            if isinstance(item, dict) and item.get("reason")
        ]
        parts: list[str] = []
        if message:
            parts.append(str(message))
        if reasons:
            parts.append(f"reasons={','.join(reasons)}")
        if parts:
            return " | ".join(parts)
    except (ValueError, AttributeError, UnicodeDecodeError):
        pass
    return str(exc)


def http_error_status(exc: HttpError) -> int | None:
    status = getattr(exc.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def graph_error_code(response: requests.Response) -> int | None:
    """Return the numeric Graph API error code (190 = invalid or expired token)."""
    err = response_payload(response).get("error")
    if isinstance(err, dict) and err.get("code") is not None:
        try:
            return int(err["code"])
        except (TypeError, ValueError):
            return None
    return None
