from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .models import Event
from .normalize import normalize_sheet_row
from .utils import is_http_url

SCRIPT_URL_MARKER = "script.google.com/macros/s/"

HTML_PREFIXES = ("<!doctype", "<html")

class SheetsError(RuntimeError):
    """The Apps Script endpoint answered with something other than a successful JSON payload."""

def validate_script_url(url: str) -> str:
    u = (url or "").strip()
    if not u or not is_http_url(u):
        raise ValueError("Invalid URL. Must be an https://script.google.com/... web app URL")
    if SCRIPT_URL_MARKER not in u:
        raise ValueError("Invalid URL. Must be from script.google.com")
    if u.endswith("/dev"):
        raise ValueError("This is the /dev URL of the deployment; use the /exec web app URL")
    if not u.endswith("/exec"):
        raise ValueError("URL must end with /exec")
    return u

def parse_response_text(text: str) -> Dict[str, Any]:
    if not text or not text.strip():
        raise SheetsError("Empty response from server")

    t = text.strip()
    if t.lower().startswith(HTML_PREFIXES):
        raise SheetsError(
            "Google returned a login/error page instead of data; "
            "the script must be deployed with 'Anyone' access"
        )
    try:
        payload = json.loads(t)
    except json.JSONDecodeError as e:
        raise SheetsError("Invalid response from server. Check the Apps Script for errors.") from e
    if not isinstance(payload, dict):
        raise SheetsError("Invalid data format from server")
    return payload

class SheetsClient:
    """
    Client for the Google Apps Script web app that mirrors events into a sheet.

    GET  ?action=ping  -> {"success": true, "version": "..."}
    GET  ?action=read  -> {"success": true, "events": [...], "sheetName": "..."}
    POST {"action": "write", "events": [...]} sent as text/plain
    """

    def __init__(
        self,
        url: str,
        timeout_s: float = 20.0,
        log: Optional[logging.Logger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = validate_script_url(url)
        self.timeout_s = timeout_s
        self.log = log or logging.getLogger("event_tracker")
        self._client = httpx.Client(
            timeout=timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SheetsClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.TransportError)),
        reraise=True,
    )
    def _request(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        resp = self._client.request(method, self.url, **kwargs)
        payload = parse_response_text(resp.text)
        if not payload.get("success"):
            raise SheetsError(payload.get("error") or "Server returned an error")
        return payload

    def ping(self) -> Dict[str, Any]:
        payload = self._request("GET", params={"action": "ping"})
        self.log.info("Sheets bridge reachable, server v%s", payload.get("version") or "1.0")
        return payload

    def pull(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        payload = self._request("GET", params={"action": "read"})
        rows = payload.get("events")
        if not isinstance(rows, list):
            if payload.get("count") == 0:
                return []
            raise SheetsError("Invalid data format from server")

        events = []
        for raw in rows:
            if not isinstance(raw, dict):
                continue
            e = normalize_sheet_row(raw, now=now)
            if e is not None:
                events.append(e)

        self.log.info(
            "Read %s rows from sheet %r, %s valid events",
            len(rows), payload.get("sheetName") or "unknown", len(events),
        )
        return events

    def push(self, events: Iterable[Event]) -> int:
        records = [e.to_json() for e in events]
        body = json.dumps({"action": "write", "events": records}, ensure_ascii=False)
        payload = self._request(
            "POST",
            content=body.encode("utf-8"),
            headers={"Content-Type": "text/plain;charset=utf-8"},
        )
        count = payload.get("count", len(records))
        self.log.info("Pushed %s events to sheet", count)
        return count
