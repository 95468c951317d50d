"""Error event model."""

import time
from dataclasses import dataclass, field
from typing import Optional

# Maximum number of payload characters kept on an event
PAYLOAD_LIMIT = 1000
TRUNCATION_MARKER = "..."


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ErrorEvent:
    endpoint: str
    method: str
    status_code: int
    timestamp: int
    team: str
    username: Optional[str] = None
    response_payload: Optional[str] = None
    headers: Optional[dict] = field(default=None, hash=False)

    def to_dict(self) -> dict:
        """Return the wire representation, omitting absent optional fields."""
        data = {
            "endpoint": self.endpoint,
            "method": self.method,
            "statusCode": self.status_code,
            "timestamp": self.timestamp,
            "team": self.team,
        }
        if self.username:
            data["username"] = self.username
        if self.response_payload:
            data["responsePayload"] = self.response_payload
        if self.headers:
            data["headers"] = dict(self.headers)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ErrorEvent":
        return cls(
            endpoint=data["endpoint"],
            method=data["method"],
            status_code=int(data["statusCode"]),
            timestamp=int(data["timestamp"]),
            team=data["team"],
            username=data.get("username"),
            response_payload=data.get("responsePayload"),
            headers=data.get("headers") or None,
        )


def build_dedup_key(endpoint: str, method: str, status_code: int, team: str) -> str:
    return f"{endpoint}|{method}|{status_code}|{team}"


def truncate_payload(payload: Optional[str], limit: int = PAYLOAD_LIMIT) -> Optional[str]:
    """Cut *payload* to *limit* characters and append the truncation marker."""
    if not payload:
        return None
    if len(payload) > limit:
        return payload[:limit] + TRUNCATION_MARKER
    return payload


def filter_headers(headers: Optional[dict], allow_list) -> Optional[dict]:
    """Keep only allow-listed headers; return None when nothing survives.

    Lookup is case-insensitive; the allow-list spelling is used as the key.
    """
    if not headers or not allow_list:
        return None
    lowered = {str(k).lower(): v for k, v in headers.items()}
    captured = {}
    for name in allow_list:
        value = lowered.get(name.lower())
        if value:
            captured[name] = value
    return captured or None


def create_error_event(
    endpoint: str,
    method: str,
    status_code: int,
    team: str,
    timestamp: Optional[int] = None,
    username: Optional[str] = None,
    payload: Optional[str] = None,
    headers: Optional[dict] = None,
    capture_headers=(),
) -> ErrorEvent:
    """Factory function that creates an ErrorEvent."""
    return ErrorEvent(
        endpoint=endpoint,
        method=method.upper(),
        status_code=int(status_code),
        timestamp=timestamp if timestamp is not None else now_ms(),
        team=team,
        username=username or None,
        response_payload=truncate_payload(payload),
        headers=filter_headers(headers, capture_headers),
    )
