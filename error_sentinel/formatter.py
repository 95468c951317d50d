"""Human-readable renderings of error events for the inspection surface."""

import json
import uuid
from datetime import datetime, timezone
from urllib.parse import quote

from error_sentinel.models import ErrorEvent

# Characters left unescaped in a URI component
URI_COMPONENT_SAFE = "-_.!~*'()"

HTTP_STATUS_MESSAGES = {
    0: "Network Error",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    409: "Conflict",
    410: "Gone",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def status_message(status_code: int) -> str:
    return HTTP_STATUS_MESSAGES.get(status_code, "Unknown Error")


def iso_timestamp(timestamp_ms: int) -> str:
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def group_by_team(events: list[ErrorEvent]) -> dict[str, list[ErrorEvent]]:
    """Group events by team, preserving first-seen team order."""
    grouped: dict[str, list[ErrorEvent]] = {}
    for event in events:
        grouped.setdefault(event.team, []).append(event)
    return grouped


def _report_fields(event: ErrorEvent) -> dict:
    data = {
        "endpoint": event.endpoint,
        "method": event.method,
        "statusCode": event.status_code,
        "statusMessage": status_message(event.status_code),
        "timestamp": iso_timestamp(event.timestamp),
        "username": event.username or "unknown",
        "correlationId": str(uuid.uuid4()),
        "responsePayload": event.response_payload,
    }
    if event.headers:
        data["headers"] = dict(event.headers)
    return data


def format_error_report(event: ErrorEvent) -> str:
    """Render one event as a team mention followed by a fenced JSON block."""
    data = _report_fields(event)
    data["team"] = event.team
    return f"@{event.team}\n\n```json\n{json.dumps(data, indent=2)}\n```"


def format_team_report(events: list[ErrorEvent]) -> str:
    """Render many events grouped by team, mentioning every team involved."""
    if not events:
        return ""
    grouped = group_by_team(events)
    tags = " ".join(f"@{team}" for team in grouped)
    body = {team: [_report_fields(e) for e in team_events] for team, team_events in grouped.items()}
    return f"{tags}\n\n```json\n{json.dumps(body, indent=2)}\n```"


def teams_deep_link(channel_url: str, message: str) -> str:
    """Append *message* to a Teams channel URL as a pre-filled ``message`` parameter."""
    separator = "&" if "?" in channel_url else "?"
    return f"{channel_url}{separator}message={quote(message, safe=URI_COMPONENT_SAFE)}"


def format_table(events: list[ErrorEvent]) -> str:
    """Plain-text listing, one event per line."""
    if not events:
        return "No errors recorded."
    lines = []
    for event in events:
        lines.append(
            f"{iso_timestamp(event.timestamp)}  {event.method:<6} {event.status_code:>3} "
            f"{status_message(event.status_code):<22} [{event.team}] {event.endpoint}"
        )
    return "\n".join(lines)
