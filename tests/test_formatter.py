"""Tests for error report rendering and the inspector."""

import json

import pytest

from conftest import make_event
from error_sentinel.formatter import (
    format_error_report,
    format_table,
    format_team_report,
    group_by_team,
    iso_timestamp,
    status_message,
    teams_deep_link,
)
from error_sentinel.inspector import ErrorInspector
from error_sentinel.models import ErrorEvent


def _json_block(text):
    return json.loads(text.split("```json\n", 1)[1].rsplit("\n```", 1)[0])


class TestFormatter:
    def test_status_messages(self):
        assert status_message(404) == "Not Found"
        assert status_message(0) == "Network Error"
        assert status_message(418) == "Unknown Error"

    def test_iso_timestamp(self):
        assert iso_timestamp(0) == "1970-01-01T00:00:00.000Z"

    def test_group_by_team_keeps_first_seen_order(self):
        events = [make_event(0, team="b"), make_event(1, team="a"), make_event(2, team="b")]
        grouped = group_by_team(events)
        assert list(grouped) == ["b", "a"]
        assert len(grouped["b"]) == 2

    def test_single_report(self):
        event = ErrorEvent("/api/users/1", "GET", 404, 0, "platform", username="ada")
        text = format_error_report(event)

        assert text.startswith("@platform\n\n```json\n")
        data = _json_block(text)
        assert data["statusMessage"] == "Not Found"
        assert data["username"] == "ada"
        assert data["team"] == "platform"
        assert data["timestamp"] == "1970-01-01T00:00:00.000Z"
        assert data["correlationId"]

    def test_team_report_mentions_every_team(self):
        events = [make_event(0, team="platform"), make_event(1, team="commerce")]
        text = format_team_report(events)

        assert text.startswith("@platform @commerce\n")
        data = _json_block(text)
        assert set(data) == {"platform", "commerce"}
        assert data["commerce"][0]["username"] == "unknown"

    def test_team_report_empty(self):
        assert format_team_report([]) == ""

    def test_table(self):
        text = format_table([make_event(0), make_event(1)])
        lines = text.splitlines()
        assert len(lines) == 2
        assert "Internal Server Error" in lines[0]
        assert "[platform] /api/users/0" in lines[0]

    def test_table_empty(self):
        assert format_table([]) == "No errors recorded."

    def test_teams_link_without_query(self):
        link = teams_deep_link("https://teams.example.com/l/channel/general", "@platform hi")
        assert link == "https://teams.example.com/l/channel/general?message=%40platform%20hi"

    def test_teams_link_with_existing_query(self):
        link = teams_deep_link("https://teams.example.com/c?groupId=1", "a&b=c")
        assert link == "https://teams.example.com/c?groupId=1&message=a%26b%3Dc"

    def test_teams_link_encodes_report_block(self):
        link = teams_deep_link("https://t.example.com", "@x\n\n```json\n{}\n```")
        assert "\n" not in link
        assert "%60%60%60json" in link


class TestErrorInspector:
    @pytest.mark.asyncio
    async def test_refresh_uses_update_callback(self):
        stored = [make_event(0)]

        async def update():
            return list(stored)

        inspector = ErrorInspector()
        inspector.set_update_callback(update)
        assert await inspector.refresh() == stored
        assert inspector.errors == stored

    @pytest.mark.asyncio
    async def test_clear_uses_clear_callback(self):
        stored = [make_event(0)]

        async def update():
            return list(stored)

        async def clear():
            stored.clear()

        inspector = ErrorInspector()
        inspector.set_update_callback(update)
        inspector.set_clear_callback(clear)
        await inspector.refresh()
        await inspector.clear()

        assert stored == []
        assert inspector.errors == []

    @pytest.mark.asyncio
    async def test_without_callbacks(self):
        inspector = ErrorInspector()
        assert await inspector.refresh() == []
        await inspector.clear()
        assert await inspector.render() == "No errors recorded."
