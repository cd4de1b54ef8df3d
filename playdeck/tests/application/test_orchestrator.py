import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

from playdeck.application.orchestrator import (
    MSG_ACTIVATE_FIRST, MSG_AT_FIRST, MSG_EMPTY, MSG_INACTIVE, MSG_NOTHING_TO_REFRESH,
    MSG_REACHED_END, MSG_REFRESH_FAILED, MSG_SKIPPING, MSG_START_FAILED, MSG_STATE_UNREADABLE,
    MSG_UNEXPECTED, PLAYLIST_STATE_TOPIC, resync_cursor,
)
from playdeck.crosscutting.config import Settings
from playdeck.crosscutting.notifications import LoggingNotifier
from playdeck.domain.entities import ActiveSession, PlaybackMode, PlaylistReference
from playdeck.domain.errors import ProviderError, StoreError
from playdeck.domain.media import entries_to_tracks
from playdeck.infrastructure.storage.json_store import JsonFileStore, MemoryStore
from playdeck.interfaces.wiring import build_playdeck
from playdeck.tests.fakes import FakePlayer, FakeProvider, RecordingSignals, make_entries


def _tracks(*ids):
    return entries_to_tracks(make_entries(*ids))


class OrchestratorTestBase:
    """Wires a PlayDeck over in-memory fakes."""

    def setup_method(self):
        self.provider = FakeProvider()
        self.player = FakePlayer()
        self.notifier = LoggingNotifier()
        self.signals = RecordingSignals()
        self.store = MemoryStore()
        self.deck = build_playdeck(
            Settings(), self.store, self.provider, self.player,
            notifier=self.notifier, signals=self.signals,
        )
        self.orchestrator = self.deck.orchestrator

    def activate(self, ids, cursor=0, url="p1", title="Mix"):
        session = ActiveSession(PlaylistReference(url=url, title=title), _tracks(*ids), cursor)
        self.deck.state.activate(session)
        return session

    def messages(self, level=None):
        return [m for lvl, m in self.notifier.messages if level is None or lvl == level]

    def assert_search_mode(self):
        assert self.orchestrator.mode is PlaybackMode.SEARCH
        assert self.orchestrator.session is None


class TestStart(OrchestratorTestBase):
    """Tests for starting a playlist."""

    def test_start_plays_first_track(self):
        self.provider.set_playlist("p1", "Mix", "a", "b", "c")
        self.deck.catalog.add(PlaylistReference(url="p1", title="", added_at=5))

        assert self.orchestrator.start(self.deck.catalog.find("p1")) is True

        session = self.orchestrator.session
        assert self.orchestrator.mode is PlaybackMode.PLAYLIST
        assert session.cursor == 0
        assert session.reference.title == "Mix"
        assert session.reference.added_at == 5
        assert self.player.played_ids == ["a"]
        assert self.deck.catalog.find("p1").title == "Mix"
        assert PLAYLIST_STATE_TOPIC in self.signals.topics

    def test_start_failure_reports_and_mutates_nothing(self):
        previous = self.activate(["x", "y"], cursor=1, url="p0")
        self.provider.failures["p1"] = ProviderError("boom")

        assert self.orchestrator.start(PlaylistReference(url="p1")) is False

        assert self.messages("error") == [MSG_START_FAILED]
        assert self.orchestrator.session == previous
        assert self.orchestrator.mode is PlaybackMode.PLAYLIST
        assert self.player.played == []

    def test_start_failure_without_session_stays_in_search(self):
        self.provider.failures["p1"] = ProviderError("boom")

        self.orchestrator.start(PlaylistReference(url="p1"))

        self.assert_search_mode()

    def test_start_empty_playlist_returns_to_search(self):
        self.activate(["x"], url="p0")
        self.provider.set_playlist("p1", "Empty")

        assert self.orchestrator.start(PlaylistReference(url="p1")) is False

        self.assert_search_mode()
        assert self.messages("info") == [MSG_EMPTY]
        assert self.player.played == []

    def test_start_replaces_previous_session(self):
        self.activate(["x", "y"], cursor=1, url="p0")
        self.provider.set_playlist("p1", "Mix", "a", "b")

        self.orchestrator.start(PlaylistReference(url="p1"))

        assert self.orchestrator.session.reference.url == "p1"
        assert self.orchestrator.session.cursor == 0


class TestNavigation(OrchestratorTestBase):
    """Tests for next/previous and exhaustion."""

    def test_scenario_add_start_and_run_to_exhaustion(self):
        self.provider.set_playlist("p1", "Mix", "a", "b", "c")
        reference = self.deck.commands.add_playlist("p1")
        self.orchestrator.start(reference)
        assert self.orchestrator.session.cursor == 0

        self.orchestrator.next()
        self.orchestrator.next()
        assert self.orchestrator.session.cursor == 2
        assert self.orchestrator.mode is PlaybackMode.PLAYLIST

        assert self.orchestrator.next() is False

        self.assert_search_mode()
        assert self.messages("info")[-1] == MSG_REACHED_END
        assert self.player.played_ids == ["a", "b", "c"]

    def test_next_then_previous_restores_cursor(self):
        self.activate(["a", "b", "c"], cursor=1)

        self.orchestrator.next()
        self.orchestrator.previous()

        assert self.orchestrator.session.cursor == 1
        assert self.player.played_ids == ["c", "b"]

    def test_previous_at_first_track_warns_and_keeps_state(self):
        session = self.activate(["a", "b"], cursor=0)

        assert self.orchestrator.previous() is False

        assert self.messages("warning") == [MSG_AT_FIRST]
        assert self.orchestrator.session == session
        assert self.player.played == []

    def test_commands_without_session_report_inactive(self):
        assert self.orchestrator.next() is False
        assert self.orchestrator.previous() is False

        assert self.messages("info") == [MSG_INACTIVE, MSG_INACTIVE]
        self.assert_search_mode()

    def test_single_track_playlist_next_ends_session(self):
        self.activate(["only"])

        self.orchestrator.next()

        self.assert_search_mode()

    def test_accessors_follow_cursor(self):
        self.activate(["a", "b", "c"], cursor=1)

        assert self.orchestrator.current_track.id == "b"
        assert self.orchestrator.has_next
        assert self.orchestrator.has_previous

        status = self.orchestrator.status()
        assert status["mode"] == "playlist"
        assert status["cursor"] == 1
        assert status["track_count"] == 3
        assert status["next_track"]["id"] == "c"
        assert status["previous_track"]["id"] == "a"

    def test_status_in_search_mode(self):
        status = self.orchestrator.status()

        assert status["mode"] == "search"
        assert status["playlist"] is None
        assert status["current_track"] is None
        assert not self.orchestrator.has_next


class TestPlayCurrent(OrchestratorTestBase):
    """Tests for failure skipping."""

    def test_failed_tracks_are_skipped_to_exhaustion(self):
        self.player.failing = {"b", "c"}
        self.activate(["a", "b", "c"], cursor=1)

        assert self.orchestrator.play_current() is False

        self.assert_search_mode()
        assert self.player.played_ids == ["b", "c"]
        assert self.messages().count(MSG_SKIPPING) == 1
        assert self.messages().count(MSG_REACHED_END) == 1

    def test_skip_stops_at_first_playable_track(self):
        self.player.failing = {"a", "b"}
        self.activate(["a", "b", "c", "d"])

        assert self.orchestrator.play_current() is True

        assert self.orchestrator.session.cursor == 2
        assert self.player.played_ids == ["a", "b", "c"]
        assert self.messages("warning") == [MSG_SKIPPING]

    def test_player_exception_counts_as_failure(self):
        player = Mock()
        player.play.side_effect = [RuntimeError("no audio device"), True]
        self.orchestrator.player = player
        self.activate(["a", "b"])

        assert self.orchestrator.play_current() is True

        assert self.orchestrator.session.cursor == 1
        assert player.play.call_count == 2

    def test_every_track_is_attempted_at_most_once(self):
        self.player.failing = {"a", "b", "c", "d", "e"}
        self.activate(["a", "b", "c", "d", "e"])

        self.orchestrator.play_current()

        assert self.player.played_ids == ["a", "b", "c", "d", "e"]
        self.assert_search_mode()

    def test_start_on_fully_broken_playlist_ends_in_search(self):
        self.player.failing = {"a", "b"}
        self.provider.set_playlist("p1", "Broken", "a", "b")

        assert self.orchestrator.start(PlaylistReference(url="p1")) is False

        self.assert_search_mode()
        assert self.messages().count(MSG_SKIPPING) == 1

    def test_play_current_passes_both_urls(self):
        self.activate(["a"])

        self.orchestrator.play_current()

        assert self.player.played == [(
            "https://www.youtube.com/watch?v=a",
            "Song a",
            "https://music.youtube.com/watch?v=a",
        )]


class TestRefresh(OrchestratorTestBase):
    """Tests for re-resolving the active playlist."""

    def test_refresh_keeps_current_track_by_id(self):
        self.activate(["A", "B", "C"], cursor=1)
        self.provider.set_playlist("p1", "Mix v2", "B", "C", "D")

        assert self.orchestrator.refresh() is True

        session = self.orchestrator.session
        assert session.cursor == 0
        assert session.current_track.id == "B"
        assert session.reference.title == "Mix v2"
        assert self.player.played == []

    def test_refresh_clamps_when_current_track_disappears(self):
        self.activate(["a", "b", "c", "d"], cursor=3)
        self.provider.set_playlist("p1", "Mix", "x", "y")

        self.orchestrator.refresh()

        assert self.orchestrator.session.cursor == 1

    def test_refresh_is_idempotent(self):
        self.activate(["a", "b", "c"], cursor=2)
        self.provider.set_playlist("p1", "Mix", "a", "b", "c")

        self.orchestrator.refresh()
        first = self.orchestrator.session
        self.orchestrator.refresh()

        assert self.orchestrator.session == first
        assert first.cursor == 2

    def test_refresh_updates_catalog_title(self):
        self.deck.catalog.add(PlaylistReference(url="p1", title="Old"))
        self.activate(["a"])
        self.provider.set_playlist("p1", "Renamed", "a")

        self.orchestrator.refresh()

        assert self.deck.catalog.find("p1").title == "Renamed"

    def test_refresh_failure_leaves_session_untouched(self):
        session = self.activate(["a", "b"], cursor=1)
        self.provider.failures["p1"] = ProviderError("offline")

        assert self.orchestrator.refresh() is False

        assert self.orchestrator.session == session
        assert self.messages("error") == [MSG_REFRESH_FAILED]

    def test_refresh_to_empty_playlist_returns_to_search(self):
        self.activate(["a"])
        self.provider.set_playlist("p1", "Mix")

        self.orchestrator.refresh()

        self.assert_search_mode()
        assert MSG_EMPTY in self.messages("info")

    def test_refresh_without_session(self):
        assert self.orchestrator.refresh() is False
        assert self.messages("info") == [MSG_NOTHING_TO_REFRESH]


class TestCompleteAndGuards(OrchestratorTestBase):
    """Tests for teardown and mode guards."""

    def test_complete_clears_state_and_signals(self):
        self.activate(["a"])

        self.orchestrator.complete()

        self.assert_search_mode()
        assert self.signals.topics == [PLAYLIST_STATE_TOPIC]

    def test_ensure_playlist_mode(self):
        assert self.orchestrator.ensure_playlist_mode() is False
        assert self.messages("info") == [MSG_ACTIVATE_FIRST]

        self.activate(["a"])
        assert self.orchestrator.ensure_playlist_mode() is True

    def test_unexpected_error_is_reported_not_raised(self):
        self.activate(["a", "b"])
        self.orchestrator.state = Mock(wraps=self.deck.state)
        self.orchestrator.state.set_cursor.side_effect = RuntimeError("disk full")

        assert self.orchestrator.next() is False

        assert self.messages("error") == [MSG_UNEXPECTED]


def test_resync_cursor_prefers_track_identity():
    session = ActiveSession(PlaylistReference(url="p1"), _tracks("A", "B", "C"), cursor=1)

    assert resync_cursor(session, _tracks("B", "C", "D")) == 0
    assert resync_cursor(session, _tracks("X", "Y", "Z")) == 1
    assert resync_cursor(session, _tracks("X")) == 0
    assert resync_cursor(session, []) == 0


class TestStateWriteOrder(OrchestratorTestBase):
    """A failed catalog write must not leave a new session behind."""

    def test_start_catalog_failure_keeps_previous_session(self):
        previous = self.activate(["x", "y"], cursor=1, url="p0")
        self.provider.set_playlist("p1", "Mix", "a", "b")

        with patch.object(self.deck.catalog, "update", side_effect=StoreError("disk full")):
            assert self.orchestrator.start(PlaylistReference(url="p1")) is False

        assert self.orchestrator.session == previous
        assert self.player.played == []
        assert self.messages("error") == [MSG_STATE_UNREADABLE]

    def test_refresh_catalog_failure_keeps_session(self):
        session = self.activate(["a", "b"], cursor=1)
        self.provider.set_playlist("p1", "Mix v2", "z", "a", "b")

        with patch.object(self.deck.catalog, "update", side_effect=StoreError("disk full")):
            assert self.orchestrator.refresh() is False

        assert self.orchestrator.session == session


class TestUnreadableState:
    """Commands over a corrupt state file report instead of raising."""

    def setup_method(self):
        state_file = Path(tempfile.mkdtemp()) / "state.json"
        state_file.write_text("{not json", encoding="utf-8")
        self.notifier = LoggingNotifier()
        self.deck = build_playdeck(
            Settings(), JsonFileStore(state_file), FakeProvider(), FakePlayer(),
            notifier=self.notifier,
        )

    def test_ensure_playlist_mode_reports_unreadable_state(self):
        assert self.deck.orchestrator.ensure_playlist_mode() is False
        assert self.notifier.messages == [("error", MSG_STATE_UNREADABLE)]

    def test_navigation_reports_unreadable_state(self):
        assert self.deck.orchestrator.next() is False
        assert self.deck.orchestrator.previous() is False
        assert self.deck.orchestrator.refresh() is False

        assert [m for _, m in self.notifier.messages] == [MSG_STATE_UNREADABLE] * 3
