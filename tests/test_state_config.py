"""
Tests for the explicit application state and the YAML settings loader.
"""

import os
import tempfile
import unittest
from datetime import datetime, timedelta

from event_tracker.config import Settings, load_settings, save_settings
from event_tracker.core.models import Event
from event_tracker.state import AppState, Filters

NOW = datetime(2026, 10, 18, 15, 30)
DAY = timedelta(days=1)


def sample_events():
    return [
        Event(id=1, event_name="AI Hack", college_name="MIT", event_type="Hackathon",
              registration_deadline=NOW + 3 * DAY, priority_score=70, prize_amount=5000),
        Event(id=2, event_name="Paper Fest", college_name="VIT", event_type="Paper Presentation",
              registration_deadline=NOW + DAY, priority_score=40, is_shortlisted=True, status="Won"),
        Event(id=3, event_name="Robo Race", college_name="MIT", event_type="Contest",
              registration_deadline=None, priority_score=55, prize_amount=90000),
    ]


class TestAppState(unittest.TestCase):

    def test_default_sort_is_priority_desc(self):
        ids = [e.id for e in AppState().apply(sample_events())]
        self.assertEqual(ids, [1, 3, 2])

    def test_deadline_sort_puts_undated_last(self):
        state = AppState(sort_by="deadline", sort_order="asc")
        self.assertEqual([e.id for e in state.apply(sample_events())], [2, 1, 3])

    def test_filters(self):
        state = AppState(filters=Filters(search="mit"))
        self.assertEqual({e.id for e in state.apply(sample_events())}, {1, 3})
        state = AppState(filters=Filters(status="Won"))
        self.assertEqual([e.id for e in state.apply(sample_events())], [2])
        state = AppState(filters=Filters(shortlisted_only=True))
        self.assertEqual([e.id for e in state.apply(sample_events())], [2])
        state = AppState(filters=Filters(event_type="Contest"))
        self.assertEqual([e.id for e in state.apply(sample_events())], [3])

    def test_from_dict_ignores_unknown_and_bad_values(self):
        state = AppState.from_dict({
            "theme": "dark",
            "sort_by": "nonsense",
            "view_mode": "hologram",
            "filters": {"status": "Open", "bogus": 1},
            "extra": True,
        })
        self.assertEqual(state.theme, "dark")
        self.assertEqual(state.sort_by, "priority_score")
        self.assertEqual(state.view_mode, "cards")
        self.assertEqual(state.filters.status, "Open")

    def test_toggles(self):
        state = AppState()
        state.toggle_theme()
        self.assertEqual(state.theme, "dark")
        state.toggle_pinned(4)
        state.toggle_pinned(5)
        state.toggle_pinned(4)
        self.assertEqual(state.preferences["pinned_events"], [5])
        state.filters.search = "x"
        state.reset_filters()
        self.assertEqual(state.filters, Filters())


class TestSettings(unittest.TestCase):

    def test_missing_file_gives_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            s = load_settings(os.path.join(tmp, "nope.yml"))
        self.assertEqual(s.store_path, Settings().store_path)
        self.assertEqual(s.refresh_interval_s, 6 * 3600)

    def test_yaml_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "event_tracker.yml")
            with open(path, "w", encoding="utf-8") as f:
                f.write(
                    "store_path: /tmp/events.json\n"
                    "refresh_interval_hours: 1.5\n"
                    "state:\n"
                    "  sort_by: deadline\n"
                    "  filters:\n"
                    "    search: hack\n"
                )
            s = load_settings(path)
        self.assertEqual(s.store_path, "/tmp/events.json")
        self.assertEqual(s.refresh_interval_s, 5400)
        self.assertEqual(s.state.sort_by, "deadline")
        self.assertEqual(s.state.filters.search, "hack")

    def test_non_mapping_config_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bad.yml")
            with open(path, "w", encoding="utf-8") as f:
                f.write("- just\n- a list\n")
            with self.assertRaises(ValueError):
                load_settings(path)

    def test_save_and_reload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "conf", "event_tracker.yml")
            s = Settings(sheets_url="https://script.google.com/macros/s/x/exec")
            s.state.toggle_theme()
            save_settings(path, s)
            again = load_settings(path)
        self.assertEqual(again.sheets_url, s.sheets_url)
        self.assertEqual(again.state.theme, "dark")


if __name__ == "__main__":
    unittest.main()
