"""
Tests for the canonical record and CSV/JSON file I/O.
"""

import json
import os
import tempfile
import unittest
from datetime import datetime

from event_tracker.core.models import EXPORT_COLUMNS, Event, dedup_key
from event_tracker.core.output import events_from_csv, read_csv, write_csv, write_json

NOW = datetime(2026, 10, 18, 15, 30)


class TestEventRecord(unittest.TestCase):

    def test_export_column_order(self):
        self.assertEqual(EXPORT_COLUMNS, [
            "College Name", "Event Name", "Event Type", "Registration Deadline", "Start Date",
            "End Date", "Prize Amount", "Registration Fee", "Accommodation", "Location", "Online",
            "Status", "Priority Score", "Website", "Description", "Team Size", "Eligibility",
            "Leader", "Members", "No of Teams", "Prize Won", "Contact 1", "Contact 2",
            "Poster URL", "Contact Numbers",
        ])
        self.assertEqual(list(Event().to_row().keys()), EXPORT_COLUMNS)

    def test_from_dict_accepts_camel_case_and_coerces(self):
        e = Event.from_dict({
            "eventName": "Paper Fest",
            "collegeName": "NIT Trichy",
            "registrationDeadline": "2026-11-01",
            "prizeAmount": "1500",
            "isOnline": "yes",
            "teamSize": "0",
            "priorityScore": 250,
            "contactNumbers": "1, 2",
            "posterBlob": b"ignored",
        })
        self.assertEqual(e.event_name, "Paper Fest")
        self.assertEqual(e.registration_deadline, datetime(2026, 11, 1))
        self.assertEqual(e.prize_amount, 1500.0)
        self.assertTrue(e.is_online)
        self.assertEqual(e.team_size, 1)
        self.assertEqual(e.priority_score, 100)
        self.assertEqual(e.contact_numbers, ["1", "2"])

    def test_server_id_is_generated(self):
        self.assertTrue(Event().server_id)
        self.assertNotEqual(Event().server_id, Event().server_id)

    def test_dedup_key_is_case_insensitive(self):
        self.assertEqual(dedup_key("AI Hack", "MIT"), dedup_key("ai hack", "mit"))
        self.assertEqual(Event(event_name="AI Hack", college_name="MIT").key, "ai hack__mit")

    def test_amounts_export_in_fixed_notation(self):
        row = Event(prize_amount=0.00001, registration_fee=250.5).to_row()
        self.assertEqual(row["Prize Amount"], "0.00001")
        self.assertEqual(row["Registration Fee"], "250.5")
        self.assertEqual(Event(prize_amount=1e21).to_row()["Prize Amount"], "1000000000000000000000")

    def test_to_json_is_serializable(self):
        e = Event(event_name="X", registration_deadline=NOW, status="Won")
        data = e.to_json()
        self.assertEqual(data["registration_deadline"], NOW.isoformat())
        self.assertEqual(data["status"], "Won")
        json.dumps(data)


class TestFiles(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def _events(self):
        return [
            Event(
                id=1,
                college_name="IIT Madras",
                event_name="Shaastra Hack",
                event_type="Hackathon",
                registration_deadline=datetime(2026, 12, 1),
                start_date=datetime(2026, 12, 5),
                end_date=datetime(2026, 12, 6),
                prize_amount=25000,
                location="Chennai, TN",
                description='Bring "your" laptop',
                contact_numbers=["333", "444"],
                priority_score=55,
            ),
            Event(id=2, college_name="PSG Tech", event_name="Kriya Expo", event_type="Project Expo"),
        ]

    def test_csv_header_and_reimport(self):
        path = os.path.join(self.tmp.name, "out", "events.csv")
        write_csv(path, self._events())

        with open(path, encoding="utf-8") as f:
            self.assertEqual(f.readline().strip(), ",".join(EXPORT_COLUMNS))

        mapping, records = events_from_csv(path, now=NOW)
        self.assertNotIn("Priority Score", mapping)
        self.assertEqual(len(records), 2)
        first = records[0]
        self.assertEqual(first["location"], "Chennai, TN")
        self.assertEqual(first["description"], 'Bring "your" laptop')
        self.assertEqual(first["registration_deadline"], datetime(2026, 12, 1))
        self.assertEqual(first["contact_numbers"], ["333", "444"])
        self.assertEqual(records[1]["event_type"], "Project Expo")

    def test_read_csv_skips_blank_rows(self):
        path = os.path.join(self.tmp.name, "in.csv")
        with open(path, "w", encoding="utf-8") as f:
            f.write("Event Name,College\nHackX,MIT\n\n,\nCodeFest,VIT\n")
        headers, rows = read_csv(path)
        self.assertEqual(headers, ["Event Name", "College"])
        self.assertEqual([r["Event Name"] for r in rows], ["HackX", "CodeFest"])

    def test_empty_csv_is_an_error(self):
        path = os.path.join(self.tmp.name, "empty.csv")
        with open(path, "w", encoding="utf-8") as f:
            f.write("Event Name,College\n")
        with self.assertRaises(ValueError):
            events_from_csv(path)

    def test_write_json(self):
        path = os.path.join(self.tmp.name, "events.json")
        write_json(path, self._events())
        with open(path, encoding="utf-8") as f:
            rows = json.load(f)
        self.assertEqual([r["event_name"] for r in rows], ["Shaastra Hack", "Kriya Expo"])


if __name__ == "__main__":
    unittest.main()
