"""
End-to-end tests of the command line: import a CSV, list, set a status, export.
"""

import csv
import json
import os
import tempfile
import unittest

from event_tracker.cli import main
from event_tracker.core.models import EXPORT_COLUMNS

CSV_TEXT = (
    "College,Event Name,Type,Last Date,Start Date,End Date,Prize,Fee,Online\n"
    "PSG Tech,Code Sprint,hackathon,31/01/2030,05/02/2030,06/02/2030,\"50,000\",0,yes\n"
    "VIT,Paper Fest,paper,2030-03-01,2030-03-10,2030-03-10,5000,500,no\n"
    "psg tech,code sprint,hackathon,31/01/2030,05/02/2030,07/02/2030,60000,0,yes\n"
)


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.base = [
            "--config", os.path.join(self.tmp.name, "missing.yml"),
            "--store", os.path.join(self.tmp.name, "events.json"),
            "--log", os.path.join(self.tmp.name, "out.log"),
        ]
        self.csv_path = os.path.join(self.tmp.name, "events.csv")
        with open(self.csv_path, "w", encoding="utf-8") as f:
            f.write(CSV_TEXT)

    def tearDown(self):
        self.tmp.cleanup()

    def _stored(self):
        with open(os.path.join(self.tmp.name, "events.json"), encoding="utf-8") as f:
            return json.load(f)

    def test_import_deduplicates_and_persists(self):
        self.assertEqual(main(self.base + ["import", self.csv_path]), 0)
        rows = self._stored()
        self.assertEqual(len(rows), 2)
        sprint = next(r for r in rows if r["event_name"].lower() == "code sprint")
        self.assertEqual(sprint["prize_amount"], 60000.0)
        self.assertEqual(sprint["registration_deadline"], "2030-01-31T00:00:00")
        self.assertEqual(sprint["event_type"], "Hackathon")

    def test_set_status_then_refresh_keeps_it(self):
        main(self.base + ["import", self.csv_path])
        self.assertEqual(main(self.base + ["set-status", "1", "Won"]), 0)
        self.assertEqual(main(self.base + ["refresh"]), 0)
        self.assertEqual(self._stored()[0]["status"], "Won")

    def test_unknown_event_id(self):
        self.assertEqual(main(self.base + ["set-status", "42", "Won"]), 2)

    def test_list_and_export(self):
        main(self.base + ["import", self.csv_path])
        self.assertEqual(main(self.base + ["list", "--sort", "deadline"]), 0)
        out = os.path.join(self.tmp.name, "export", "events.csv")
        self.assertEqual(main(self.base + ["export", "--out", out]), 0)
        with open(out, encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            self.assertEqual(next(reader), EXPORT_COLUMNS)
            self.assertEqual(len(list(reader)), 2)

    def test_add(self):
        args = ["add", "--name", "Robo Race", "--college", "MIT", "--type", "Contest",
                "--deadline", "2030-05-01", "--start", "2030-05-10", "--online"]
        self.assertEqual(main(self.base + args), 0)
        row = self._stored()[0]
        self.assertEqual(row["status"], "Open")
        self.assertEqual(row["end_date"], row["start_date"])

    def test_missing_csv_file(self):
        self.assertEqual(main(self.base + ["import", os.path.join(self.tmp.name, "nope.csv")]), 2)

    def test_sheets_without_url(self):
        self.assertEqual(main(self.base + ["sheets", "ping"]), 2)


if __name__ == "__main__":
    unittest.main()
