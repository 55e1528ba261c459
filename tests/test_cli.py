from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "sheet_chat.cli"]
FIXED_STAMP = "20260301T010203Z"

CUSTOMERS_CSV = "name,city,note\nAlice,Paris,VIP\nBob,Lyon,\nChloe,Paris,\"Late, twice\"\n"
MORE_CSV = "name,city,note\nDan,Metz,new\n"


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["SHEET_CHAT_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["SHEET_CHAT_LOG_LEVEL"] = "WARNING"
    merged_env["PYTHONIOENCODING"] = "utf-8"
    merged_env.pop("SHEET_CHAT_CONFIG", None)
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        encoding="utf-8",
        env=merged_env,
    )


class SheetChatCliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.customers = self.tmpdir / "customers.csv"
        self.customers.write_text(CUSTOMERS_CSV, encoding="utf-8")
        self.more = self.tmpdir / "more.csv"
        self.more.write_text(MORE_CSV, encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), "0.1.0")

    def test_missing_command_is_usage_error(self):
        proc = run_cli()
        self.assertEqual(proc.returncode, 1)

    def test_ingest_human_output(self):
        proc = run_cli("ingest", str(self.customers))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn('Successfully processed "customers.csv" with 3 records', proc.stderr)
        self.assertIn("Fields detected: name, city, note", proc.stderr)

    def test_ingest_json_stdout_contains_only_json(self):
        proc = run_cli("ingest", str(self.customers), str(self.more), "--json", "--preview", "2")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "sheet_chat.ingest")
        self.assertEqual(payload["run_summary"]["generated_at"], FIXED_STAMP)
        self.assertEqual(payload["total_records"], 4)
        self.assertEqual([u["records"] for u in payload["uploads"]], [3, 1])
        self.assertEqual(payload["preview"]["shown"], 2)
        self.assertEqual(proc.stderr.strip(), "")

    def test_ingest_missing_file_returns_exit_1(self):
        proc = run_cli("ingest", str(self.tmpdir / "nope.csv"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_ingest_malformed_file_returns_exit_2(self):
        garbage = self.tmpdir / "garbage.xlsx"
        garbage.write_bytes(bytes(range(256)) * 8)
        proc = run_cli("ingest", str(garbage))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Error parsing file", proc.stderr)

    def test_search_json(self):
        proc = run_cli("search", str(self.customers), "--text", "paris", "--field", "city", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual([m["name"] for m in payload["matches"]], ["Alice", "Chloe"])
        self.assertEqual(payload["run_summary"]["metrics"]["label"], "2 of 3 records")

    def test_search_without_matches(self):
        proc = run_cli("search", str(self.customers), "--text", "zzz")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("0 of 3 records", proc.stderr)
        self.assertIn("No results found", proc.stderr)

    def test_search_limit_caps_printed_matches(self):
        one = run_cli("search", str(self.customers), "--text", "paris", "--limit", "1")
        self.assertEqual(one.returncode, 0, one.stderr)
        self.assertIn("Alice", one.stdout)
        self.assertNotIn("Chloe", one.stdout)

        none = run_cli("search", str(self.customers), "--text", "paris", "--limit", "0")
        self.assertEqual(none.returncode, 0, none.stderr)
        self.assertNotIn("Alice", none.stdout)
        self.assertIn("Showing 0 of 2 records", none.stdout)

        negative = run_cli("search", str(self.customers), "--text", "paris", "--limit", "-1")
        self.assertEqual(negative.returncode, 1)

    def test_export_to_stdout(self):
        proc = run_cli("export", str(self.customers), "--stdout")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(
            proc.stdout,
            'name,city,note\nAlice,Paris,VIP\nBob,Lyon,\nChloe,Paris,"Late, twice"',
        )

    def test_export_filtered_file_and_refuse_overwrite(self):
        output = self.tmpdir / "out" / "extracted_data.csv"
        proc = run_cli("export", str(self.customers), "--text", "lyon", "--output", str(output))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("CSV written:", proc.stderr)
        self.assertEqual(output.read_text(encoding="utf-8"), "name,city,note\nBob,Lyon,")

        again = run_cli("export", str(self.customers), "--output", str(output))
        self.assertEqual(again.returncode, 1)
        self.assertIn("Refusing to overwrite", again.stderr)

    def test_config_init_and_show(self):
        config_path = self.tmpdir / "sheet-chat.json"
        proc = run_cli("config", "init", "--path", str(config_path))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertTrue(config_path.exists())

        config_path.write_text(json.dumps({"preview_rows": 2}), encoding="utf-8")
        shown = run_cli("--config", str(config_path), "config", "show")
        self.assertEqual(shown.returncode, 0, shown.stderr)
        self.assertEqual(json.loads(shown.stdout)["preview_rows"], 2)

        again = run_cli("config", "init", "--path", str(config_path))
        self.assertEqual(again.returncode, 1)

    def test_invalid_config_returns_exit_1(self):
        bad = self.tmpdir / "bad.json"
        bad.write_text(json.dumps({"colour": "blue"}), encoding="utf-8")
        proc = run_cli("--config", str(bad), "ingest", str(self.customers))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown setting", proc.stderr)


if __name__ == "__main__":
    unittest.main()
