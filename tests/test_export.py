import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_chat.export import build_preview, escape_field, export_bytes, serialize_csv, write_csv  # noqa: E402
from sheet_chat.records import RecordSet  # noqa: E402


class SerializeTests(unittest.TestCase):
    def test_empty_set_serializes_to_empty_string(self):
        self.assertEqual(serialize_csv([]), "")
        self.assertEqual(serialize_csv(RecordSet()), "")

    def test_quotes_and_commas_are_escaped(self):
        text = serialize_csv([{"note": 'He said "hi", bye'}])
        self.assertEqual(text, 'note\n"He said ""hi"", bye"')

    def test_plain_fields_are_not_quoted(self):
        self.assertEqual(escape_field("plain text"), "plain text")
        self.assertEqual(escape_field('a"b'), '"a""b"')
        self.assertEqual(escape_field("a,b"), '"a,b"')

    def test_typed_values_use_display_text(self):
        text = serialize_csv([{"n": 3, "f": 2.0, "g": 0.25, "b": True, "e": ""}])
        self.assertEqual(text, "n,f,g,b,e\n3,2,0.25,true,")

    def test_columns_follow_first_record(self):
        text = serialize_csv([{"a": 1, "b": 2}, {"a": 3, "c": 4}])
        self.assertEqual(text, "a,b\n1,2\n3,")

    def test_header_names_are_written_as_is(self):
        self.assertEqual(serialize_csv([{"x,y": 1}]), "x,y\n1")

    def test_no_trailing_newline(self):
        self.assertFalse(serialize_csv([{"a": 1}, {"a": 2}]).endswith("\n"))

    def test_bytes_are_utf8(self):
        self.assertEqual(export_bytes([{"city": "Köln"}]), "city\nKöln".encode("utf-8"))

    def test_write_csv_creates_parent_directories(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_csv([{"a": 1}], Path(tmpdir) / "out" / "extracted.csv")
            self.assertEqual(path.read_text(encoding="utf-8"), "a\n1")


class PreviewTests(unittest.TestCase):
    def test_preview_is_truncated_to_limit(self):
        records = RecordSet([{"id": i, "note": ""} for i in range(7)])
        preview = build_preview(records)
        self.assertEqual(preview["shown"], 5)
        self.assertEqual(preview["total"], 7)
        self.assertTrue(preview["truncated"])
        self.assertEqual(preview["rows"][0], ["0", "N/A"])
        self.assertEqual(preview["note"], "Showing 5 of 7 records. Download CSV to see all data.")
        self.assertEqual(preview["fields_label"], "Fields detected: id, note")

    def test_short_set_is_not_truncated(self):
        preview = build_preview([{"id": 1}], limit=5)
        self.assertFalse(preview["truncated"])
        self.assertIsNone(preview["note"])
        self.assertEqual(preview["rows"], [["1"]])

    def test_empty_preview(self):
        preview = build_preview(RecordSet())
        self.assertEqual(preview["headers"], [])
        self.assertEqual(preview["rows"], [])
        self.assertEqual(preview["total"], 0)


if __name__ == "__main__":
    unittest.main()
