"""Tests for CSV and JSON export."""

from __future__ import annotations

import json
import unittest

from backend.credential_io.exporters import export_records, to_csv, to_json
from backend.credential_io.import_adapters import parse_bitwarden_json, parse_tabular
from backend.credential_io.import_contract import NormalizedRecord, UnsupportedFormatError


class TestCsvExport(unittest.TestCase):
    def test_basic_columns(self) -> None:
        records = [NormalizedRecord(site="example.com", username="me", password="password123", notes="n")]
        self.assertEqual(to_csv(records), "site,username,password\nexample.com,me,password123\n")

    def test_metadata_columns(self) -> None:
        records = [
            NormalizedRecord(site="a.com", username="me", password="pw123456", url="https://a.com", folder="Work"),
        ]
        self.assertEqual(
            to_csv(records, include_metadata=True),
            "site,username,password,url,notes,folder\na.com,me,pw123456,https://a.com,,Work\n",
        )

    def test_quoting(self) -> None:
        records = [
            NormalizedRecord(site="Acme, Inc.", username='say "hi"', password="two\nlines"),
            NormalizedRecord(site="plain", username="me", password="carriage\rreturn"),
        ]
        self.assertEqual(
            to_csv(records),
            'site,username,password\n"Acme, Inc.","say ""hi""","two\nlines"\nplain,me,"carriage\rreturn"\n',
        )

    def test_empty_collection(self) -> None:
        self.assertEqual(to_csv([]), "site,username,password\n")

    def test_round_trip_through_generic_import(self) -> None:
        records = [
            NormalizedRecord(site="Acme, Inc.", username="ops", password='pa"ss,word'),
            NormalizedRecord(site="example.com", username="me", password="password123"),
        ]
        self.assertEqual(parse_tabular(to_csv(records), "generic"), records)

    def test_round_trip_keeps_url_and_notes(self) -> None:
        records = [
            NormalizedRecord(
                site="example.com",
                username="me",
                password="password123",
                notes="first line\nsecond line",
                url="https://example.com",
            )
        ]
        self.assertEqual(parse_tabular(to_csv(records, include_metadata=True), "generic"), records)


class TestJsonExport(unittest.TestCase):
    def test_pretty_printed_array(self) -> None:
        records = [NormalizedRecord(site="example.com", username="me", password="password123", url="https://e.com")]
        content = to_json(records)
        self.assertTrue(content.startswith("[\n  {"))
        self.assertEqual(
            json.loads(content),
            [
                {
                    "site": "example.com",
                    "username": "me",
                    "password": "password123",
                    "notes": None,
                    "url": "https://e.com",
                    "folder": None,
                }
            ],
        )

    def test_empty_collection(self) -> None:
        self.assertEqual(json.loads(to_json([])), [])

    def test_field_names_match_bitwarden_mapping(self) -> None:
        record = NormalizedRecord(site="s", username="u", password="p", notes="n", url="https://s", folder="f")
        exported = json.loads(to_json([record]))[0]
        wrapped = {
            "items": [
                {
                    "name": exported["site"],
                    "notes": exported["notes"],
                    "folderId": exported["folder"],
                    "login": {
                        "username": exported["username"],
                        "password": exported["password"],
                        "uris": [{"uri": exported["url"]}],
                    },
                }
            ]
        }
        self.assertEqual(parse_bitwarden_json(json.dumps(wrapped)), [record])


class TestExportRecords(unittest.TestCase):
    def test_dispatch(self) -> None:
        records = [NormalizedRecord(site="a", username="b", password="c")]
        self.assertEqual(export_records(records, "CSV"), to_csv(records))
        self.assertEqual(export_records(records, "json"), to_json(records))
        with self.assertRaises(UnsupportedFormatError):
            export_records(records, "pdf")


if __name__ == "__main__":
    unittest.main()
