"""Tests for the shared record contract and lookup helpers."""

from __future__ import annotations

import unittest
from dataclasses import FrozenInstanceError

from backend.credential_io.import_contract import (
    HeaderReadError,
    ImportOutcome,
    NormalizedRecord,
    SourceKind,
    extract_domain,
    header_index,
    parse_url,
    resolve_field,
)


class TestImportContract(unittest.TestCase):
    def test_records_are_immutable(self) -> None:
        record = NormalizedRecord(site="example.com", username="me", password="secret-123")
        with self.assertRaises(FrozenInstanceError):
            record.site = "other.com"

        outcome = ImportOutcome(
            success=True,
            imported=1,
            skipped=0,
            errors=(),
            warnings=(),
            duplicates=(),
            records=(record,),
        )
        self.assertEqual(outcome.to_dict()["records"][0]["site"], "example.com")

    def test_record_dict_keeps_field_order(self) -> None:
        record = NormalizedRecord(site="s", username="u", password="p", url="https://s.example")
        self.assertEqual(list(record.to_dict()), ["site", "username", "password", "notes", "url", "folder"])
        self.assertIsNone(record.to_dict()["notes"])

    def test_source_kind_falls_back_to_generic(self) -> None:
        self.assertIs(SourceKind.from_identifier("chrome"), SourceKind.CHROME)
        self.assertIs(SourceKind.from_identifier("keepass"), SourceKind.GENERIC)
        self.assertIs(SourceKind.from_identifier("Chrome"), SourceKind.GENERIC)

    def test_errors_carry_code_and_detail(self) -> None:
        error = HeaderReadError("bad header")
        self.assertIsInstance(error, ValueError)
        self.assertEqual(error.to_dict(), {"code": "header_read", "message": "bad header"})


class TestFieldResolver(unittest.TestCase):
    def test_first_candidate_wins_over_column_order(self) -> None:
        columns = header_index(["b", "a"])
        self.assertEqual(resolve_field(columns, ["from-b", "from-a"], ["a", "b"]), "from-a")

    def test_empty_values_fall_through(self) -> None:
        columns = header_index(["a", "b"])
        self.assertEqual(resolve_field(columns, ["   ", " value "], ["a", "b"]), "value")
        self.assertIsNone(resolve_field(columns, ["", ""], ["a", "b"]))

    def test_header_names_are_case_insensitive(self) -> None:
        columns = header_index(["UserName", "Password"])
        self.assertEqual(resolve_field(columns, ["Me", "Pw"], ["username"]), "Me")

    def test_values_keep_their_case(self) -> None:
        columns = header_index(["name"])
        self.assertEqual(resolve_field(columns, ["MixedCase"], ["NAME"]), "MixedCase")

    def test_missing_candidates_return_none(self) -> None:
        columns = header_index(["other"])
        self.assertIsNone(resolve_field(columns, ["x"], ["site", "name"]))


class TestUrlHelpers(unittest.TestCase):
    def test_extract_domain(self) -> None:
        self.assertEqual(extract_domain("https://www.example.com/path"), "www.example.com")
        self.assertEqual(extract_domain("http://subdomain.test.com"), "subdomain.test.com")
        self.assertEqual(extract_domain("https://localhost:3000"), "localhost")
        self.assertIsNone(extract_domain("invalid-url"))
        self.assertIsNone(extract_domain(""))

    def test_extract_domain_returns_ascii_host_for_idn(self) -> None:
        self.assertEqual(extract_domain("https://bücher.de/katalog"), "xn--bcher-kva.de")

    def test_extract_domain_falls_back_on_separator(self) -> None:
        self.assertEqual(extract_domain("https://bad host.example/login"), "bad host.example")

    def test_parse_url(self) -> None:
        self.assertIsNotNone(parse_url("https://example.com/login"))
        self.assertIsNone(parse_url("not a url"))
        self.assertIsNone(parse_url("https://"))
        self.assertIsNone(parse_url("example.com/login"))
        self.assertIsNone(parse_url("http://x:99999/"))
        self.assertIsNone(parse_url("http://x:65536/"))
        self.assertIsNotNone(parse_url("http://x:65535/"))


if __name__ == "__main__":
    unittest.main()
