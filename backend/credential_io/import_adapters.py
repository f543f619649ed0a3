"""Import adapters for password-manager exports."""

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .import_contract import (
    UNKNOWN_SITE,
    HeaderReadError,
    ImportSourceAdapter,
    InvalidJsonError,
    NormalizedRecord,
    RowReadError,
    SourceKind,
    UnsupportedFormatError,
    UnsupportedJsonSourceError,
    extract_domain,
    header_index,
    resolve_field,
)

logger = logging.getLogger(__name__)

Candidates = Tuple[str, ...]

# Header names tried for each target field, highest priority first.
FIELD_CANDIDATES: Dict[SourceKind, Dict[str, Candidates]] = {
    SourceKind.GENERIC: {
        "site": ("site", "name", "title", "service", "domain"),
        "username": ("username", "user", "login", "email"),
        "password": ("password", "pass", "pwd"),
        "url": ("url", "website", "link"),
        "notes": ("notes", "note", "comment", "description"),
    },
    SourceKind.LASTPASS: {
        "site": ("name", "title", "site"),
        "username": ("username", "login", "email"),
        "password": ("password", "pass"),
        "url": ("url", "website", "link"),
        "notes": ("notes", "note", "comment"),
        "folder": ("folder", "group", "category"),
    },
    SourceKind.CHROME: {
        "site": ("name", "title", "url"),
        "username": ("username", "login"),
        "password": ("password",),
        "url": ("url", "website"),
    },
    SourceKind.FIREFOX: {
        "url": ("url", "hostname"),
        "username": ("username", "login"),
        "password": ("password",),
    },
    SourceKind.BITWARDEN: {
        "site": ("name", "title"),
        "username": ("username", "login_username"),
        "password": ("password", "login_password"),
        "url": ("login_uri", "url"),
        "notes": ("notes",),
        "folder": ("folder",),
    },
}

_MAPPED_FIELDS = ("site", "username", "password", "url", "notes", "folder")


def _read_table(content: str) -> Tuple[List[str], Iterator[Tuple[int, List[str]]]]:
    """Split delimited text into its header row and an iterator of (line, row) pairs."""

    if content.startswith("\ufeff"):
        content = content[1:]
    reader = csv.reader(io.StringIO(content, newline=""), strict=True)

    headers: List[str] = []
    try:
        for row in reader:
            if row:
                headers = row
                break
    except csv.Error as exc:
        raise HeaderReadError(f"Unable to read header row: {exc}") from exc

    def _rows() -> Iterator[Tuple[int, List[str]]]:
        if not headers:
            return
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                raise RowReadError(f"Unable to read line {reader.line_num}: {exc}") from exc
            if not row:
                continue
            if len(row) != len(headers):
                raise RowReadError(
                    f"Unable to read line {reader.line_num}: expected {len(headers)} fields, found {len(row)}"
                )
            yield reader.line_num, row

    return headers, _rows()


class GenericCsvImportAdapter(ImportSourceAdapter):
    """Adapter for hand-made or unknown CSV exports."""

    source_type = SourceKind.GENERIC
    display_name = "Generic CSV"

    def parse(self, content: str) -> List[NormalizedRecord]:
        headers, rows = _read_table(content)
        columns = header_index(headers)
        records: List[NormalizedRecord] = []
        skipped = 0
        for line_num, row in rows:
            record = self.map_row(columns, row)
            if record is None:
                skipped += 1
                logger.debug("Skipped unmappable %s row at line %d", self.source_type.value, line_num)
                continue
            records.append(record)
        logger.info(
            "Parsed %d records from %s export (%d rows skipped)",
            len(records),
            self.source_type.value,
            skipped,
        )
        return records

    def map_row(self, columns: Mapping[str, int], row: Sequence[str]) -> Optional[NormalizedRecord]:
        fields = self._resolve_fields(columns, row)
        site, username, password = fields["site"], fields["username"], fields["password"]
        if site is None or username is None or password is None:
            return None
        return NormalizedRecord(
            site=site,
            username=username,
            password=password,
            notes=fields["notes"],
            url=fields["url"],
            folder=fields["folder"],
        )

    def _resolve_fields(self, columns: Mapping[str, int], row: Sequence[str]) -> Dict[str, Optional[str]]:
        candidates = FIELD_CANDIDATES[self.source_type]
        return {field: resolve_field(columns, row, candidates.get(field, ())) for field in _MAPPED_FIELDS}


class LastPassImportAdapter(GenericCsvImportAdapter):
    source_type = SourceKind.LASTPASS
    display_name = "LastPass"


class ChromeImportAdapter(GenericCsvImportAdapter):
    """Chrome exports name rows after the page, so the URL host becomes the site."""

    source_type = SourceKind.CHROME
    display_name = "Google Chrome"

    def _resolve_fields(self, columns: Mapping[str, int], row: Sequence[str]) -> Dict[str, Optional[str]]:
        fields = super()._resolve_fields(columns, row)
        site = fields["site"]
        if site is not None:
            url_domain = extract_domain(fields["url"]) if fields["url"] else None
            fields["site"] = url_domain or extract_domain(site) or site
        return fields


class FirefoxImportAdapter(GenericCsvImportAdapter):
    source_type = SourceKind.FIREFOX
    display_name = "Mozilla Firefox"

    def _resolve_fields(self, columns: Mapping[str, int], row: Sequence[str]) -> Dict[str, Optional[str]]:
        fields = super()._resolve_fields(columns, row)
        url = fields["url"]
        fields["site"] = (extract_domain(url) or url) if url is not None else None
        return fields


class BitwardenCsvImportAdapter(GenericCsvImportAdapter):
    source_type = SourceKind.BITWARDEN
    display_name = "Bitwarden"


class BitwardenJsonImportAdapter(ImportSourceAdapter):
    """Adapter for Bitwarden's unencrypted JSON vault export."""

    source_type = SourceKind.BITWARDEN
    display_name = "Bitwarden"
    file_format = "json"

    def parse(self, content: str) -> List[NormalizedRecord]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise InvalidJsonError(f"Invalid JSON: {exc}") from exc

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.info("Bitwarden JSON export has no items array")
            return []

        records: List[NormalizedRecord] = []
        for item in items:
            record = self.map_item(item)
            if record is not None:
                records.append(record)
        logger.info(
            "Parsed %d records from bitwarden JSON export (%d items skipped)",
            len(records),
            len(items) - len(records),
        )
        return records

    def map_item(self, item: Any) -> Optional[NormalizedRecord]:
        if not isinstance(item, dict):
            return None
        login = item.get("login")
        if not isinstance(login, dict):
            return None

        username = self._coerce_text(login.get("username")) or ""
        password = self._coerce_text(login.get("password")) or ""
        if not username or not password:
            return None

        return NormalizedRecord(
            site=self._coerce_text(item.get("name")) or UNKNOWN_SITE,
            username=username,
            password=password,
            notes=self._coerce_text(item.get("notes")),
            url=self._first_uri(login.get("uris")),
            folder=self._coerce_text(item.get("folderId")),
        )

    def _first_uri(self, uris: Any) -> Optional[str]:
        if not isinstance(uris, list) or not uris:
            return None
        first = uris[0]
        if not isinstance(first, dict):
            return None
        return self._coerce_text(first.get("uri"))

    def _coerce_text(self, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


_ADAPTERS: Dict[SourceKind, GenericCsvImportAdapter] = {
    SourceKind.GENERIC: GenericCsvImportAdapter(),
    SourceKind.LASTPASS: LastPassImportAdapter(),
    SourceKind.CHROME: ChromeImportAdapter(),
    SourceKind.FIREFOX: FirefoxImportAdapter(),
    SourceKind.BITWARDEN: BitwardenCsvImportAdapter(),
}

_JSON_ADAPTERS: Dict[SourceKind, ImportSourceAdapter] = {
    SourceKind.BITWARDEN: BitwardenJsonImportAdapter(),
}


def get_import_adapter(source_id: str) -> GenericCsvImportAdapter:
    return _ADAPTERS[SourceKind.from_identifier(source_id)]


def list_import_sources() -> List[Dict[str, Any]]:
    sources = []
    for kind, adapter in _ADAPTERS.items():
        formats = [adapter.file_format]
        if kind in _JSON_ADAPTERS:
            formats.append(_JSON_ADAPTERS[kind].file_format)
        sources.append({"id": kind.value, "name": adapter.display_name, "formats": formats})
    return sources


def parse_tabular(content: str, source_id: str) -> List[NormalizedRecord]:
    return get_import_adapter(source_id).parse(content)


def parse_bitwarden_json(content: str) -> List[NormalizedRecord]:
    return _JSON_ADAPTERS[SourceKind.BITWARDEN].parse(content)


def _normalise_extension(file_extension: str) -> str:
    return str(file_extension or "").strip().lower().lstrip(".")


def parse_import_file(content: str, source_id: str, file_extension: str) -> List[NormalizedRecord]:
    """Pick the CSV or JSON parser for a file and run it."""

    extension = _normalise_extension(file_extension)
    if extension == "csv":
        return parse_tabular(content, source_id)
    if extension == "json":
        kind = SourceKind.from_identifier(source_id)
        adapter = _JSON_ADAPTERS.get(kind) if kind.value == source_id else None
        if adapter is None:
            raise UnsupportedJsonSourceError(
                f"JSON import is only supported for bitwarden exports, not '{source_id}'"
            )
        return adapter.parse(content)
    raise UnsupportedFormatError(f"Unsupported file format '{file_extension}'. Supported values: csv, json")
