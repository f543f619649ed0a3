"""Shared contracts for credential import adapters.

This module defines the immutable record shape every password-manager export
is normalized into, the error taxonomy surfaced to callers, and the small
lookup helpers (header resolution, URL parsing) that all adapters share.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

UNKNOWN_SITE = "unknown site"

RECORD_FIELDS: Tuple[str, ...] = ("site", "username", "password", "notes", "url", "folder")

MAX_PORT = 65535
_HOST_SCHEMES = {"http", "https", "ws", "wss", "ftp"}
_FORBIDDEN_HOST_CHARS = set(" \t\r\n#/<>?@[\\]^|%")


class SourceKind(str, Enum):
    """Source identifiers accepted by the format dispatcher."""

    GENERIC = "generic"
    LASTPASS = "lastpass"
    CHROME = "chrome"
    FIREFOX = "firefox"
    BITWARDEN = "bitwarden"

    @classmethod
    def from_identifier(cls, source_id: str) -> "SourceKind":
        """Exact match on the identifier; anything unknown is treated as generic."""
        for kind in cls:
            if kind.value == source_id:
                return kind
        return cls.GENERIC


class CredentialImportError(ValueError):
    """Base class for every import/export failure returned to callers."""

    code = "import_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.detail}


class HeaderReadError(CredentialImportError):
    code = "header_read"


class RowReadError(CredentialImportError):
    code = "row_read"


class InvalidJsonError(CredentialImportError):
    code = "invalid_json"


class UnsupportedFormatError(CredentialImportError):
    code = "unsupported_format"


class UnsupportedJsonSourceError(CredentialImportError):
    code = "unsupported_json_source"


class SerializeError(CredentialImportError):
    code = "serialize"


@dataclass(frozen=True)
class NormalizedRecord:
    """A credential in the canonical shape shared by every source adapter."""

    site: str
    username: str
    password: str
    notes: Optional[str] = None
    url: Optional[str] = None
    folder: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {field: getattr(self, field) for field in RECORD_FIELDS}

    def dedupe_key(self) -> Tuple[str, str]:
        return (self.site.lower(), self.username.lower())


@dataclass(frozen=True)
class ImportOptions:
    """Caller preferences applied when an import batch is confirmed."""

    skip_duplicates: bool = True
    validate_urls: bool = True
    import_notes: bool = True


@dataclass(frozen=True)
class ImportOutcome:
    """Collection-level summary of one import batch."""

    success: bool
    imported: int
    skipped: int
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    duplicates: Tuple[NormalizedRecord, ...]
    records: Tuple[NormalizedRecord, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "duplicates": [record.to_dict() for record in self.duplicates],
            "records": [record.to_dict() for record in self.records],
        }


class ImportSourceAdapter(ABC):
    """Contract shared by each vendor-specific import adapter."""

    source_type: SourceKind = SourceKind.GENERIC
    display_name: str = "Generic CSV"
    file_format: str = "csv"

    @abstractmethod
    def parse(self, content: str) -> List[NormalizedRecord]:
        """Parse raw export text into normalized records, skipping unmappable entries."""


def header_index(headers: Sequence[str]) -> Dict[str, int]:
    """Map lowercased header names to their column index."""

    return {str(name).lower(): index for index, name in enumerate(headers)}


def resolve_field(
    headers: Mapping[str, int],
    row: Sequence[str],
    candidates: Sequence[str],
) -> Optional[str]:
    """Return the first non-empty trimmed value among `candidates`, in priority order."""

    for candidate in candidates:
        index = headers.get(candidate.lower())
        if index is None or index >= len(row):
            continue
        value = row[index].strip()
        if value:
            return value
    return None


def parse_url(value: str) -> Optional[httpx.URL]:
    """Parse an absolute URL, returning None when it is not a usable URL.

    A scheme is always required and any port must fit in 16 bits. Web schemes
    additionally need a host made of valid host characters.
    """

    candidate = value.strip()
    if not candidate:
        return None
    try:
        url = httpx.URL(candidate)
    except httpx.InvalidURL:
        return None
    if not url.scheme:
        return None
    if url.port is not None and not 0 <= url.port <= MAX_PORT:
        return None
    if url.scheme in _HOST_SCHEMES:
        host = url.host
        if not host or any(char in _FORBIDDEN_HOST_CHARS for char in host):
            return None
    return url


def extract_domain(value: str) -> Optional[str]:
    """Collapse a URL into its host name."""

    url = parse_url(value)
    if url is not None and url.raw_host:
        # raw_host keeps IDN labels in their ASCII (punycode) form.
        return url.raw_host.decode("ascii")

    # Fall back for strings with a scheme separator that do not parse cleanly.
    if "://" in value:
        domain = value.split("://", 1)[1].split("/", 1)[0]
        if domain:
            return domain
    return None
