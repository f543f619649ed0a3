"""FastAPI command surface for the credential import/export pipeline."""

from __future__ import annotations

import hmac
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .exporters import export_records
from .import_adapters import list_import_sources, parse_import_file
from .import_contract import CredentialImportError, ImportOptions, NormalizedRecord
from .logging_setup import setup_logging
from .quality import build_import_outcome, failed_outcome, find_duplicates, validate_records

setup_logging(os.getenv("CREDENTIAL_IO_LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Credential Import/Export API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_api_token = os.getenv("CREDENTIAL_IO_API_TOKEN", "").strip()
_max_upload_bytes = int(os.getenv("CREDENTIAL_IO_MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


class CredentialRecord(BaseModel):
    site: str
    username: str
    password: str
    notes: Optional[str] = None
    url: Optional[str] = None
    folder: Optional[str] = None


class ParseRequest(BaseModel):
    content: str
    source_type: str = "generic"
    file_extension: str = "csv"


class ValidateRequest(BaseModel):
    records: List[CredentialRecord]
    check_urls: bool = True


class DuplicatesRequest(BaseModel):
    records: List[CredentialRecord]


class OutcomeOptions(BaseModel):
    skip_duplicates: bool = True
    validate_urls: bool = True
    import_notes: bool = True


class OutcomeRequest(BaseModel):
    records: List[CredentialRecord]
    existing: List[CredentialRecord] = []
    options: OutcomeOptions = OutcomeOptions()


class ConfirmRequest(BaseModel):
    content: str
    source_type: str = "generic"
    file_extension: str = "csv"
    existing: List[CredentialRecord] = []
    options: OutcomeOptions = OutcomeOptions()


class ExportRequest(BaseModel):
    records: List[CredentialRecord]
    format: str = "csv"
    include_metadata: bool = False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_token(
    auth: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
    token: Optional[str] = Query(default=None, alias="token"),
) -> str:
    if not _api_token:
        return "open-access"
    supplied = auth.credentials if auth else (token or "")
    if not hmac.compare_digest(supplied.encode("utf-8"), _api_token.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return "api-token"


def _normalise_source_type(source_type: str) -> str:
    return str(source_type or "").strip().lower().replace("-", "_").replace(" ", "_")


def _to_records(payload: Sequence[CredentialRecord]) -> List[NormalizedRecord]:
    return [NormalizedRecord(**record.model_dump()) for record in payload]


def _bad_request(exc: CredentialImportError) -> HTTPException:
    return HTTPException(status_code=400, detail=exc.to_dict())


def _parse_payload(content: str, source_type: str, file_extension: str) -> Dict[str, Any]:
    source_type_key = _normalise_source_type(source_type)
    try:
        records = parse_import_file(content, source_type_key, file_extension)
    except CredentialImportError as exc:
        logger.warning("Import parse failed for %s/%s: %s", source_type_key, file_extension, exc.detail)
        raise _bad_request(exc)

    warnings = validate_records(records)
    duplicates = find_duplicates(records)
    return {
        "source_type": source_type_key,
        "file_extension": file_extension,
        "records": [record.to_dict() for record in records],
        "warnings": warnings,
        "duplicates": [list(pair) for pair in duplicates],
        "counts": {
            "records": len(records),
            "warnings": len(warnings),
            "duplicate_pairs": len(duplicates),
        },
        "parsed_at": _now_iso(),
    }


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "service": "credential-io",
        "auth_required": bool(_api_token),
        "updated_at": _now_iso(),
    }


@app.get("/api/import/sources")
def get_import_sources(role: str = Depends(_require_token)) -> Dict[str, Any]:
    return {"sources": list_import_sources()}


@app.post("/api/import/parse")
def parse_import(request: ParseRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    return _parse_payload(request.content, request.source_type, request.file_extension)


@app.post("/api/import/upload")
async def upload_import_file(
    source_type: str = Form(...),
    source_file: UploadFile = File(...),
    role: str = Depends(_require_token),
) -> Dict[str, Any]:
    raw_data = await source_file.read()
    if not raw_data:
        raise HTTPException(status_code=400, detail="source_file is empty")
    if len(raw_data) > _max_upload_bytes:
        raise HTTPException(status_code=413, detail="source_file exceeds the upload size limit")
    try:
        content = raw_data.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="source_file must be UTF-8 text")

    filename = source_file.filename or ""
    extension = filename.rsplit(".", 1)[-1] if "." in filename else ""
    return _parse_payload(content, source_type, extension)


@app.post("/api/import/validate")
def validate_import(request: ValidateRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    warnings = validate_records(_to_records(request.records), check_urls=request.check_urls)
    return {"warnings": warnings, "count": len(warnings)}


@app.post("/api/import/duplicates")
def find_import_duplicates(request: DuplicatesRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    pairs = find_duplicates(_to_records(request.records))
    return {"duplicates": [list(pair) for pair in pairs], "count": len(pairs)}


@app.post("/api/import/outcome")
def import_outcome(request: OutcomeRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    options = ImportOptions(**request.options.model_dump())
    outcome = build_import_outcome(_to_records(request.records), _to_records(request.existing), options)
    return outcome.to_dict()


@app.post("/api/import/confirm")
def confirm_import(request: ConfirmRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    source_type_key = _normalise_source_type(request.source_type)
    try:
        records = parse_import_file(request.content, source_type_key, request.file_extension)
    except CredentialImportError as exc:
        logger.warning("Import confirm failed for %s/%s: %s", source_type_key, request.file_extension, exc.detail)
        return failed_outcome(exc).to_dict()

    options = ImportOptions(**request.options.model_dump())
    outcome = build_import_outcome(records, _to_records(request.existing), options)
    return outcome.to_dict()


@app.post("/api/export")
def export_passwords(request: ExportRequest, role: str = Depends(_require_token)) -> Dict[str, Any]:
    records = _to_records(request.records)
    try:
        content = export_records(records, request.format, include_metadata=request.include_metadata)
    except CredentialImportError as exc:
        logger.warning("Export failed for format %s: %s", request.format, exc.detail)
        raise _bad_request(exc)

    fmt = request.format.strip().lower()
    logger.info("Exported %d records as %s", len(records), fmt)
    return {
        "format": fmt,
        "media_type": _MEDIA_TYPES[fmt],
        "content": content,
        "count": len(records),
        "exported_at": _now_iso(),
    }
