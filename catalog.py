"""
catalog.py — reference medicine catalog backends.

Both backends expose the same reader/writer surface:
 - search(field, term, limit) -> [MedicineRecord]  (case-insensitive substring, stable order)
 - sample(limit) -> [MedicineRecord]
 - find_by_barcode(barcode) -> MedicineRecord | None
 - upsert(records) -> int  (replace on id conflict)
Any backend failure surfaces as CatalogError.
"""

import logging
import re
import threading
from typing import Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

import config
from api_schema import MedicineRecord

logger = logging.getLogger("catalog")

SEARCH_FIELDS = ("name", "generic_name", "category")


class CatalogError(Exception):
    """The catalog could not answer a query."""


def _check_field(field: str) -> None:
    if field not in SEARCH_FIELDS:
        raise ValueError(f"Unsupported search field: {field}")


class InMemoryCatalog:
    """Insertion-ordered catalog keyed by id; used for the bundled medicines file and in tests."""

    def __init__(self, records: Optional[Iterable[MedicineRecord]] = None):
        self._records: Dict[str, MedicineRecord] = {}
        self._lock = threading.Lock()
        if records:
            self.upsert(records)

    def __len__(self) -> int:
        return len(self._records)

    def _snapshot(self) -> List[MedicineRecord]:
        with self._lock:
            return list(self._records.values())

    def upsert(self, records: Iterable[MedicineRecord]) -> int:
        count = 0
        with self._lock:
            for rec in records:
                self._records[rec.id] = rec
                count += 1
        return count

    def search(self, field: str, term: str, limit: int) -> List[MedicineRecord]:
        _check_field(field)
        needle = (term or "").strip().lower()
        if not needle or limit <= 0:
            return []
        out = []
        for rec in self._snapshot():
            if needle in getattr(rec, field).lower():
                out.append(rec)
                if len(out) >= limit:
                    break
        return out

    def sample(self, limit: int) -> List[MedicineRecord]:
        return self._snapshot()[:max(limit, 0)]

    def find_by_barcode(self, barcode: str) -> Optional[MedicineRecord]:
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        for rec in self._snapshot():
            if rec.barcode == barcode:
                return rec
        return None


# LIKE wildcards and PostgREST's '*' are stripped so a term is always a literal substring
_LIKE_SPECIALS = re.compile(r"[*%_\\]")


class SupabaseCatalog:
    """Medicines table behind Supabase's PostgREST endpoint, one parameterized filter per request."""

    def __init__(self, url: str, key: str, table: str = "medicines",
                 timeout: float = config.CATALOG_TIMEOUT, session: Optional[requests.Session] = None):
        if not url:
            raise ValueError("SUPABASE_URL is not configured")
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
        })

    def _get(self, params: Dict[str, str]) -> List[MedicineRecord]:
        try:
            resp = self.session.get(self.endpoint, params=params, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CatalogError(f"Catalog query failed: {e}") from e
        if not isinstance(rows, list):
            raise CatalogError(f"Unexpected catalog response: {type(rows).__name__}")
        return self._to_records(rows)

    @staticmethod
    def _to_records(rows: List[dict]) -> List[MedicineRecord]:
        out = []
        for row in rows:
            try:
                out.append(MedicineRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed catalog row {row.get('id') if isinstance(row, dict) else row!r}: {e}")
        return out

    def search(self, field: str, term: str, limit: int) -> List[MedicineRecord]:
        _check_field(field)
        needle = _LIKE_SPECIALS.sub("", (term or "").strip())
        if not needle or limit <= 0:
            return []
        return self._get({
            "select": "*",
            field: f"ilike.*{needle}*",
            "order": "id.asc",
            "limit": str(limit),
        })

    def sample(self, limit: int) -> List[MedicineRecord]:
        if limit <= 0:
            return []
        return self._get({"select": "*", "order": "id.asc", "limit": str(limit)})

    def find_by_barcode(self, barcode: str) -> Optional[MedicineRecord]:
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        rows = self._get({"select": "*", "barcode": f"eq.{barcode}", "limit": "1"})
        return rows[0] if rows else None

    def upsert(self, records: Iterable[MedicineRecord]) -> int:
        payload = [r.model_dump() for r in records]
        if not payload:
            return 0
        try:
            resp = self.session.post(
                self.endpoint,
                params={"on_conflict": "id"},
                json=payload,
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise CatalogError(f"Catalog upsert failed: {e}") from e
        return len(payload)


def build_catalog():
    """Catalog for the configured backend. The in-memory one starts empty; main.py fills it."""
    if config.CATALOG_BACKEND == "supabase":
        logger.info(f"Using Supabase catalog table '{config.SUPABASE_TABLE}'")
        return SupabaseCatalog(config.SUPABASE_URL, config.SUPABASE_KEY, config.SUPABASE_TABLE)
    logger.info("Using in-memory catalog")
    return InMemoryCatalog()
