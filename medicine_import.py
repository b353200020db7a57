import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from pydantic import ValidationError

import config
from api_schema import ImportReport, MedicineRecord
from catalog import CatalogError

logger = logging.getLogger("medicine_import")


def load_medicines_file(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read {"medicines": [...]} (or a bare list) from disk."""
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("medicines", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of medicines, got {type(data).__name__}")
    return data


def coerce_records(raw: List[Dict[str, Any]]) -> Tuple[List[MedicineRecord], int]:
    """
    Build records from raw rows; returns (records, error_count).

    Rows without an id or failing validation are logged and counted. Duplicate
    ids collapse to the last occurrence, keeping the first occurrence's position.
    """
    deduplicated: Dict[str, MedicineRecord] = {}
    errors = 0
    for i, row in enumerate(raw):
        if not isinstance(row, dict):
            logger.warning(f"Row {i}: not an object, skipped")
            errors += 1
            continue
        try:
            rec = MedicineRecord.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Row {i} ({row.get('id')!r}): invalid medicine, skipped: {e.errors()[0]['msg']}")
            errors += 1
            continue
        deduplicated[rec.id] = rec
    return list(deduplicated.values()), errors


def import_medicines(catalog, raw: List[Dict[str, Any]], batch_size: int = None) -> ImportReport:
    """Upsert medicines in batches; a failed batch is counted and the import continues."""
    batch_size = config.IMPORT_BATCH_SIZE if batch_size is None else batch_size
    records, errors = coerce_records(raw)
    logger.info(f"Starting import of {len(records)} medicines ({errors} rejected rows)")

    inserted = 0
    for start in range(0, len(records), batch_size):
        batch = records[start:start + batch_size]
        batch_no = start // batch_size + 1
        try:
            inserted += catalog.upsert(batch)
            logger.info(f"Upserted batch {batch_no}: {len(batch)} medicines")
        except CatalogError as e:
            logger.warning(f"Batch {batch_no} failed: {e}")
            errors += len(batch)

    return ImportReport(total=len(raw), inserted=inserted, errors=errors)
