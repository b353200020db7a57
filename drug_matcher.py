"""
drug_matcher.py — reconcile a canonical medicine name against the reference catalog.

resolve(catalog, canonical_name, raw_context) -> Matched | NotFound | CatalogUnavailable

  1. derive up to MAX_SEARCH_TERMS search terms, query name + generic_name for each (in parallel)
  2. exact name/generic → first-token brand → scored containment, first success wins
  3. on no match: infer a category from the raw text and collect same-category alternatives

"We looked and it is absent" (NotFound) and "we could not look" (CatalogUnavailable)
are always distinct results.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Tuple

import config
from api_schema import (
    Alternative,
    CatalogUnavailable,
    Matched,
    MatchResult,
    MedicineRecord,
    NotFound,
    VerificationAttempt,
)
from catalog import CatalogError
from categories import DEFAULT_CATEGORY, infer_category
from normalizer import normalize, split_ocr_lines

logger = logging.getLogger("drug_matcher")

# Shared pool for blocking catalog clients (up to 3 terms x 2 fields per request)
_executor = ThreadPoolExecutor(max_workers=config.MAX_WORKERS, thread_name_prefix="catalog")

LOOKUP_FIELDS = ("name", "generic_name")
MIN_TERM_LENGTH = 3

WHO_APPROVED_SCORE = 95
NOT_APPROVED_SCORE = 75


def safety_score(record: MedicineRecord) -> int:
    """Deterministic safety score: 95 for WHO-approved medicines, 75 otherwise."""
    return WHO_APPROVED_SCORE if record.who_approved else NOT_APPROVED_SCORE


# -------------------------
# Step A: candidate retrieval
# -------------------------
def search_terms(canonical_name: str, max_terms: Optional[int] = None) -> List[str]:
    """Full name, first token, then every token longer than 3 chars; deduped, capped."""
    max_terms = config.MAX_SEARCH_TERMS if max_terms is None else max_terms
    q = " ".join(canonical_name.lower().split())
    if not q:
        return []
    tokens = q.split()
    terms = [q, tokens[0]] + [t for t in tokens if len(t) > 3]
    seen = set(); out = []
    for t in terms:
        if len(t) >= MIN_TERM_LENGTH and t not in seen:
            seen.add(t)
            out.append(t)
    return out[:max_terms]


async def _run_catalog(fn, *args, timeout: float):
    loop = asyncio.get_running_loop()
    return await asyncio.wait_for(loop.run_in_executor(_executor, partial(fn, *args)), timeout)


async def retrieve_candidates(catalog, terms: List[str], limit: Optional[int] = None,
                              timeout: Optional[float] = None) -> List[MedicineRecord]:
    """
    Fan out one lookup per (term, field), join, then merge by id in retrieval order.

    A failed or timed-out lookup counts as empty. Raises CatalogError only when
    every lookup failed.
    """
    limit = config.SEARCH_RESULT_LIMIT if limit is None else limit
    timeout = config.CATALOG_TIMEOUT if timeout is None else timeout

    lookups = [(term, field) for term in terms for field in LOOKUP_FIELDS]
    if not lookups:
        return []

    results = await asyncio.gather(
        *(_run_catalog(catalog.search, field, term, limit, timeout=timeout) for term, field in lookups),
        return_exceptions=True,
    )

    failures = 0
    candidates = {}
    for (term, field), res in zip(lookups, results):
        if isinstance(res, BaseException):
            if not isinstance(res, Exception):
                raise res
            failures += 1
            logger.warning(f"Catalog lookup {field}~'{term}' failed: {type(res).__name__}: {res}")
            continue
        for rec in res:
            candidates.setdefault(rec.id, rec)

    if failures == len(lookups):
        raise CatalogError(f"All {failures} catalog lookups failed")
    return list(candidates.values())


# -------------------------
# Step B: best-match selection
# -------------------------
def containment_score(canonical_lower: str, record: MedicineRecord) -> int:
    name = record.name.lower()
    generic = record.generic_name.lower()
    score = 0
    if name and canonical_lower in name:
        score += 10
    if generic and canonical_lower in generic:
        score += 8
    if name and name in canonical_lower:
        score += 7
    if generic and generic in canonical_lower:
        score += 6
    # prefer specific over bloated names, but never let the bonus alone make a match
    if score and len(name) < 1.5 * len(canonical_lower):
        score += 2
    return score


def select_best_match(canonical_name: str,
                      candidates: List[MedicineRecord]) -> Optional[Tuple[MedicineRecord, str, Optional[int]]]:
    """Returns (record, match_type, score) or None. Ties keep retrieval order."""
    q = " ".join(canonical_name.lower().split())
    if not q or not candidates:
        return None
    first = q.split()[0]

    # Exact match (name or generic)
    for rec in candidates:
        if rec.name.lower() == q or rec.generic_name.lower() == q:
            return rec, "exact", None

    # Brand first word ("panadol" -> "Panadol Extra")
    for rec in candidates:
        name = rec.name.lower()
        if name == first or name.startswith(first + " "):
            return rec, "first-token", None

    # Scored containment as last resort
    best, best_score = None, 0
    for rec in candidates:
        s = containment_score(q, rec)
        if s > best_score:
            best, best_score = rec, s
    if best is not None:
        return best, "scored", best_score
    return None


# -------------------------
# Step D: alternatives for unregistered names
# -------------------------
async def gather_alternatives(catalog, category: str, limit: Optional[int] = None,
                              sample_limit: Optional[int] = None, timeout: Optional[float] = None) -> List[Alternative]:
    limit = config.ALTERNATIVES_LIMIT if limit is None else limit
    sample_limit = config.CATEGORY_SAMPLE_LIMIT if sample_limit is None else sample_limit
    timeout = config.CATALOG_TIMEOUT if timeout is None else timeout

    try:
        pool = await _run_catalog(catalog.search, "category", category, sample_limit, timeout=timeout)
    except Exception as e:
        logger.warning(f"Category lookup '{category}' failed: {e}")
        pool = []

    if not pool:
        logger.info(f"No catalog entries in category '{category}'; using general sample")
        try:
            pool = await _run_catalog(catalog.sample, sample_limit, timeout=timeout)
        except Exception as e:
            logger.warning(f"General sample lookup failed: {e}")
            pool = []

    seen = set(); out = []
    for rec in pool:
        if rec.id in seen:
            continue
        seen.add(rec.id)
        out.append(Alternative(record=rec, safety_score=safety_score(rec)))
        if len(out) >= limit:
            break
    return out


# -------------------------
# Public API
# -------------------------
async def resolve(catalog, canonical_name: str, raw_context: str = "", timeout: Optional[float] = None) -> MatchResult:
    """Resolve a canonical name. Callers must skip empty names (normalize() returned "")."""
    if not canonical_name or not canonical_name.strip():
        raise ValueError("resolve() needs a non-empty canonical name")

    terms = search_terms(canonical_name)
    try:
        candidates = await retrieve_candidates(catalog, terms, timeout=timeout)
    except CatalogError as e:
        logger.warning(f"Catalog unavailable while resolving '{canonical_name}': {e}")
        return CatalogUnavailable()

    best = select_best_match(canonical_name, candidates)
    if best:
        record, match_type, score = best
        logger.info(f"Matched '{canonical_name}' -> {record.id} '{record.name}' ({match_type})")
        return Matched(record=record, safety_score=safety_score(record), match_type=match_type, score=score)

    category = infer_category(raw_context or canonical_name)
    alternatives = await gather_alternatives(catalog, category, timeout=timeout)
    logger.info(f"No match for '{canonical_name}'; category '{category}', {len(alternatives)} alternatives")
    return NotFound(inferred_category=category, alternatives=alternatives)


async def verify_barcode(catalog, barcode: str, timeout: Optional[float] = None) -> MatchResult:
    """Exact barcode lookup; no normalization beyond trimming."""
    timeout = config.CATALOG_TIMEOUT if timeout is None else timeout
    try:
        record = await _run_catalog(catalog.find_by_barcode, barcode.strip(), timeout=timeout)
    except (CatalogError, asyncio.TimeoutError) as e:
        logger.warning(f"Barcode lookup '{barcode}' failed: {e}")
        return CatalogUnavailable()
    if record is None:
        return NotFound(inferred_category=DEFAULT_CATEGORY)
    return Matched(record=record, safety_score=safety_score(record), match_type="barcode")


async def verify_line(catalog, raw_line: str, timeout: Optional[float] = None) -> VerificationAttempt:
    canonical = normalize(raw_line)
    if not canonical:
        logger.debug(f"Skipping line without a usable name: {raw_line!r}")
        return VerificationAttempt(raw_query=raw_line, canonical_name="", outcome=None)
    outcome = await resolve(catalog, canonical, raw_line, timeout=timeout)
    return VerificationAttempt(raw_query=raw_line, canonical_name=canonical, outcome=outcome)


async def verify_text(catalog, text: str, timeout: Optional[float] = None) -> List[VerificationAttempt]:
    """
    Normalize + resolve every OCR line in order.

    Lines without a usable name are not looked up; they come back with
    outcome=None so the caller can show them as skipped.
    """
    results = []
    for line in split_ocr_lines(text):
        results.append(await verify_line(catalog, line, timeout=timeout))
    return results
