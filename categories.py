"""
categories.py — therapeutic category inference for unregistered medicines.

The table is evaluated top to bottom; the first category with a keyword hit wins.
"""

import logging
import re
from typing import List, Optional, Tuple

from rapidfuzz import fuzz, process

import config

logger = logging.getLogger("categories")

DEFAULT_CATEGORY = "general medicine"

CATEGORY_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Analgesic", (
        "paracetamol", "acetaminophen", "ibuprofen", "diclofenac", "naproxen",
        "mefenamic", "aspirin", "tramadol", "analgesic", "painkiller", "pain",
        "ache", "fever", "panadol", "brufen",
    )),
    ("Antibiotic", (
        "antibiotic", "amoxicillin", "amoxil", "augmentin", "clavulanic",
        "azithromycin", "clarithromycin", "ciprofloxacin", "levofloxacin",
        "metronidazole", "flagyl", "doxycycline", "cefixime", "ceftriaxone",
        "cephalexin", "infection",
    )),
    ("Antihistamine", (
        "antihistamine", "cetirizine", "loratadine", "fexofenadine",
        "chlorpheniramine", "allergy", "allergic",
    )),
    ("Antacid", (
        "antacid", "omeprazole", "esomeprazole", "pantoprazole", "ranitidine",
        "famotidine", "gastric", "ulcer", "heartburn",
    )),
    ("Antidiabetic", (
        "antidiabetic", "metformin", "glimepiride", "gliclazide", "sitagliptin",
        "insulin", "diabetes", "glucose",
    )),
    ("Antihypertensive", (
        "antihypertensive", "amlodipine", "losartan", "valsartan", "atenolol",
        "bisoprolol", "hypertension", "blood pressure",
    )),
    ("Cough and Cold", (
        "cough", "cold", "influenza", "pseudoephedrine", "dextromethorphan",
        "guaifenesin", "decongestant",
    )),
    ("Vitamin", (
        "vitamin", "multivitamin", "folic", "calcium", "iron", "zinc",
        "supplement",
    )),
]

TOKEN_REGEX = re.compile(r"[a-z]+")
MIN_FUZZY_TOKEN = 5

# keywords that also match as a word ending ("headache", "toothache")
SUFFIX_KEYWORDS = {"ache"}


def _keyword_in(keyword: str, tokens: List[str], phrase: str) -> bool:
    if " " in keyword:
        return f" {keyword} " in phrase
    for tok in tokens:
        if tok == keyword or tok == keyword + "s":
            return True
        if keyword in SUFFIX_KEYWORDS and tok.endswith(keyword):
            return True
    return False


def _exact_hit(text: str) -> Optional[str]:
    # whole words only: "iron" must not fire inside "spironolactone"
    tokens = TOKEN_REGEX.findall(text)
    phrase = f" {' '.join(tokens)} "
    for category, keywords in CATEGORY_KEYWORDS:
        if any(_keyword_in(kw, tokens, phrase) for kw in keywords):
            return category
    return None


def _fuzzy_hit(text: str, cutoff: int) -> Optional[str]:
    tokens = [t for t in TOKEN_REGEX.findall(text) if len(t) >= MIN_FUZZY_TOKEN]
    if not tokens:
        return None
    for category, keywords in CATEGORY_KEYWORDS:
        single_words = [kw for kw in keywords if " " not in kw]
        for tok in tokens:
            res = process.extractOne(tok, single_words, scorer=fuzz.ratio, score_cutoff=cutoff)
            if res:
                logger.debug(f"Fuzzy category hit: '{tok}' ~ '{res[0]}' ({res[1]:.0f}) -> {category}")
                return category
    return None


def infer_category(raw_text: str, fuzzy_cutoff: Optional[int] = None) -> str:
    """Infer a therapeutic category from raw query text; defaults to 'general medicine'."""
    text = (raw_text or "").lower()
    if not text.strip():
        return DEFAULT_CATEGORY

    hit = _exact_hit(text)
    if hit:
        return hit

    cutoff = config.CATEGORY_FUZZY_CUTOFF if fuzzy_cutoff is None else fuzzy_cutoff
    hit = _fuzzy_hit(text, cutoff)
    return hit or DEFAULT_CATEGORY
