from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any, Literal, Union

DEFAULT_CATEGORY = "general medicine"
DEFAULT_AUTHENTICITY = "unknown"


def _to_text_list(v) -> List[str]:
    if v is None or v == "":
        return []
    if isinstance(v, (list, tuple)):
        return [str(x).strip() for x in v if x is not None and str(x).strip()]
    return [str(v).strip()]


class MedicineRecord(BaseModel):
    """One registered medicine. Accepts both the import file's camelCase keys and table snake_case columns."""
    model_config = ConfigDict(populate_by_name=True)

    id: str                                                     # stable upsert key
    name: str = ""                                              # brand / trade name
    generic_name: str = Field("", alias="genericName")
    strength: List[str] = Field(default_factory=list)           # first entry is the display dosage
    manufacturer: str = ""
    registration_number: str = Field("", alias="registrationNumber")
    category: str = DEFAULT_CATEGORY
    authenticity_status: str = Field(DEFAULT_AUTHENTICITY, alias="authenticityStatus")
    who_approved: bool = Field(False, alias="whoApproved")
    side_effects: List[str] = Field(default_factory=list, alias="sideEffects")
    alternatives: List[str] = Field(default_factory=list)       # curated hints, may not resolve
    barcode: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _require_id(cls, v):
        v = "" if v is None else str(v).strip()
        if not v:
            raise ValueError("medicine id must be non-empty")
        return v

    @field_validator("name", "generic_name", "manufacturer", "registration_number", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, v):
        v = "" if v is None else str(v).strip()
        return v or DEFAULT_CATEGORY

    @field_validator("authenticity_status", mode="before")
    @classmethod
    def _default_authenticity(cls, v):
        v = "" if v is None else str(v).strip()
        return v or DEFAULT_AUTHENTICITY

    @field_validator("who_approved", mode="before")
    @classmethod
    def _strict_true(cls, v):
        return v is True

    @field_validator("strength", "side_effects", "alternatives", mode="before")
    @classmethod
    def _listify(cls, v):
        return _to_text_list(v)

    @field_validator("barcode", mode="before")
    @classmethod
    def _empty_barcode(cls, v):
        v = "" if v is None else str(v).strip()
        return v or None

    @property
    def primary_strength(self) -> Optional[str]:
        return self.strength[0] if self.strength else None


# -------------------------
# Match results (tagged by `status`)
# -------------------------
class Matched(BaseModel):
    status: Literal["matched"] = "matched"
    record: MedicineRecord
    safety_score: int
    match_type: str                 # 'exact', 'first-token', 'scored', 'barcode'
    score: Optional[int] = None     # containment score, only for 'scored'


class Alternative(BaseModel):
    record: MedicineRecord
    safety_score: int


class NotFound(BaseModel):
    status: Literal["not_found"] = "not_found"
    inferred_category: str
    alternatives: List[Alternative] = Field(default_factory=list)


class CatalogUnavailable(BaseModel):
    status: Literal["catalog_unavailable"] = "catalog_unavailable"
    message: str = "Medicine catalog could not be reached. Please try again."


MatchResult = Union[Matched, NotFound, CatalogUnavailable]


class VerificationAttempt(BaseModel):
    raw_query: str
    canonical_name: str
    outcome: Optional[MatchResult] = None   # None: line had no usable name and was skipped


# -------------------------
# Request / response bodies
# -------------------------
class NormalizeRequest(BaseModel):
    text: str


class NormalizeResponse(BaseModel):
    canonical_name: str
    short_key: str


class VerifyMedicineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    medicine_name: Optional[str] = Field(None, alias="medicineName")


class VerifyTextRequest(BaseModel):
    text: str


class VerifyTextResponse(BaseModel):
    results: List[VerificationAttempt]


class ImportRequest(BaseModel):
    medicines: List[Dict[str, Any]]


class ImportReport(BaseModel):
    total: int
    inserted: int
    errors: int
