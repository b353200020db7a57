import time

import pytest

from api_schema import MedicineRecord
from catalog import CatalogError, InMemoryCatalog


def make_record(id, name, generic_name="", category="general medicine", who_approved=False, **extra):
    return MedicineRecord(id=id, name=name, generic_name=generic_name, category=category,
                          who_approved=who_approved, **extra)


@pytest.fixture
def records():
    return [
        make_record("P2", "Panadol Extra", "Paracetamol + Caffeine", "Analgesic", True),
        make_record("P1", "Panadol", "Paracetamol", "Analgesic", True, barcode="8964000000011"),
        make_record("B1", "Brufen 400mg", "Ibuprofen", "Analgesic", True, strength=["400mg"]),
        make_record("A1", "Augmentin 625mg", "Amoxicillin + Clavulanic Acid", "Antibiotic", True),
        make_record("F1", "Flagyl 400mg", "Metronidazole", "Antibiotic", False,
                    side_effects=["Metallic taste", "Nausea"]),
    ]


@pytest.fixture
def catalog(records):
    return InMemoryCatalog(records)


class FailingCatalog:
    """Every query errors."""

    def __init__(self):
        self.calls = []

    def search(self, field, term, limit):
        self.calls.append((field, term))
        raise CatalogError("connection refused")

    def sample(self, limit):
        raise CatalogError("connection refused")

    def find_by_barcode(self, barcode):
        raise CatalogError("connection refused")


class PartiallyFailingCatalog(InMemoryCatalog):
    """generic_name lookups error, everything else answers."""

    def search(self, field, term, limit):
        if field == "generic_name":
            raise CatalogError("generic index offline")
        return super().search(field, term, limit)


class SlowCatalog(InMemoryCatalog):
    def __init__(self, records=None, delay=0.5):
        super().__init__(records)
        self.delay = delay

    def search(self, field, term, limit):
        time.sleep(self.delay)
        return super().search(field, term, limit)


@pytest.fixture
def failing_catalog():
    return FailingCatalog()
