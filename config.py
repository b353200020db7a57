import os

# Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Which catalog backend to read from: "memory" (JSON file loaded at startup) or "supabase"
CATALOG_BACKEND = os.getenv("CATALOG_BACKEND", "memory")

# Path to the medicines reference file ({"medicines": [...]}) for the in-memory catalog
MEDICINES_FILE = os.getenv("MEDICINES_FILE", "model_assets/medicines.json")

# Supabase / PostgREST table holding the registered medicines
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "medicines")

# Per-lookup timeout in seconds for catalog queries
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "5.0"))

# Matching knobs
SEARCH_RESULT_LIMIT = int(os.getenv("SEARCH_RESULT_LIMIT", "10"))
MAX_SEARCH_TERMS = int(os.getenv("MAX_SEARCH_TERMS", "3"))
CATEGORY_SAMPLE_LIMIT = int(os.getenv("CATEGORY_SAMPLE_LIMIT", "10"))
ALTERNATIVES_LIMIT = int(os.getenv("ALTERNATIVES_LIMIT", "3"))

# rapidfuzz ratio needed for an OCR-garbled token to count as a category keyword
CATEGORY_FUZZY_CUTOFF = int(os.getenv("CATEGORY_FUZZY_CUTOFF", "88"))

# Rows per upsert request during bulk import
IMPORT_BATCH_SIZE = int(os.getenv("IMPORT_BATCH_SIZE", "100"))

# Thread pool size for parallel catalog lookups (3 terms x 2 fields)
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "6"))
