"""Interview constants shared across the SDK.

Field names mirror the ``field`` keys in ``data/questions.yaml``; the
decision engine and the intake coordinator look answers up by them.

Several constants can be overridden via environment variables so that
deployments can tune extraction behaviour without code changes.
"""

import os

# --- Answer-map field names consumed by the decision engine ---
DATE_OF_BIRTH_FIELD = "dateOfBirth"
HEIGHT_FIELD = "height"
WEIGHT_FIELD = "weight"
SMOKING_FIELD = "smoking"
MEDICAL_CONDITIONS_FIELD = os.getenv("MEDICAL_CONDITIONS_FIELD", "medicalConditions")
INCOME_FIELD = "annualIncome"
COVERAGE_FIELD = "coverageAmount"

# Date format used by date-type questions (DD/MM/YYYY)
DATE_FORMAT = "%d/%m/%Y"

# Replacement text for sensitive answers in the transcript
SENSITIVE_MASK = "••••••"

DEFAULT_TENANT_ID = os.getenv("DEFAULT_TENANT_ID", "demo-tenant")

# --- Condition dictionary ---
DICTIONARY_MIN_QUERY_LENGTH = 2
DICTIONARY_SEARCH_LIMIT = 10

# --- Extraction ---
# Keyword fallback caps its hits and synthesises confidence in this range.
KEYWORD_FALLBACK_LIMIT = int(os.getenv("KEYWORD_FALLBACK_LIMIT", "5"))
KEYWORD_CONFIDENCE_MIN = 0.75
KEYWORD_CONFIDENCE_MAX = 0.95

# Confidence assigned to provider terms that carry none
DEFAULT_CANDIDATE_CONFIDENCE = 0.8

# Characters of context kept either side of a term in evidence snippets
SNIPPET_CONTEXT_CHARS = int(os.getenv("SNIPPET_CONTEXT_CHARS", "60"))

# Text handed to condition providers is truncated to this many characters
EXTRACTION_PROMPT_MAX_CHARS = int(os.getenv("EXTRACTION_PROMPT_MAX_CHARS", "4000"))

# Substituted when text extraction fails and fallback is enabled
FALLBACK_DOCUMENT_TEXT = (
    "Patient presents with history of asthma and hypertension. "
    "Current medications include inhaler and blood pressure medication."
)

# What to do with an extracted term that matches no dictionary entry
UNMATCHED_POLICIES = ("default", "unresolved", "drop")
UNRESOLVED_CODE = "UNRESOLVED"

EXTRACTION_TIMEOUT_MESSAGE = "Extraction timeout. Please try again."

# --- Uploads ---
ALLOWED_UPLOAD_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "image/jpeg": "jpeg",
    "image/png": "png",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "text/plain": "txt",
}
