"""
UnitEcon Finance Engine - Import / Export Documents
=====================================================
Document shape:
    {"data": Dataset, "scenarios": ScenarioMap, "export_date": ISO-8601}

Import is all-or-nothing: parse_import_document() either returns the
new Dataset and scenarios or raises ImportRejectedError with a
user-facing message.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Tuple

from engines.finance.dataset import COLLECTION_KEYS, Dataset, ScenarioMap, is_computable
from engines.finance.errors import ImportRejectedError

EMPTY_DOCUMENT = "Invalid JSON string provided"
MISSING_SECTIONS = "Invalid data structure: missing data or scenarios"
LISTS_EXPECTED = (
    "Invalid data structure: lists expected for menus, utilities, labor, and fixed_costs"
)
FAILED_PRECHECK = "Imported data failed validation"


def build_export_document(
    dataset: Mapping[str, Any],
    scenarios: Mapping[str, Any],
    exported_at: str,
    extra: Optional[Mapping[str, Any]] = None,
) -> str:
    document = {
        "data": dataset,
        "scenarios": scenarios,
        "export_date": exported_at,
    }
    if extra:
        document.update(extra)
    return json.dumps(document, indent=2, ensure_ascii=False, default=str)


def parse_import_document(text: Any) -> Tuple[Dataset, ScenarioMap]:
    if not isinstance(text, str) or not text.strip():
        raise ImportRejectedError(EMPTY_DOCUMENT)

    try:
        document = json.loads(text)
    except ValueError as exc:
        raise ImportRejectedError(f"JSON parsing failed: {exc}") from exc

    if not isinstance(document, Mapping):
        raise ImportRejectedError(MISSING_SECTIONS)
    data = document.get("data")
    scenarios = document.get("scenarios")
    if not data or not scenarios:
        raise ImportRejectedError(MISSING_SECTIONS)
    if not isinstance(data, Mapping) or not isinstance(scenarios, Mapping):
        raise ImportRejectedError(MISSING_SECTIONS)

    if not all(isinstance(data.get(key), list) for key in COLLECTION_KEYS):
        raise ImportRejectedError(LISTS_EXPECTED)

    if not is_computable(data):
        raise ImportRejectedError(FAILED_PRECHECK)

    return dict(data), dict(scenarios)
