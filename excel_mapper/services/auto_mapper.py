from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Sequence

from rapidfuzz import fuzz

from ..models.mapping import ColumnMapping, MappingSet
from ..models.system_field import SystemField
from ..models.workbook import PLACEHOLDER_HEADER_PREFIX

"""Column auto-mapper: pair source headers with SystemFields.

Scoring cascade per (header, candidate) pair, where candidates are the
field's label, id and aliases (all normalized):
  1. exact match                                   -> 100
  2. whole-word containment (either direction)      -> 90
  3. substring containment (both sides >= 4 chars)  -> 85
  4. rapidfuzz ratio on the full strings, or for a single-word header the
     best ratio against one word of the candidate (capped at 90)

Pairs are assigned greedily by descending score, then field order, then
header index, so the result is deterministic and one-to-one.
"""

__all__ = [
    "auto_map",
    "normalize_header",
    "match_score",
    "DEFAULT_THRESHOLD",
]

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 80.0
EXACT_SCORE = 100.0
WORD_CONTAINMENT_SCORE = 90.0
SUBSTRING_SCORE = 85.0
SUBSTRING_MIN_LENGTH = 4
TOKEN_SCORE_CAP = 90.0

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_ALNUM_RE = re.compile(r"[^0-9a-z]+")


def normalize_header(text: str) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace.

    camelCase ids are split ("usdPrice" -> "usd price"); Turkish dotless i
    folds to "i" so "Adı" and "ADI" compare equal.
    """
    if not text:
        return ""
    text = _CAMEL_RE.sub(" ", str(text))
    text = text.replace("ı", "i").replace("İ", "I")
    decomposed = unicodedata.normalize("NFKD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub(" ", stripped).strip()


def _contains_words(outer: list[str], inner: list[str]) -> bool:
    if not inner or len(inner) > len(outer):
        return False
    span = len(inner)
    return any(outer[i:i + span] == inner for i in range(len(outer) - span + 1))


def match_score(header: str, candidate: str) -> float:
    """Similarity (0-100) between two already normalized strings."""
    if not header or not candidate:
        return 0.0
    if header == candidate:
        return EXACT_SCORE

    h_words = header.split()
    c_words = candidate.split()
    if _contains_words(c_words, h_words) or _contains_words(h_words, c_words):
        return WORD_CONTAINMENT_SCORE

    h_flat = header.replace(" ", "")
    c_flat = candidate.replace(" ", "")
    if min(len(h_flat), len(c_flat)) >= SUBSTRING_MIN_LENGTH and (h_flat in c_flat or c_flat in h_flat):
        return SUBSTRING_SCORE

    score = round(fuzz.ratio(header, candidate), 2)
    if len(h_words) == 1 and len(c_words) > 1:
        # abbreviated header against one word of a longer label ("Ad" ~ "Ürün Adı")
        word_best = max(round(fuzz.ratio(header, w), 2) for w in c_words)
        score = max(score, min(word_best, TOKEN_SCORE_CAP))
    return score


def _candidates(field: SystemField) -> list[str]:
    raw = [field.label, field.id, *field.aliases]
    seen: list[str] = []
    for text in raw:
        norm = normalize_header(text)
        if norm and norm not in seen:
            seen.append(norm)
    return seen


def _is_mappable_header(header: str) -> bool:
    if not header or not header.strip():
        return False
    # "Sütun 3" placeholders stand in for blank header cells
    return not header.startswith(PLACEHOLDER_HEADER_PREFIX + " ")


def auto_map(
    headers: Sequence[str],
    fields: Sequence[SystemField],
    threshold: float = DEFAULT_THRESHOLD,
) -> MappingSet:
    """Propose a one-to-one mapping from headers to fields.

    Fields whose best header scores below ``threshold`` stay unmapped.
    Pure and deterministic: identical inputs give identical output.
    """
    normalized = [
        normalize_header(h) if _is_mappable_header(h) else "" for h in headers
    ]
    if not any(normalized):
        logger.info("auto-map: no usable headers (count=%d)", len(headers))
        return MappingSet()

    scored: list[tuple[float, int, int]] = []
    for field_order, field in enumerate(fields):
        candidates = _candidates(field)
        for header_index, header_norm in enumerate(normalized):
            if not header_norm:
                continue
            best = max((match_score(header_norm, c) for c in candidates), default=0.0)
            if best >= threshold:
                scored.append((best, field_order, header_index))

    scored.sort(key=lambda t: (-t[0], t[1], t[2]))

    used_fields: set[int] = set()
    used_columns: set[int] = set()
    chosen: list[tuple[int, ColumnMapping]] = []
    for score, field_order, header_index in scored:
        if field_order in used_fields or header_index in used_columns:
            continue
        field = fields[field_order]
        used_fields.add(field_order)
        used_columns.add(header_index)
        chosen.append((field_order, ColumnMapping.bind(field, headers[header_index], header_index)))
        logger.debug(
            "auto-map: '%s' -> %s (score=%.1f)", headers[header_index], field.id, score
        )

    # present bindings in schema order
    chosen.sort(key=lambda t: t[0])
    result = MappingSet(tuple(m for _, m in chosen))
    logger.info(
        "auto-map: %d/%d fields mapped from %d headers", len(result), len(fields), len(headers)
    )
    return result
