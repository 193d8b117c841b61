from __future__ import annotations

from ..models.validation import ImportPreview

"""Summary line rendering for a validation preview.

Format:
SUMMARY total={n} valid={n} invalid={n} warnings={n} errors={n} mapped={m}/{f}
"""


def render_summary_line(preview: ImportPreview, mapped_fields: int, total_fields: int) -> str:
    """Render the SUMMARY line for ``preview``.

    Args:
        preview: validator output
        mapped_fields: number of bound system fields
        total_fields: size of the target schema

    Examples:
        >>> p = ImportPreview(total_rows=3, valid_rows=2, invalid_rows=1, warnings=0)
        >>> render_summary_line(p, 5, 12)
        'SUMMARY total=3 valid=2 invalid=1 warnings=0 errors=0 mapped=5/12'
    """
    return (
        f"SUMMARY total={preview.total_rows} "
        f"valid={preview.valid_rows} "
        f"invalid={preview.invalid_rows} "
        f"warnings={preview.warnings} "
        f"errors={preview.error_count} "
        f"mapped={mapped_fields}/{total_fields}"
    )
