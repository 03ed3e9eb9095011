"""
Field identity and alias layer.

Identifiers are derived from the ordinal position of a column (fid_0, fid_1, ...),
so they never depend on column names or on display aliases. The only contract is
that the schema call and the following record calls see the same column order.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from constants import FIELD_ID_PREFIX, RECORD_ID_FALLBACK_PREFIX, TYPE_TEXT
from engine.models import FieldAlias, FieldDescriptor, Record
from engine.values import convert


def field_identifier(ordinal: int) -> str:
    return f"{FIELD_ID_PREFIX}{ordinal}"


def alias_map(aliases: Iterable[FieldAlias]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for a in aliases:
        # no-op aliases are skipped so the source name stays visible
        if a.display_name and a.display_name != a.source_name:
            out[a.source_name] = a.display_name
    return out


def apply_aliases(fields: Sequence[FieldDescriptor], aliases: Iterable[FieldAlias]) -> List[FieldDescriptor]:
    mapping = alias_map(aliases)
    if not mapping:
        return list(fields)
    return [
        replace(f, display_name=mapping[f.source_name]) if f.source_name in mapping else f
        for f in fields
    ]


def ensure_single_primary(fields: Sequence[FieldDescriptor]) -> List[FieldDescriptor]:
    """
    Exactly one field comes out primary: the first source-designated primary
    column, or the first column when the source designates none.
    """
    if not fields:
        return []
    chosen = next((i for i, f in enumerate(fields) if f.is_primary), 0)
    return [
        f if f.is_primary == (i == chosen) else replace(f, is_primary=(i == chosen))
        for i, f in enumerate(fields)
    ]


def build_records(
    rows: Iterable[Sequence[Any]],
    fields: Sequence[FieldDescriptor],
    offset: int,
    keyed: bool = True,
) -> List[Record]:
    """
    Records keyed by field identifier. With ``keyed`` the primary value becomes the
    record id; without a source key every record is addressed by its row position.
    """
    primary = next((f for f in fields if f.is_primary), None) if keyed else None
    used: Set[str] = set()
    records: List[Record] = []
    for i, row in enumerate(rows):
        position = offset + i
        values = {f.identifier: convert(_cell(row, f.ordinal), f.type_category) for f in fields}
        raw_id = _cell(row, primary.ordinal) if primary is not None else None
        record_id = _record_id(raw_id, position, used)
        used.add(record_id)
        records.append(Record(record_id=record_id, values=values, position=position))
    return records


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _record_id(raw: Any, position: int, used: Set[str]) -> str:
    candidate: Optional[str] = None
    if raw is not None:
        candidate = str(convert(raw, TYPE_TEXT))
    if candidate and candidate not in used:
        return candidate
    fallback = f"{RECORD_ID_FALLBACK_PREFIX}{position}"
    while fallback in used:
        fallback += "_"
    return fallback
