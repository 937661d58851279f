from typing import Iterable

from sqlalchemy import ColumnElement, or_
from sqlalchemy.orm import InstrumentedAttribute


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def substring_match(
    columns: Iterable[InstrumentedAttribute], term: str
) -> ColumnElement[bool]:
    """Case-insensitive substring match of ``term`` against any column."""
    pattern = f"%{escape_like(term)}%"
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))
