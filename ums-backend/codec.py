"""
Flat-text codec shared by every record kind.

One record is one comma separated line, fields in the model's declaration
order. Values holding a comma, quote or line break are quoted csv-style so
free text (addresses, comments, descriptions) cannot shift the columns;
plain values are written bare, exactly as a raw comma join would.
"""

import csv
import io
from typing import List, Optional, Sequence, Type, TypeVar

from pydantic import ValidationError

from models import Record

R = TypeVar("R", bound=Record)

DELIMITER = ","
LINE_END = "\n"


def field_names(model: Type[Record]) -> List[str]:
    return list(model.model_fields)


def to_row(record: Record) -> List[str]:
    """Field values in column order, as text"""
    return [str(getattr(record, name)) for name in field_names(type(record))]


def from_row(model: Type[R], row: Sequence[str]) -> Optional[R]:
    """Build a record from split fields, or None when the row is unusable"""
    names = field_names(model)
    if len(row) < len(names):
        return None
    try:
        # Trailing extra fields are ignored
        return model(**dict(zip(names, row)))
    except ValidationError:
        return None


def encode(record: Record) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, delimiter=DELIMITER, lineterminator=LINE_END).writerow(to_row(record))
    return buffer.getvalue()[: -len(LINE_END)]


def decode(model: Type[R], line: str) -> Optional[R]:
    try:
        rows = list(csv.reader(io.StringIO(line), delimiter=DELIMITER))
    except csv.Error:
        return None
    if len(rows) != 1:
        return None
    return from_row(model, rows[0])
