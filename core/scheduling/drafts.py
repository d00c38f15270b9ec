"""
Form-state drafts fed to the validation engine.

Date fields carry whatever the form produced: wall-clock text, a datetime,
or blank.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


def coerce_ids(values):
    """Keep the integer-looking ids, in order, without duplicates."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    ids = []
    for value in values:
        text = str(value).strip()
        if text.isdigit() and int(text) not in ids:
            ids.append(int(text))
    return ids


def coerce_text(value):
    """Scalars from a JSON body as text; objects, arrays and booleans become blank."""
    if value is None or isinstance(value, bool):
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return ''


@dataclass
class ExamDateDraft:
    date: object = ''
    location_ids: List[int] = field(default_factory=list)
    # Legacy free-text venue, kept for dates created before halls existed
    location: str = ''
    # Set when the payload row was not an object at all
    malformed: bool = False

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            return cls(malformed=True)
        return cls(
            date=data.get('date') or '',
            location_ids=coerce_ids(data.get('location_ids')),
            location=coerce_text(data.get('location')),
        )


@dataclass
class ExamTypeDraft:
    name: str = ''
    code_name: str = ''
    description: str = ''
    price: object = '0'
    registration_deadline: object = None
    exam_dates: List[ExamDateDraft] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data):
        rows = data.get('exam_dates') or []
        if not isinstance(rows, list):
            rows = [rows]
        price = data.get('price', '0')
        return cls(
            name=coerce_text(data.get('name')),
            code_name=coerce_text(data.get('code_name')),
            description=coerce_text(data.get('description')),
            price=None if price is None else str(price),
            registration_deadline=data.get('registration_deadline'),
            exam_dates=[ExamDateDraft.from_payload(row) for row in rows],
        )


@dataclass
class ExamDateEditDraft:
    date: object = ''
    location_ids: List[int] = field(default_factory=list)
    registration_deadline: Optional[object] = None
    location: str = ''

    @classmethod
    def from_payload(cls, data):
        return cls(
            date=data.get('date') or '',
            location_ids=coerce_ids(data.get('location_ids')),
            registration_deadline=data.get('registration_deadline'),
            location=coerce_text(data.get('location')),
        )
