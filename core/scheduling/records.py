"""
In-memory exam records as returned by the exam API.

``from_dict`` accepts the JSON shape produced by ``ExamType.to_dict()``.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .timestamps import parse_wall_clock


@dataclass(frozen=True)
class LocationRef:
    id: int
    name: str
    capacity: int = 0
    priority: int = 0

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data.get('location_name') or data.get('name', ''),
            capacity=int(data.get('capacity') or 0),
            priority=int(data.get('priority') or 0),
        )


@dataclass(frozen=True)
class ExamDateRecord:
    id: int
    exam_type_id: int
    scheduled_at: Optional[datetime]
    status: str
    locations: Optional[tuple] = None
    legacy_location: str = ''
    current_registrations: int = 0
    max_participants: int = 0

    @classmethod
    def from_dict(cls, data, exam_type_id=None):
        locations = data.get('locations')
        return cls(
            id=data['id'],
            exam_type_id=data.get('exam_type_id', exam_type_id),
            scheduled_at=parse_wall_clock(data.get('date')),
            status=data.get('status', 'upcoming'),
            locations=(
                tuple(LocationRef.from_dict(loc) for loc in locations)
                if locations is not None else None
            ),
            legacy_location=data.get('location') or '',
            current_registrations=int(data.get('current_registrations') or 0),
            max_participants=int(data.get('max_participants') or 0),
        )


@dataclass(frozen=True)
class ExamTypeRecord:
    id: int
    name: str
    code_name: str
    description: str = ''
    price: Decimal = Decimal('0')
    registration_deadline: Optional[datetime] = None
    exam_dates: tuple = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            code_name=data.get('code_name', ''),
            description=data.get('description') or '',
            price=Decimal(str(data.get('price') or '0')),
            registration_deadline=parse_wall_clock(data.get('registration_deadline')),
            exam_dates=tuple(
                ExamDateRecord.from_dict(d, exam_type_id=data['id'])
                for d in data.get('exam_dates') or []
            ),
        )

    def find_date(self, exam_date_id):
        for exam_date in self.exam_dates:
            if exam_date.id == exam_date_id:
                return exam_date
        return None


def find_exam_date(exam_types: List[ExamTypeRecord], exam_date_id):
    """Look up a date across all loaded exam types."""
    for exam_type in exam_types:
        found = exam_type.find_date(exam_date_id)
        if found is not None:
            return found
    return None
