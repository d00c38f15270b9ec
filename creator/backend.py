"""
Exam backend – the collaborator the exam manager talks to.

``ExamBackend`` is the contract; ``DatabaseExamBackend`` fulfils it in-process
through ``ExamService`` and hands back plain records, the same shape the JSON
API serves.
"""
from abc import ABC, abstractmethod

from core.scheduling.records import ExamDateRecord, ExamTypeRecord, LocationRef
from core.services import ExamService, ExamServiceError, NotFound


class BackendError(Exception):
    """A backend call failed; ``server_message`` is what the server reported."""

    def __init__(self, server_message=None, status_code=None, errors=None):
        super().__init__(server_message or '')
        self.server_message = server_message
        self.status_code = status_code
        self.errors = errors or {}


class BackendNotFound(BackendError):
    pass


class ExamBackend(ABC):

    @abstractmethod
    def list_exams(self, organization_id):
        """All exam types of an organization, each with nested dates."""

    @abstractmethod
    def create_exam_type(self, payload):
        pass

    @abstractmethod
    def update_exam_type(self, exam_type_id, payload):
        pass

    @abstractmethod
    def delete_exam_type(self, exam_type_id):
        pass

    @abstractmethod
    def add_exam_date(self, exam_type_id, payload):
        pass

    @abstractmethod
    def update_exam_date(self, exam_date_id, payload):
        pass

    @abstractmethod
    def delete_exam_date(self, exam_date_id):
        pass

    @abstractmethod
    def set_exam_date_status(self, exam_date_id, status):
        pass

    @abstractmethod
    def sweep_expired_exam_dates(self):
        """Returns ``{'updated_count': n}``."""

    @abstractmethod
    def resolve_current_organization(self, user):
        pass

    @abstractmethod
    def list_locations(self, organization_id):
        pass


def _translate(exc):
    error_class = BackendNotFound if isinstance(exc, NotFound) else BackendError
    return error_class(exc.message, status_code=exc.status_code, errors=exc.errors)


class DatabaseExamBackend(ExamBackend):
    """Backend scoped to one organization, calling the ORM service directly."""

    def __init__(self, organization_id=None):
        self.organization_id = organization_id

    def _call(self, method, *args, **kwargs):
        try:
            return method(*args, **kwargs)
        except ExamServiceError as exc:
            raise _translate(exc) from exc

    def list_exams(self, organization_id):
        exam_types = self._call(ExamService.list_exams, organization_id)
        return [ExamTypeRecord.from_dict(exam_type.to_dict()) for exam_type in exam_types]

    def create_exam_type(self, payload):
        organization_id = payload.get('organization_id') or self.organization_id
        exam_type = self._call(ExamService.create_exam_type, organization_id, payload)
        return ExamTypeRecord.from_dict(exam_type.to_dict())

    def update_exam_type(self, exam_type_id, payload):
        exam_type = self._call(
            ExamService.update_exam_type, exam_type_id, self.organization_id, payload
        )
        return ExamTypeRecord.from_dict(exam_type.to_dict())

    def delete_exam_type(self, exam_type_id):
        self._call(ExamService.delete_exam_type, exam_type_id, self.organization_id)

    def add_exam_date(self, exam_type_id, payload):
        exam_date = self._call(
            ExamService.add_exam_date, exam_type_id, self.organization_id, payload
        )
        return ExamDateRecord.from_dict(exam_date.to_dict())

    def update_exam_date(self, exam_date_id, payload):
        exam_date = self._call(
            ExamService.update_exam_date, exam_date_id, self.organization_id, payload
        )
        return ExamDateRecord.from_dict(exam_date.to_dict())

    def delete_exam_date(self, exam_date_id):
        self._call(ExamService.delete_exam_date, exam_date_id, self.organization_id)

    def set_exam_date_status(self, exam_date_id, status):
        exam_date = self._call(
            ExamService.set_exam_date_status, exam_date_id, self.organization_id, status
        )
        return ExamDateRecord.from_dict(exam_date.to_dict())

    def sweep_expired_exam_dates(self):
        return self._call(ExamService.sweep_expired_exam_dates)

    def resolve_current_organization(self, user):
        organization = ExamService.resolve_current_organization(user)
        return organization.to_dict() if organization else None

    def list_locations(self, organization_id):
        return [
            LocationRef.from_dict(location.to_dict())
            for location in self._call(ExamService.list_locations, organization_id)
        ]
