"""
Database-backed services shared by the JSON API and the creator screens.
"""
from .exams import ExamService, ExamServiceError, NotFound, Rejected

__all__ = ['ExamService', 'ExamServiceError', 'NotFound', 'Rejected']
