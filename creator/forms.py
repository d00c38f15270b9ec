"""
Forms for the Manage Exams screen.

The exam forms post repeated date rows as indexed fields
(``exam_date_0``, ``location_ids_0``, ``exam_date_1`` …); the helpers below
turn a POST into the drafts the exam manager validates.
"""
from django import forms

from core.scheduling.derivation import ALL_STATUSES
from core.scheduling.drafts import ExamDateDraft, ExamDateEditDraft, ExamTypeDraft, coerce_ids
from core.scheduling.lifecycle import STATUS_CHOICES

MAX_DATE_ROWS = 50


class ExamFilterForm(forms.Form):
    """Search box and status dropdown above the exam table."""
    search = forms.CharField(
        required=False, max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Search by name or code'}),
    )
    status = forms.ChoiceField(
        required=False,
        choices=[(ALL_STATUSES, 'All statuses')] + STATUS_CHOICES,
        widget=forms.Select(attrs={'class': 'form-select'}),
    )

    def clean_search(self):
        return (self.cleaned_data.get('search') or '').strip()

    def clean_status(self):
        return self.cleaned_data.get('status') or ALL_STATUSES


class StatusChangeForm(forms.Form):
    status = forms.ChoiceField(choices=STATUS_CHOICES)


def _date_rows(post):
    """Indexed date rows in the order the form posted them."""
    rows = []
    for index in range(MAX_DATE_ROWS):
        key = f'exam_date_{index}'
        if key not in post:
            break
        rows.append(ExamDateDraft(
            date=post.get(key, ''),
            location_ids=coerce_ids(post.getlist(f'location_ids_{index}')),
            location=post.get(f'location_{index}', ''),
        ))
    return rows


def exam_type_draft_from_post(post, include_dates=True):
    return ExamTypeDraft(
        name=post.get('name', ''),
        code_name=post.get('code_name', ''),
        description=post.get('description', ''),
        price=post.get('price', '0'),
        registration_deadline=post.get('registration_deadline') or None,
        exam_dates=_date_rows(post) if include_dates else [],
    )


def exam_date_draft_from_post(post):
    return ExamDateDraft(
        date=post.get('exam_date', ''),
        location_ids=coerce_ids(post.getlist('location_ids')),
        location=post.get('location', ''),
    )


def exam_date_edit_draft_from_post(post):
    return ExamDateEditDraft(
        date=post.get('exam_date', ''),
        location_ids=coerce_ids(post.getlist('location_ids')),
        registration_deadline=post.get('registration_deadline') or None,
        location=post.get('location', ''),
    )
