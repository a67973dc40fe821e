import django_filters
from django import forms


class IdFilter(django_filters.NumberFilter):
    """Primary-key filter that rejects non-integral values like ``1.5``."""

    field_class = forms.IntegerField
