import django_filters

from collabhub.core.filters import IdFilter
from collabhub.meetings.models import Meeting


class MeetingFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Meeting.Status.choices)
    type = django_filters.ChoiceFilter(choices=Meeting.Type.choices)
    assigned_to = IdFilter(field_name="assigned_to_id")
    assigned_by = IdFilter(field_name="assigned_by_id")

    class Meta:
        model = Meeting
        fields = ["status", "type", "assigned_to", "assigned_by"]
