import django_filters

from collabhub.core.filters import IdFilter
from collabhub.projects.models import Priority
from collabhub.tasks.models import Task


class TaskFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Task.Status.choices)
    priority = django_filters.ChoiceFilter(choices=Priority.choices)
    assign_to = IdFilter(field_name="assign_to_id")
    assigned_by = IdFilter(field_name="assigned_by_id")

    class Meta:
        model = Task
        fields = ["status", "priority", "assign_to", "assigned_by"]
