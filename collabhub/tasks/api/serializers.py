from rest_framework import serializers

from collabhub.core.refs import RelatedSummaryField
from collabhub.core.refs import project_summary
from collabhub.projects.models import Priority
from collabhub.tasks.models import Task


class TaskSerializer(serializers.ModelSerializer):
    assign_to = RelatedSummaryField("assign_to")
    assigned_by = RelatedSummaryField("assigned_by")
    project = RelatedSummaryField("project", render=project_summary)

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "status",
            "priority",
            "assign_to",
            "assigned_by",
            "project",
            "due_date",
            "tags",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=Priority.choices, default=Priority.MEDIUM)
    assign_to = serializers.IntegerField()
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, default=list
    )
    project = serializers.IntegerField(required=False, allow_null=True)


class TaskUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=Priority.choices, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    project = serializers.IntegerField(required=False, allow_null=True)


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.Status.choices)


class TaskReassignSerializer(serializers.Serializer):
    assign_to = serializers.IntegerField()
