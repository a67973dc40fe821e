from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('notification_type', models.CharField(choices=[('task_assigned', 'Task Assigned'), ('task_updated', 'Task Updated'), ('task_status_updated', 'Task Status Updated'), ('task_reassigned', 'Task Reassigned'), ('task_unassigned', 'Task Unassigned'), ('task_due_soon', 'Task Due Soon'), ('meeting_assigned', 'Meeting Assigned'), ('meeting_updated', 'Meeting Updated'), ('meeting_status_updated', 'Meeting Status Updated'), ('meeting_rescheduled', 'Meeting Rescheduled'), ('meeting_reassigned', 'Meeting Reassigned'), ('meeting_unassigned', 'Meeting Unassigned'), ('friend_request', 'Friend Request'), ('friend_accepted', 'Friend Request Accepted'), ('friend_rejected', 'Friend Request Rejected'), ('new_follower', 'New Follower'), ('new_message', 'New Message'), ('project_invite', 'Project Invite'), ('team_invite', 'Team Invite'), ('session_invite', 'Code Session Invite'), ('other', 'Other')], default='other', max_length=50)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('related_link', models.CharField(blank=True, default='', max_length=500)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['recipient', 'is_read'], name='notif_recipient_read_idx')],
            },
        ),
    ]
