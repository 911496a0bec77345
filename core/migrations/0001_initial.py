import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="BillOfLading",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bill_number", models.CharField(max_length=64, unique=True)),
                ("container_number", models.CharField(blank=True, default="", max_length=64)),
                ("status", models.CharField(default="arrived", max_length=32)),
                ("status_before_void", models.CharField(blank=True, default="", max_length=32)),
                ("is_void", models.BooleanField(default=False)),
                ("void_reason", models.TextField(blank=True, default="")),
                ("void_time", models.DateTimeField(blank=True, null=True)),
                ("void_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Bill of lading",
                "verbose_name_plural": "Bills of lading",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SystemConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100, unique=True)),
                ("value", models.TextField(blank=True, default="")),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("updated_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "verbose_name": "System config",
                "verbose_name_plural": "System configs",
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="ApprovalRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("request_no", models.CharField(max_length=32, unique=True)),
                ("request_type", models.CharField(db_index=True, max_length=50)),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("subject_type", models.CharField(
                    choices=[("bill", "Bill of lading"), ("contract", "Contract"), ("user", "User"), ("role", "Role")],
                    max_length=20,
                )),
                ("subject_id", models.CharField(max_length=64)),
                ("payload", models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("priority", models.CharField(
                    choices=[("low", "Low"), ("normal", "Normal"), ("high", "High"), ("urgent", "Urgent")],
                    default="normal",
                    max_length=10,
                )),
                ("status", models.CharField(db_index=True, max_length=40)),
                ("stage_chain", models.JSONField(default=dict)),
                ("current_stage", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("current_approver_role", models.CharField(blank=True, default="", max_length=150)),
                ("requester_name", models.CharField(blank=True, default="", max_length=150)),
                ("reject_reason", models.TextField(blank=True, default="")),
                ("cancel_reason", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("is_executed", models.BooleanField(default=False)),
                ("executed_at", models.DateTimeField(blank=True, null=True)),
                ("execution_result", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("current_approver", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="approval_inbox",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("requester", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="approval_requests",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "current_approver"], name="approval_status_approver_idx"),
                    models.Index(fields=["status", "current_approver_role"], name="approval_status_role_idx"),
                    models.Index(fields=["subject_type", "subject_id"], name="approval_subject_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApprovalStageDecision",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage_index", models.PositiveSmallIntegerField()),
                ("stage_name", models.CharField(max_length=50)),
                ("decision", models.CharField(choices=[("approve", "Approved"), ("reject", "Rejected")], max_length=10)),
                ("approver_name", models.CharField(blank=True, default="", max_length=150)),
                ("comment", models.TextField(blank=True, default="")),
                ("decided_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approver", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("request", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="decisions",
                    to="core.approvalrequest",
                )),
            ],
            options={
                "ordering": ["stage_index"],
                "constraints": [
                    models.UniqueConstraint(fields=("request", "stage_index"), name="uniq_stage_decision"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApprovalHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=20)),
                ("action_name", models.CharField(blank=True, default="", max_length=100)),
                ("actor_name", models.CharField(blank=True, default="", max_length=150)),
                ("actor_role", models.CharField(blank=True, default="", max_length=50)),
                ("comment", models.TextField(blank=True, default="")),
                ("old_status", models.CharField(blank=True, default="", max_length=40)),
                ("new_status", models.CharField(max_length=40)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("actor", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="+",
                    to=settings.AUTH_USER_MODEL,
                )),
                ("request", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="history",
                    to="core.approvalrequest",
                )),
            ],
            options={
                "verbose_name_plural": "Approval history",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("notification_type", models.CharField(
                    choices=[
                        ("new_request", "New request"),
                        ("approved", "Approved"),
                        ("rejected", "Rejected"),
                        ("cancelled", "Cancelled"),
                        ("expired", "Expired"),
                    ],
                    max_length=20,
                )),
                ("title", models.CharField(max_length=255)),
                ("content", models.TextField(blank=True, default="")),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("request", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="notifications",
                    to="core.approvalrequest",
                )),
                ("user", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="approval_notifications",
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["user", "is_read"], name="notification_user_read_idx"),
                ],
            },
        ),
    ]
