import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CompanySequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("next_value", models.BigIntegerField(default=1)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sequences", to="accounts.company")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uniq_company_sequence_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("code", models.CharField(max_length=20)),
                ("name", models.CharField(max_length=255)),
                ("account_type", models.CharField(choices=[("ASSET", "Asset"), ("LIABILITY", "Liability"), ("EQUITY", "Equity"), ("REVENUE", "Revenue"), ("EXPENSE", "Expense")], max_length=20)),
                ("subtype", models.CharField(blank=True, default="", max_length=50)),
                ("normal_balance", models.CharField(choices=[("DEBIT", "Debit"), ("CREDIT", "Credit")], editable=False, max_length=10)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("INACTIVE", "Inactive")], default="ACTIVE", max_length=20)),
                ("description", models.TextField(blank=True, default="")),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("balance_refreshed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="accounts", to="accounts.company")),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="accounting.account")),
            ],
            options={
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["company", "account_type"], name="acct_company_type_idx"),
                    models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uniq_account_code_per_company"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountingPeriod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=100)),
                ("period_type", models.CharField(choices=[("MONTHLY", "Monthly"), ("QUARTERLY", "Quarterly"), ("ANNUAL", "Annual")], max_length=20)),
                ("fiscal_year", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1900), django.core.validators.MaxValueValidator(2100)])),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=[("OPEN", "Open"), ("CLOSED", "Closed"), ("LOCKED", "Locked")], default="OPEN", max_length=10)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.CharField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("closed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="closed_periods", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="accounting_periods", to="accounts.company")),
            ],
            options={
                "ordering": ["start_date"],
                "indexes": [
                    models.Index(fields=["company", "start_date", "end_date"], name="period_company_range_idx"),
                    models.Index(fields=["company", "status"], name="period_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "start_date", "end_date"), name="uniq_period_range_per_company"),
                    models.CheckConstraint(condition=models.Q(("end_date__gt", models.F("start_date"))), name="chk_period_end_after_start"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("entry_number", models.CharField(blank=True, default="", help_text="Allocated when the entry is posted", max_length=50)),
                ("date", models.DateField()),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("memo", models.CharField(blank=True, default="", max_length=255)),
                ("entry_type", models.CharField(choices=[("MANUAL", "Manual"), ("SYSTEM", "System"), ("CLOSING", "Closing")], default="MANUAL", max_length=20)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("POSTED", "Posted"), ("VOIDED", "Voided")], default="DRAFT", max_length=12)),
                ("source_kind", models.CharField(blank=True, choices=[("manual", "Manual"), ("invoice", "Invoice"), ("bill", "Bill"), ("payment", "Payment"), ("period_close", "Period close"), ("void", "Void")], default="", max_length=20)),
                ("source_id", models.CharField(blank=True, default="", max_length=100)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("closes_period", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="closing_entries", to="accounting.accountingperiod")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="journal_entries", to="accounts.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_journal_entries", to=settings.AUTH_USER_MODEL)),
                ("posted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="posted_journal_entries", to=settings.AUTH_USER_MODEL)),
                ("reverses_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="reversal_entry", to="accounting.journalentry")),
                ("voided_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="voided_journal_entries", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-date", "-id"],
                "indexes": [
                    models.Index(fields=["company", "date", "id"], name="je_company_date_idx"),
                    models.Index(fields=["company", "status"], name="je_company_status_idx"),
                    models.Index(fields=["company", "entry_type"], name="je_company_type_idx"),
                    models.Index(fields=["company", "source_kind", "source_id"], name="je_company_source_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("entry_number", ""), _negated=True), fields=("company", "entry_number"), name="uniq_entry_number_per_company"),
                    models.UniqueConstraint(condition=models.Q(("entry_type", "CLOSING"), ("status__in", ["DRAFT", "POSTED"])), fields=("closes_period",), name="uniq_live_closing_entry_per_period"),
                ],
            },
        ),
        migrations.AddField(
            model_name="accountingperiod",
            name="closing_entry",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="accounting.journalentry"),
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("public_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("line_no", models.PositiveIntegerField()),
                ("memo", models.CharField(blank=True, default="", max_length=255)),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="journal_lines", to="accounting.account")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="journal_lines", to="accounts.company")),
                ("entry", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="accounting.journalentry")),
            ],
            options={
                "ordering": ["entry", "line_no"],
                "indexes": [
                    models.Index(fields=["company", "entry"], name="jl_company_entry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("entry", "line_no"), name="uniq_journal_line_no"),
                    models.CheckConstraint(condition=models.Q(models.Q(("credit__gt", 0), ("debit__gt", 0)), _negated=True), name="chk_line_not_both_debit_credit"),
                    models.CheckConstraint(condition=models.Q(models.Q(("credit__exact", 0), ("debit__exact", 0)), _negated=True), name="chk_line_not_both_zero"),
                    models.CheckConstraint(condition=models.Q(("credit__gte", 0), ("debit__gte", 0)), name="chk_line_non_negative"),
                ],
            },
        ),
    ]
