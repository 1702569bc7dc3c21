from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("accounting", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("sequence", models.BigIntegerField()),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("running_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("account_code", models.CharField(max_length=20)),
                ("entry_number", models.CharField(blank=True, default="", max_length=50)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="accounting.account")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="ledger_entries", to="accounts.company")),
                ("journal_entry", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="accounting.journalentry")),
                ("journal_line", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entry", to="accounting.journalline")),
            ],
            options={
                "ordering": ["date", "sequence"],
                "indexes": [
                    models.Index(fields=["company", "account", "date", "sequence"], name="ledger_account_order_idx"),
                    models.Index(fields=["company", "date", "sequence"], name="ledger_company_order_idx"),
                    models.Index(fields=["company", "journal_entry"], name="ledger_company_entry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "sequence"), name="uniq_ledger_sequence_per_company"),
                ],
            },
        ),
    ]
