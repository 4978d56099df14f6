import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contracts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="EscrowTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("hold", "Hold"), ("release", "Release to artist"), ("refund", "Refund to client")], db_index=True, max_length=10)),
                ("party", models.CharField(choices=[("client", "Client"), ("artist", "Artist")], max_length=10)),
                ("amount_cents", models.PositiveBigIntegerField()),
                ("idempotency_key", models.CharField(max_length=120, unique=True)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="escrow_transactions", to="contracts.contract")),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
