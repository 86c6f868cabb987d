import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import donations.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='DonorProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('donor_id', models.CharField(max_length=64, unique=True)),
                ('full_name', models.CharField(blank=True, max_length=120)),
                ('blood_group', models.CharField(blank=True, choices=[('O-', 'O-'), ('O+', 'O+'), ('A-', 'A-'), ('A+', 'A+'), ('B-', 'B-'), ('B+', 'B+'), ('AB-', 'AB-'), ('AB+', 'AB+')], max_length=3)),
                ('address', models.CharField(blank=True, max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20)),
            ],
            options={
                'ordering': ['full_name', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('external_id', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('title', models.CharField(max_length=160)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('event_date', models.DateTimeField(blank=True, null=True)),
                ('assigned_hospital_name', models.CharField(blank=True, max_length=160)),
                ('assigned_hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='events', to='inventory.hospital')),
            ],
            options={
                'ordering': ['-event_date', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Unit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('external_id', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('donor_id', models.CharField(db_index=True, max_length=64)),
                ('donor_name', models.CharField(blank=True, max_length=120)),
                ('blood_type', models.CharField(blank=True, max_length=8)),
                ('serial_number', models.CharField(max_length=64)),
                ('amount_ml', models.PositiveIntegerField()),
                ('donation_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('expiry_date', models.DateTimeField(blank=True, null=True)),
                ('storage_status', models.CharField(choices=[('stored', 'Stored'), ('used', 'Used'), ('rejected', 'Rejected'), ('cancelled', 'Cancelled'), ('no-show', 'No-show')], db_index=True, default='stored', max_length=12)),
                ('used_at', models.DateTimeField(blank=True, null=True)),
                ('donation_type', models.CharField(blank=True, max_length=20)),
                ('created_by', models.CharField(blank=True, max_length=60)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_units', to='inventory.hospital')),
                ('used_hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='used_units', to='inventory.hospital')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('external_id', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('donor_id', models.CharField(db_index=True, default=donations.models.walk_in_donor_id, max_length=64)),
                ('scheduled_date', models.DateTimeField()),
                ('raw_status', models.CharField(default='pending', max_length=20)),
                ('hospital_name', models.CharField(blank=True, max_length=160)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('entry_type', models.CharField(choices=[('appointment', 'Appointment'), ('event', 'Event'), ('walk_in', 'Walk-in')], default='appointment', max_length=12)),
                ('event_title', models.CharField(blank=True, max_length=160)),
                ('selected_time', models.CharField(blank=True, max_length=40)),
                ('confirmation_code', models.CharField(blank=True, max_length=40)),
                ('donor_name', models.CharField(blank=True, max_length=120)),
                ('donor_address', models.CharField(blank=True, max_length=255)),
                ('donor_blood_type', models.CharField(blank=True, max_length=8)),
                ('reject_reason', models.CharField(blank=True, max_length=255)),
                ('cancel_reason', models.CharField(blank=True, max_length=255)),
                ('no_show_reason', models.CharField(blank=True, max_length=255)),
                ('notes', models.TextField(blank=True)),
                ('created_by', models.CharField(blank=True, max_length=60)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('event', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to='donations.event')),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to='inventory.hospital')),
                ('unit', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='donations.unit')),
            ],
            options={
                'ordering': ['-scheduled_date', '-id'],
            },
        ),
    ]
