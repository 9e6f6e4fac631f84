from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Customer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('phone', models.CharField(blank=True, db_index=True, max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'bookings_customer',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='GroundSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('day_rate', models.DecimalField(decimal_places=2, max_digits=10)),
                ('night_rate', models.DecimalField(decimal_places=2, max_digits=10)),
                ('night_start_hour', models.PositiveSmallIntegerField()),
                ('night_end_hour', models.PositiveSmallIntegerField()),
                ('advance_minimum', models.DecimalField(decimal_places=2, max_digits=10)),
                ('pending_hold_minutes', models.PositiveIntegerField()),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'bookings_ground_settings',
                'verbose_name_plural': 'ground settings',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('night_start_hour__lte', 23)), name='night_start_in_day'),
                    models.CheckConstraint(condition=models.Q(('night_end_hour__lte', 23)), name='night_end_in_day'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('booking_number', models.CharField(max_length=32, unique=True)),
                ('booking_date', models.DateField(db_index=True)),
                ('total_hours', models.PositiveIntegerField()),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('advance_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('advance_method', models.CharField(blank=True, max_length=32)),
                ('advance_proof', models.CharField(blank=True, max_length=500)),
                ('remaining_due', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('remaining_paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('remaining_method', models.CharField(blank=True, max_length=32)),
                ('remaining_proof', models.CharField(blank=True, max_length=500)),
                ('remaining_cash_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('remaining_online_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('remaining_online_method', models.CharField(blank=True, max_length=32)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('pending_expires_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_reason', models.TextField(blank=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('customer_notes', models.TextField(blank=True)),
                ('admin_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='bookings.customer')),
            ],
            options={
                'db_table': 'bookings_booking',
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('advance_amount__gte', 0)), name='booking_advance_non_negative'),
                    models.CheckConstraint(condition=models.Q(('remaining_due__gte', 0)), name='booking_remaining_non_negative'),
                    models.CheckConstraint(condition=models.Q(('discount_amount__gte', 0)), name='booking_discount_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slot_date', models.DateField()),
                ('slot_hour', models.PositiveSmallIntegerField()),
                ('hourly_rate', models.DecimalField(decimal_places=2, max_digits=10)),
                ('is_night_rate', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('available', 'Available'), ('pending', 'Pending'), ('booked', 'Booked'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='slots', to='bookings.booking')),
            ],
            options={
                'db_table': 'bookings_slot',
                'ordering': ['slot_date', 'slot_hour'],
                'indexes': [models.Index(fields=['slot_date', 'slot_hour'], name='slot_date_hour_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'cancelled'), _negated=True), fields=('slot_date', 'slot_hour'), name='unique_active_slot'),
                    models.CheckConstraint(condition=models.Q(('slot_hour__lte', 23)), name='slot_hour_in_day'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('notification_type', models.CharField(choices=[('new_booking', 'New booking'), ('booking_approved', 'Booking approved'), ('booking_cancelled', 'Booking cancelled'), ('payment_completed', 'Payment completed')], max_length=32)),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High')], default='normal', max_length=10)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='bookings.booking')),
            ],
            options={
                'db_table': 'bookings_notification',
                'ordering': ['-created_at'],
            },
        ),
    ]
