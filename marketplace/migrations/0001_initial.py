import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import marketplace.models
import marketplace.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('name', models.CharField(help_text='Required. Display name shown to other members.', max_length=150, validators=[marketplace.validators.validate_not_blank], verbose_name='name')),
                ('email', models.EmailField(error_messages={'unique': 'An account with this email already exists.'}, help_text='Required. Campus email address.', max_length=254, unique=True, verbose_name='email address')),
                ('avatar_url', models.URLField(blank=True, default='', verbose_name='avatar url')),
                ('edu_verified', models.BooleanField(default=False, help_text='Whether the campus email address was verified.', verbose_name='edu verified')),
                ('id_verified', models.BooleanField(default=False, help_text='Whether a student ID has been uploaded.', verbose_name='id verified')),
                ('id_image', models.ImageField(blank=True, help_text='Uploaded student ID (max 5MB, formats: jpg, png, webp).', null=True, upload_to=marketplace.models.user_id_image_upload_path, validators=[marketplace.validators.validate_id_image], verbose_name='id image')),
                ('bio', models.TextField(blank=True, default='', verbose_name='bio')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['created_at'],
            },
            managers=[
                ('objects', marketplace.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='StoredValue',
            fields=[
                ('key', models.CharField(max_length=255, primary_key=True, serialize=False, verbose_name='key')),
                ('value', models.TextField(verbose_name='value')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
            ],
            options={
                'verbose_name': 'stored value',
                'verbose_name_plural': 'stored values',
            },
        ),
        migrations.CreateModel(
            name='Service',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('title', models.CharField(max_length=200, validators=[marketplace.validators.validate_not_blank], verbose_name='title')),
                ('description', models.TextField(validators=[marketplace.validators.validate_not_blank], verbose_name='description')),
                ('category', models.CharField(choices=[('Moving Help', 'Moving Help'), ('Airport Rides', 'Airport Rides'), ('Tutoring', 'Tutoring'), ('Cleaning', 'Cleaning'), ('Errands', 'Errands'), ('Other', 'Other')], max_length=20, verbose_name='category')),
                ('price', models.DecimalField(decimal_places=2, help_text='Listed price in USD', max_digits=10, validators=[marketplace.validators.validate_positive_amount], verbose_name='price')),
                ('location', models.CharField(max_length=300, validators=[marketplace.validators.validate_not_blank], verbose_name='location')),
                ('date_time', models.DateTimeField(help_text='When the service is scheduled', verbose_name='date and time')),
                ('status', models.CharField(choices=[('active', 'Active'), ('in-progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='active', max_length=20, verbose_name='status')),
                ('image_url', models.URLField(blank=True, default='', verbose_name='image url')),
                ('provider', models.ForeignKey(help_text='Member offering this service', on_delete=django.db.models.deletion.PROTECT, related_name='services', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'service',
                'verbose_name_plural': 'services',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='service_status_idx'),
                    models.Index(fields=['category'], name='service_category_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Bid',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[marketplace.validators.validate_positive_amount], verbose_name='amount')),
                ('message', models.TextField(blank=True, default='', verbose_name='message')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', max_length=20, verbose_name='status')),
                ('bidder', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bids', to=settings.AUTH_USER_MODEL)),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bids', to='marketplace.service')),
            ],
            options={
                'verbose_name': 'bid',
                'verbose_name_plural': 'bids',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['service', 'status'], name='bid_service_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'accepted')), fields=('service',), name='one_accepted_bid_per_service', violation_error_message='This service already has an accepted bid.'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[marketplace.validators.validate_positive_amount], verbose_name='amount')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('refunded', 'Refunded')], default='pending', max_length=20, verbose_name='status')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchases', to=settings.AUTH_USER_MODEL)),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sales', to=settings.AUTH_USER_MODEL)),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='marketplace.service')),
            ],
            options={
                'verbose_name': 'transaction',
                'verbose_name_plural': 'transactions',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['buyer'], name='transaction_buyer_idx'),
                    models.Index(fields=['seller'], name='transaction_seller_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Conversation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('pair_key', models.CharField(blank=True, editable=False, max_length=80)),
                ('initiator', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='initiated_conversations', to=settings.AUTH_USER_MODEL)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='received_conversations', to=settings.AUTH_USER_MODEL)),
                ('service', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='conversations', to='marketplace.service')),
            ],
            options={
                'verbose_name': 'conversation',
                'verbose_name_plural': 'conversations',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('service', 'pair_key'), name='one_conversation_per_pair_per_service', violation_error_message='A conversation already exists for these members and service.'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, editable=False, help_text='Timestamp when the record was created', verbose_name='created at')),
                ('text', models.TextField(validators=[marketplace.validators.validate_not_blank], verbose_name='text')),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='messages', to='marketplace.conversation')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='messages_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['conversation', 'created_at'], name='message_conversation_idx'),
                ],
            },
        ),
    ]
