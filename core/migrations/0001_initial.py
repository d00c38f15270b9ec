import django.core.validators
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
            name='Organization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when created', null=True)),
                ('updated_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when last updated', null=True)),
                ('name', models.CharField(max_length=200, unique=True)),
                ('is_active', models.BooleanField(default=True)),
            ],
            options={
                'db_table': 'organizations',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when created', null=True)),
                ('updated_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when last updated', null=True)),
                ('location_name', models.CharField(max_length=200)),
                ('capacity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='locations', to='core.organization')),
            ],
            options={
                'db_table': 'locations',
                'ordering': ['location_name'],
            },
        ),
        migrations.AddConstraint(
            model_name='location',
            constraint=models.UniqueConstraint(fields=('organization', 'location_name'), name='unique_organization_location'),
        ),
        migrations.CreateModel(
            name='OrganizationAdmin',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when created', null=True)),
                ('updated_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when last updated', null=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='admins', to='core.organization')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='organization_admin', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'organization_admins',
            },
        ),
        migrations.CreateModel(
            name='ExamType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when created', null=True)),
                ('updated_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when last updated', null=True)),
                ('name', models.CharField(max_length=200)),
                ('code_name', models.CharField(max_length=30)),
                ('description', models.TextField(blank=True, default='')),
                ('price', models.DecimalField(decimal_places=2, default=0, max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('registration_deadline', models.DateTimeField(blank=True, null=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='exam_types', to='core.organization')),
            ],
            options={
                'db_table': 'exam_types',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='ExamDate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when created', null=True)),
                ('updated_at', models.IntegerField(blank=True, default=None, help_text='UTC Unix timestamp when last updated', null=True)),
                ('scheduled_at', models.DateTimeField(db_index=True)),
                ('location', models.CharField(blank=True, default='', max_length=200)),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='upcoming', max_length=20)),
                ('current_registrations', models.PositiveIntegerField(default=0)),
                ('exam_type', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='exam_dates', to='core.examtype')),
            ],
            options={
                'db_table': 'exam_dates',
                'ordering': ['scheduled_at'],
                'permissions': [('can_sweep_exam_dates', 'Can mark expired exam dates as completed')],
            },
        ),
        migrations.CreateModel(
            name='ExamDateLocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('priority', models.PositiveIntegerField(default=0)),
                ('exam_date', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='location_links', to='core.examdate')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.RESTRICT, related_name='exam_date_links', to='core.location')),
            ],
            options={
                'db_table': 'exam_date_locations',
                'ordering': ['priority', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='examdatelocation',
            constraint=models.UniqueConstraint(fields=('exam_date', 'location'), name='unique_exam_date_location'),
        ),
        migrations.AddField(
            model_name='examdate',
            name='locations',
            field=models.ManyToManyField(blank=True, related_name='exam_dates', through='core.ExamDateLocation', to='core.location'),
        ),
    ]
