import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Task name', max_length=200)),
                ('importance', models.IntegerField(default=0, help_text='Importance rating from 0 (none) to 50 (highest)', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(50)])),
                ('complexity', models.IntegerField(default=3, help_text='Complexity rating from 1 (trivial) to 9 (hardest)', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(9)])),
                ('points', models.IntegerField(default=0, editable=False, help_text='Derived score, recomputed on every save', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(500)])),
                ('planned_date', models.DateField(blank=True, help_text='Planned day (optional)', null=True)),
                ('due_date', models.DateField(blank=True, help_text='Due day (optional)', null=True)),
                ('is_completed', models.BooleanField(default=False)),
                ('position', models.FloatField(default=0, help_text='Sibling ordering key; higher values sort earlier')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='subtasks', to='priorities.task')),
            ],
            options={
                'ordering': ['-position', '-created_at'],
            },
        ),
    ]
