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
            name='Exam',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('category', models.CharField(choices=[('IELTS', 'IELTS'), ('SAT', 'SAT'), ('TOEFL', 'TOEFL'), ('GENERAL_ENGLISH', 'General English'), ('KIDS', 'Kids'), ('MATH', 'Math')], max_length=20)),
                ('track', models.CharField(blank=True, max_length=50)),
                ('navigation_override', models.CharField(blank=True, choices=[('LINEAR', 'Linear lock (modules in order)'), ('IELTS', 'IELTS (section-type boundaries)'), ('FREE', 'Free navigation')], max_length=10)),
                ('is_active', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_exams', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Section',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('READING', 'Reading'), ('LISTENING', 'Listening'), ('WRITING', 'Writing'), ('SPEAKING', 'Speaking'), ('GRAMMAR', 'Grammar'), ('VOCABULARY', 'Vocabulary')], max_length=20)),
                ('title', models.CharField(max_length=255)),
                ('duration_min', models.PositiveIntegerField()),
                ('order', models.PositiveIntegerField(default=0)),
                ('instruction', models.JSONField(blank=True, default=dict)),
                ('exam', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sections', to='exams.exam')),
            ],
            options={
                'ordering': ['order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qtype', models.CharField(choices=[('MCQ_SINGLE', 'Multiple choice (single)'), ('MCQ_MULTI', 'Multiple choice (multi)'), ('TF', 'True / False'), ('GAP', 'Gap fill'), ('SELECT', 'Select'), ('ORDER_SENTENCE', 'Order the sentence'), ('DND_GAP', 'Drag and drop gaps'), ('DND_MATCH', 'Drag and drop matching'), ('SHORT_TEXT', 'Short text'), ('ESSAY', 'Essay')], max_length=20)),
                ('prompt', models.JSONField(default=dict)),
                ('options', models.JSONField(blank=True, default=dict)),
                ('answer_key', models.JSONField(blank=True, null=True)),
                ('max_score', models.PositiveIntegerField(default=1)),
                ('order', models.PositiveIntegerField(default=0)),
                ('explanation', models.TextField(blank=True)),
                ('section', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='questions', to='exams.section')),
            ],
            options={
                'ordering': ['order', 'id'],
            },
        ),
    ]
