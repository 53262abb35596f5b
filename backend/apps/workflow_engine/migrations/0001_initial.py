import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('customer_management', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='WorkflowStep',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phase', models.CharField(choices=[('SURVEY', '勘察'), ('INSTALLATION', '安装'), ('COMMISSIONING', '调试'), ('LIVE', '运行')], max_length=20, verbose_name='阶段')),
                ('step_key', models.CharField(max_length=50, verbose_name='工序标识')),
                ('label', models.CharField(max_length=200, verbose_name='工序名称')),
                ('sequence', models.IntegerField(default=1, help_text='数字越小越靠前', verbose_name='工序顺序')),
                ('status', models.CharField(choices=[('pending', '未开始'), ('in_progress', '进行中'), ('completed', '已完成')], default='pending', max_length=20, verbose_name='状态')),
                ('started_time', models.DateTimeField(blank=True, null=True, verbose_name='开始时间')),
                ('completed_time', models.DateTimeField(blank=True, null=True, verbose_name='完成时间')),
                ('notes', models.TextField(blank=True, verbose_name='备注')),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='completed_workflow_steps', to=settings.AUTH_USER_MODEL, verbose_name='完成人')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='workflow_steps', to='customer_management.customer', verbose_name='客户')),
            ],
            options={
                'verbose_name': '阶段工序',
                'verbose_name_plural': '阶段工序',
                'db_table': 'workflow_phase_step',
                'ordering': ['customer', 'phase', 'sequence'],
                'indexes': [models.Index(fields=['customer', 'phase', 'status'], name='workflow_step_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('customer', 'phase', 'step_key'), name='uniq_workflow_step_per_phase')],
            },
        ),
    ]
