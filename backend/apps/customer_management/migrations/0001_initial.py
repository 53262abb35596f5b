import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


SURVEY_STATUS_CHOICES = [('PENDING', '待分配'), ('ASSIGNED', '已分配'), ('COMPLETED', '已完成'), ('APPROVED', '已审核'), ('REJECTED', '已驳回')]
INSTALLATION_STATUS_CHOICES = [
    ('ONBOARDED', '已登记'), ('QUOTATION_READY', '可报价'), ('INSTALLATION_READY', '已收款待安装'),
    ('INSTALLATION_SCHEDULED', '已排期'), ('INSTALLATION_STARTED', '安装中'), ('INSTALLATION_COMPLETED', '安装完成'),
    ('QC_PENDING', '待质检'), ('QC_APPROVED', '质检通过'), ('QC_REJECTED', '质检驳回'),
    ('COMMISSIONING', '调试中'), ('COMPLETED', '已并网'),
]
QUOTATION_STATUS_CHOICES = [
    ('DRAFT', '草稿'), ('SUBMITTED', '已提交'), ('PLANT_APPROVED', '电站审批通过'),
    ('REGION_APPROVED', '区域审批通过'), ('FINAL_APPROVED', '终审通过'), ('REJECTED', '已驳回'),
]


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
                ('name', models.CharField(max_length=200, verbose_name='客户名称')),
                ('phone', models.CharField(blank=True, max_length=20, verbose_name='联系电话')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='邮箱')),
                ('city', models.CharField(blank=True, max_length=100, verbose_name='城市')),
                ('state', models.CharField(blank=True, max_length=100, verbose_name='省/邦')),
                ('property_type', models.CharField(choices=[('residential', '住宅'), ('commercial', '商业'), ('industrial', '工业')], default='residential', max_length=20, verbose_name='物业类型')),
                ('monthly_bill', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='月电费')),
                ('plant_code', models.CharField(blank=True, max_length=50, verbose_name='所属电站')),
                ('survey_status', models.CharField(choices=SURVEY_STATUS_CHOICES, default='PENDING', max_length=20, verbose_name='勘察状态')),
                ('installation_status', models.CharField(choices=INSTALLATION_STATUS_CHOICES, default='ONBOARDED', max_length=30, verbose_name='安装状态')),
                ('latest_quotation_status', models.CharField(blank=True, choices=QUOTATION_STATUS_CHOICES, help_text='与最新报价单状态保持同步', max_length=20, null=True, verbose_name='最新报价状态')),
                ('assigned_survey_team_id', models.IntegerField(blank=True, null=True, verbose_name='勘察班组ID')),
                ('assigned_team_id', models.IntegerField(blank=True, null=True, verbose_name='安装班组ID')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, verbose_name='创建时间')),
                ('updated_time', models.DateTimeField(auto_now=True, verbose_name='更新时间')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_solar_customers', to=settings.AUTH_USER_MODEL, verbose_name='创建人')),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='solar_customer', to=settings.AUTH_USER_MODEL, verbose_name='客户账号')),
            ],
            options={
                'verbose_name': '光伏客户',
                'verbose_name_plural': '光伏客户',
                'db_table': 'solar_customer',
                'ordering': ['-created_time'],
                'indexes': [
                    models.Index(fields=['survey_status'], name='solar_cust_survey_idx'),
                    models.Index(fields=['installation_status'], name='solar_cust_install_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Quotation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quotation_number', models.CharField(help_text='格式：QT-{YYYYMMDD}-{序列号}', max_length=50, unique=True, verbose_name='报价单号')),
                ('total', models.DecimalField(decimal_places=2, max_digits=14, verbose_name='报价总额')),
                ('currency', models.CharField(default='INR', max_length=10, verbose_name='币种')),
                ('proposed_capacity_kw', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, verbose_name='装机容量(kW)')),
                ('status', models.CharField(choices=QUOTATION_STATUS_CHOICES, default='DRAFT', max_length=20, verbose_name='审批状态')),
                ('rejection_reason', models.TextField(blank=True, verbose_name='驳回原因')),
                ('version', models.PositiveIntegerField(default=1, help_text='每次状态变更自增，用于乐观并发控制', verbose_name='版本号')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, help_text='里程碑到期日的计算基准', verbose_name='创建时间')),
                ('updated_time', models.DateTimeField(auto_now=True, verbose_name='更新时间')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_solar_quotations', to=settings.AUTH_USER_MODEL, verbose_name='创建人')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='quotations', to='customer_management.customer', verbose_name='客户')),
            ],
            options={
                'verbose_name': '报价单',
                'verbose_name_plural': '报价单',
                'db_table': 'solar_quotation',
                'ordering': ['-created_time'],
                'indexes': [
                    models.Index(fields=['customer', 'status'], name='solar_quot_cust_status_idx'),
                ],
            },
        ),
        migrations.AddField(
            model_name='customer',
            name='latest_quotation',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='customer_management.quotation', verbose_name='最新报价单'),
        ),
        migrations.CreateModel(
            name='QuotationApproval',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('submit', '提交'), ('approve', '审批通过'), ('reject', '驳回')], max_length=20, verbose_name='动作')),
                ('role', models.CharField(blank=True, max_length=30, verbose_name='操作时角色')),
                ('from_status', models.CharField(choices=QUOTATION_STATUS_CHOICES, max_length=20, verbose_name='原状态')),
                ('to_status', models.CharField(choices=QUOTATION_STATUS_CHOICES, max_length=20, verbose_name='新状态')),
                ('remarks', models.TextField(blank=True, verbose_name='备注')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, verbose_name='操作时间')),
                ('actor', models.ForeignKey(blank=True, help_text='为空表示系统自动提交', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='solar_quotation_approvals', to=settings.AUTH_USER_MODEL, verbose_name='操作人')),
                ('quotation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='approvals', to='customer_management.quotation', verbose_name='报价单')),
            ],
            options={
                'verbose_name': '报价审批记录',
                'verbose_name_plural': '报价审批记录',
                'db_table': 'solar_quotation_approval',
                'ordering': ['created_time', 'id'],
            },
        ),
    ]
