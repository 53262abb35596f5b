import django.db.models.deletion
import django.utils.timezone
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
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('milestone_id', models.CharField(choices=[('M1', '勘察完成'), ('M2', '安装开工'), ('M3', '安装完成'), ('M4', '调试并网')], max_length=5, verbose_name='里程碑')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14, verbose_name='付款金额')),
                ('currency', models.CharField(default='INR', max_length=10, verbose_name='币种')),
                ('status', models.CharField(choices=[('PENDING', '处理中'), ('COMPLETED', '已完成'), ('FAILED', '失败')], default='COMPLETED', max_length=20, verbose_name='状态')),
                ('idempotency_key', models.CharField(help_text='客户端重试时携带同一个键，不会重复扣款', max_length=100, unique=True, verbose_name='幂等键')),
                ('reference', models.CharField(blank=True, max_length=200, verbose_name='支付流水号')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, verbose_name='付款时间')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='solar_payments', to=settings.AUTH_USER_MODEL, verbose_name='付款人')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='customer_management.customer', verbose_name='客户')),
                ('quotation', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='customer_management.quotation', verbose_name='报价单')),
            ],
            options={
                'verbose_name': '里程碑付款',
                'verbose_name_plural': '里程碑付款',
                'db_table': 'settlement_milestone_payment',
                'ordering': ['customer', 'milestone_id', 'created_time'],
                'indexes': [models.Index(fields=['customer', 'status'], name='settle_pay_cust_status_idx')],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status', 'COMPLETED')), fields=('customer', 'milestone_id'), name='uniq_completed_payment_per_milestone')],
            },
        ),
    ]
