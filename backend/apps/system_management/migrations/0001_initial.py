import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('phone', models.CharField(blank=True, max_length=20, verbose_name='手机号')),
                ('role', models.CharField(choices=[('CUSTOMER', '客户'), ('SURVEYOR', '勘察员'), ('PLANT_ADMIN', '电站管理员'), ('REGION_ADMIN', '区域管理员'), ('SUPER_ADMIN', '超级管理员'), ('INSTALLATION_CREW', '安装班组')], default='CUSTOMER', max_length=30, verbose_name='角色')),
                ('plant_code', models.CharField(blank=True, max_length=50, verbose_name='所属电站')),
                ('region_code', models.CharField(blank=True, max_length=50, verbose_name='所属区域')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, verbose_name='创建时间')),
                ('updated_time', models.DateTimeField(auto_now=True, verbose_name='更新时间')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': '用户',
                'verbose_name_plural': '用户',
                'db_table': 'system_user',
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('actor_role', models.CharField(blank=True, max_length=30, verbose_name='操作人角色')),
                ('action', models.CharField(max_length=50, verbose_name='动作')),
                ('entity', models.CharField(help_text='如 Quotation、Customer、WorkflowStep', max_length=50, verbose_name='对象类型')),
                ('entity_id', models.CharField(max_length=64, verbose_name='对象ID')),
                ('phase', models.CharField(blank=True, max_length=20, verbose_name='阶段')),
                ('from_status', models.CharField(blank=True, max_length=50, verbose_name='原状态')),
                ('to_status', models.CharField(blank=True, max_length=50, verbose_name='新状态')),
                ('meta', models.JSONField(blank=True, default=dict, verbose_name='附加信息')),
                ('created_time', models.DateTimeField(default=django.utils.timezone.now, verbose_name='发生时间')),
                ('actor', models.ForeignKey(blank=True, help_text='为空表示系统自动操作', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to=settings.AUTH_USER_MODEL, verbose_name='操作人')),
            ],
            options={
                'verbose_name': '审计日志',
                'verbose_name_plural': '审计日志',
                'db_table': 'system_audit_log',
                'ordering': ['-created_time'],
                'indexes': [
                    models.Index(fields=['entity', 'entity_id'], name='system_audi_entity_7c1f2e_idx'),
                    models.Index(fields=['action'], name='system_audi_action_3b9d41_idx'),
                ],
            },
        ),
    ]
