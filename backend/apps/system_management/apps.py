from django.apps import AppConfig


class SystemManagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.apps.system_management'
    verbose_name = '系统管理'
