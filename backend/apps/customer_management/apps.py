from django.apps import AppConfig


class CustomerManagementConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.apps.customer_management'
    verbose_name = '客户管理'
