from django.apps import AppConfig


class SettlementCenterConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.apps.settlement_center'
    verbose_name = '结算中心'
