from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase

from backend.apps.system_management.audit import audit_event
from backend.apps.system_management.models import AuditLog
from backend.core.statuses import UserRole

User = get_user_model()


class AuditEventTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="plant1", password="pass123456", role=UserRole.PLANT_ADMIN)

    def test_records_actor_role_and_transition(self):
        log = audit_event(self.user, 'Quotation', 12, 'approve', from_status='SUBMITTED', to_status='PLANT_APPROVED')

        self.assertIsNotNone(log)
        log.refresh_from_db()
        self.assertEqual(log.actor, self.user)
        self.assertEqual(log.actor_role, UserRole.PLANT_ADMIN)
        self.assertEqual(log.entity_id, '12')
        self.assertEqual(log.from_status, 'SUBMITTED')
        self.assertEqual(log.to_status, 'PLANT_APPROVED')

    def test_system_actor_is_allowed(self):
        log = audit_event(None, 'Customer', 3, 'payment_received', to_status='INSTALLATION_READY')
        self.assertIsNone(log.actor)
        self.assertEqual(log.actor_role, '')

    def test_storage_failure_warns_and_returns_none(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError("audit table locked")):
            with self.assertLogs('backend.apps.system_management.audit', level='WARNING') as logs:
                result = audit_event(self.user, 'Quotation', 1, 'approve')

        self.assertIsNone(result)
        self.assertIn('审计日志写入失败', logs.output[0])
        self.assertEqual(AuditLog.objects.count(), 0)
