import threading
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from backend.apps.customer_management.models import Quotation
from backend.apps.customer_management.services import quotation_approval
from backend.apps.customer_management.services.quotation_approval import approve, reject, submit
from backend.apps.system_management.models import AuditLog
from backend.core.exceptions import AlreadyFinalized, InvalidTransition
from backend.core.statuses import QuotationStatus, UserRole

from .helpers import make_staff, make_user, quoted_customer


class ApprovalChainTests(TestCase):
    def setUp(self):
        self.staff = make_staff()
        self.customer, self.quotation = quoted_customer(self.staff)

    def test_full_chain_reaches_final_approval(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        self.assertEqual(self.quotation.status, QuotationStatus.PLANT_APPROVED)
        approve(self.quotation, UserRole.REGION_ADMIN, self.staff['region'])
        self.assertEqual(self.quotation.status, QuotationStatus.REGION_APPROVED)
        result = approve(self.quotation, UserRole.SUPER_ADMIN, self.staff['super'])

        self.assertEqual(result.old_status, QuotationStatus.REGION_APPROVED)
        self.assertEqual(result.new_status, QuotationStatus.FINAL_APPROVED)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.FINAL_APPROVED)

    def test_region_admin_cannot_approve_submitted_quotation(self):
        with self.assertRaises(InvalidTransition):
            approve(self.quotation, UserRole.REGION_ADMIN, self.staff['region'])
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.SUBMITTED)

    def test_super_admin_skips_region_approval(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        result = approve(self.quotation, UserRole.SUPER_ADMIN, self.staff['super'])
        self.assertEqual(result.old_status, QuotationStatus.PLANT_APPROVED)
        self.assertEqual(result.new_status, QuotationStatus.FINAL_APPROVED)

    def test_other_role_status_combinations_are_invalid(self):
        for role in (UserRole.CUSTOMER, UserRole.SURVEYOR, UserRole.INSTALLATION_CREW, UserRole.SUPER_ADMIN):
            with self.subTest(role=role):
                with self.assertRaises(InvalidTransition):
                    approve(self.quotation, role)

    def test_draft_cannot_be_approved(self):
        with self.assertRaises(InvalidTransition):
            quotation_approval.next_approval_status(QuotationStatus.DRAFT, UserRole.PLANT_ADMIN)

    def test_submit_only_from_draft(self):
        with self.assertRaises(InvalidTransition):
            submit(self.quotation, self.staff['plant'])

    def test_final_approval_is_terminal(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        approve(self.quotation, UserRole.SUPER_ADMIN, self.staff['super'])
        with self.assertRaises(AlreadyFinalized):
            approve(self.quotation, UserRole.SUPER_ADMIN, self.staff['super'])
        with self.assertRaises(AlreadyFinalized):
            reject(self.quotation, "too late", self.staff['super'])

    def test_reject_requires_reason_and_stores_it(self):
        with self.assertRaises(ValidationError):
            reject(self.quotation, "   ", self.staff['plant'])

        result = reject(self.quotation, "panel price outdated", self.staff['plant'])
        self.assertEqual(result.new_status, QuotationStatus.REJECTED)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.rejection_reason, "panel price outdated")
        with self.assertRaises(AlreadyFinalized):
            approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])

    def test_draft_can_be_rejected(self):
        customer, draft = quoted_customer(self.staff, submit=False)
        self.assertEqual(draft.status, QuotationStatus.DRAFT)

        result = reject(draft, "wrong capacity", self.staff['plant'])
        self.assertEqual(result.old_status, QuotationStatus.DRAFT)
        self.assertEqual(result.new_status, QuotationStatus.REJECTED)
        draft.refresh_from_db()
        self.assertEqual(draft.rejection_reason, "wrong capacity")
        customer.refresh_from_db()
        self.assertEqual(customer.latest_quotation_status, QuotationStatus.REJECTED)

    def test_customer_mirror_follows_latest_quotation(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.latest_quotation_status, QuotationStatus.PLANT_APPROVED)

    def test_every_transition_is_recorded(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'], remarks="ok")
        history = list(quotation_approval.approval_history(self.quotation))

        self.assertEqual([h.action for h in history], ['submit', 'approve'])
        self.assertEqual(history[-1].role, UserRole.PLANT_ADMIN)
        self.assertEqual(history[-1].from_status, QuotationStatus.SUBMITTED)
        self.assertEqual(history[-1].to_status, QuotationStatus.PLANT_APPROVED)
        self.assertTrue(AuditLog.objects.filter(
            entity='Quotation', entity_id=str(self.quotation.pk), action='approve',
            from_status=QuotationStatus.SUBMITTED, to_status=QuotationStatus.PLANT_APPROVED,
        ).exists())

    def test_current_approver_role(self):
        self.assertEqual(self.quotation.current_approver_role, UserRole.PLANT_ADMIN)
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        self.assertEqual(self.quotation.current_approver_role, UserRole.REGION_ADMIN)


class ApprovalConcurrencyTests(TestCase):
    def setUp(self):
        self.staff = make_staff()
        self.customer, self.quotation = quoted_customer(self.staff)

    def test_version_increments_on_each_transition(self):
        version = self.quotation.version
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.version, version + 1)

    def test_racing_approvals_have_exactly_one_winner(self):
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        seen_version = self.quotation.version

        outcomes = []
        for role, actor in ((UserRole.SUPER_ADMIN, self.staff['super']), (UserRole.REGION_ADMIN, self.staff['region'])):
            try:
                approve(self.quotation, role, actor, expected_version=seen_version)
                outcomes.append('ok')
            except (AlreadyFinalized, InvalidTransition) as e:
                outcomes.append(type(e).__name__)

        self.assertEqual(outcomes, ['ok', 'AlreadyFinalized'])
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.FINAL_APPROVED)

    def test_stale_version_on_open_quotation_is_invalid_transition(self):
        seen_version = self.quotation.version
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'], expected_version=seen_version)
        with self.assertRaises(InvalidTransition):
            approve(self.quotation, UserRole.REGION_ADMIN, self.staff['region'], expected_version=seen_version)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.PLANT_APPROVED)

    def test_audit_failure_does_not_roll_back_transition(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError("audit sink down")):
            with self.assertLogs('backend.apps.system_management.audit', level='WARNING'):
                result = approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])

        self.assertFalse(result.audit_recorded)
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.PLANT_APPROVED)


@skipUnlessDBFeature('has_select_for_update')
class ApprovalThreadRaceTests(TransactionTestCase):
    """
    两个线程用同一个版本号同时终审，只能有一个成功

    SQLite 没有行锁（has_select_for_update 为 False），此用例在 SQLite 上跳过，
    需要 PostgreSQL / MySQL 才会真正运行。
    """

    def setUp(self):
        self.staff = make_staff()
        self.other_super = make_user("super_admin_2", UserRole.SUPER_ADMIN)
        _, self.quotation = quoted_customer(self.staff)
        approve(self.quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        self.quotation.refresh_from_db()

    def test_concurrent_final_approvals(self):
        seen_version = self.quotation.version
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def worker(actor):
            try:
                quotation = Quotation.objects.get(pk=self.quotation.pk)
                barrier.wait()
                try:
                    approve(quotation, UserRole.SUPER_ADMIN, actor, expected_version=seen_version)
                    outcome = 'ok'
                except (AlreadyFinalized, InvalidTransition) as e:
                    outcome = type(e).__name__
                with lock:
                    outcomes.append(outcome)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(actor,)) for actor in (self.staff['super'], self.other_super)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        self.assertEqual(sorted(outcomes), ['AlreadyFinalized', 'ok'])
        self.quotation.refresh_from_db()
        self.assertEqual(self.quotation.status, QuotationStatus.FINAL_APPROVED)
        self.assertEqual(self.quotation.version, seen_version + 1)
        finals = [h for h in quotation_approval.approval_history(self.quotation) if h.to_status == QuotationStatus.FINAL_APPROVED]
        self.assertEqual(len(finals), 1)
