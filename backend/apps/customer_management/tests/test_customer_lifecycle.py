from django.core.exceptions import ValidationError
from django.test import TestCase

from backend.apps.customer_management.services import customer_lifecycle as lifecycle
from backend.apps.customer_management.services.crm_store import update_customer_status
from backend.apps.customer_management.services.lifecycle_status import resolve
from backend.apps.customer_management.services.quotation_approval import approve, reject
from backend.apps.settlement_center.services.milestones import customer_milestones, record_payment
from backend.apps.system_management.models import AuditLog
from backend.apps.workflow_engine.models import WorkflowStep
from backend.core.exceptions import InvalidTransition
from backend.core.statuses import (
    CanonicalStatus,
    InstallationStatus,
    MilestoneId,
    Phase,
    QuotationStatus,
    SurveyStatus,
    UserRole,
)

from .helpers import final_approved_customer, make_staff, onboarded_customer, set_statuses, surveyed_customer


class CustomerStoreTests(TestCase):
    def test_only_status_fields_can_be_patched(self):
        customer = onboarded_customer()
        with self.assertRaises(ValueError):
            update_customer_status(customer, name="Someone Else")

    def test_patch_is_applied_to_instance_and_row(self):
        customer = onboarded_customer()
        update_customer_status(customer, assigned_team_id=12)
        self.assertEqual(customer.assigned_team_id, 12)
        customer.refresh_from_db()
        self.assertEqual(customer.assigned_team_id, 12)


class SurveyFlowTests(TestCase):
    def setUp(self):
        self.staff = make_staff()
        self.customer = onboarded_customer(actor=self.staff['plant'])

    def test_onboarding_is_audited(self):
        self.assertEqual(self.customer.survey_status, SurveyStatus.PENDING)
        self.assertEqual(self.customer.installation_status, InstallationStatus.ONBOARDED)
        self.assertTrue(AuditLog.objects.filter(entity='Customer', entity_id=str(self.customer.pk), action='onboard').exists())

    def test_assign_survey_initializes_survey_steps(self):
        lifecycle.assign_survey(self.customer, 7, self.staff['plant'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.survey_status, SurveyStatus.ASSIGNED)
        self.assertEqual(self.customer.assigned_survey_team_id, 7)
        self.assertTrue(WorkflowStep.objects.filter(customer=self.customer, phase=Phase.SURVEY).exists())

    def test_complete_survey_makes_customer_quotable(self):
        lifecycle.assign_survey(self.customer, 7, self.staff['plant'])
        lifecycle.complete_survey(self.customer, self.staff['surveyor'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.survey_status, SurveyStatus.COMPLETED)
        self.assertEqual(self.customer.installation_status, InstallationStatus.QUOTATION_READY)
        self.assertEqual(resolve(self.customer), CanonicalStatus.SURVEY_COMPLETED)

    def test_cannot_complete_unassigned_survey(self):
        with self.assertRaises(InvalidTransition):
            lifecycle.complete_survey(self.customer, self.staff['surveyor'])

    def test_rejected_survey_can_be_reassigned(self):
        lifecycle.assign_survey(self.customer, 7, self.staff['plant'])
        lifecycle.complete_survey(self.customer, self.staff['surveyor'])
        with self.assertRaises(ValidationError):
            lifecycle.reject_survey(self.customer, "", self.staff['plant'])
        lifecycle.reject_survey(self.customer, "roof photos missing", self.staff['plant'])
        self.assertEqual(resolve(self.customer), CanonicalStatus.SURVEY_REJECTED)

        lifecycle.assign_survey(self.customer, 8, self.staff['plant'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.survey_status, SurveyStatus.ASSIGNED)
        # 勘察工序只初始化一次
        self.assertEqual(WorkflowStep.objects.filter(customer=self.customer, phase=Phase.SURVEY).count(), 4)

    def test_approve_survey(self):
        lifecycle.assign_survey(self.customer, 7, self.staff['plant'])
        lifecycle.complete_survey(self.customer, self.staff['surveyor'])
        lifecycle.approve_survey(self.customer, self.staff['plant'])
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.survey_status, SurveyStatus.APPROVED)


class QuotationCreationTests(TestCase):
    def setUp(self):
        self.staff = make_staff()

    def test_quotation_requires_completed_survey(self):
        customer = onboarded_customer()
        with self.assertRaises(InvalidTransition):
            lifecycle.create_quotation(customer, 300000, self.staff['plant'])

    def test_total_must_be_positive(self):
        customer = surveyed_customer(self.staff)
        with self.assertRaises(ValidationError):
            lifecycle.create_quotation(customer, 0, self.staff['plant'])

    def test_create_sets_latest_quotation(self):
        customer = surveyed_customer(self.staff)
        quotation = lifecycle.create_quotation(customer, 300000, self.staff['plant'])
        customer.refresh_from_db()
        self.assertEqual(customer.latest_quotation_id, quotation.pk)
        self.assertEqual(customer.latest_quotation_status, QuotationStatus.DRAFT)
        self.assertTrue(quotation.quotation_number.startswith("QT-"))

    def test_open_quotation_blocks_another(self):
        customer = surveyed_customer(self.staff)
        lifecycle.create_quotation(customer, 300000, self.staff['plant'])
        with self.assertRaises(InvalidTransition):
            lifecycle.create_quotation(customer, 280000, self.staff['plant'])

    def test_new_quotation_after_rejection(self):
        customer = surveyed_customer(self.staff)
        first = lifecycle.create_quotation(customer, 300000, self.staff['plant'], auto_submit=True)
        reject(first, "capacity too high", self.staff['plant'])

        second = lifecycle.create_quotation(customer, 250000, self.staff['plant'])
        customer.refresh_from_db()
        self.assertEqual(customer.latest_quotation_id, second.pk)
        self.assertEqual(customer.latest_quotation_status, QuotationStatus.DRAFT)
        self.assertNotEqual(first.quotation_number, second.quotation_number)

    def test_survey_cannot_be_rejected_with_open_quotation(self):
        customer = surveyed_customer(self.staff)
        lifecycle.create_quotation(customer, 300000, self.staff['plant'])
        with self.assertRaises(InvalidTransition):
            lifecycle.reject_survey(customer, "wrong roof area", self.staff['plant'])

    def test_auto_submit_is_recorded_as_system(self):
        customer = surveyed_customer(self.staff)
        quotation = lifecycle.create_quotation(customer, 300000, self.staff['plant'], auto_submit=True)
        quotation.refresh_from_db()
        self.assertEqual(quotation.status, QuotationStatus.SUBMITTED)
        self.assertIsNone(quotation.approvals.get().actor)
        self.assertEqual(customer.latest_quotation_status, QuotationStatus.SUBMITTED)


class InstallationFlowTests(TestCase):
    def setUp(self):
        self.staff = make_staff()

    def _pay(self, customer, milestone_id):
        milestone = next(m for m in customer_milestones(customer) if m.id == milestone_id)
        record_payment(customer, milestone_id, milestone.amount)
        customer.refresh_from_db()

    def test_final_approval_then_payment_is_installation_ready(self):
        customer, _ = final_approved_customer(self.staff)
        self.assertEqual(customer.installation_status, InstallationStatus.QUOTATION_READY)
        self._pay(customer, MilestoneId.M1)
        self.assertEqual(customer.installation_status, InstallationStatus.INSTALLATION_READY)
        self.assertEqual(resolve(customer), CanonicalStatus.PAYMENT_RECEIVED)

    def test_payment_waits_for_final_approval(self):
        customer = surveyed_customer(self.staff)
        quotation = lifecycle.create_quotation(customer, 300000, self.staff['plant'], auto_submit=True)
        customer.refresh_from_db()
        with self.assertRaises(InvalidTransition):
            self._pay(customer, MilestoneId.M1)

        approve(quotation, UserRole.PLANT_ADMIN, self.staff['plant'])
        approve(quotation, UserRole.SUPER_ADMIN, self.staff['super'])
        customer.refresh_from_db()
        self.assertEqual(customer.installation_status, InstallationStatus.QUOTATION_READY)
        self._pay(customer, MilestoneId.M1)
        self.assertEqual(customer.installation_status, InstallationStatus.INSTALLATION_READY)

    def test_team_required_before_scheduling(self):
        customer, _ = final_approved_customer(self.staff)
        self._pay(customer, MilestoneId.M1)
        with self.assertRaises(InvalidTransition):
            lifecycle.schedule_installation(customer, self.staff['plant'])

    def test_team_cannot_be_assigned_before_final_approval(self):
        customer = surveyed_customer(self.staff)
        with self.assertRaises(InvalidTransition):
            lifecycle.assign_install_team(customer, 3, self.staff['plant'])

    def test_installation_cannot_skip_scheduling(self):
        customer, _ = final_approved_customer(self.staff)
        self._pay(customer, MilestoneId.M1)
        lifecycle.assign_install_team(customer, 3, self.staff['plant'])
        with self.assertRaises(InvalidTransition):
            lifecycle.start_installation(customer, self.staff['crew'])

    def test_qc_rejection_loops_back(self):
        customer, _ = final_approved_customer(self.staff)
        set_statuses(customer, installation_status=InstallationStatus.INSTALLATION_COMPLETED, assigned_team_id=3)
        lifecycle.request_qc(customer, self.staff['crew'])
        lifecycle.mark_qc(customer, False, self.staff['plant'], remarks="loose DC connectors")
        self.assertEqual(customer.installation_status, InstallationStatus.QC_REJECTED)
        lifecycle.request_qc(customer, self.staff['crew'])
        lifecycle.mark_qc(customer, True, self.staff['plant'])
        self.assertEqual(customer.installation_status, InstallationStatus.QC_APPROVED)

    def test_commissioning_requires_qc_approval(self):
        customer, _ = final_approved_customer(self.staff)
        set_statuses(customer, installation_status=InstallationStatus.QC_PENDING)
        with self.assertRaises(InvalidTransition):
            lifecycle.start_commissioning(customer, self.staff['crew'])

    def test_every_transition_is_audited(self):
        customer, _ = final_approved_customer(self.staff)
        self._pay(customer, MilestoneId.M1)
        self.assertTrue(AuditLog.objects.filter(
            entity='Customer', entity_id=str(customer.pk), action='payment_received',
            from_status=InstallationStatus.QUOTATION_READY, to_status=InstallationStatus.INSTALLATION_READY,
        ).exists())
