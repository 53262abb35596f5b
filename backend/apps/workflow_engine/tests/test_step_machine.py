from django.core.exceptions import ValidationError
from django.test import TestCase

from backend.apps.customer_management.tests.helpers import (
    final_approved_customer,
    make_staff,
    onboarded_customer,
    set_statuses,
)
from backend.apps.customer_management.services import customer_lifecycle
from backend.apps.system_management.models import AuditLog
from backend.apps.workflow_engine.models import WorkflowStep
from backend.apps.workflow_engine.services.step_machine import (
    WORKFLOW_PHASE_TEMPLATES,
    complete_step,
    initialize_phase,
    list_steps,
    phase_progress,
)
from backend.core.exceptions import NotInProgress
from backend.core.statuses import InstallationStatus, Phase, StepStatus, SurveyStatus


class InitializePhaseTests(TestCase):
    def setUp(self):
        self.customer = onboarded_customer()

    def test_steps_follow_template(self):
        steps = initialize_phase(self.customer, Phase.INSTALLATION)
        self.assertEqual([s.label for s in steps], ['Mounting Structure', 'Inverter Installation', 'DC/AC Wiring', 'QC Inspection'])
        self.assertEqual([s.status for s in steps], [StepStatus.IN_PROGRESS] + [StepStatus.PENDING] * 3)
        self.assertIsNotNone(steps[0].started_time)

    def test_initialize_is_idempotent(self):
        first = initialize_phase(self.customer, Phase.INSTALLATION)
        second = initialize_phase(self.customer, Phase.INSTALLATION)
        self.assertEqual([s.pk for s in first], [s.pk for s in second])
        self.assertEqual(WorkflowStep.objects.filter(customer=self.customer).count(), 4)
        self.assertEqual(AuditLog.objects.filter(action='phase_initialized').count(), 1)

    def test_unknown_phase(self):
        with self.assertRaises(ValidationError):
            initialize_phase(self.customer, 'DEMOLITION')

    def test_every_phase_has_a_template(self):
        self.assertEqual(set(WORKFLOW_PHASE_TEMPLATES), set(Phase.values))


class CompleteStepTests(TestCase):
    def setUp(self):
        self.customer = onboarded_customer()
        self.steps = initialize_phase(self.customer, Phase.INSTALLATION)

    def test_pending_step_cannot_be_completed(self):
        mounting, inverter = self.steps[0], self.steps[1]
        with self.assertRaises(NotInProgress):
            complete_step(inverter.pk)

        result = complete_step(mounting.pk, notes="rails anchored")
        self.assertEqual(result.step.status, StepStatus.COMPLETED)
        self.assertEqual(result.step.notes, "rails anchored")
        self.assertEqual(result.next_step.pk, inverter.pk)
        self.assertEqual(result.next_step.status, StepStatus.IN_PROGRESS)
        self.assertFalse(result.phase_completed)

    def test_completed_step_cannot_be_completed_again(self):
        complete_step(self.steps[0].pk)
        with self.assertRaises(NotInProgress):
            complete_step(self.steps[0].pk)

    def test_only_one_step_in_progress(self):
        complete_step(self.steps[0].pk)
        complete_step(self.steps[1].pk)
        in_progress = list_steps(self.customer, Phase.INSTALLATION).filter(status=StepStatus.IN_PROGRESS)
        self.assertEqual([s.step_key for s in in_progress], ['wiring'])

    def test_progress(self):
        complete_step(self.steps[0].pk)
        self.assertEqual(phase_progress(self.customer), [
            {'phase': Phase.INSTALLATION, 'total': 4, 'completed': 1, 'current_step': 'inverter'},
        ])

    def test_completion_is_audited(self):
        complete_step(self.steps[0].pk)
        log = AuditLog.objects.get(action='step_completed')
        self.assertEqual(log.entity_id, str(self.steps[0].pk))
        self.assertEqual(log.phase, Phase.INSTALLATION)


class PhaseCompletionTests(TestCase):
    def setUp(self):
        self.staff = make_staff()

    def _complete_phase(self, customer, phase):
        result = None
        for step in list(list_steps(customer, phase)):
            result = complete_step(step.pk, self.staff['crew'])
        return result

    def test_survey_steps_complete_the_survey(self):
        customer = onboarded_customer()
        customer_lifecycle.assign_survey(customer, 7, self.staff['plant'])
        result = self._complete_phase(customer, Phase.SURVEY)
        self.assertTrue(result.phase_completed)
        customer.refresh_from_db()
        self.assertEqual(customer.survey_status, SurveyStatus.COMPLETED)
        self.assertEqual(customer.installation_status, InstallationStatus.QUOTATION_READY)

    def test_installation_steps_complete_the_installation(self):
        customer, _ = final_approved_customer(self.staff)
        set_statuses(customer, installation_status=InstallationStatus.INSTALLATION_SCHEDULED, assigned_team_id=3)
        customer_lifecycle.start_installation(customer, self.staff['crew'])
        self._complete_phase(customer, Phase.INSTALLATION)
        customer.refresh_from_db()
        self.assertEqual(customer.installation_status, InstallationStatus.INSTALLATION_COMPLETED)

    def test_commissioning_steps_make_the_plant_live(self):
        customer, _ = final_approved_customer(self.staff)
        set_statuses(customer, installation_status=InstallationStatus.QC_APPROVED, assigned_team_id=3)
        customer_lifecycle.start_commissioning(customer, self.staff['crew'])
        self._complete_phase(customer, Phase.COMMISSIONING)
        customer.refresh_from_db()
        self.assertEqual(customer.installation_status, InstallationStatus.COMPLETED)
        live_steps = list(list_steps(customer, Phase.LIVE))
        self.assertEqual(len(live_steps), 3)
        self.assertEqual(live_steps[0].status, StepStatus.IN_PROGRESS)

    def test_phase_completion_without_matching_status_is_noop(self):
        customer = onboarded_customer()
        initialize_phase(customer, Phase.INSTALLATION)
        result = self._complete_phase(customer, Phase.INSTALLATION)
        self.assertTrue(result.phase_completed)
        customer.refresh_from_db()
        self.assertEqual(customer.installation_status, InstallationStatus.ONBOARDED)
