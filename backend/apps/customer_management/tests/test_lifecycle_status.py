from types import SimpleNamespace

from django.test import SimpleTestCase

from backend.apps.customer_management.services.lifecycle_status import (
    progress_timeline,
    resolve,
    resolve_status,
)
from backend.core.statuses import (
    CanonicalStatus,
    InstallationStatus,
    QuotationStatus,
    SurveyStatus,
)


def lead(survey=SurveyStatus.PENDING, install=InstallationStatus.ONBOARDED, quotation=None):
    return SimpleNamespace(survey_status=survey, installation_status=install, latest_quotation_status=quotation)


class ResolvePrecedenceTests(SimpleTestCase):
    def test_new_lead_is_new_request(self):
        self.assertEqual(resolve(lead()), CanonicalStatus.NEW_REQUEST)

    def test_installation_status_beats_quotation_status(self):
        customer = lead(SurveyStatus.APPROVED, InstallationStatus.INSTALLATION_STARTED, QuotationStatus.FINAL_APPROVED)
        self.assertEqual(resolve(customer), 'Installation Started')

    def test_installation_labels(self):
        expected = {
            InstallationStatus.INSTALLATION_READY: 'Payment Received',
            InstallationStatus.INSTALLATION_SCHEDULED: 'Installation Scheduled',
            InstallationStatus.INSTALLATION_COMPLETED: 'Installation Done',
            InstallationStatus.QC_PENDING: 'QC Pending',
            InstallationStatus.QC_APPROVED: 'QC Approved',
            InstallationStatus.QC_REJECTED: 'QC Rejected',
            InstallationStatus.COMMISSIONING: 'Commissioning',
            InstallationStatus.COMPLETED: 'Live',
        }
        for install, label in expected.items():
            with self.subTest(install=install):
                self.assertEqual(resolve(lead(SurveyStatus.COMPLETED, install, QuotationStatus.FINAL_APPROVED)), label)

    def test_quotation_status_beats_survey_status(self):
        expected = {
            QuotationStatus.DRAFT: 'Survey Completed',
            QuotationStatus.SUBMITTED: 'Quotation Submitted',
            QuotationStatus.PLANT_APPROVED: 'Approved (Plant)',
            QuotationStatus.REGION_APPROVED: 'Approved (Region)',
            QuotationStatus.FINAL_APPROVED: 'Final Approved',
            QuotationStatus.REJECTED: 'Quotation Rejected',
        }
        for quotation, label in expected.items():
            with self.subTest(quotation=quotation):
                customer = lead(SurveyStatus.APPROVED, InstallationStatus.QUOTATION_READY, quotation)
                self.assertEqual(resolve(customer), label)

    def test_survey_statuses(self):
        self.assertEqual(resolve(lead(SurveyStatus.ASSIGNED)), 'Survey Assigned')
        self.assertEqual(resolve(lead(SurveyStatus.REJECTED)), 'Survey Rejected')
        self.assertEqual(resolve(lead(SurveyStatus.APPROVED)), 'Survey Approved')
        self.assertEqual(resolve(lead(SurveyStatus.COMPLETED)), 'Survey Completed')

    def test_quotation_ready_counts_as_survey_completed(self):
        self.assertEqual(resolve(lead(SurveyStatus.PENDING, InstallationStatus.QUOTATION_READY)), 'Survey Completed')

    def test_unknown_status_is_returned_verbatim(self):
        self.assertEqual(resolve(lead(SurveyStatus.PENDING, 'LEGACY_IMPORTED')), 'LEGACY_IMPORTED')
        self.assertEqual(resolve(lead(SurveyStatus.PENDING, '')), 'Unknown')

    def test_total_over_every_reachable_combination(self):
        quotation_states = [None] + list(QuotationStatus.values)
        for survey in SurveyStatus.values:
            for install in InstallationStatus.values:
                for quotation in quotation_states:
                    status = resolve_status(survey, install, quotation)
                    self.assertIn(status, CanonicalStatus.values, (survey, install, quotation))

    def test_resolve_is_deterministic(self):
        customer = lead(SurveyStatus.COMPLETED, InstallationStatus.QUOTATION_READY, QuotationStatus.PLANT_APPROVED)
        self.assertEqual(resolve(customer), resolve(customer))
        self.assertEqual(customer.latest_quotation_status, QuotationStatus.PLANT_APPROVED)


class ProgressTimelineTests(SimpleTestCase):
    def _flags(self, customer):
        return {step['title']: (step['completed'], step['current']) for step in progress_timeline(customer)}

    def test_has_seven_steps_in_order(self):
        titles = [step['title'] for step in progress_timeline(lead())]
        self.assertEqual(titles, [
            'Request Submitted', 'Survey Assigned', 'Site Survey', 'Quotation Ready',
            'Installation', 'Commissioning', 'Solar Activated',
        ])

    def test_new_request_waits_for_survey_assignment(self):
        flags = self._flags(lead())
        self.assertEqual(flags['Request Submitted'], (True, False))
        self.assertEqual(flags['Survey Assigned'], (False, True))

    def test_survey_assigned_marks_site_survey_current(self):
        flags = self._flags(lead(SurveyStatus.ASSIGNED))
        self.assertEqual(flags['Survey Assigned'], (True, False))
        self.assertEqual(flags['Site Survey'], (False, True))

    def test_completed_survey_without_quotation(self):
        flags = self._flags(lead(SurveyStatus.COMPLETED, InstallationStatus.QUOTATION_READY))
        self.assertEqual(flags['Site Survey'], (True, False))
        self.assertEqual(flags['Quotation Ready'], (False, True))

    def test_installation_in_progress(self):
        flags = self._flags(lead(SurveyStatus.COMPLETED, InstallationStatus.INSTALLATION_STARTED, QuotationStatus.FINAL_APPROVED))
        self.assertEqual(flags['Quotation Ready'], (True, False))
        self.assertEqual(flags['Installation'], (False, True))

    def test_live_customer_has_every_step_completed(self):
        steps = progress_timeline(lead(SurveyStatus.COMPLETED, InstallationStatus.COMPLETED, QuotationStatus.FINAL_APPROVED))
        self.assertTrue(all(step['completed'] for step in steps))
        self.assertFalse(any(step['current'] for step in steps))
