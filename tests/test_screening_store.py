import pytest
from app.models.applicant import ScreeningStatus
from app.services.screening_store import ScreeningStore, Pipeline, derive_screening_status


@pytest.fixture
def store(database):
    return ScreeningStore()


class TestDeriveScreeningStatus:
    """Test aggregate status derivation"""

    def test_both_passed(self):
        assert derive_screening_status(ScreeningStatus.PASSED, ScreeningStatus.PASSED) == ScreeningStatus.PASSED

    def test_failed_without_work_in_flight(self):
        assert derive_screening_status(ScreeningStatus.FAILED, ScreeningStatus.PENDING) == ScreeningStatus.FAILED
        assert derive_screening_status(ScreeningStatus.PASSED, ScreeningStatus.FAILED) == ScreeningStatus.FAILED

    def test_failed_with_retry_in_flight(self):
        assert derive_screening_status(ScreeningStatus.FAILED, ScreeningStatus.IN_PROGRESS) == \
            ScreeningStatus.IN_PROGRESS

    def test_nothing_started(self):
        assert derive_screening_status(ScreeningStatus.PENDING, ScreeningStatus.PENDING) == ScreeningStatus.PENDING

    def test_partial_progress(self):
        assert derive_screening_status(ScreeningStatus.PASSED, ScreeningStatus.PENDING) == \
            ScreeningStatus.IN_PROGRESS


class TestClaim:
    """Test conditional status claims"""

    def test_claim_reports_previous_status(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.FAILED)

        result = store.claim(applicant.id, Pipeline.IDENTITY,
                             [ScreeningStatus.FAILED, ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS)

        assert result.claimed is True
        assert result.previous_status == ScreeningStatus.FAILED
        assert store.get_applicant(applicant.id).idenfy_status == ScreeningStatus.IN_PROGRESS

    def test_claim_tries_statuses_in_order(self, store, make_applicant):
        applicant = make_applicant()

        result = store.claim(applicant.id, Pipeline.IDENTITY,
                             [ScreeningStatus.FAILED, ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS)

        assert result.claimed is True
        assert result.previous_status == ScreeningStatus.PENDING

    def test_second_claim_loses(self, store, make_applicant):
        applicant = make_applicant()

        first = store.claim(applicant.id, Pipeline.IDENTITY, [ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS)
        second = store.claim(applicant.id, Pipeline.IDENTITY, [ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS)

        assert first.claimed is True
        assert second.claimed is False
        assert second.previous_status is None

    def test_concurrent_claims_have_one_winner(self, store, make_applicant, run_concurrently):
        applicant = make_applicant()

        results = run_concurrently(lambda: store.claim(
            applicant.id, Pipeline.BACKGROUND_CHECK,
            [ScreeningStatus.FAILED, ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS
        ))

        assert sum(1 for result in results if result.claimed) == 1

    def test_claim_recomputes_aggregate(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.FAILED)
        assert store.get_applicant(applicant.id).screening_status == ScreeningStatus.FAILED

        store.claim(applicant.id, Pipeline.IDENTITY, [ScreeningStatus.FAILED], ScreeningStatus.IN_PROGRESS)

        assert store.get_applicant(applicant.id).screening_status == ScreeningStatus.IN_PROGRESS

    def test_claim_leaves_other_pipeline_alone(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.PASSED)

        store.claim(applicant.id, Pipeline.BACKGROUND_CHECK, [ScreeningStatus.PENDING], ScreeningStatus.IN_PROGRESS)

        fresh = store.get_applicant(applicant.id)
        assert fresh.idenfy_status == ScreeningStatus.PASSED
        assert fresh.checkr_status == ScreeningStatus.IN_PROGRESS

    def test_claim_requires_other_pipeline_status(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.FAILED)

        result = store.claim(applicant.id, Pipeline.BACKGROUND_CHECK, [ScreeningStatus.PENDING],
                             ScreeningStatus.IN_PROGRESS, requires={Pipeline.IDENTITY: ScreeningStatus.PASSED})

        assert not result.claimed
        assert store.get_applicant(applicant.id).checkr_status == ScreeningStatus.PENDING


class TestTerminalUpdate:
    """Test provider outcome writes"""

    def test_applies_once(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.IN_PROGRESS)

        assert store.terminal_update(applicant.id, Pipeline.IDENTITY, ScreeningStatus.PASSED,
                                     idenfy_verification_id='scan-1') is True
        assert store.terminal_update(applicant.id, Pipeline.IDENTITY, ScreeningStatus.PASSED,
                                     idenfy_verification_id='scan-1') is False

        fresh = store.get_applicant(applicant.id)
        assert fresh.idenfy_status == ScreeningStatus.PASSED
        assert fresh.idenfy_verification_id == 'scan-1'

    def test_overrides_non_terminal_status(self, store, make_applicant):
        applicant = make_applicant(idenfy_status=ScreeningStatus.PENDING)

        assert store.terminal_update(applicant.id, Pipeline.IDENTITY, ScreeningStatus.FAILED) is True
        assert store.get_applicant(applicant.id).screening_status == ScreeningStatus.FAILED

    def test_concurrent_deliveries_apply_once(self, store, make_applicant, run_concurrently):
        applicant = make_applicant(idenfy_status=ScreeningStatus.PASSED, checkr_status=ScreeningStatus.IN_PROGRESS)

        results = run_concurrently(lambda: store.terminal_update(
            applicant.id, Pipeline.BACKGROUND_CHECK, ScreeningStatus.PASSED, checkr_report_id='rpt-1'
        ))

        assert results.count(True) == 1
        assert store.get_applicant(applicant.id).screening_status == ScreeningStatus.PASSED

    def test_rejects_non_terminal_target(self, store, make_applicant):
        applicant = make_applicant()

        with pytest.raises(ValueError):
            store.terminal_update(applicant.id, Pipeline.IDENTITY, ScreeningStatus.IN_PROGRESS)

    def test_rejects_unknown_correlation_field(self, store, make_applicant):
        applicant = make_applicant()

        with pytest.raises(ValueError):
            store.terminal_update(applicant.id, Pipeline.IDENTITY, ScreeningStatus.PASSED,
                                  checkr_candidate_id='cand-1')


class TestCorrelationIds:
    """Test provider identifier storage"""

    def test_record_correlation_reports_change(self, store, make_applicant):
        applicant = make_applicant()

        assert store.record_correlation(applicant.id, checkr_report_id='rpt-1') is True
        assert store.record_correlation(applicant.id, checkr_report_id='rpt-1') is False
        assert store.get_applicant(applicant.id).checkr_report_id == 'rpt-1'

    def test_candidate_id_is_never_reassigned(self, store, make_applicant):
        applicant = make_applicant()

        assert store.assign_candidate_id(applicant.id, 'cand-1') == 'cand-1'
        assert store.assign_candidate_id(applicant.id, 'cand-2') == 'cand-1'
        assert store.get_candidate_id(applicant.id) == 'cand-1'

    def test_find_by_candidate_and_report(self, store, make_applicant):
        applicant = make_applicant(checkr_candidate_id='cand-9', checkr_report_id='rpt-9')

        assert store.find_by_candidate_id('cand-9').id == applicant.id
        assert store.find_by_report_id('rpt-9').id == applicant.id
        assert store.find_by_candidate_id('missing') is None


class TestMonitoringSlot:
    """Test continuous monitoring enrollment reservation"""

    def test_slot_claimed_once(self, store, make_applicant):
        applicant = make_applicant(checkr_candidate_id='cand-1')

        assert store.claim_monitoring_slot(applicant.id) is True
        assert store.claim_monitoring_slot(applicant.id) is False
        assert store.get_applicant(applicant.id).continuous_monitoring_id == \
            ScreeningStore.monitoring_placeholder(applicant.id)

    def test_slot_requires_candidate(self, store, make_applicant):
        applicant = make_applicant()

        assert store.claim_monitoring_slot(applicant.id) is False

    def test_complete_replaces_placeholder(self, store, make_applicant):
        applicant = make_applicant(checkr_candidate_id='cand-1')
        store.claim_monitoring_slot(applicant.id)

        assert store.complete_monitoring_slot(applicant.id, 'cc-1') is True
        assert store.get_applicant(applicant.id).continuous_monitoring_id == 'cc-1'
        assert store.release_monitoring_slot(applicant.id) is False

    def test_release_allows_retry(self, store, make_applicant):
        applicant = make_applicant(checkr_candidate_id='cand-1')
        store.claim_monitoring_slot(applicant.id)

        assert store.release_monitoring_slot(applicant.id) is True
        assert store.claim_monitoring_slot(applicant.id) is True


class TestApplicantFields:
    """Test application status and notes"""

    def test_append_note(self, store, make_applicant):
        applicant = make_applicant()

        store.append_note(applicant.id, "first")
        store.append_note(applicant.id, "second")

        lines = store.get_applicant(applicant.id).background_check_notes.split('\n')
        assert len(lines) == 2
        assert lines[0].endswith('] first')
        assert lines[1].endswith('] second')

    def test_soft_deleted_applicant_hidden(self, store, make_applicant):
        from datetime import datetime
        applicant = make_applicant(deleted_at=datetime.utcnow())

        assert store.get_applicant(applicant.id) is None
        assert store.get_applicant(applicant.id, include_deleted=True) is not None
