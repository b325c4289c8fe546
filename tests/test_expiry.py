import logging

import pytest

from hostel_outing.models.base.enums import LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest
from tests.support import ist


@pytest.fixture
def reaper(factory):
    return factory.expiry()


def stored(session_factory, request_id):
    session = session_factory()
    try:
        return session.get(LeaveRequest, request_id)
    finally:
        session.close()


class TestFindExpired:
    def test_leave_expires_the_day_after_its_end_date(self, reaper, create_leave):
        request = create_leave()

        assert reaper.find_expired(ist(2026, 3, 12, 23, 59)) == []
        assert [r.id for r in reaper.find_expired(ist(2026, 3, 13, 0, 0))] == [request.id]

    def test_approved_requests_are_never_candidates(self, reaper, approved_leave):
        assert reaper.find_expired(ist(2026, 4, 1, 12, 0)) == []

    def test_rejected_requests_are_never_candidates(self, reaper, factory, create_leave):
        request = create_leave()
        factory.approvals().warden_reject(request.id, "warden-1")
        assert reaper.find_expired(ist(2026, 4, 1, 12, 0)) == []

    def test_permission_uses_permission_date(self, reaper, factory):
        created = factory.leave_requests().create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "18:00"},
        ).data

        assert reaper.find_expired(ist(2026, 3, 10, 23, 0)) == []
        assert [r.id for r in reaper.find_expired(ist(2026, 3, 11, 0, 1))] == [created.id]


class TestRunExpiryReaper:
    def test_deletes_expired_pending_leave_and_notifies_student(
        self, reaper, create_leave, clock, notifications, session_factory
    ):
        request = create_leave()
        clock.set(ist(2026, 3, 13, 0, 30))

        result = reaper.run_expiry_reaper()

        assert result.is_success
        assert result.data == 1
        assert result.metadata["run"]["examined"] == 1
        assert result.metadata["run"]["failed"] == []
        assert stored(session_factory, request.id) is None

        [payload] = notifications.for_user("stu-1")
        assert payload.title == "Leave Request Auto-Deleted"
        assert payload.related_id == request.id
        assert payload.message.endswith("has been automatically deleted as the date has passed without OTP verification.")

    def test_sweep_logs_carry_run_id(self, reaper, create_leave, clock, caplog):
        create_leave()
        clock.set(ist(2026, 3, 13, 0, 30))

        with caplog.at_level(logging.INFO):
            result = reaper.run_expiry_reaper()

        run_id = result.metadata["run"]["run_id"]
        sweep_records = [r for r in caplog.records if r.name == "LeaveExpiryService"]
        assert sweep_records
        assert all(r.expiry_run == run_id for r in sweep_records)

    def test_leave_ending_today_is_kept(self, reaper, create_leave, clock, session_factory):
        request = create_leave()
        clock.set(ist(2026, 3, 12, 23, 0))

        assert reaper.run_expiry_reaper().data == 0
        assert stored(session_factory, request.id) is not None

    def test_approved_leave_is_left_alone(self, reaper, approved_leave, clock, session_factory):
        clock.set(ist(2026, 3, 20, 9, 0))

        assert reaper.run_expiry_reaper().data == 0
        assert stored(session_factory, approved_leave.id).status == LeaveRequestStatus.APPROVED

    def test_second_run_is_a_no_op(self, reaper, create_leave, clock, notifications):
        create_leave()
        clock.set(ist(2026, 3, 13, 9, 0))

        assert reaper.run_expiry_reaper().data == 1
        notifications.clear()

        second = reaper.run_expiry_reaper()
        assert second.data == 0
        assert second.metadata["run"]["examined"] == 0
        assert notifications.sent == []

    def test_warden_verified_wording(self, reaper, factory, create_leave, sms, clock, notifications):
        request = create_leave()
        factory.otp().verify_otp(request.id, "warden-1", sms.last_code)
        clock.set(ist(2026, 3, 13, 9, 0))

        assert reaper.run_expiry_reaper().data == 1
        [payload] = notifications.for_user("stu-1")
        assert payload.message.endswith("without principal approval.")

    def test_parent_exempt_permission_wording(self, reaper, factory, clock, notifications):
        factory.leave_requests().create_request(
            "stu-4", "Permission", "Bank work",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "17:00"},
        )
        clock.set(ist(2026, 3, 11, 9, 0))

        assert reaper.run_expiry_reaper().data == 1
        [payload] = notifications.for_user("stu-4")
        assert payload.message.endswith("without principal approval.")

    def test_stay_request_wording(self, reaper, factory, clock, notifications):
        factory.leave_requests().create_request("stu-1", "Stay in Hostel", "Exams", {"stay_date": "2026-03-10"})
        notifications.clear()
        clock.set(ist(2026, 3, 11, 9, 0))

        assert reaper.run_expiry_reaper().data == 1
        [payload] = notifications.for_user("stu-1")
        assert payload.message.endswith("without warden review.")

    def test_recommended_stay_is_not_reaped(self, reaper, factory, clock):
        stay = factory.leave_requests().create_request(
            "stu-1", "Stay in Hostel", "Exams", {"stay_date": "2026-03-10"}
        ).data
        factory.approvals().warden_recommend(stay.id, "warden-1", "Recommended")
        clock.set(ist(2026, 3, 11, 9, 0))

        assert reaper.run_expiry_reaper().data == 0

    def test_notification_failure_does_not_block_delete(
        self, reaper, create_leave, clock, notifications, session_factory
    ):
        request = create_leave()
        notifications.fail_for.add("stu-1")
        clock.set(ist(2026, 3, 13, 9, 0))

        assert reaper.run_expiry_reaper().data == 1
        assert stored(session_factory, request.id) is None

    def test_one_failed_record_does_not_abort_the_batch(
        self, reaper, factory, create_leave, clock, monkeypatch, session_factory
    ):
        broken = create_leave("stu-1")
        healthy = create_leave("stu-2")
        repository = factory.repository()
        original_remove = repository.remove

        def remove(entity):
            if entity.id == broken.id:
                raise RuntimeError("disk full")
            return original_remove(entity)

        monkeypatch.setattr(repository, "remove", remove)
        clock.set(ist(2026, 3, 13, 9, 0))

        result = reaper.run_expiry_reaper()

        assert result.data == 1
        assert result.metadata["run"]["failed"] == [broken.id]
        assert stored(session_factory, healthy.id) is None
        assert stored(session_factory, broken.id) is not None

    def test_request_acted_on_after_sweep_is_skipped(
        self, reaper, create_leave, clock, monkeypatch, session_factory
    ):
        request = create_leave()
        clock.set(ist(2026, 3, 13, 9, 0))
        candidates = reaper.find_expired()

        # Simulate the sweep having read a row that has since moved on
        def approve_behind_the_sweep(now=None):
            session = session_factory()
            try:
                row = session.get(LeaveRequest, request.id)
                row.status = LeaveRequestStatus.APPROVED
                session.commit()
            finally:
                session.close()
            return candidates

        monkeypatch.setattr(reaper, "find_expired", approve_behind_the_sweep)

        result = reaper.run_expiry_reaper()

        assert result.data == 0
        assert result.metadata["run"]["skipped"] == 1
        assert stored(session_factory, request.id).status == LeaveRequestStatus.APPROVED

    def test_student_is_notified_outside_the_transaction(self, reaper, create_leave, clock, monkeypatch):
        create_leave()
        clock.set(ist(2026, 3, 13, 9, 0))
        notifier = reaper.notifier
        original = notifier.auto_deleted
        seen = []

        def spy(request):
            seen.append(reaper.db.in_transaction())
            return original(request)

        monkeypatch.setattr(notifier, "auto_deleted", spy)

        assert reaper.run_expiry_reaper().data == 1
        assert seen == [False]

    def test_request_changed_while_notifying_is_kept(
        self, reaper, create_leave, clock, monkeypatch, session_factory
    ):
        request = create_leave()
        clock.set(ist(2026, 3, 13, 9, 0))
        notifier = reaper.notifier
        original = notifier.auto_deleted

        def approve_during_delivery(loaded):
            session = session_factory()
            try:
                row = session.get(LeaveRequest, loaded.id)
                row.status = LeaveRequestStatus.APPROVED
                session.commit()
            finally:
                session.close()
            return original(loaded)

        monkeypatch.setattr(notifier, "auto_deleted", approve_during_delivery)

        result = reaper.run_expiry_reaper()

        assert result.data == 0
        assert result.metadata["run"]["skipped"] == 1
        assert stored(session_factory, request.id).status == LeaveRequestStatus.APPROVED
