"""
Tests for reservation lifecycle transitions.

    pending -> confirmed -> completed
    pending | confirmed -> cancelled

Check-in needs a confirmed reservation, check-out needs a check-in, and
completion is an explicit step after check-out.
"""

import pytest


@pytest.fixture
def confirmed(app, member_id, space_a, at):
    from models.reservation import create_reservation
    return create_reservation(member_id, space_a, at(9), at(11))


@pytest.fixture
def pending(app, member_id, space_a, at):
    from models.reservation import request_reservation
    return request_reservation(member_id, space_a, at(14), at(15))


class TestValidateStateTransition:

    def test_valid_transitions(self):
        from models.reservation_state import validate_state_transition

        validate_state_transition('pending', 'confirmed')
        validate_state_transition('pending', 'cancelled')
        validate_state_transition('confirmed', 'completed')
        validate_state_transition('confirmed', 'cancelled')

    @pytest.mark.parametrize('current,target', [
        ('pending', 'completed'),
        ('confirmed', 'pending'),
        ('cancelled', 'confirmed'),
        ('cancelled', 'cancelled'),
        ('completed', 'cancelled'),
    ])
    def test_invalid_transitions(self, current, target):
        from models.errors import InvalidTransition
        from models.reservation_state import validate_state_transition

        with pytest.raises(InvalidTransition) as exc_info:
            validate_state_transition(current, target, reservation_id=7)
        assert exc_info.value.context == {'reservation_id': 7, 'current': current, 'target': target}


class TestConfirm:

    def test_confirm_pending(self, app, pending):
        from models.reservation import confirm_reservation

        reservation = confirm_reservation(pending['id'], changed_by='admin')
        assert reservation['status'] == 'confirmed'

    def test_confirm_twice_rejected(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import confirm_reservation

        with pytest.raises(InvalidTransition):
            confirm_reservation(confirmed['id'])

    def test_unknown_reservation(self, app):
        from models.errors import EntityNotFound
        from models.reservation import confirm_reservation

        with pytest.raises(EntityNotFound):
            confirm_reservation(99999)


class TestPresence:
    """Check-in and check-out."""

    def test_full_cycle_with_explicit_completion(self, app, confirmed):
        from models.reservation import (
            check_in_reservation, check_out_reservation, complete_reservation, get_status_history
        )

        checked_in = check_in_reservation(confirmed['id'])
        assert checked_in['check_in_time'] is not None
        assert checked_in['status'] == 'confirmed'

        checked_out = check_out_reservation(confirmed['id'])
        assert checked_out['check_out_time'] is not None
        # Check-out alone does not complete
        assert checked_out['status'] == 'confirmed'

        completed = complete_reservation(confirmed['id'])
        assert completed['status'] == 'completed'

        types = [h['status_type'] for h in get_status_history(confirmed['id'])]
        assert types == ['confirmed', 'check_in', 'check_out', 'completed']

    def test_check_in_twice(self, app, confirmed):
        from models.errors import AlreadyCheckedIn
        from models.reservation import check_in_reservation

        check_in_reservation(confirmed['id'])
        with pytest.raises(AlreadyCheckedIn):
            check_in_reservation(confirmed['id'])

    def test_check_in_requires_confirmation(self, app, pending):
        from models.errors import NotConfirmed
        from models.reservation import check_in_reservation

        with pytest.raises(NotConfirmed) as exc_info:
            check_in_reservation(pending['id'])
        assert exc_info.value.context['current'] == 'pending'

    def test_already_checked_in_is_an_invalid_transition(self):
        from models.errors import AlreadyCheckedIn, InvalidTransition, NotConfirmed

        assert issubclass(AlreadyCheckedIn, InvalidTransition)
        assert issubclass(NotConfirmed, InvalidTransition)

    def test_check_out_requires_check_in(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import check_out_reservation

        with pytest.raises(InvalidTransition):
            check_out_reservation(confirmed['id'])

    def test_check_out_twice(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import check_in_reservation, check_out_reservation

        check_in_reservation(confirmed['id'])
        check_out_reservation(confirmed['id'])
        with pytest.raises(InvalidTransition):
            check_out_reservation(confirmed['id'])

    def test_complete_requires_check_out(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import complete_reservation, check_in_reservation

        with pytest.raises(InvalidTransition):
            complete_reservation(confirmed['id'])
        check_in_reservation(confirmed['id'])
        with pytest.raises(InvalidTransition):
            complete_reservation(confirmed['id'])

    def test_complete_pending_rejected(self, app, pending):
        from models.errors import InvalidTransition
        from models.reservation import complete_reservation

        with pytest.raises(InvalidTransition):
            complete_reservation(pending['id'])


class TestCancel:

    def test_cancel_confirmed(self, app, confirmed):
        from models.reservation import cancel_reservation

        reservation = cancel_reservation(confirmed['id'], reason='Client indisponible')
        assert reservation['status'] == 'cancelled'
        assert reservation['cancellation_reason'] == 'Client indisponible'
        assert reservation['cancelled_at'] is not None

    def test_cancel_pending(self, app, pending):
        from models.reservation import cancel_reservation
        assert cancel_reservation(pending['id'])['status'] == 'cancelled'

    def test_second_cancel_reports_and_changes_nothing(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import cancel_reservation, get_reservation, get_status_history

        first = cancel_reservation(confirmed['id'], reason='Premier')
        history_len = len(get_status_history(confirmed['id']))

        with pytest.raises(InvalidTransition):
            cancel_reservation(confirmed['id'], reason='Second')

        after = get_reservation(confirmed['id'])
        assert after['status'] == 'cancelled'
        assert after['cancellation_reason'] == 'Premier'
        assert after['cancelled_at'] == first['cancelled_at']
        assert len(get_status_history(confirmed['id'])) == history_len

    def test_cancel_after_check_out_rejected(self, app, confirmed):
        from models.errors import InvalidTransition
        from models.reservation import cancel_reservation, check_in_reservation, check_out_reservation

        check_in_reservation(confirmed['id'])
        check_out_reservation(confirmed['id'])
        with pytest.raises(InvalidTransition):
            cancel_reservation(confirmed['id'])

    def test_cancel_writes_audit(self, app, confirmed):
        from models.audit_log import get_audit_logs_for_entity
        from models.reservation import cancel_reservation

        cancel_reservation(confirmed['id'], reason='Doublon', changed_by='accueil')
        logs = get_audit_logs_for_entity('reservation', confirmed['id'])
        assert logs[0]['action'] == 'CANCEL'
        assert logs[0]['changed_by'] == 'accueil'
        assert logs[0]['changes']['after']['status'] == 'cancelled'


class TestDirectSetters:

    def test_update_status_bypasses_rules(self, app, confirmed):
        from models.reservation import update_status

        assert update_status(confirmed['id'], 'completed')['status'] == 'completed'

    def test_update_status_rejects_unknown_value(self, app, confirmed):
        from models.errors import ValidationError
        from models.reservation import update_status

        with pytest.raises(ValidationError):
            update_status(confirmed['id'], 'archived')

    def test_update_payment_status(self, app, confirmed):
        from models.errors import ValidationError, EntityNotFound
        from models.reservation import update_payment_status, get_reservation

        update_payment_status(confirmed['id'], 'partial')
        assert get_reservation(confirmed['id'])['payment_status'] == 'partial'

        with pytest.raises(ValidationError):
            update_payment_status(confirmed['id'], 'free')
        with pytest.raises(EntityNotFound):
            update_payment_status(99999, 'paid')
