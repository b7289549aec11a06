"""
Tests for maintenance requests.
"""

import pytest


@pytest.fixture
def request_id(app, space_a):
    from models.maintenance import create_maintenance_request
    return create_maintenance_request(
        space_a, 'Climatisation en panne', priority='high',
        estimated_cost=1500000, reported_by='accueil'
    )['id']


class TestCreate:

    def test_create(self, app, space_a):
        from models.maintenance import create_maintenance_request

        request = create_maintenance_request(
            space_a, '  Projecteur HS  ', scheduled_date='2030-01-15'
        )
        assert request['status'] == 'pending'
        assert request['priority'] == 'medium'
        assert request['title'] == 'Projecteur HS'
        assert request['space_name'] == 'Salle A'
        assert request['scheduled_date'] == '2030-01-15'
        assert request['request_date'] is not None

    def test_validation(self, app, space_a):
        from models.errors import ValidationError, EntityNotFound
        from models.maintenance import create_maintenance_request

        with pytest.raises(ValidationError):
            create_maintenance_request(space_a, '')
        with pytest.raises(ValidationError):
            create_maintenance_request(space_a, 'Fuite', priority='urgent')
        with pytest.raises(ValidationError):
            create_maintenance_request(space_a, 'Fuite', estimated_cost=-1)
        with pytest.raises(EntityNotFound):
            create_maintenance_request(99999, 'Fuite')

    def test_request_does_not_block_bookings(self, app, space_a, request_id, at):
        from models.reservation_availability import is_space_available
        assert is_space_available(space_a, at(9), at(10)) is True

    def test_open_requests_most_urgent_first(self, app, space_a, request_id):
        from models.maintenance import create_maintenance_request, get_open_requests_for_space

        low = create_maintenance_request(space_a, 'Ampoule', priority='low')['id']
        critical = create_maintenance_request(space_a, 'Fuite d\'eau', priority='critical')['id']

        assert [r['id'] for r in get_open_requests_for_space(space_a)] == [critical, request_id, low]


class TestLifecycle:

    def test_assign_then_complete(self, app, request_id):
        from models.maintenance import assign_maintenance_request, complete_maintenance_request

        assigned = assign_maintenance_request(request_id, 'Yacine')
        assert assigned['status'] == 'in_progress'
        assert assigned['assigned_to'] == 'Yacine'

        completed = complete_maintenance_request(request_id, actual_cost=1200000)
        assert completed['status'] == 'completed'
        assert completed['actual_cost'] == 1200000
        assert completed['completion_date'] is not None

    def test_assign_twice(self, app, request_id):
        from models.errors import AlreadyAssigned
        from models.maintenance import assign_maintenance_request, get_maintenance_request_by_id

        assign_maintenance_request(request_id, 'Yacine')
        with pytest.raises(AlreadyAssigned) as exc_info:
            assign_maintenance_request(request_id, 'Nadia')
        assert exc_info.value.context['assigned_to'] == 'Yacine'
        assert get_maintenance_request_by_id(request_id)['assigned_to'] == 'Yacine'

    def test_assign_blank_staff(self, app, request_id):
        from models.errors import ValidationError
        from models.maintenance import assign_maintenance_request

        with pytest.raises(ValidationError):
            assign_maintenance_request(request_id, '  ')

    def test_complete_requires_in_progress(self, app, request_id):
        from models.errors import InvalidTransition
        from models.maintenance import complete_maintenance_request

        with pytest.raises(InvalidTransition):
            complete_maintenance_request(request_id)

    def test_cancel(self, app, space_a, request_id):
        from models.errors import InvalidTransition
        from models.maintenance import cancel_maintenance_request, get_open_requests_for_space

        assert cancel_maintenance_request(request_id)['status'] == 'cancelled'
        assert get_open_requests_for_space(space_a) == []
        with pytest.raises(InvalidTransition):
            cancel_maintenance_request(request_id)

    def test_completed_cannot_be_cancelled(self, app, request_id):
        from models.errors import InvalidTransition
        from models.maintenance import (
            assign_maintenance_request, complete_maintenance_request, cancel_maintenance_request
        )

        assign_maintenance_request(request_id, 'Yacine')
        complete_maintenance_request(request_id)
        with pytest.raises(InvalidTransition):
            cancel_maintenance_request(request_id)

    def test_unknown_request(self, app):
        from models.errors import EntityNotFound
        from models.maintenance import assign_maintenance_request

        with pytest.raises(EntityNotFound):
            assign_maintenance_request(99999, 'Yacine')
