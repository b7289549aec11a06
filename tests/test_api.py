"""
Tests for the JSON API: envelopes, status codes and error mapping.
"""

import pytest


def _iso(dt):
    return dt.isoformat()


@pytest.fixture
def booking_payload(member_id, space_a, at):
    return {
        'member_id': member_id,
        'space_id': space_a,
        'start_time': _iso(at(9)),
        'end_time': _iso(at(11)),
    }


class TestHealth:

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['data']['status'] == 'ok'

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/nope')
        assert response.status_code == 404
        data = response.get_json()
        assert data['success'] is False
        assert data['code'] == 'not_found'

    def test_wrong_method_is_json_405(self, client):
        response = client.delete('/api/health')
        assert response.status_code == 405
        assert response.get_json()['code'] == 'method_not_allowed'


class TestReservationApi:

    def test_booking_scenario(self, client, booking_payload, at):
        response = client.post('/api/reservations', json=booking_payload, headers={'X-Actor': 'accueil'})
        assert response.status_code == 201
        created = response.get_json()
        assert created['success'] is True
        assert created['data']['status'] == 'confirmed'
        assert created['data']['total_amount'] == 100000
        assert created['message']

        overlapping = dict(booking_payload, start_time=_iso(at(10)), end_time=_iso(at(12)))
        response = client.post('/api/reservations', json=overlapping)
        assert response.status_code == 409
        error = response.get_json()
        assert error['success'] is False
        assert error['code'] == 'slot_conflict'
        assert error['context']['conflicting_reservation_ids'] == [created['data']['id']]

        adjacent = dict(booking_payload, start_time=_iso(at(11)), end_time=_iso(at(12)))
        response = client.post('/api/reservations', json=adjacent)
        assert response.status_code == 201
        assert response.get_json()['data']['total_amount'] == 50000

    def test_pending_flag(self, client, booking_payload):
        response = client.post('/api/reservations', json=dict(booking_payload, pending=True))
        assert response.status_code == 201
        reservation = response.get_json()['data']
        assert reservation['status'] == 'pending'

        response = client.post(f"/api/reservations/{reservation['id']}/confirm")
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'confirmed'

    def test_missing_field(self, client, booking_payload):
        del booking_payload['end_time']
        response = client.post('/api/reservations', json=booking_payload)
        assert response.status_code == 400
        data = response.get_json()
        assert data['code'] == 'validation_error'
        assert data['context']['field'] == 'end_time'

    def test_malformed_datetime(self, client, booking_payload):
        booking_payload['start_time'] = 'demain matin'
        response = client.post('/api/reservations', json=booking_payload)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'validation_error'

    def test_invalid_interval(self, client, booking_payload):
        booking_payload['start_time'], booking_payload['end_time'] = (
            booking_payload['end_time'], booking_payload['start_time']
        )
        response = client.post('/api/reservations', json=booking_payload)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_interval'

    def test_unknown_reservation(self, client):
        response = client.get('/api/reservations/99999')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'not_found'

    def test_lifecycle_and_history(self, client, booking_payload):
        reservation_id = client.post('/api/reservations', json=booking_payload).get_json()['data']['id']

        for step in ('check-in', 'check-out', 'complete'):
            response = client.post(f'/api/reservations/{reservation_id}/{step}', headers={'X-Actor': 'accueil'})
            assert response.status_code == 200, step

        response = client.post(f'/api/reservations/{reservation_id}/cancel', json={'reason': 'Trop tard'})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'invalid_transition'

        history = client.get(f'/api/reservations/{reservation_id}/history').get_json()['data']
        assert [h['status_type'] for h in history] == ['confirmed', 'check_in', 'check_out', 'completed']
        assert history[1]['changed_by'] == 'accueil'

    def test_double_check_in(self, client, booking_payload):
        reservation_id = client.post('/api/reservations', json=booking_payload).get_json()['data']['id']
        client.post(f'/api/reservations/{reservation_id}/check-in')
        response = client.post(f'/api/reservations/{reservation_id}/check-in')
        assert response.status_code == 409
        assert response.get_json()['code'] == 'already_checked_in'

    def test_member_reservations(self, client, member_id, booking_payload):
        client.post('/api/reservations', json=booking_payload)
        data = client.get(f'/api/members/{member_id}/reservations').get_json()
        assert data['count'] == 1
        assert data['data'][0]['space_name'] == 'Salle A'


class TestSpacesApi:

    def test_quote(self, client, space_a, at):
        response = client.post('/api/pricing/quote', json={
            'space_id': space_a,
            'start_time': _iso(at(9)),
            'end_time': _iso(at(15)),
            'promo_code': 'cowork20',
        })
        assert response.status_code == 200
        quote = response.get_json()['data']
        assert quote['tier'] == 'half_day'
        assert quote['base_amount'] == 150000
        assert quote['total'] == 148000
        assert quote['currency'] == 'DZD'

    def test_available_spaces(self, client, space_a, booking_payload, at):
        client.post('/api/reservations', json=booking_payload)
        response = client.get('/api/spaces/available', query_string={
            'start': _iso(at(10)), 'end': _iso(at(11)), 'type': 'meeting_room'
        })
        assert response.status_code == 200
        names = [s['name'] for s in response.get_json()['data']]
        assert names == ['Salle de Réunion Premium']

    def test_available_spaces_requires_range(self, client):
        response = client.get('/api/spaces/available')
        assert response.status_code == 400

    def test_available_spaces_reversed_range(self, client, at):
        response = client.get('/api/spaces/available', query_string={
            'start': _iso(at(11)), 'end': _iso(at(10))
        })
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_interval'

    def test_space_detail_lists_open_maintenance(self, client, space_a):
        client.post('/api/maintenance', json={'space_id': space_a, 'title': 'Écran cassé'})
        space = client.get(f'/api/spaces/{space_a}').get_json()['data']
        assert [r['title'] for r in space['open_maintenance_requests']] == ['Écran cassé']


class TestBillingApi:

    def test_invoice_payment_refund_flow(self, client, booking_payload, member_id):
        reservation_id = client.post('/api/reservations', json=booking_payload).get_json()['data']['id']

        response = client.post(f'/api/reservations/{reservation_id}/invoice')
        assert response.status_code == 201
        invoice = response.get_json()['data']
        assert invoice['status'] == 'draft'
        assert invoice['total'] == 119000

        # Draft invoices are not payable
        response = client.post('/api/payments', json={
            'member_id': member_id, 'amount': 119000, 'method': 'card', 'invoice_id': invoice['id']
        })
        assert response.status_code == 409
        assert response.get_json()['code'] == 'not_payable'

        assert client.post(f"/api/invoices/{invoice['id']}/send").status_code == 200

        response = client.post('/api/payments', json={
            'member_id': member_id, 'amount': 119000, 'method': 'card', 'invoice_id': invoice['id']
        })
        assert response.status_code == 201
        payment = response.get_json()['data']

        assert client.get(f"/api/invoices/{invoice['id']}").get_json()['data']['status'] == 'paid'

        response = client.post(f"/api/payments/{payment['id']}/refund", json={'amount': 200000})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'refund_exceeds_payment'

        response = client.post(f"/api/payments/{payment['id']}/refund", json={'amount': 119000, 'reason': 'Annulé'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'refunded'

    def test_create_invoice_with_bad_item(self, client, member_id):
        response = client.post('/api/invoices', json={
            'member_id': member_id,
            'items': [{'description': 'Casier', 'unit_price': -10}],
        })
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_line_item'

    def test_reservation_invoiced_twice(self, client, booking_payload):
        reservation_id = client.post('/api/reservations', json=booking_payload).get_json()['data']['id']
        first = client.post(f'/api/reservations/{reservation_id}/invoice').get_json()['data']

        response = client.post(f'/api/reservations/{reservation_id}/invoice')
        assert response.status_code == 409
        error = response.get_json()
        assert error['code'] == 'already_invoiced'
        assert error['context']['invoice_id'] == first['id']

    @pytest.mark.parametrize('items', [['x'], [None], [['Casier', 20000]]])
    def test_create_invoice_with_non_object_item(self, client, member_id, items):
        response = client.post('/api/invoices', json={'member_id': member_id, 'items': items})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_line_item'

    @pytest.mark.parametrize('field', ['issue_date', 'due_date'])
    def test_create_invoice_with_bad_date(self, client, member_id, field):
        response = client.post('/api/invoices', json={
            'member_id': member_id,
            'items': [{'description': 'Casier', 'unit_price': 20000}],
            field: 'garbage',
        })
        assert response.status_code == 400
        data = response.get_json()
        assert data['code'] == 'validation_error'
        assert data['context']['field'] == field

    def test_invalid_payment_amount(self, client, member_id):
        response = client.post('/api/payments', json={'member_id': member_id, 'amount': 0, 'method': 'cash'})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'invalid_amount'

    def test_invoice_list_filter(self, client, member_id):
        client.post('/api/invoices', json={
            'member_id': member_id,
            'items': [{'description': 'Casier', 'unit_price': 20000}],
        })
        data = client.get('/api/invoices', query_string={'member_id': member_id, 'status': 'draft'}).get_json()
        assert data['count'] == 1
        assert client.get('/api/invoices/overdue').get_json()['count'] == 0


class TestOperationsApi:

    def test_inventory_adjust(self, client):
        from models.inventory import create_inventory_item

        item_id = create_inventory_item('Gobelets', quantity=3, min_quantity=5)

        response = client.post(f'/api/inventory/{item_id}/adjust', json={'delta': -4, 'reason': 'Pause café'})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'negative_stock'

        response = client.post(f'/api/inventory/{item_id}/adjust', json={'delta': -3, 'reason': 'Pause café'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'out_of_stock'

        low = client.get('/api/inventory/low-stock').get_json()['data']
        assert [i['id'] for i in low] == [item_id]

        detail = client.get(f'/api/inventory/{item_id}').get_json()['data']
        assert len(detail['adjustments']) == 1

    def test_maintenance_flow(self, client, space_a):
        response = client.post('/api/maintenance', json={
            'space_id': space_a, 'title': 'Prise électrique', 'priority': 'high'
        })
        assert response.status_code == 201
        request_id = response.get_json()['data']['id']

        response = client.post(f'/api/maintenance/{request_id}/complete')
        assert response.status_code == 409

        response = client.post(f'/api/maintenance/{request_id}/assign', json={'assigned_to': 'Yacine'})
        assert response.get_json()['data']['status'] == 'in_progress'

        response = client.post(f'/api/maintenance/{request_id}/assign', json={'assigned_to': 'Nadia'})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'already_assigned'

        response = client.post(f'/api/maintenance/{request_id}/complete', json={'actual_cost': 40000})
        assert response.get_json()['data']['status'] == 'completed'


class TestMembersAndAuditApi:

    def test_create_and_get_member(self, client):
        response = client.post('/api/members', json={
            'first_name': 'Lina', 'last_name': 'Saadi',
            'email': 'lina@example.com', 'company': '  Studio Lina  ',
        })
        assert response.status_code == 201
        member = response.get_json()['data']
        assert member['status'] == 'active'
        assert member['company'] == 'Studio Lina'

        assert client.get(f"/api/members/{member['id']}").get_json()['data']['email'] == 'lina@example.com'
        assert client.get('/api/members').get_json()['count'] == 1
        assert client.get('/api/members/99999').status_code == 404

    def test_create_member_bad_email(self, client):
        response = client.post('/api/members', json={'first_name': 'Lina', 'email': 'lina@'})
        assert response.status_code == 400
        assert response.get_json()['context']['field'] == 'email'

    def test_audit_trail_records_actor(self, client, booking_payload):
        reservation_id = client.post(
            '/api/reservations', json=booking_payload, headers={'X-Actor': 'accueil'}
        ).get_json()['data']['id']

        logs = client.get('/api/audit', query_string={
            'entity_type': 'reservation', 'entity_id': reservation_id
        }).get_json()['data']
        assert [log['action'] for log in logs] == ['CREATE']
        assert logs[0]['changed_by'] == 'accueil'

    def test_stats_and_allowed_transitions(self, client, booking_payload):
        reservation_id = client.post('/api/reservations', json=booking_payload).get_json()['data']['id']

        detail = client.get(f'/api/reservations/{reservation_id}').get_json()['data']
        assert sorted(detail['allowed_transitions']) == ['cancelled', 'completed']

        stats = client.get('/api/reservations/stats').get_json()['data']
        assert stats['total'] == 1
        assert stats['by_status'] == {'confirmed': 1}
        assert stats['by_payment_status'] == {'unpaid': 1}


class TestPromoCodesApi:

    def test_create_validate_and_use(self, client, member_id, booking_payload):
        response = client.post('/api/promo-codes', json={
            'code': 'rentree', 'amount': 1500, 'max_uses': 5, 'min_amount': 50000,
        }, headers={'X-Actor': 'admin'})
        assert response.status_code == 201
        assert response.get_json()['data']['code'] == 'RENTREE'

        response = client.post('/api/promo-codes/validate', json={
            'code': 'RENTREE', 'member_id': member_id, 'amount': 100000,
        })
        assert response.status_code == 200
        assert response.get_json()['data']['final_amount'] == 98500

        response = client.post('/api/reservations', json=dict(booking_payload, promo_code='rentree'))
        assert response.status_code == 201
        assert response.get_json()['data']['total_amount'] == 98500

        detail = client.get('/api/promo-codes/RENTREE').get_json()['data']
        assert detail['current_uses'] == 1
        assert [u['member_id'] for u in detail['usages']] == [member_id]

    def test_second_use_by_member_rejected(self, client, booking_payload, at):
        client.post('/api/reservations', json=dict(booking_payload, promo_code='COWORK20'))

        later = dict(booking_payload, start_time=_iso(at(14)), end_time=_iso(at(16)), promo_code='COWORK20')
        response = client.post('/api/reservations', json=later)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'promo_code_already_used'

    def test_below_minimum_rejected(self, client):
        client.post('/api/promo-codes', json={'code': 'GROUPE', 'amount': 5000, 'min_amount': 100000})
        response = client.post('/api/promo-codes/validate', json={'code': 'GROUPE', 'amount': 50000})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'promo_code_below_minimum'

    def test_unknown_and_deactivated(self, client):
        response = client.post('/api/promo-codes/validate', json={'code': 'NOPE', 'amount': 50000})
        assert response.status_code == 404

        response = client.post('/api/promo-codes/COWORK20/deactivate')
        assert response.status_code == 200
        assert response.get_json()['data']['is_active'] == 0

        response = client.post('/api/promo-codes/validate', json={'code': 'COWORK20', 'amount': 50000})
        assert response.status_code == 404

        codes = client.get('/api/promo-codes', query_string={'active': 1}).get_json()['data']
        assert [c['code'] for c in codes] == ['BIENVENUE10']

    def test_duplicate_code_rejected(self, client):
        response = client.post('/api/promo-codes', json={'code': 'bienvenue10', 'amount': 1000})
        assert response.status_code == 400
        assert response.get_json()['context']['field'] == 'code'
