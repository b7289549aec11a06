"""
Tests for payment processing and refunds.
"""

import threading

import pytest


@pytest.fixture
def billed(app, member_id, space_a, at):
    """Confirmed 2h reservation with a sent invoice of 1190.00 (1000.00 + 19% VAT)."""
    from models.invoice import generate_invoice_for_reservation, send_invoice
    from models.reservation import create_reservation

    reservation = create_reservation(member_id, space_a, at(9), at(11))
    invoice = generate_invoice_for_reservation(reservation['id'])
    send_invoice(invoice['id'])
    return {'reservation_id': reservation['id'], 'invoice_id': invoice['id'], 'total': invoice['total']}


class TestProcessPayment:

    def test_standalone_payment(self, app, member_id):
        from models.payment import process_payment

        payment = process_payment(member_id, 25000, 'cash', reference='REC-001')
        assert payment['status'] == 'completed'
        assert payment['amount'] == 25000
        assert payment['refund_amount'] == 0
        assert payment['invoice_id'] is None
        assert payment['reference'] == 'REC-001'

    @pytest.mark.parametrize('amount', [0, -100, 10.5, True, '500', None])
    def test_invalid_amount(self, app, member_id, amount):
        from models.errors import InvalidAmount
        from models.payment import process_payment, get_payments

        with pytest.raises(InvalidAmount):
            process_payment(member_id, amount, 'cash')
        assert get_payments(member_id=member_id) == []

    def test_unknown_method(self, app, member_id):
        from models.errors import ValidationError
        from models.payment import process_payment

        with pytest.raises(ValidationError):
            process_payment(member_id, 1000, 'bitcoin')

    def test_unknown_member(self, app):
        from models.errors import EntityNotFound
        from models.payment import process_payment

        with pytest.raises(EntityNotFound):
            process_payment(99999, 1000, 'cash')

    def test_full_payment_settles_invoice(self, app, member_id, billed):
        from models.invoice import get_invoice_by_id
        from models.payment import process_payment
        from models.reservation import get_reservation

        assert billed['total'] == 119000
        process_payment(member_id, billed['total'], 'card', invoice_id=billed['invoice_id'])

        invoice = get_invoice_by_id(billed['invoice_id'])
        assert invoice['status'] == 'paid'
        assert invoice['payment_method'] == 'card'
        assert get_reservation(billed['reservation_id'])['payment_status'] == 'paid'

    def test_partial_payments(self, app, member_id, billed):
        from models.invoice import get_invoice_by_id
        from models.payment import process_payment, get_payments
        from models.reservation import get_reservation

        process_payment(member_id, 50000, 'cash', invoice_id=billed['invoice_id'])
        assert get_invoice_by_id(billed['invoice_id'])['status'] == 'sent'
        assert get_reservation(billed['reservation_id'])['payment_status'] == 'partial'

        process_payment(member_id, 69000, 'edahabia', invoice_id=billed['invoice_id'])
        assert get_invoice_by_id(billed['invoice_id'])['status'] == 'paid'
        assert get_reservation(billed['reservation_id'])['payment_status'] == 'paid'
        assert len(get_payments(invoice_id=billed['invoice_id'])) == 2

    def test_paid_invoice_not_payable(self, app, member_id, billed):
        from models.errors import NotPayable
        from models.payment import process_payment

        process_payment(member_id, billed['total'], 'cash', invoice_id=billed['invoice_id'])
        with pytest.raises(NotPayable):
            process_payment(member_id, 1000, 'cash', invoice_id=billed['invoice_id'])

    def test_draft_invoice_not_payable(self, app, member_id):
        from models.errors import NotPayable
        from models.invoice import generate_invoice
        from models.payment import process_payment

        invoice = generate_invoice(member_id, [{'description': 'Casier', 'unit_price': 20000}])
        with pytest.raises(NotPayable):
            process_payment(member_id, 1000, 'cash', invoice_id=invoice['id'])

    def test_invoice_of_another_member(self, app, member_id, billed):
        from models.errors import ValidationError
        from models.member import create_member
        from models.payment import process_payment

        other = create_member('Karim', 'Haddad', email='karim@example.com')
        with pytest.raises(ValidationError):
            process_payment(other, 1000, 'cash', invoice_id=billed['invoice_id'])


class TestRefund:

    def test_refunds_accumulate(self, app, member_id):
        from models.payment import process_payment, refund_payment

        payment = process_payment(member_id, 50000, 'cash')

        first = refund_payment(payment['id'], 20000, reason='Geste commercial')
        assert first['refund_amount'] == 20000
        assert first['status'] == 'completed'

        second = refund_payment(payment['id'], 30000, reason='Annulation')
        assert second['refund_amount'] == 50000
        assert second['status'] == 'refunded'
        assert second['refund_reason'] == 'Annulation'

    def test_refund_exceeding_remaining(self, app, member_id):
        from models.errors import RefundExceedsPayment
        from models.payment import process_payment, refund_payment, get_payment_by_id

        payment = process_payment(member_id, 50000, 'cash')
        refund_payment(payment['id'], 10000)

        with pytest.raises(RefundExceedsPayment) as exc_info:
            refund_payment(payment['id'], 40001)
        assert exc_info.value.context['remaining'] == 40000
        assert get_payment_by_id(payment['id'])['refund_amount'] == 10000

    def test_refund_fully_refunded_payment(self, app, member_id):
        from models.errors import InvalidTransition
        from models.payment import process_payment, refund_payment

        payment = process_payment(member_id, 50000, 'cash')
        refund_payment(payment['id'], 50000)
        with pytest.raises(InvalidTransition):
            refund_payment(payment['id'], 1)

    def test_refund_invalid_amount(self, app, member_id):
        from models.errors import InvalidAmount
        from models.payment import process_payment, refund_payment

        payment = process_payment(member_id, 50000, 'cash')
        with pytest.raises(InvalidAmount):
            refund_payment(payment['id'], 0)

    def test_refund_unknown_payment(self, app):
        from models.errors import EntityNotFound
        from models.payment import refund_payment

        with pytest.raises(EntityNotFound):
            refund_payment(99999, 100)

    def test_full_refund_marks_reservation_refunded(self, app, member_id, billed):
        from models.payment import process_payment, refund_payment
        from models.reservation import get_reservation

        payment = process_payment(member_id, billed['total'], 'card', invoice_id=billed['invoice_id'])
        refund_payment(payment['id'], billed['total'], reason='Salle indisponible')

        assert get_reservation(billed['reservation_id'])['payment_status'] == 'refunded'

    def test_refund_is_audited(self, app, member_id):
        from models.audit_log import get_audit_logs_for_entity
        from models.payment import process_payment, refund_payment

        payment = process_payment(member_id, 50000, 'cash')
        refund_payment(payment['id'], 5000, changed_by='compta')

        logs = get_audit_logs_for_entity('payment', payment['id'])
        assert [log['action'] for log in logs] == ['REFUND', 'PAYMENT']
        assert logs[0]['changed_by'] == 'compta'
        assert logs[0]['changes']['after']['refund_amount'] == 5000


class TestRefundRace:
    """Concurrent refunds against one payment."""

    def test_refund_bound_holds(self, app, member_id):
        from models.errors import RefundExceedsPayment
        from models.payment import process_payment, refund_payment, get_payment_by_id

        payment = process_payment(member_id, 10000, 'card')

        callers = 6
        barrier = threading.Barrier(callers)
        results = []
        errors = []
        lock = threading.Lock()

        def refund():
            with app.app_context():
                barrier.wait()
                try:
                    refunded = refund_payment(payment['id'], 4000, reason='Annulation partielle')
                    with lock:
                        results.append(refunded['refund_amount'])
                except RefundExceedsPayment as e:
                    with lock:
                        errors.append(e)

        threads = [threading.Thread(target=refund) for _ in range(callers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert len(results) == 2
        assert len(errors) == callers - 2
        assert sorted(results) == [4000, 8000]

        stored = get_payment_by_id(payment['id'])
        assert stored['refund_amount'] == 8000
        assert stored['refund_amount'] <= stored['amount']
        assert stored['status'] == 'completed'
