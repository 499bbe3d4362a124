from __future__ import annotations

import unittest
from datetime import date, timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient

from move_portal.db import get_db
from move_portal.main import app

from helpers import make_sessionmaker

RESIDENT_HEADERS = {
    'X-Portal-Role': 'resident',
    'X-Portal-User': 'Willow Legg',
    'X-Portal-Unit': 'Unit 111',
    'X-Portal-Email': 'willow.legg@example.com',
}
NEIGHBOUR_HEADERS = {'X-Portal-Role': 'resident', 'X-Portal-User': 'Rowan Ash', 'X-Portal-Unit': 'Unit 204'}
FM_HEADERS = {'X-Portal-Role': 'fm', 'X-Portal-User': 'Sarah Johnson'}

PAID_ON = (date.today() - timedelta(days=1)).isoformat()


class MovePortalApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        session_factory = make_sessionmaker()

        def override_get_db():
            with session_factory() as db:
                yield db

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _submit(self, **overrides) -> dict:
        payload = {
            'move_type': 'MoveIn',
            'move_date': (date.today() + timedelta(days=10)).isoformat(),
            'start_time': '08:00',
            'end_time': '14:00',
            'estimated_duration_hours': 6,
            'loading_dock': 'Dock1',
            'moving_company_type': 'Professional',
            'moving_company_name': 'Swift Movers Ltd',
            'moving_company_insurance': True,
            'terms_accepted': True,
        }
        payload.update(overrides)
        response = self.client.post('/resident/move-requests', json=payload, headers=RESIDENT_HEADERS)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _fm(self, method: str, move_id: str, action: str, payload: dict | None = None):
        url = f'/facilities/move-requests/{move_id}/{action}'
        if method == 'get':
            return self.client.get(url, headers=FM_HEADERS)
        return self.client.post(url, json=payload, headers=FM_HEADERS)

    def _resident(self, move_id: str, action: str, payload: dict | None = None):
        return self.client.post(f'/resident/move-requests/{move_id}/{action}', json=payload, headers=RESIDENT_HEADERS)


class BankFlowApiTests(MovePortalApiTestCase):
    def test_full_bank_flow(self) -> None:
        move = self._submit()
        self.assertEqual(move['id'], 'MOVE-001')
        self.assertEqual(move['status'], 'Pending')
        self.assertEqual(move['resident_unit'], 'Unit 111')
        self.assertIsNone(move['deposit_amount'])

        comments = self.client.get('/resident/move-requests/MOVE-001/comments', headers=RESIDENT_HEADERS).json()
        self.assertEqual(len(comments), 1)
        self.assertEqual(comments[0]['status_change'], {'from': '', 'to': 'Pending'})
        self.assertEqual(comments[0]['author'], 'system')

        missing_details = self._fm('post', 'MOVE-001', 'approve', {'method': 'bank', 'amount': '500'})
        self.assertEqual(missing_details.status_code, 400)
        self.assertEqual(missing_details.json()['error'], 'ValidationFailed')

        approved = self._fm(
            'post', 'MOVE-001', 'approve', {'method': 'bank', 'amount': '500', 'bank_details': 'Bank: X, Acct: 123'}
        )
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertEqual(approved.json()['status'], 'DepositPending')
        self.assertEqual(approved.json()['deposit_amount'], '500.00')
        self.assertEqual(approved.json()['approved_by'], 'Sarah Johnson')

        unread = self.client.get('/resident/move-requests/MOVE-001/comments/unread', headers=RESIDENT_HEADERS)
        self.assertEqual(unread.json(), {'unread': 1})
        marked = self._resident('MOVE-001', 'comments/read')
        self.assertEqual(marked.json(), {'marked_read': 1})

        no_proof = self._resident('MOVE-001', 'claim-payment', {'paid_date': PAID_ON})
        self.assertEqual(no_proof.status_code, 400)

        claimed = self._resident('MOVE-001', 'claim-payment', {'paid_date': PAID_ON, 'proof_ref': 'proof.pdf'})
        self.assertEqual(claimed.json()['status'], 'PaymentClaimed')

        verified = self._fm('post', 'MOVE-001', 'verify-payment')
        self.assertEqual(verified.json()['status'], 'DepositVerified')
        self.assertTrue(verified.json()['deposit_paid'])

        insured = self._resident('MOVE-001', 'insurance', {'has_insurance': True})
        self.assertEqual(insured.json()['status'], 'FullyApproved')
        self.assertTrue(insured.json()['insurance_selected'])

        again = self._resident('MOVE-001', 'insurance', {'has_insurance': False})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()['error'], 'PreconditionFailed')

        thread = self._fm('get', 'MOVE-001', 'comments').json()
        self.assertEqual(
            [comment['status_change']['to'] for comment in thread],
            ['Pending', 'DepositPending', 'PaymentClaimed', 'DepositVerified', 'FullyApproved'],
        )

    def test_reject_then_approve_conflicts(self) -> None:
        self._submit()
        rejected = self._fm('post', 'MOVE-001', 'reject', {'reason': 'Elevator unavailable'})
        self.assertEqual(rejected.json()['status'], 'Rejected')
        self.assertEqual(rejected.json()['rejection_reason'], 'Elevator unavailable')

        approve = self._fm('post', 'MOVE-001', 'approve', {'method': 'bank', 'amount': '500', 'bank_details': 'X'})
        self.assertEqual(approve.status_code, 409)

    def test_resident_edits_pending_request(self) -> None:
        self._submit()
        edited = self.client.patch(
            '/resident/move-requests/MOVE-001',
            json={'moving_trolleys': 4, 'special_requirements': 'Piano'},
            headers=RESIDENT_HEADERS,
        )
        self.assertEqual(edited.status_code, 200, edited.text)
        self.assertEqual(edited.json()['moving_trolleys'], 4)
        self.assertEqual(edited.json()['special_requirements'], 'Piano')

        too_many = self.client.patch(
            '/resident/move-requests/MOVE-001', json={'moving_trolleys': 8}, headers=RESIDENT_HEADERS
        )
        self.assertEqual(too_many.status_code, 400)

    def test_resident_stats_and_cancel(self) -> None:
        self._submit()
        self._submit()
        stats = self.client.get('/resident/stats', headers=RESIDENT_HEADERS).json()
        self.assertEqual(stats, {'active_move_requests': 2, 'pending_approvals': 2, 'awaiting_resident_action': 0})

        cancelled = self._resident('MOVE-002', 'cancel')
        self.assertEqual(cancelled.json()['status'], 'Cancelled')
        self.assertEqual(self._resident('MOVE-002', 'cancel').status_code, 409)

        stats = self.client.get('/resident/stats', headers=RESIDENT_HEADERS).json()
        self.assertEqual(stats['active_move_requests'], 1)


class CashFlowApiTests(MovePortalApiTestCase):
    def test_cash_receipt_round_trip(self) -> None:
        self._submit(deposit_payment_method='cash')
        approved = self._fm(
            'post',
            'MOVE-001',
            'approve',
            {'method': 'cash', 'amount': '750', 'cash_date': (date.today() + timedelta(days=3)).isoformat()},
        )
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertIsNone(approved.json()['deposit_bank_details'])

        claimed = self._resident('MOVE-001', 'claim-payment', {'paid_date': PAID_ON})
        self.assertEqual(claimed.json()['status'], 'PaymentClaimed')

        self.assertEqual(self._fm('post', 'MOVE-001', 'verify-payment').status_code, 409)

        receipt = self._fm('post', 'MOVE-001', 'cash-receipt', {'received_by': 'Sarah Johnson'})
        self.assertEqual(receipt.status_code, 201, receipt.text)
        body = receipt.json()
        self.assertRegex(body['receipt_number'], r'^CR-\d{8}-\d{3}$')
        self.assertEqual(body['amount'], '750.00')
        self.assertEqual(body['resident_unit'], 'Unit 111')

        duplicate = self._fm('post', 'MOVE-001', 'cash-receipt', {'received_by': 'Sarah Johnson'})
        self.assertEqual(duplicate.status_code, 409)

        stored = self._fm('get', 'MOVE-001', 'cash-receipt').json()
        self.assertEqual(stored['receipt_number'], body['receipt_number'])

        by_number = self.client.get(f"/facilities/cash-receipts/{body['receipt_number']}", headers=FM_HEADERS)
        self.assertEqual(by_number.json()['move_request_id'], 'MOVE-001')
        missing = self.client.get('/facilities/cash-receipts/CR-20240101-999', headers=FM_HEADERS)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(
            self.client.get(f"/facilities/cash-receipts/{body['receipt_number']}", headers=RESIDENT_HEADERS).status_code,
            403,
        )

        detail = self.client.get('/resident/move-requests/MOVE-001', headers=RESIDENT_HEADERS).json()
        self.assertEqual(detail['status'], 'DepositVerified')
        self.assertEqual(detail['cash_receipt_number'], body['receipt_number'])


class AccessApiTests(MovePortalApiTestCase):
    def test_missing_role_is_unauthorized(self) -> None:
        self.assertEqual(self.client.get('/resident/stats').status_code, 401)
        self.assertEqual(self.client.get('/facilities/move-requests', headers={'X-Portal-Role': 'admin'}).status_code, 401)

    def test_wrong_role_is_forbidden(self) -> None:
        self.assertEqual(self.client.get('/resident/stats', headers=FM_HEADERS).status_code, 403)
        self.assertEqual(self.client.get('/facilities/move-requests', headers=RESIDENT_HEADERS).status_code, 403)

    def test_other_units_requests_are_hidden(self) -> None:
        self._submit()
        detail = self.client.get('/resident/move-requests/MOVE-001', headers=NEIGHBOUR_HEADERS)
        self.assertEqual(detail.status_code, 404)
        self.assertEqual(detail.json()['error'], 'NotFound')

        listing = self.client.get('/resident/move-requests', headers=NEIGHBOUR_HEADERS)
        self.assertEqual(listing.json(), [])

        cancel = self.client.post('/resident/move-requests/MOVE-001/cancel', headers=NEIGHBOUR_HEADERS)
        self.assertEqual(cancel.status_code, 404)

    def test_resident_without_unit_is_unauthorized(self) -> None:
        self._submit()
        cancel = self.client.post('/resident/move-requests/MOVE-001/cancel', headers={'X-Portal-Role': 'resident'})
        self.assertEqual(cancel.status_code, 401)
        detail = self.client.get('/facilities/move-requests/MOVE-001', headers=FM_HEADERS)
        self.assertEqual(detail.json()['status'], 'Pending')

    def test_duplicate_move_id_is_a_conflict(self) -> None:
        self._submit()
        with patch('move_portal.services.move_request_service._next_move_id', return_value='MOVE-001'):
            response = self.client.post(
                '/resident/move-requests',
                json={
                    'move_type': 'MoveIn',
                    'move_date': (date.today() + timedelta(days=12)).isoformat(),
                    'loading_dock': 'Dock2',
                    'moving_company_type': 'SelfMove',
                    'terms_accepted': True,
                },
                headers=RESIDENT_HEADERS,
            )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'Conflict')
        listing = self.client.get('/resident/move-requests', headers=RESIDENT_HEADERS).json()
        self.assertEqual([move['id'] for move in listing], ['MOVE-001'])

    def test_unknown_request_is_not_found(self) -> None:
        self.assertEqual(self._fm('get', 'MOVE-404', 'comments').status_code, 404)
        self.assertEqual(self.client.get('/facilities/move-requests/MOVE-404', headers=FM_HEADERS).status_code, 404)

    def test_status_filter(self) -> None:
        self._submit()
        pending = self.client.get('/facilities/move-requests?status=Pending', headers=FM_HEADERS)
        self.assertEqual([move['id'] for move in pending.json()], ['MOVE-001'])
        self.assertEqual(self.client.get('/facilities/move-requests?status=Approved', headers=FM_HEADERS).status_code, 400)

    def test_security_headers(self) -> None:
        response = self.client.get('/')
        self.assertEqual(response.headers['Cache-Control'], 'no-store')
        self.assertEqual(response.headers['X-Robots-Tag'], 'noindex, nofollow, noarchive')


if __name__ == '__main__':
    unittest.main()
