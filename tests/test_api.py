"""
HTTP surface: status mapping, auth and the main flows end to end.
"""

from decimal import Decimal

import pytest

from conftest import TENANT, bearer


def test_root(client):
    assert client.get("/").status_code == 200


class TestAuth:

    def test_missing_token(self, client):
        r = client.get("/payments/")
        assert r.status_code == 403
        body = r.json()
        assert body["success"] is False
        assert body["error_kind"] == "Unauthorized"

    def test_bad_token(self, client):
        r = client.get("/payments/", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 403
        assert r.json()["error_kind"] == "Unauthorized"

    def test_role_without_finance_rights(self, client):
        r = client.get("/payments/", headers=bearer(TENANT, "u1", "TEACHER"))
        assert r.status_code == 403
        assert r.json()["error_kind"] == "Unauthorized"


class TestTuitionFlow:

    @pytest.fixture
    def payment_id(self, client, admin_headers, student):
        r = client.post(
            "/payments/",
            json={"student_id": student.student_id, "amount": "1000000", "period_month": 9, "period_year": 2024},
            headers=admin_headers,
        )
        assert r.status_code == 201, r.text
        return r.json()["obligation"]["obligation_id"]

    def test_partial_then_complete(self, client, accountant_headers, payment_id):
        r = client.post(
            f"/payments/{payment_id}/partial",
            json={"amount": "600000", "payment_method": "CLICK", "notes": "first"},
            headers=accountant_headers,
        )
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "PARTIALLY_PAID"
        assert Decimal(body["remaining_amount"]) == Decimal("400000")
        assert body["is_completed"] is False

        r = client.post(f"/payments/{payment_id}/partial", json={"amount": "400000"}, headers=accountant_headers)
        assert r.json()["is_completed"] is True

        r = client.get(f"/payments/{payment_id}/contributions", headers=accountant_headers)
        assert [c["payment_method"] for c in r.json()["contributions"]] == ["CLICK", "CASH"]

    def test_overpayment_is_a_conflict_with_the_allowed_maximum(self, client, admin_headers, payment_id):
        client.post(f"/payments/{payment_id}/partial", json={"amount": "700000"}, headers=admin_headers)
        r = client.post(f"/payments/{payment_id}/partial", json={"amount": "300001"}, headers=admin_headers)

        assert r.status_code == 409
        body = r.json()
        assert body["error_kind"] == "ExceedsRemaining"
        assert Decimal(str(body["details"]["max_allowed"])) == Decimal("300000")

    def test_non_positive_amount(self, client, admin_headers, payment_id):
        r = client.post(f"/payments/{payment_id}/partial", json={"amount": "0"}, headers=admin_headers)
        assert r.status_code == 400
        assert r.json()["error_kind"] == "AmountNotPositive"

    def test_get_from_other_tenant(self, client, payment_id):
        r = client.get(f"/payments/{payment_id}", headers=bearer("tenant-b", "x", "ADMIN"))
        assert r.status_code == 404
        assert r.json()["error_kind"] == "ObligationNotFound"

    def test_salary_route_does_not_see_tuition(self, client, admin_headers, payment_id):
        r = client.get(f"/salaries/{payment_id}", headers=admin_headers)
        assert r.status_code == 404

    def test_cancel_and_delete(self, client, admin_headers, accountant_headers, payment_id):
        r = client.post(f"/payments/{payment_id}/cancel", json={"reason": "duplicate"}, headers=accountant_headers)
        assert r.status_code == 403

        r = client.post(f"/payments/{payment_id}/cancel", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["status"] == "CANCELLED"

        r = client.delete(f"/payments/{payment_id}", headers=admin_headers)
        assert r.status_code == 200
        assert client.get(f"/payments/{payment_id}", headers=admin_headers).status_code == 404

    def test_multi_month_is_idempotent(self, client, admin_headers, student):
        payload = {
            "student_id": student.student_id,
            "start_month": 11,
            "start_year": 2024,
            "months_count": 4,
            "payment_amount": "1500000",
        }
        first = client.post("/payments/multi-month", json=payload, headers=admin_headers)
        assert first.status_code == 201
        assert first.json()["created"] == 4
        assert Decimal(first.json()["applied_amount"]) == Decimal("1500000")

        second = client.post("/payments/multi-month", json={**payload, "payment_amount": None}, headers=admin_headers)
        assert second.json()["created"] == 0
        assert second.json()["skipped"] == 4

        listing = client.get("/payments/", params={"student_id": student.student_id}, headers=admin_headers)
        assert listing.json()["total"] == 4

    def test_student_overview(self, client, admin_headers, student, payment_id):
        r = client.get(
            f"/payments/students/{student.student_id}/overview",
            params={"start_month": 9, "start_year": 2024, "months": 2, "as_of": "2024-09-01"},
            headers=admin_headers,
        )
        assert r.status_code == 200
        assert [p["status"] for p in r.json()["periods"]] == ["PENDING", "NOT_CREATED"]


class TestSalaryFlow:

    def test_generate_and_pay_teacher_salary(self, client, admin_headers, teacher):
        r = client.post(
            "/salaries/multi-month",
            json={
                "employee_id": teacher.teacher_id,
                "employee_type": "TEACHER",
                "start_month": 1,
                "start_year": 2025,
                "months_count": 2,
            },
            headers=admin_headers,
        )
        assert r.status_code == 201
        jan = r.json()["created_obligations"][0]
        assert jan["teacher_id"] == teacher.teacher_id
        assert Decimal(jan["amount"]) == Decimal("3000000")

        r = client.post(
            f"/salaries/{jan['obligation_id']}/partial",
            json={"amount": "3000000", "payment_method": "CARD"},
            headers=admin_headers,
        )
        assert r.json()["status"] == "PAID"

        r = client.get("/reports/summary", params={"kind": "SALARY"}, headers=admin_headers)
        assert r.json()["paid"]["count"] == 1


class TestRatesAndBalance:

    def test_bulk_rate_update(self, client, admin_headers, student):
        r = client.post(
            "/rates/bulk-update",
            json={
                "subject_kind": "STUDENT",
                "subject_ids": [student.student_id],
                "new_rate": "1200000",
                "effective_from": "2025-01-01",
            },
            headers=admin_headers,
        )
        assert r.status_code == 200
        assert r.json()["updated_count"] == 1

    def test_negative_rate(self, client, admin_headers, student):
        r = client.post(
            "/rates/bulk-update",
            json={
                "subject_kind": "STUDENT",
                "subject_ids": [student.student_id],
                "new_rate": "-5",
                "effective_from": "2025-01-01",
            },
            headers=admin_headers,
        )
        assert r.status_code == 400
        assert r.json()["error_kind"] == "InvalidRate"

    def test_balance_with_expense(self, client, admin_headers):
        cat = client.post("/expenses/categories", json={"name": "Kommunal"}, headers=admin_headers)
        assert cat.status_code == 201
        category_id = cat.json()["category"]["category_id"]

        dup = client.post("/expenses/categories", json={"name": "Kommunal"}, headers=admin_headers)
        assert dup.status_code == 409

        exp = client.post(
            "/expenses/",
            json={"category_id": category_id, "expense_date": "2025-01-10", "amount": "250000"},
            headers=admin_headers,
        )
        assert exp.status_code == 201

        r = client.get(
            "/reports/balance",
            params={"from_date": "2025-01-01", "to_date": "2025-01-31"},
            headers=admin_headers,
        )
        assert r.status_code == 200
        body = r.json()
        assert Decimal(body["cash_expense"]) == Decimal("250000")
        assert Decimal(body["balance"]) == Decimal("-250000")

        in_use = client.delete(f"/expenses/categories/{category_id}", headers=admin_headers)
        assert in_use.status_code == 400

        listing = client.get("/expenses/", params={"from_date": "2025-01-01"}, headers=admin_headers)
        assert Decimal(listing.json()["total_amount"]) == Decimal("250000")
