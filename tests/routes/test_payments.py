"""
Tests for POST /payments (payment plus income transaction in the default category).
"""


class TestCreatePayment:

    def test_records_payment_and_default_category_transaction(self, client, make_invoice, make_customer):
        customer_id = make_customer(name="CV Abadi")
        invoice_id = make_invoice(total="300.00", customer_id=customer_id)

        response = client.post(
            "/payments",
            json={
                "invoiceId": str(invoice_id),
                "amount": "300",
                "paymentMethod": "card",
                "referenceNo": "EDC-77",
                "notes": "front desk",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PAID"
        assert data["remaining"] == "0.00"
        assert data["payment"]["invoiceId"] == str(invoice_id)
        assert data["payment"]["paymentMethod"] == "CARD"
        assert data["transaction"]["type"] == "INCOME"
        assert data["transaction"]["category"]["name"] == "Invoice Payment"
        assert data["transaction"]["reference"] == "EDC-77"
        assert "CV Abadi" in data["transaction"]["description"]
        assert data["transaction"]["description"].endswith("front desk")

    def test_missing_invoice_id(self, client):
        response = client.post("/payments", json={"amount": 10})

        assert response.status_code == 400
        assert response.json()["detail"]["details"] == "Invoice ID and amount are required"

    def test_cancelled_invoice(self, client, make_invoice):
        invoice_id = make_invoice(status="CANCELLED")

        response = client.post("/payments", json={"invoiceId": invoice_id, "amount": 10})

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "error": "invalid_state",
            "details": "Cannot add payment to cancelled invoice",
        }

    def test_unknown_payment_method(self, client, make_invoice):
        invoice_id = make_invoice()

        response = client.post("/payments", json={"invoiceId": invoice_id, "amount": 10, "paymentMethod": "barter"})

        assert response.status_code == 400
        assert client.get(f"/invoices/{invoice_id}/payments").json() == []

    def test_malformed_payment_date(self, client, make_invoice):
        invoice_id = make_invoice()

        response = client.post(
            "/payments",
            json={"invoiceId": invoice_id, "amount": 10, "paymentDate": "not-a-date"},
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "invalid_request"
        assert detail["details"].startswith("Invalid paymentDate")
        assert client.get(f"/invoices/{invoice_id}/payments").json() == []

    def test_malformed_invoice_id(self, client):
        response = client.post("/payments", json={"invoiceId": "abc", "amount": 10})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_request"
