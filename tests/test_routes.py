import pytest

pytestmark = pytest.mark.asyncio

SCHOOL_ID = "school-1"


async def create_fee(client, amounts=(100, 100), discount=0):
    payload = {
        "school_id": SCHOOL_ID,
        "student_id": "student-9",
        "amount": sum(amounts),
        "discount": discount,
        "installments": [
            {"amount": amount, "due_date": f"2025-{month:02d}-01"}
            for month, amount in enumerate(amounts, start=1)
        ],
    }
    resp = await client.post("/api/fees/create", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_create_fee_with_installments(client):
    fee = await create_fee(client, amounts=(300, 300), discount=100)
    assert fee["status"] == "unpaid"
    assert fee["balance"] == 500
    assert fee["paid"] == 0

    resp = await client.get(f"/api/fees/get-by/{fee['fee_id']}/installments")
    assert resp.status_code == 200
    installments = resp.json()
    assert [i["installment_id"] for i in installments] == [f"{fee['fee_id']}-01", f"{fee['fee_id']}-02"]
    assert all(i["receipt_number"] is None for i in installments)


async def test_create_fee_rejects_paid_installments(client):
    payload = {
        "school_id": SCHOOL_ID,
        "student_id": "student-9",
        "amount": 100,
        "installments": [{"amount": 100, "due_date": "2025-01-01", "status": "paid"}],
    }
    resp = await client.post("/api/fees/create", json=payload)
    assert resp.status_code == 400


async def test_pay_installment_with_cascade(client):
    await client.put(f"/api/settings/{SCHOOL_ID}", json={
        "installment_receipt_number_format": "year",
        "installment_receipt_number_year": 2025,
    })
    fee = await create_fee(client)

    resp = await client.post(f"/api/installments/{fee['fee_id']}-01/pay", json={"amount": 150, "payment_method": "cash"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["receipt_numbers"] == ["1/2025", "2/2025"]
    assert [i["status"] for i in body["installments"]] == ["paid", "partial"]
    assert body["installments"][1]["balance"] == 50
    assert body["fee"]["paid"] == 150
    assert body["fee"]["status"] == "partial"
    assert body["unapplied_amount"] == 0

    resp = await client.get(f"/api/fees/get-by/{fee['fee_id']}")
    assert resp.json()["balance"] == 50


async def test_pay_rejects_non_positive_amount(client):
    fee = await create_fee(client)
    resp = await client.post(f"/api/installments/{fee['fee_id']}-01/pay", json={"amount": -10})
    assert resp.status_code == 400


async def test_pay_unknown_installment(client):
    resp = await client.post("/api/installments/missing/pay", json={"amount": 10})
    assert resp.status_code == 404


async def test_pay_unknown_receipt_type(client):
    fee = await create_fee(client)
    resp = await client.post(f"/api/installments/{fee['fee_id']}-01/pay", json={"amount": 10, "receipt_type": "bogus"})
    assert resp.status_code == 400


async def test_pay_rejects_unknown_payment_method(client):
    fee = await create_fee(client)
    resp = await client.post(f"/api/installments/{fee['fee_id']}-01/pay", json={"amount": 10, "payment_method": "barter"})
    assert resp.status_code == 400

    installments = (await client.get(f"/api/fees/get-by/{fee['fee_id']}/installments")).json()
    assert installments[0]["paid_amount"] == 0
    assert installments[0]["receipt_number"] is None


async def test_reconcile_endpoint_is_stable(client):
    fee = await create_fee(client)
    await client.post(f"/api/installments/{fee['fee_id']}-01/pay", json={"amount": 60})

    first = (await client.post(f"/api/fees/{fee['fee_id']}/reconcile")).json()
    second = (await client.post(f"/api/fees/{fee['fee_id']}/reconcile")).json()
    assert (first["paid"], first["balance"], first["status"]) == (60, 140, "partial")
    assert (second["paid"], second["balance"], second["status"]) == (60, 140, "partial")


async def test_get_settings_creates_defaults(client):
    resp = await client.get("/api/settings/new-school")
    assert resp.status_code == 200
    body = resp.json()
    assert body["receipt_number_format"] == "auto"
    assert body["receipt_number_counter"] == 1
    assert body["installment_receipt_number_counter"] == 1


async def test_settings_reject_backwards_counter(client):
    resp = await client.put(f"/api/settings/{SCHOOL_ID}", json={"receipt_number_counter": 10})
    assert resp.status_code == 200
    resp = await client.put(f"/api/settings/{SCHOOL_ID}", json={"receipt_number_counter": 4})
    assert resp.status_code == 400
    assert (await client.get(f"/api/settings/{SCHOOL_ID}")).json()["receipt_number_counter"] == 10


async def test_settings_reject_unknown_format(client):
    resp = await client.put(f"/api/settings/{SCHOOL_ID}", json={"receipt_number_format": "roman"})
    assert resp.status_code == 400


async def test_preview_and_reserve(client):
    await client.put(f"/api/settings/{SCHOOL_ID}", json={
        "receipt_number_format": "custom",
        "receipt_number_prefix": "INV-",
        "receipt_number_counter": 5,
    })

    preview = await client.get(f"/api/settings/{SCHOOL_ID}/receipt-numbers/fee/next")
    assert preview.json()["receipt_numbers"] == ["INV-5"]

    reserved = await client.post(f"/api/settings/{SCHOOL_ID}/receipt-numbers/fee/reserve", params={"count": 2})
    assert reserved.status_code == 200
    assert reserved.json()["receipt_numbers"] == ["INV-5", "INV-6"]

    preview = await client.get(f"/api/settings/{SCHOOL_ID}/receipt-numbers/fee/next")
    assert preview.json()["receipt_numbers"] == ["INV-7"]


async def test_reserve_without_settings_returns_distinct_numbers(client):
    resp = await client.post("/api/settings/no-settings-school/receipt-numbers/installment/reserve", params={"count": 5})
    assert resp.status_code == 200
    numbers = resp.json()["receipt_numbers"]
    assert len(set(numbers)) == 5
    assert all(n.startswith("INST-") for n in numbers)


async def test_reserve_rejects_unknown_type(client):
    resp = await client.post(f"/api/settings/{SCHOOL_ID}/receipt-numbers/refund/reserve")
    assert resp.status_code == 400


async def test_validate_receipt_number(client):
    await client.put(f"/api/settings/{SCHOOL_ID}", json={"installment_receipt_number_format": "short-year"})

    resp = await client.post(f"/api/settings/{SCHOOL_ID}/receipt-numbers/installment/validate", json={"receipt_number": "7/25"})
    assert resp.json() == {"receipt_number": "7/25", "valid": True, "in_use": False}

    resp = await client.post("/api/settings/unknown/receipt-numbers/installment/validate", json={"receipt_number": "7/25"})
    assert resp.status_code == 404
