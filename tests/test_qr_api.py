"""
End-to-end tests for the reservation, QR and admin endpoints.

Requests go through the ASGI app with the test database session and a QR
codec bound to a fixed secret.
"""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from promohub.models import PaymentType, Redemption, RedemptionStatus
from promohub.qr.token import now_ms

API = "/api/v1"


async def generate(client, auth_headers, customer, reservation, payment_type="IN_STORE") -> dict:
    response = await client.post(
        f"{API}/qr/generate",
        json={"reservationId": str(reservation.id), "paymentType": payment_type},
        headers=auth_headers(customer),
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
class TestReservationEndpoints:
    """Test reserving and listing promo slots."""

    async def test_reserve_and_list(self, client, auth_headers, customer, promo):
        response = await client.post(
            f"{API}/reservations",
            json={"promoId": str(promo.id)},
            headers=auth_headers(customer),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["userId"] == str(customer.id)
        assert "reservationId" in data
        assert "expiresAt" in data

        response = await client.get(f"{API}/reservations", headers=auth_headers(customer))
        assert response.status_code == 200
        listing = response.json()
        assert listing["total"] == 1
        assert listing["reservations"][0]["id"] == data["reservationId"]
        assert listing["reservations"][0]["status"] == "ACTIVE"

    async def test_reserve_twice(self, client, auth_headers, customer, reservation, promo):
        response = await client.post(
            f"{API}/reservations",
            json={"promoId": str(promo.id)},
            headers=auth_headers(customer),
        )

        assert response.status_code == 409
        assert response.json()["reason"] == "already_reserved"

    async def test_reserve_unknown_promo(self, client, auth_headers, customer):
        response = await client.post(
            f"{API}/reservations",
            json={"promoId": str(uuid4())},
            headers=auth_headers(customer),
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Promo not found", "reason": "promo_not_found"}

    async def test_merchant_cannot_reserve(self, client, auth_headers, merchant, promo):
        response = await client.post(
            f"{API}/reservations",
            json={"promoId": str(promo.id)},
            headers=auth_headers(merchant),
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestGenerateEndpoint:
    """Test POST /qr/generate."""

    async def test_generate(self, client, auth_headers, codec, customer, reservation, promo):
        data = await generate(client, auth_headers, customer, reservation, "PARTIAL_WALLET")

        assert data["payload"]["reservationId"] == str(reservation.id)
        assert data["payload"]["promoId"] == str(promo.id)
        assert data["payload"]["paymentType"] == "PARTIAL_WALLET"
        assert data["payload"]["v"] == 1
        assert data["expiresAt"] == data["payload"]["ts"] + 10 * 60 * 1000
        assert codec.verify(data["token"]).valid is True

    async def test_generate_requires_auth(self, client, reservation):
        response = await client.post(
            f"{API}/qr/generate",
            json={"reservationId": str(reservation.id), "paymentType": "IN_STORE"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Authentication required"

    async def test_generate_with_bad_jwt(self, client, reservation):
        response = await client.post(
            f"{API}/qr/generate",
            json={"reservationId": str(reservation.id), "paymentType": "IN_STORE"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    async def test_generate_rejects_unknown_payment_type(self, client, auth_headers, customer, reservation):
        response = await client.post(
            f"{API}/qr/generate",
            json={"reservationId": str(reservation.id), "paymentType": "CRYPTO"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 422

    async def test_generate_requires_user_role(self, client, auth_headers, admin, reservation):
        response = await client.post(
            f"{API}/qr/generate",
            json={"reservationId": str(reservation.id), "paymentType": "IN_STORE"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 403


@pytest.mark.asyncio
class TestValidateEndpoint:
    """Test POST /qr/validate."""

    async def test_validate(self, client, auth_headers, customer, merchant, reservation, promo):
        token = (await generate(client, auth_headers, customer, reservation))["token"]

        response = await client.post(
            f"{API}/qr/validate", json={"token": token}, headers=auth_headers(merchant)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        summary = data["summary"]
        assert summary["reservationId"] == str(reservation.id)
        assert summary["promoId"] == str(promo.id)
        assert summary["promoTitle"] == "Half-price pizza"
        assert summary["discountedPrice"] == 20.0
        assert summary["cashbackPercent"] == 10.0
        assert summary["paymentType"] == "IN_STORE"
        assert summary["user"] == {"id": str(customer.id), "name": "Alice", "email": "alice@example.com"}

    async def test_validate_missing_token(self, client, auth_headers, merchant):
        response = await client.post(f"{API}/qr/validate", json={}, headers=auth_headers(merchant))

        assert response.status_code == 400
        assert response.json() == {"error": "Missing token", "reason": "missing_token"}

    async def test_validate_expired_token(self, client, auth_headers, codec, merchant, reservation, promo):
        token = codec.generate(
            str(promo.id), str(reservation.id), PaymentType.IN_STORE, now=now_ms() - 11 * 60 * 1000
        ).token

        response = await client.post(
            f"{API}/qr/validate", json={"token": token}, headers=auth_headers(merchant)
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "expired"

    async def test_validate_requires_merchant(self, client, auth_headers, customer, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]

        response = await client.post(
            f"{API}/qr/validate", json={"token": token}, headers=auth_headers(customer)
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}

    async def test_validate_other_merchant(self, client, auth_headers, customer, other_merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]

        response = await client.post(
            f"{API}/qr/validate", json={"token": token}, headers=auth_headers(other_merchant)
        )

        assert response.status_code == 403
        assert response.json()["reason"] == "promo_not_authorized"


@pytest.mark.asyncio
class TestConfirmEndpoint:
    """Test POST /qr/confirm."""

    async def test_confirm(self, client, auth_headers, db_session, customer, merchant, reservation, wallet):
        token = (await generate(client, auth_headers, customer, reservation, "PARTIAL_WALLET"))["token"]

        response = await client.post(
            f"{API}/qr/confirm",
            json={"token": token, "walletUsed": 5},
            headers=auth_headers(merchant),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert "alreadyConfirmed" not in data

        result = await db_session.execute(
            select(Redemption).where(Redemption.id == UUID(data["redemptionId"]))
        )
        redemption = result.scalar_one()
        assert redemption.status == RedemptionStatus.CONFIRMED
        assert redemption.wallet_used == 5.0

    async def test_retry_with_idempotency_key(self, client, auth_headers, customer, merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]
        headers = {**auth_headers(merchant), "Idempotency-Key": "till-3-scan-17"}

        first = await client.post(f"{API}/qr/confirm", json={"token": token}, headers=headers)
        second = await client.post(f"{API}/qr/confirm", json={"token": token}, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json() == {
            "status": "CONFIRMED",
            "redemptionId": first.json()["redemptionId"],
            "alreadyConfirmed": True,
        }

    async def test_reuse_without_key(self, client, auth_headers, customer, merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]

        first = await client.post(f"{API}/qr/confirm", json={"token": token}, headers=auth_headers(merchant))
        second = await client.post(f"{API}/qr/confirm", json={"token": token}, headers=auth_headers(merchant))

        assert second.status_code == 409
        assert second.json() == {
            "error": "Token already used",
            "reason": "token_used",
            "redemptionId": first.json()["redemptionId"],
        }

    async def test_validate_after_confirm(self, client, auth_headers, customer, merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]
        await client.post(f"{API}/qr/confirm", json={"token": token}, headers=auth_headers(merchant))

        response = await client.post(
            f"{API}/qr/validate", json={"token": token}, headers=auth_headers(merchant)
        )

        assert response.status_code == 409
        assert response.json()["reason"] == "token_used"

    async def test_partial_wallet_requires_amount(self, client, auth_headers, customer, merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation, "PARTIAL_WALLET"))["token"]

        response = await client.post(
            f"{API}/qr/confirm", json={"token": token}, headers=auth_headers(merchant)
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "wallet_required"

    @pytest.mark.parametrize("amount", ["NaN", "Infinity"])
    async def test_non_finite_wallet_amount(
        self, client, auth_headers, db_session, customer, merchant, reservation, wallet, amount
    ):
        reservation_id = reservation.id
        token = (await generate(client, auth_headers, customer, reservation, "PARTIAL_WALLET"))["token"]

        # Python's json module reads these literals, so they reach the service as floats
        response = await client.post(
            f"{API}/qr/confirm",
            content=f'{{"token": "{token}", "walletUsed": {amount}}}',
            headers={**auth_headers(merchant), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid wallet amount", "reason": "invalid_wallet_amount"}

        result = await db_session.execute(
            select(Redemption).where(Redemption.reservation_id == reservation_id)
        )
        assert result.scalar_one_or_none() is None

    async def test_promo_mismatch(self, client, auth_headers, codec, merchant, reservation):
        token = codec.generate(str(uuid4()), str(reservation.id), PaymentType.IN_STORE).token

        for path in ("validate", "confirm"):
            response = await client.post(
                f"{API}/qr/{path}", json={"token": token}, headers=auth_headers(merchant)
            )
            assert response.status_code == 400
            assert response.json()["reason"] == "promo_mismatch"

    async def test_tampered_token(self, client, auth_headers, customer, merchant, reservation):
        token = (await generate(client, auth_headers, customer, reservation, "IN_STORE"))["token"]
        payload_b64, signature = token.split(".")
        forged = f"{payload_b64}x.{signature}"

        response = await client.post(
            f"{API}/qr/confirm", json={"token": forged}, headers=auth_headers(merchant)
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_signature"


@pytest.mark.asyncio
class TestAdminEndpoints:
    """Test the admin listing and expiry sweep."""

    async def test_list_redemptions(self, client, auth_headers, customer, merchant, admin, reservation):
        token = (await generate(client, auth_headers, customer, reservation))["token"]
        confirmed = await client.post(f"{API}/qr/confirm", json={"token": token}, headers=auth_headers(merchant))

        response = await client.get(
            f"{API}/admin/redemptions",
            params={"merchantId": str(merchant.id), "status": "CONFIRMED"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["redemptions"][0]
        assert item["id"] == confirmed.json()["redemptionId"]
        assert item["reservationId"] == str(reservation.id)
        assert item["status"] == "CONFIRMED"
        assert len(item["qrTokenHash"]) == 64
        assert token not in response.text

    async def test_list_redemptions_requires_admin(self, client, auth_headers, merchant):
        response = await client.get(f"{API}/admin/redemptions", headers=auth_headers(merchant))
        assert response.status_code == 403

    async def test_list_redemptions_limit_bounds(self, client, auth_headers, admin):
        response = await client.get(
            f"{API}/admin/redemptions", params={"limit": 0}, headers=auth_headers(admin)
        )
        assert response.status_code == 422

    async def test_expire_reservations(self, client, auth_headers, db_session, admin, reservation):
        reservation.expires_at = datetime.utcnow() - timedelta(minutes=1)
        await db_session.commit()

        response = await client.post(f"{API}/admin/reservations/expire", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {"expired": 1}
