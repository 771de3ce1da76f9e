from __future__ import annotations

import asyncio
import json
import unittest
from decimal import Decimal

from fastapi import HTTPException
from starlette.requests import Request

from subgate import main
from subgate.core import crypto
from subgate.core.settings import Settings
from subgate.core.time import now_ts
from subgate.models import AdjustedPricesReq, ApplyPromoReq, CreateInvoiceReq, RequestTrialReq, VerifyUserReq
from subgate.routers import callbacks as callback_routes
from subgate.routers import checkout as checkout_routes
from subgate.routers import misc as misc_routes
from subgate.routers import pricing as pricing_routes
from subgate.routers import subscription as subscription_routes
from subgate.services.cryptomus import CryptomusProvider
from subgate.services.invoices import create_invoice
from subgate.services.payment_provider import Checkout
from subgate.services.plisio import PlisioProvider
from tests.fakes import make_tables, store_unavailable

SECRET = "plisio-secret"


def build_request(path: str, *, method: str = "POST", json_body: bytes | None = None) -> Request:
    headers = [
        (b"content-type", b"application/json"),
    ]
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": headers,
        "query_string": b"",
        "client": ("127.0.0.1", 1234),
    }

    async def receive() -> dict:
        return {"type": "http.request", "body": json_body or b"", "more_body": False}

    return Request(scope, receive)


def signed_plisio(**data) -> bytes:
    data["verify_hash"] = crypto.plisio_verify_hash(data, SECRET)
    return json.dumps(data).encode()


class SubscriptionRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tables = make_tables()

    def test_verify_unknown_user(self) -> None:
        resp = subscription_routes.verify_user(VerifyUserReq(username="  Alice "), self.tables)
        self.assertFalse(resp["isValid"])
        self.assertTrue(resp["availableTrial"])
        self.assertIn("Alice", resp["message"])

    def test_stake_username_alias(self) -> None:
        body = VerifyUserReq.model_validate({"stakeUsername": "Alice"})
        self.assertEqual(body.username, "Alice")

    def test_trial_then_verify(self) -> None:
        first = subscription_routes.request_trial(RequestTrialReq(username="Alice"), self.tables)
        self.assertTrue(first["success"])
        self.assertIn("alice", self.tables.users.items)

        second = subscription_routes.request_trial(RequestTrialReq(username="ALICE"), self.tables)
        self.assertEqual(second, {"success": False, "message": subscription_routes.TRIAL_UNAVAILABLE})

        status = subscription_routes.verify_user(VerifyUserReq(username="alice"), self.tables)
        self.assertTrue(status["isValid"])
        self.assertEqual(status["subscriptionType"], "trial")

    def test_blank_username_is_400(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            subscription_routes.verify_user(VerifyUserReq(username="   "), self.tables)
        self.assertEqual(ctx.exception.status_code, 400)


class PricingRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tables = make_tables()
        self.tables.promos.seed(
            {
                "code": "SAVE20",
                "discount": Decimal("0.2"),
                "expiration_date": now_ts() + 86400,
                "usage_limit": 5,
                "applicable_durations": ["1_month"],
            }
        )

    def test_apply_promo(self) -> None:
        body = ApplyPromoReq.model_validate({"promoCode": " SAVE20 ", "subscriptionType": "1_month"})
        resp = pricing_routes.apply_promo(body, self.tables)
        self.assertTrue(resp["success"])
        self.assertEqual(resp["updatedPrices"]["1_month"], 15.99)
        self.assertEqual(resp["updatedPrices"]["3_months"], 49.99)
        self.assertEqual(self.tables.promos.items["SAVE20"]["usage_limit"], 5)

    def test_apply_promo_invalid_type(self) -> None:
        body = ApplyPromoReq.model_validate({"promoCode": "SAVE20", "subscriptionType": "trial"})
        self.assertFalse(pricing_routes.apply_promo(body, self.tables)["success"])

    def test_adjusted_prices(self) -> None:
        body = AdjustedPricesReq.model_validate({"username": "Alice", "subscriptionType": "1_month"})
        resp = pricing_routes.get_adjusted_prices(body, self.tables)
        self.assertTrue(resp["success"])
        self.assertEqual(resp["adjustedPrices"]["1_month"], 19.99)
        self.assertEqual(resp["affiliateNumber"], 0)


class StubProvider(PlisioProvider):
    def __init__(self) -> None:
        super().__init__(Settings(plisio_secret_key=SECRET))
        self.calls = []

    def create_checkout(self, *, amount, currency, order_number, subscription_type):
        self.calls.append(order_number)
        return Checkout(invoice_url=f"https://pay.test/{order_number}", txn_id="T-" + order_number)


class CheckoutRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tables = make_tables()
        self.providers = {"plisio": StubProvider()}

    def test_create_invoice(self) -> None:
        body = CreateInvoiceReq.model_validate(
            {"username": "Alice", "subscriptionType": "1_month", "currency": "BTC", "referralUsername": " Bob "}
        )
        resp = checkout_routes.create_invoice_endpoint(body, self.tables, self.providers)
        self.assertTrue(resp["success"])
        invoice = self.tables.invoices.items[resp["orderNumber"]]
        self.assertEqual(invoice["username"], "alice")
        self.assertEqual(invoice["referral_username"], "bob")
        self.assertEqual(invoice["amount"], Decimal("19.99"))

    def test_unknown_provider(self) -> None:
        body = CreateInvoiceReq.model_validate(
            {"username": "Alice", "subscriptionType": "1_month", "currency": "BTC", "provider": "paypal"}
        )
        resp = checkout_routes.create_invoice_endpoint(body, self.tables, self.providers)
        self.assertFalse(resp["success"])
        self.assertEqual(self.tables.invoices.items, {})


class CallbackRoutesTests(unittest.TestCase):
    order = "alice-1760000000000"

    def setUp(self) -> None:
        self.tables = make_tables()
        self.providers = {"plisio": StubProvider()}
        create_invoice(
            self.tables,
            order_number=self.order,
            txn_id="T1",
            provider="plisio",
            username="alice",
            subscription_type="1_month",
            amount=Decimal("19.99"),
            currency="BTC",
        )

    def post(self, provider_name: str, body: bytes):
        return asyncio.run(callback_routes.payment_callback(
            provider_name,
            build_request(f"/{provider_name}-callback", json_body=body),
            self.tables,
            self.providers,
        ))

    def test_paid_callback_credits_user(self) -> None:
        resp = self.post("plisio", signed_plisio(order_number=self.order, status="completed", txn_id="T1"))
        self.assertEqual(resp["outcome"], "credited")
        self.assertEqual(self.tables.users.items["alice"]["subscription_type"], "1_month")

    def test_tampered_signature_is_rejected_before_any_write(self) -> None:
        body = json.loads(signed_plisio(order_number=self.order, status="expired", txn_id="T1"))
        body["status"] = "completed"
        before = dict(self.tables.invoices.items[self.order])
        with self.assertRaises(HTTPException) as ctx:
            self.post("plisio", json.dumps(body).encode())
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(self.tables.invoices.items[self.order], before)
        self.assertEqual(self.tables.users.items, {})

    def test_garbage_body_is_rejected(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            self.post("plisio", b"not json")
        self.assertEqual(ctx.exception.status_code, 422)

    def test_unknown_provider_is_404(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            self.post("stripe", b"{}")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_paid_callback_for_unknown_order_is_404(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            self.post("plisio", signed_plisio(order_number="ghost-1", status="completed"))
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(self.tables.users.items, {})


class CryptomusCallbackRoutesTests(unittest.TestCase):
    order = "bob-1760000000000"
    api_key = "cm-key"

    def setUp(self) -> None:
        self.tables = make_tables()
        self.providers = {"cryptomus": CryptomusProvider(Settings(cryptomus_api_key=self.api_key))}
        create_invoice(
            self.tables,
            order_number=self.order,
            txn_id="U1",
            provider="cryptomus",
            username="bob",
            subscription_type="3_months",
            amount=Decimal("49.99"),
            currency="USDT",
        )

    def signed(self, **data) -> bytes:
        data["sign"] = crypto.cryptomus_sign(data, self.api_key)
        return json.dumps(data).encode()

    def post(self, body: bytes):
        return asyncio.run(callback_routes.payment_callback(
            "cryptomus",
            build_request("/cryptomus-callback", json_body=body),
            self.tables,
            self.providers,
        ))

    def test_paid_callback_credits_user(self) -> None:
        resp = self.post(self.signed(uuid="U1", order_id=self.order, status="paid"))
        self.assertEqual(resp["outcome"], "credited")
        self.assertEqual(self.tables.users.items["bob"]["subscription_type"], "3_months")
        self.assertEqual(self.tables.invoices.items[self.order]["status"], "paid")

    def test_bad_sign_is_400_without_writes(self) -> None:
        body = json.loads(self.signed(uuid="U1", order_id=self.order, status="cancel"))
        body["status"] = "paid"
        before = dict(self.tables.invoices.items[self.order])
        with self.assertRaises(HTTPException) as ctx:
            self.post(json.dumps(body).encode())
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(self.tables.invoices.items[self.order], before)
        self.assertEqual(self.tables.invoices.writes, ["put_item"])
        self.assertEqual(self.tables.users.items, {})


class AppTests(unittest.TestCase):
    def test_ping(self) -> None:
        self.assertEqual(asyncio.run(misc_routes.ping()), {"ok": True})

    def test_create_app_uses_given_store(self) -> None:
        tables = make_tables()
        app = main.create_app(tables=tables, providers={})
        self.assertIs(app.state.tables, tables)
        paths = set(app.openapi()["paths"])
        self.assertIn("/verify-user", paths)
        self.assertIn("/{provider_name}-callback", paths)

    def test_store_errors_become_500(self) -> None:
        resp = asyncio.run(main.store_error_handler(build_request("/verify-user"), store_unavailable("GetItem")))
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(json.loads(resp.body), {"success": False, "message": "Internal server error."})


if __name__ == "__main__":
    unittest.main()
