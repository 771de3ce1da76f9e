from __future__ import annotations

import base64
import hashlib
import hmac
import unittest

from subgate.core import crypto


class PlisioSignatureTests(unittest.TestCase):
    secret = "plisio-secret"

    def signed(self, **data):
        data["verify_hash"] = crypto.plisio_verify_hash(data, self.secret)
        return data

    def test_canonical_form_is_sorted_compact_json(self) -> None:
        data = {"status": "completed", "order_number": "alice-1", "amount": "19.99", "verify_hash": "x"}
        expected = hmac.new(
            self.secret.encode(),
            b'{"amount":"19.99","order_number":"alice-1","status":"completed"}',
            hashlib.sha1,
        ).hexdigest()
        self.assertEqual(crypto.plisio_verify_hash(data, self.secret), expected)

    def test_valid_signature_accepted(self) -> None:
        data = self.signed(txn_id="T1", order_number="alice-1", status="completed")
        self.assertTrue(crypto.verify_plisio_callback(data, self.secret))

    def test_tampered_field_rejected(self) -> None:
        data = self.signed(txn_id="T1", order_number="alice-1", status="expired")
        data["status"] = "completed"
        self.assertFalse(crypto.verify_plisio_callback(data, self.secret))

    def test_wrong_secret_rejected(self) -> None:
        data = self.signed(order_number="alice-1", status="completed")
        self.assertFalse(crypto.verify_plisio_callback(data, "other"))

    def test_missing_hash_or_secret_rejected(self) -> None:
        self.assertFalse(crypto.verify_plisio_callback({"status": "completed"}, self.secret))
        data = self.signed(order_number="alice-1", status="completed")
        self.assertFalse(crypto.verify_plisio_callback(data, ""))
        self.assertFalse(crypto.verify_plisio_callback(None, self.secret))
        self.assertFalse(crypto.verify_plisio_callback(["not", "a", "dict"], self.secret))


class CryptomusSignatureTests(unittest.TestCase):
    api_key = "cryptomus-key"

    def test_sign_escapes_slashes_like_php(self) -> None:
        data = {"order_id": "bob-1", "url": "https://x.test/cb", "sign": "ignored"}
        body = '{"order_id":"bob-1","url":"https:\\/\\/x.test\\/cb"}'
        expected = hashlib.md5(
            (base64.b64encode(body.encode()).decode() + self.api_key).encode()
        ).hexdigest()
        self.assertEqual(crypto.cryptomus_sign(data, self.api_key), expected)

    def test_non_ascii_is_not_escaped(self) -> None:
        self.assertEqual(crypto.php_json({"name": "café"}), '{"name":"café"}')

    def test_valid_signature_accepted(self) -> None:
        data = {"uuid": "u-1", "order_id": "bob-1", "status": "paid"}
        data["sign"] = crypto.cryptomus_sign(data, self.api_key)
        self.assertTrue(crypto.verify_cryptomus_callback(data, self.api_key))

    def test_tampered_payload_rejected(self) -> None:
        data = {"uuid": "u-1", "order_id": "bob-1", "status": "cancel"}
        data["sign"] = crypto.cryptomus_sign(data, self.api_key)
        data["status"] = "paid"
        self.assertFalse(crypto.verify_cryptomus_callback(data, self.api_key))

    def test_missing_sign_rejected(self) -> None:
        self.assertFalse(crypto.verify_cryptomus_callback({"order_id": "bob-1"}, self.api_key))
        self.assertFalse(crypto.verify_cryptomus_callback({"order_id": "bob-1", "sign": "abc"}, ""))


if __name__ == "__main__":
    unittest.main()
