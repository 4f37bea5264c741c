import hashlib
import hmac

from fundbridge.services.funding.payments import HmacPaymentVerifier, sign_payment


def test_signature_is_hmac_sha256_over_order_and_payment():
    expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

    assert sign_payment("secret", "order_1", "pay_1") == expected


def test_verifier_accepts_matching_signature():
    verifier = HmacPaymentVerifier(secret="secret")

    assert verifier.verify("order_1", "pay_1", sign_payment("secret", "order_1", "pay_1"))


def test_verifier_rejects_tampered_fields():
    verifier = HmacPaymentVerifier(secret="secret")
    signature = sign_payment("secret", "order_1", "pay_1")

    assert not verifier.verify("order_1", "pay_2", signature)
    assert not verifier.verify("order_2", "pay_1", signature)
    assert not verifier.verify("order_1", "pay_1", signature[:-1] + "0")
    assert not verifier.verify("order_1", "pay_1", sign_payment("other", "order_1", "pay_1"))


def test_verifier_rejects_blank_fields():
    verifier = HmacPaymentVerifier(secret="secret")

    assert not verifier.verify("", "pay_1", sign_payment("secret", "", "pay_1"))


def test_unconfigured_verifier_rejects_everything():
    verifier = HmacPaymentVerifier(secret="")

    assert not verifier.verify("order_1", "pay_1", sign_payment("secret", "order_1", "pay_1"))


def test_verifier_rejects_non_ascii_signature():
    verifier = HmacPaymentVerifier(secret="secret")

    assert not verifier.verify("order_1", "pay_1", "é" * 64)
    assert not verifier.verify("order_1", "pay_1", "ü")
