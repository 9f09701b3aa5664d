"""
Certificate issuance and fail-closed verification.
"""

import base64
import json
import unittest
from unittest import mock

from promiseseal import config
from promiseseal import CertificateAuthority, MalformedCertificate, fingerprint_hash, generate_promise_keypair


def _tamper(certificate: str, **changes) -> str:
    cert = json.loads(base64.b64decode(certificate))
    cert["data"].update(changes)
    return base64.b64encode(json.dumps(cert).encode('utf-8')).decode('ascii')


class TestCertificateAuthority(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.keypair = generate_promise_keypair()
        cls.other = generate_promise_keypair()

    def setUp(self):
        self.authority = CertificateAuthority(secret="test-secret", issuer="Test Authority",
                                              clock=lambda: 1700000000000)
        self.cert = self.authority.issue("promise-42", self.keypair.public_key_pem, fingerprint_hash("cred-1"))

    def test_issue_then_verify(self):
        self.assertTrue(self.authority.verify(self.cert, self.keypair.public_key_pem))

    def test_decoded_fields(self):
        record = self.authority.decode(self.cert)
        self.assertEqual(record.promise_id, "promise-42")
        self.assertEqual(record.issued_at, 1700000000000)
        self.assertEqual(record.data["issuer"], "Test Authority")
        self.assertEqual(record.data["fingerprintHash"], fingerprint_hash("cred-1"))
        self.assertEqual(len(record.signature), 64)

    def test_tampered_fields_rejected(self):
        for change in [{"issuedAt": 1700000000001}, {"promiseId": "promise-43"},
                       {"fingerprintHash": fingerprint_hash("cred-2")},
                       {"publicKey": self.other.public_key_pem}]:
            with self.subTest(change=list(change)):
                tampered = _tamper(self.cert, **change)
                self.assertFalse(self.authority.verify(tampered, self.keypair.public_key_pem))
                self.assertFalse(self.authority.verify(tampered, self.other.public_key_pem))

    def test_other_public_key_rejected(self):
        self.assertFalse(self.authority.verify(self.cert, self.other.public_key_pem))

    def test_other_secret_rejected(self):
        other = CertificateAuthority(secret="another-secret")
        self.assertFalse(other.verify(self.cert, self.keypair.public_key_pem))

    def test_garbage_rejected(self):
        for garbage in ["", "not-base64!!", base64.b64encode(b"[]").decode(),
                        base64.b64encode(b'{"data":{},"signature":"00"}').decode()]:
            with self.subTest(garbage=garbage):
                self.assertFalse(self.authority.verify(garbage, self.keypair.public_key_pem))

    def test_decode_raises_malformed(self):
        with self.assertRaises(MalformedCertificate):
            CertificateAuthority.decode("not-base64!!")

    def test_deeply_nested_json_rejected(self):
        nested = base64.b64encode(b"[" * 100000 + b"]" * 100000).decode('ascii')
        self.assertFalse(self.authority.verify(nested, self.keypair.public_key_pem))
        with self.assertRaises(MalformedCertificate):
            CertificateAuthority.decode(nested)


class TestProductionSecret(unittest.TestCase):

    def test_default_secret_refused_in_production(self):
        with mock.patch.object(config, "ENV", "prod"), \
                mock.patch.object(config, "AUTHORITY_SECRET", config.DEFAULT_AUTHORITY_SECRET):
            with self.assertRaises(RuntimeError):
                CertificateAuthority()
            self.assertFalse(config.validate_config()["authority_secret_provisioned"])

    def test_provisioned_secret_accepted_in_production(self):
        with mock.patch.object(config, "ENV", "prod"), \
                mock.patch.object(config, "AUTHORITY_SECRET", "provisioned-secret"):
            authority = CertificateAuthority()
            keypair = generate_promise_keypair()
            cert = authority.issue("promise-42", keypair.public_key_pem, fingerprint_hash("cred-1"))
            self.assertTrue(CertificateAuthority(secret="provisioned-secret").verify(cert, keypair.public_key_pem))

    def test_explicit_secret_accepted_in_production(self):
        with mock.patch.object(config, "ENV", "prod"), \
                mock.patch.object(config, "AUTHORITY_SECRET", config.DEFAULT_AUTHORITY_SECRET):
            CertificateAuthority(secret="test-secret")


if __name__ == "__main__":
    unittest.main()
