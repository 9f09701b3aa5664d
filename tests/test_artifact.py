"""
Signed-promise artifacts: building, offline verification and record dispatch.
"""

import json
import unittest
from unittest import mock

from promiseseal import (
    PromiseSnapshot,
    artifact_filename,
    build_artifact,
    build_record_document,
    derive_challenge,
    fingerprint_hash,
    open_content,
    verify_artifact,
    verify_document,
)

from authenticator import SoftwareAuthenticator, make_promise


def _signed(authenticator, promise, rp_id="localhost"):
    challenge = derive_challenge(PromiseSnapshot.from_mapping(promise))
    assertion = authenticator.get_assertion(challenge)
    artifact = build_artifact(promise, assertion, authenticator.public_key_pem, challenge,
                              rp_id=rp_id, clock=lambda: 1700000000000)
    # Round-trip through JSON like a downloaded file
    return json.loads(json.dumps(artifact.to_dict()))


class TestBuildArtifact(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.authenticator = SoftwareAuthenticator("ES256")

    def test_artifact_shape(self):
        doc = _signed(self.authenticator, make_promise())
        self.assertEqual(doc["kind"], "signed-promise")
        self.assertEqual(doc["content"], "Pay $500 by 2025-03-01")
        self.assertEqual(doc["creator"], {"id": "user-7", "username": "alice"})
        self.assertEqual(doc["rpId"], "localhost")
        self.assertEqual(set(doc["signature"]),
                         {"credentialId", "clientDataJSON", "authenticatorData", "signature", "userHandle"})

    def test_archival_seal_uses_derived_key(self):
        doc = _signed(self.authenticator, make_promise())
        self.assertEqual(
            open_content(doc["encryptedContent"], "promise-42-user-7-1700000000000"),
            "Pay $500 by 2025-03-01",
        )

    def test_conflicting_creator_forms_verify(self):
        promise = make_promise(creatorId="user-9")
        doc = _signed(self.authenticator, promise)
        self.assertEqual(doc["creator"]["id"], "user-7")
        self.assertTrue(verify_artifact(doc).is_valid)
        self.assertEqual(
            open_content(doc["encryptedContent"], "promise-42-user-7-1700000000000"),
            "Pay $500 by 2025-03-01",
        )

    def test_missing_delivery_date(self):
        doc = _signed(self.authenticator, make_promise(deliveryDate=None))
        self.assertEqual(doc["deliveryDate"], "")
        self.assertTrue(verify_artifact(doc).is_valid)


class TestVerifyArtifact(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.authenticator = SoftwareAuthenticator("ES256")

    def test_valid_artifact(self):
        result = verify_artifact(_signed(self.authenticator, make_promise()))
        self.assertTrue(result.is_valid)
        self.assertTrue(result.is_signature_valid)
        self.assertTrue(result.is_challenge_valid)
        self.assertTrue(result.is_client_data_valid)
        self.assertTrue(result.is_data_intact)
        self.assertEqual(result.creator, "alice")
        self.assertIsNone(result.error_details)

    def test_edited_content_detected(self):
        promise = make_promise(id="p1", title="Deliver report", content="I will deliver by Friday",
                               deliveryDate="2025-01-10", creator={"id": "u1", "username": "dana"})
        doc = _signed(self.authenticator, promise)
        doc["content"] = "I will deliver by Monday"

        result = verify_artifact(doc)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_challenge_valid)
        self.assertTrue(result.is_signature_valid)
        self.assertIn("challenge", result.error_details)

    def test_edited_fields_detected(self):
        for field, value in [("title", "Rent (paid)"), ("deliveryDate", "2025-04-01"), ("id", "promise-99")]:
            with self.subTest(field=field):
                doc = _signed(self.authenticator, make_promise())
                doc[field] = value
                self.assertFalse(verify_artifact(doc).is_challenge_valid)

        doc = _signed(self.authenticator, make_promise())
        doc["creator"]["id"] = "user-8"
        self.assertFalse(verify_artifact(doc).is_valid)

    def test_replaced_challenge_and_content_fails_signature(self):
        doc = _signed(self.authenticator, make_promise())
        doc["content"] = "Pay $5 by 2025-03-01"
        doc["challenge"] = derive_challenge(PromiseSnapshot.from_mapping(doc))

        result = verify_artifact(doc)
        self.assertTrue(result.is_challenge_valid)
        self.assertFalse(result.is_client_data_valid)
        self.assertFalse(result.is_valid)

    def test_swapped_public_key_fails_signature(self):
        doc = _signed(self.authenticator, make_promise())
        doc["publicKey"] = SoftwareAuthenticator("ES256").public_key_pem

        result = verify_artifact(doc)
        self.assertFalse(result.is_signature_valid)
        self.assertFalse(result.is_valid)

    def test_missing_fields_not_intact(self):
        doc = _signed(self.authenticator, make_promise())
        del doc["signature"]["signature"]

        result = verify_artifact(doc)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_data_intact)
        self.assertIn("signature.signature", result.error_details)

    def test_verifier_error_not_reported_intact(self):
        doc = _signed(self.authenticator, make_promise())
        with mock.patch("promiseseal.artifact.verify_assertion", side_effect=RuntimeError("boom")):
            result = verify_artifact(doc)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_data_intact)
        self.assertEqual(result.failed_checks, ["verification_error"])
        self.assertIn("boom", result.error_details)

    def test_result_never_carries_content(self):
        result = verify_artifact(_signed(self.authenticator, make_promise())).to_dict()
        self.assertNotIn("content", result)
        self.assertNotIn("Pay $500 by 2025-03-01", json.dumps(result))


class TestVerifyDocument(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.authenticator = SoftwareAuthenticator("EdDSA")
        cls.fingerprint = fingerprint_hash("cred-1")
        cls.record = build_record_document(make_promise(), cls.fingerprint, "envelope")

    def test_dispatch_to_signed(self):
        result = verify_document(_signed(self.authenticator, make_promise()))
        self.assertEqual(result.kind, "signed-promise")
        self.assertTrue(result.is_valid)

    def test_record_matching_fingerprint(self):
        result = verify_document(self.record, fingerprint_lookup={"promise-42": self.fingerprint}.get)
        self.assertEqual(result.kind, "promise-record")
        self.assertTrue(result.is_valid)
        self.assertTrue(result.is_fingerprint_valid)
        self.assertFalse(result.is_signature_valid)
        self.assertFalse(result.is_challenge_valid)

    def test_record_mismatched_fingerprint(self):
        result = verify_document(self.record, fingerprint_lookup={"promise-42": fingerprint_hash("cred-2")}.get)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_fingerprint_valid)
        self.assertTrue(result.is_data_intact)

    def test_record_non_string_stored_fingerprint(self):
        for stored in [12345, ["list"], {"fingerprint": self.fingerprint}]:
            with self.subTest(stored=stored):
                result = verify_document(self.record, fingerprint_lookup={"promise-42": stored}.get)
                self.assertFalse(result.is_valid)
                self.assertFalse(result.is_fingerprint_valid)
                self.assertEqual(result.failed_checks, ["fingerprint"])

    def test_record_not_found(self):
        result = verify_document(self.record, fingerprint_lookup={}.get)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_data_intact)
        self.assertEqual(result.error_details, "Promise not found in database")

    def test_record_without_store(self):
        result = verify_document(self.record)
        self.assertFalse(result.is_valid)

    def test_record_missing_verification_data(self):
        record = dict(self.record)
        del record["verification"]
        result = verify_document(record, fingerprint_lookup={"promise-42": self.fingerprint}.get)
        self.assertFalse(result.is_valid)
        self.assertTrue(result.is_data_intact)
        self.assertEqual(result.error_details, "Missing verification data in promise file")

    def test_unknown_or_missing_kind(self):
        for document in [{"kind": "mystery"}, {"id": "promise-42"}, [], "text"]:
            with self.subTest(document=document):
                result = verify_document(document)
                self.assertFalse(result.is_valid)
                self.assertIn("kind", result.failed_checks)


class TestArtifactFilename(unittest.TestCase):

    def test_non_alphanumerics_replaced(self):
        self.assertEqual(artifact_filename("Rent: March/April", "promise-42"),
                         "promise-Rent__March_April-promise-42.json")


if __name__ == "__main__":
    unittest.main()
