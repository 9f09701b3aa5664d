"""
End-to-end promise lifecycle.
"""

import unittest

from promiseseal import (
    CertificateAuthority,
    ChallengeRegistry,
    LifecycleError,
    PromiseLifecycle,
    PromiseState,
    verify_document,
)

from authenticator import SoftwareAuthenticator, make_promise


class TestPromiseLifecycle(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.authenticator = SoftwareAuthenticator("ES256")
        cls.authority = CertificateAuthority(secret="test-secret")

    def _lifecycle(self, **kwargs):
        return PromiseLifecycle(
            make_promise(),
            self.authenticator.credential_id,
            self.authenticator.public_key_pem,
            authority=self.authority,
            **kwargs
        )

    def _run(self, lifecycle):
        lifecycle.seal()
        lifecycle.certify()
        challenge = lifecycle.issue_challenge()
        lifecycle.sign(self.authenticator.get_assertion(challenge))
        return lifecycle.build_artifact()

    def test_end_to_end(self):
        lifecycle = self._lifecycle()
        artifact = self._run(lifecycle)

        self.assertEqual(lifecycle.state, PromiseState.ARTIFACT_BUILT)
        self.assertTrue(self.authority.verify(lifecycle.certificate, lifecycle.keypair.public_key_pem))
        self.assertTrue(lifecycle.verify().is_valid)

        document = artifact.to_dict()
        self.assertTrue(verify_document(document).is_valid)

        document["deliveryDate"] = "2025-03-15"
        result = verify_document(document)
        self.assertFalse(result.is_valid)
        self.assertFalse(result.is_challenge_valid)

    def test_envelope_holds_private_key_and_fingerprint(self):
        from promiseseal import open_envelope

        lifecycle = self._lifecycle()
        envelope = lifecycle.seal()
        payload = open_envelope(envelope)
        self.assertEqual(payload.content, "Pay $500 by 2025-03-01")
        self.assertEqual(payload.private_key_material, lifecycle.keypair.private_key_pem)
        self.assertEqual(payload.fingerprint, self.authenticator.credential_id)

    def test_out_of_order_steps_rejected(self):
        lifecycle = self._lifecycle()
        with self.assertRaises(LifecycleError):
            lifecycle.certify()
        with self.assertRaises(LifecycleError):
            lifecycle.verify()

        lifecycle.seal()
        with self.assertRaises(LifecycleError):
            lifecycle.seal()
        with self.assertRaises(LifecycleError):
            lifecycle.build_artifact()
        self.assertEqual(lifecycle.state, PromiseState.SEALED)

    def test_registry_challenge_is_single_use(self):
        registry = ChallengeRegistry(ttl_seconds=60)
        lifecycle = self._lifecycle(registry=registry)
        self._run(lifecycle)
        self.assertEqual(len(registry), 0)

    def test_expired_registry_challenge_rejected(self):
        now = [1000.0]
        registry = ChallengeRegistry(ttl_seconds=60, clock=lambda: now[0])
        lifecycle = self._lifecycle(registry=registry)
        lifecycle.seal()
        lifecycle.certify()
        challenge = lifecycle.issue_challenge()
        now[0] += 61

        with self.assertRaises(LifecycleError):
            lifecycle.sign(self.authenticator.get_assertion(challenge))
        self.assertEqual(lifecycle.state, PromiseState.CHALLENGE_ISSUED)


if __name__ == "__main__":
    unittest.main()
