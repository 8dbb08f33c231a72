#!/usr/bin/env python3
import os
import pickle
import random
import tempfile
import unittest
import importlib.util

import util
import dlog
import errors
import proofs
import verenc
import camshoup
import encoding
import transcript

_N_BITS = 512
_GROUP_BITS = 160
_BOUND_BITS = 32


def _setup_scheme(cls):
    rng = random.Random(0)
    cls.pk, cls.sk = camshoup.generate_keypair(_N_BITS, rng)
    cls.group = dlog.generate_group(_GROUP_BITS, rng)
    cls.params = proofs.RangeParameters.from_bits(_BOUND_BITS)


class CountingRandom(random.Random):
    """Random generator recording how many times it was used"""
    def __init__(self, seed=None):
        self.calls = 0
        super().__init__(seed)

    def random(self):
        self.calls += 1
        return super().random()

    def getrandbits(self, k):
        self.calls += 1
        return super().getrandbits(k)


class IntegerRingFixture:
    def test_arithmetic(self):
        ring = self.ring
        self.assertEqual(ring.powmod(3, 100, 1009), pow(3, 100, 1009))
        self.assertEqual(ring.powmod(1, 12345, 1009), 1)
        self.assertEqual(ring.powmod(3, -1, 1009) * 3 % 1009, 1)
        self.assertEqual(ring.powmod_secret(3, 100, 1009), pow(3, 100, 1009))
        self.assertEqual(ring.powmod_secret(3, 0, 1009), 1)
        self.assertEqual(ring.powmod_secret(3, -2, 1009) * 9 % 1009, 1)
        self.assertEqual(ring.invert(7, 1009) * 7 % 1009, 1)
        self.assertRaises(ZeroDivisionError, ring.invert, 6, 9)
        self.assertEqual(ring.gcd(12, 18), 6)
        self.assertEqual(ring.gcd(35, 64), 1)

    def test_primality(self):
        ring = self.ring
        self.assertTrue(ring.is_prime(2))
        self.assertTrue(ring.is_prime(1009))
        self.assertTrue(ring.is_prime(2**127 - 1))
        self.assertFalse(ring.is_prime(0))
        self.assertFalse(ring.is_prime(1))
        self.assertFalse(ring.is_prime(1011))
        self.assertFalse(ring.is_prime((2**61 - 1) * (2**31 - 1)))
        self.assertEqual(ring.next_prime(1000), 1009)
        self.assertEqual(ring.next_prime(1009), 1013)

    def test_randrange(self):
        ring = self.ring
        a = [ring.randrange(10, 20, random.Random(3)) for _ in range(2)]
        self.assertEqual(a[0], a[1])
        for _ in range(100):
            self.assertIn(ring.randrange(10, 20), range(10, 20))


class TestGmpy2Ring(unittest.TestCase, IntegerRingFixture):
    ring = util.Gmpy2Ring()


class TestPheRing(unittest.TestCase, IntegerRingFixture):
    ring = util.PheRing()


class TestUtil(unittest.TestCase):
    def test_backends_agree(self):
        gmp, portable = util.Gmpy2Ring(), util.PheRing()
        rng = random.Random(7)
        modulus = util.genprime(128, rng=rng) * util.genprime(128, rng=rng)
        for _ in range(20):
            x = rng.randrange(2, modulus)
            y = rng.randrange(modulus)
            self.assertEqual(gmp.powmod(x, y, modulus), portable.powmod(x, y, modulus))
            self.assertEqual(gmp.powmod_secret(x, y, modulus), portable.powmod_secret(x, y, modulus))
            self.assertEqual(gmp.gcd(x, modulus), portable.gcd(x, modulus))

    def test_load_backend(self):
        self.assertIsInstance(util.load_backend('gmpy2'), util.Gmpy2Ring)
        self.assertIsInstance(util.load_backend('phe'), util.PheRing)
        self.assertRaises(ImportError, util.load_backend, 'nope')

    def test_set_backend(self):
        previous = util.set_backend('phe')
        try:
            self.assertIsInstance(util.ring, util.PheRing)
            self.assertEqual(util.powmod(3, 5, 7), 5)
            self.assertRaises(ImportError, util.set_backend, 'nope')
            self.assertIsInstance(util.ring, util.PheRing)
        finally:
            util.set_backend(previous)
        self.assertEqual(util.ring.name, previous)

    def test_genprime(self):
        p = util.genprime(64)
        self.assertTrue(util.is_prime(p))
        self.assertEqual(p.bit_length(), 64)

        # safe primes
        p = util.genprime(64, safe_prime=True)
        self.assertTrue(util.is_prime(p))
        self.assertTrue(util.is_prime((p-1) // 2))
        self.assertEqual(p.bit_length(), 64)

        # reproducible with a seeded generator
        self.assertEqual(
            util.genprime(64, True, random.Random(1)),
            util.genprime(64, True, random.Random(1)),
        )

        # retry budget
        self.assertRaises(errors.KeyGenError, util.genprime, 64, True, None, 0)
        self.assertRaises(ValueError, util.genprime, 2)

    def test_crt(self):
        self.assertEqual(util.crt([2, 3], [5, 7]), 17)
        self.assertEqual(util.crt([0, 1], [3, 4]), 9)

    def test_prod(self):
        self.assertEqual(util.prod([2, 3, 7]), 42)
        self.assertEqual(util.prod([2, 3, 7], 5), 2)

    def test_int_to_bytes(self):
        self.assertEqual(util.int_to_bytes(0), b'\x00')
        self.assertEqual(util.int_to_bytes(255), b'\xff')
        self.assertEqual(util.int_to_bytes(256), b'\x01\x00')
        self.assertRaises(ValueError, util.int_to_bytes, -1)


class TestTranscript(unittest.TestCase):
    @staticmethod
    def make(domain=b'test', messages=((b'a', b'1'), (b'b', b'2'))):
        t = transcript.Transcript(domain)
        for label, data in messages:
            t.append(label, data)
        return t

    def test_determinism(self):
        self.assertEqual(
            self.make().challenge_bytes(b'c', 32),
            self.make().challenge_bytes(b'c', 32),
        )

    def test_separation(self):
        reference = self.make().challenge_bytes(b'c', 32)
        # order of the messages
        swapped = self.make(messages=((b'b', b'2'), (b'a', b'1')))
        self.assertNotEqual(swapped.challenge_bytes(b'c', 32), reference)
        # labels
        relabeled = self.make(messages=((b'a', b'1'), (b'c', b'2')))
        self.assertNotEqual(relabeled.challenge_bytes(b'c', 32), reference)
        # framing
        merged = self.make(messages=((b'a', b'12'), (b'b', b'')))
        self.assertNotEqual(merged.challenge_bytes(b'c', 32), reference)
        # domain
        self.assertNotEqual(self.make(b'other').challenge_bytes(b'c', 32), reference)
        # challenge label
        self.assertNotEqual(self.make().challenge_bytes(b'd', 32), reference)

    def test_successive_challenges(self):
        t = self.make()
        first = t.challenge_bytes(b'c', 32)
        second = t.challenge_bytes(b'c', 32)
        self.assertNotEqual(first, second)
        self.assertEqual(len(t.challenge_bytes(b'c', 100)), 100)

    def test_challenge_int(self):
        for n_bits in [1, 7, 8, 10, 128]:
            self.assertLess(self.make().challenge_int(b'c', n_bits), 2**n_bits)

    def test_invalid_message(self):
        t = transcript.Transcript(b'test')
        self.assertRaises(TypeError, t.append, b'a', 12)
        self.assertRaises(TypeError, t.append, b'a', 'text')


class TestCamenischShoup(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        _setup_scheme(cls)

    def test_keygen(self):
        pk, sk = self.pk, self.sk

        # check p and q are actually safe primes
        self.assertTrue(util.is_prime(sk.p))
        self.assertTrue(util.is_prime(sk.q))
        self.assertTrue(util.is_prime((sk.p-1) // 2))
        self.assertTrue(util.is_prime((sk.q-1) // 2))
        self.assertNotEqual(sk.p, sk.q)

        # check their sizes
        self.assertEqual(sk.p.bit_length() + sk.q.bit_length(), _N_BITS)

        # check consistency of n, nsquare, g and h
        n_prime = (sk.p-1) // 2 * ((sk.q-1) // 2)
        self.assertEqual(pk.n, sk.p * sk.q)
        self.assertEqual(pk.nsquare, pk.n**2)
        self.assertNotEqual(pk.g, 1)
        self.assertEqual(util.powmod(pk.g, n_prime, pk.nsquare), 1)
        self.assertEqual(util.powmod(pk.g, sk.x, pk.nsquare), pk.h)
        self.assertLess(sk.x, pk.nsquare * n_prime // 4)

    def test_keygen_seeded(self):
        pk1, _ = camshoup.generate_keypair(128, random.Random(5))
        pk2, _ = camshoup.generate_keypair(128, random.Random(5))
        self.assertEqual(pk1, pk2)

    def test_keygen_budget(self):
        self.assertRaises(errors.KeyGenError, camshoup.generate_keypair, 128, None, 0)

    def test_keypair_from_safe_primes(self):
        pk, sk = camshoup.keypair_from_safe_primes(self.sk.p, self.sk.q)
        self.assertEqual(pk.n, self.pk.n)
        self.assertEqual(sk.decrypt(pk.encrypt(12)), 12)

        # p == q
        self.assertRaises(ValueError, camshoup.keypair_from_safe_primes, self.sk.p, self.sk.p)
        # 13 is prime, but not a safe prime
        self.assertRaises(ValueError, camshoup.keypair_from_safe_primes, 13, self.sk.q)

    def test_encrypt(self):
        pk = self.pk

        # check the ciphertexts are actually randomized
        c = pk.encrypt(12)
        d = pk.encrypt(12)
        self.assertTrue(c != d)

        # check the ciphertexts are in ℤ_n²
        self.assertTrue(pk.is_unit(c.u))
        self.assertTrue(pk.is_unit(c.e))

        # plaintexts must be in [0, n)
        self.assertRaises(ValueError, pk.encrypt, -1)
        self.assertRaises(ValueError, pk.encrypt, pk.n)
        self.assertRaises(ValueError, pk.encrypt, 1.5)
        self.assertRaises(ValueError, pk.encrypt, 1, -1)

    def test_decrypt(self):
        pk, sk = self.pk, self.sk
        for m in [0, 1, 12, pk.n - 1] + [random.randrange(pk.n) for _ in range(10)]:
            self.assertEqual(sk.decrypt(pk.encrypt(m)), m)

    def test_decrypt_without_factors(self):
        pk, sk = self.pk, self.sk
        sk_exponent_only = camshoup.SecretKey(pk, sk.x)
        self.assertFalse(sk_exponent_only.has_factors)
        for m in [0, 42, pk.n - 1]:
            self.assertEqual(sk_exponent_only.decrypt(pk.encrypt(m)), m)

    def test_secret_key_factors(self):
        self.assertRaises(ValueError, camshoup.SecretKey, self.pk, self.sk.x, self.sk.p)
        self.assertRaises(ValueError, camshoup.SecretKey, self.pk, self.sk.x, 3, 5)

    def test_additive(self):
        pk, sk = self.pk, self.sk
        r1, r2 = pk.random_for_encrypt(), pk.random_for_encrypt()
        a = pk.encrypt(42, r1)
        b = pk.encrypt(9, r2)

        # the combination of the ciphertexts is the encryption of the sum
        self.assertEqual(a + b, pk.encrypt(51, r1 + r2))

        # additions
        self.assertEqual(sk.decrypt(a + b), 51)
        self.assertEqual(sk.decrypt(a + 9), 51)
        self.assertEqual(sk.decrypt(42 + b), 51)

        # negation and subtraction (modulo n)
        self.assertEqual(sk.decrypt(-a), pk.n - 42)
        self.assertEqual(sk.decrypt(a - b), 33)
        self.assertEqual(sk.decrypt(b - a), pk.n - 33)
        self.assertEqual(sk.decrypt(42 - b), 33)

        # multiplication
        self.assertEqual(a * 3, pk.encrypt(126, 3 * r1))
        self.assertEqual(sk.decrypt(2 * b), 18)

        # exceptions
        self.assertRaises(NotImplementedError, a.__mul__, b)
        pkk, _ = camshoup.generate_keypair(128)
        self.assertRaises(ValueError, a.__add__, pkk.encrypt(2))

    def test_malformed_ciphertext(self):
        pk, sk = self.pk, self.sk
        c = pk.encrypt(12)
        n2 = pk.nsquare
        sk_exponent_only = camshoup.SecretKey(pk, sk.x)

        # g has order n', so e × g leaves a component L() cannot remove
        bad_e = camshoup.Ciphertext(pk, c.u, c.e * pk.g % n2)
        self.assertRaises(errors.InvalidCiphertext, sk.decrypt, bad_e)
        self.assertRaises(errors.InvalidCiphertext, sk_exponent_only.decrypt, bad_e)
        # 1+n has order n, which is not in the subgroup of u
        bad_u = camshoup.Ciphertext(pk, c.u * (1 + pk.n) % n2, c.e)
        self.assertRaises(errors.InvalidCiphertext, sk.decrypt, bad_u)

        # not invertible
        for u, e in [(0, c.e), (c.u, 0), (pk.n, c.e), (c.u, sk.p), (n2, c.e)]:
            ciphertext = camshoup.Ciphertext(pk, u, e)
            self.assertRaises(errors.InvalidCiphertext, sk.decrypt, ciphertext)
            self.assertRaises(errors.InvalidCiphertext, sk_exponent_only.decrypt, ciphertext)

        # decryption errors are decryption errors
        self.assertTrue(issubclass(errors.InvalidCiphertext, errors.DecryptionError))

    def test_order_two_components(self):
        pk, sk = self.pk, self.sk
        c = pk.encrypt(12)
        n2 = pk.nsquare
        sk_exponent_only = camshoup.SecretKey(pk, sk.x)

        # -1 has order 2; it is ignored by decryption
        for u, e in [(c.u, n2 - c.e), (n2 - c.u, c.e), (n2 - c.u, n2 - c.e)]:
            ciphertext = camshoup.Ciphertext(pk, u, e)
            self.assertEqual(sk.decrypt(ciphertext), 12)
            self.assertEqual(sk_exponent_only.decrypt(ciphertext), 12)

    def test_wrong_key(self):
        pkk, skk = camshoup.generate_keypair(128)
        self.assertRaises(ValueError, skk.decrypt, self.pk.encrypt(1))

    def test_erase(self):
        sk = camshoup.SecretKey(self.pk, self.sk.x, self.sk.p, self.sk.q)
        c = self.pk.encrypt(5)
        with sk:
            self.assertEqual(sk.decrypt(c), 5)
        self.assertTrue(sk.erased)
        self.assertEqual(sk.x, 0)
        self.assertEqual(sk.p, 0)
        self.assertRaises(ValueError, sk.decrypt, c)

        # secret values are not leaked
        self.assertNotIn(hex(self.sk.x), repr(self.sk))
        self.assertNotIn(str(self.sk.x), repr(self.sk))
        self.assertRaises(TypeError, pickle.dumps, self.sk)


class TestDiscreteLogGroup(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.group = dlog.generate_group(128)

    def test_structure(self):
        group = self.group
        self.assertTrue(util.is_prime(group.modulus))
        self.assertTrue(util.is_prime(group.order))
        self.assertEqual(group.modulus, 2 * group.order + 1)
        self.assertTrue(group.contains(group.generator))
        self.assertNotEqual(group.generator, 1)
        self.assertEqual(group.power(group.order), 1)
        self.assertEqual(group.power(0), 1)
        self.assertEqual(group.power_secret(12345), group.power(12345))
        self.assertEqual(group.mul(group.power(2), group.power(3)), group.power(5))
        self.assertEqual(group.pow(group.power(2), 3), group.power(6))

    def test_contains(self):
        group = self.group
        self.assertFalse(group.contains(0))
        self.assertFalse(group.contains(group.modulus))
        # P = 3 mod 4 so -1 is not a square
        self.assertFalse(group.contains(group.modulus - 1))
        self.assertTrue(group.contains(1))

    def test_from_safe_prime(self):
        group = dlog.group_from_safe_prime(self.group.modulus)
        self.assertEqual(group.order, self.group.order)
        self.assertTrue(group.contains(group.generator))
        self.assertRaises(ValueError, dlog.group_from_safe_prime, 13)
        self.assertRaises(ValueError, dlog.group_from_safe_prime, 15)


class TestRangeParameters(unittest.TestCase):
    def test_bounds(self):
        params = proofs.RangeParameters(1000, challenge_bits=64, statistical_security=40)
        self.assertEqual(params.slack_bits, 104)
        self.assertEqual(params.mask_bound, 1000 << 104)
        self.assertEqual(params.response_bound, 1000 << 105)
        self.assertTrue(params.contains(0))
        self.assertTrue(params.contains(999))
        self.assertFalse(params.contains(1000))
        self.assertFalse(params.contains(-1))
        self.assertFalse(params.contains('1'))
        self.assertEqual(proofs.RangeParameters.from_bits(10).bound, 1024)

    def test_insecure_values(self):
        self.assertRaises(ValueError, proofs.RangeParameters, 0)
        self.assertRaises(ValueError, proofs.RangeParameters, 2**10, challenge_bits=32)
        self.assertRaises(ValueError, proofs.RangeParameters, 2**10, statistical_security=20)

    def test_compatibility(self):
        pk, _ = camshoup.generate_keypair(256)
        group = dlog.generate_group(64)
        proofs.RangeParameters(2**10, 64, 40).check_compatible(pk, group)
        # larger than the order of the group
        too_wide = proofs.RangeParameters(2**64, 64, 40)
        self.assertRaises(ValueError, too_wide.check_compatible, pk, group)
        # responses do not fit in n
        too_slack = proofs.RangeParameters(2**10, 128, 120)
        self.assertRaises(ValueError, too_slack.check_compatible, pk, group)


class TestProofs(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        _setup_scheme(cls)

    def setUp(self):
        self.x = random.randrange(self.params.bound)
        self.y = self.group.power(self.x)
        self.r = self.pk.random_for_encrypt()
        self.ciphertext = self.pk.encrypt(self.x, self.r)

    def prove(self, y=None, x=None, nonce=b''):
        return proofs.prove(
            self.pk, self.group, self.params, self.ciphertext,
            self.y if y is None else y, self.x if x is None else x, self.r, nonce,
        )

    def verify(self, proof, ciphertext=None, y=None, nonce=b''):
        proofs.verify(
            self.pk, self.group, self.params,
            self.ciphertext if ciphertext is None else ciphertext,
            self.y if y is None else y, proof, nonce,
        )

    def test_interactive(self):
        pk, group, params = self.pk, self.group, self.params

        # valid proof
        util.run_protocol(
            proofs.prove_encryption(pk, group, params, self.x, self.r),
            proofs.verify_encryption(pk, group, params, self.ciphertext, self.y),
        )

        # invalid proof
        prover = proofs.prove_encryption(pk, group, params, self.x, self.r)
        verifier = proofs.verify_encryption(pk, group, params, self.ciphertext, group.power(self.x + 1))
        self.assertRaises(errors.ProofError, util.run_protocol, prover, verifier)

        # challenges out of range are refused
        prover = proofs.prove_encryption(pk, group, params, self.x, self.r)
        next(prover)
        self.assertRaises(ValueError, prover.send, 2**params.challenge_bits)

    def test_completeness(self):
        proof = self.prove()
        self.verify(proof)
        self.assertLess(proof.challenge, 2**self.params.challenge_bits)
        self.assertGreaterEqual(proof.response_x, 0)
        self.assertLess(proof.response_x, self.params.response_bound)

    def test_nonce(self):
        proof = self.prove(nonce=b'session 1')
        self.verify(proof, nonce=b'session 1')
        self.assertRaises(errors.TranscriptMismatch, self.verify, proof, nonce=b'session 2')
        self.assertRaises(errors.TranscriptMismatch, self.verify, proof)

    def test_mismatched_witness(self):
        # Y' ≠ G^x
        y = self.group.power(self.x + 1)
        proof = self.prove(y=y)
        self.assertRaises(errors.ProofError, self.verify, proof, y=y)

        # ciphertext of another value
        proof = self.prove(x=self.x + 1, y=self.group.power(self.x + 1))
        self.assertRaises(errors.ProofError, self.verify, proof, y=self.group.power(self.x + 1))

    def test_tampered_proof(self):
        proof = self.prove()
        fields = [
            'commitment_u', 'commitment_e', 'commitment_y',
            'challenge', 'response_x', 'response_r',
        ]
        for field in fields:
            tampered = proofs.Proof(*[
                getattr(proof, f) + (1 if f == field else 0) for f in fields
            ])
            self.assertRaises(errors.TranscriptMismatch, self.verify, tampered)

        # responses exceeding the bound
        tampered = proofs.Proof(*proof.commitments, proof.challenge,
                                self.params.response_bound, proof.response_r)
        self.assertRaises(errors.RangeViolation, self.verify, tampered)
        tampered = proofs.Proof(*proof.commitments, proof.challenge, -1, proof.response_r)
        self.assertRaises(errors.RangeViolation, self.verify, tampered)

        # malformed values
        tampered = proofs.Proof(-1, *proof._fields()[1:])
        self.assertRaises(errors.TranscriptMismatch, self.verify, tampered)
        tampered = proofs.Proof(None, *proof._fields()[1:])
        self.assertRaises(errors.TranscriptMismatch, self.verify, tampered)

    def test_tampered_statement(self):
        proof = self.prove()
        other = self.pk.encrypt(self.x)
        self.assertRaises(errors.TranscriptMismatch, self.verify, proof, ciphertext=other)
        # outside of the group
        self.assertRaises(errors.TranscriptMismatch, self.verify, proof, y=self.group.modulus - self.y)

    def test_challenge(self):
        proof = self.prove()
        args = self.pk, self.group, self.params, self.ciphertext, self.y
        self.assertEqual(proofs.challenge(*args, proof.commitments), proof.challenge)
        self.assertEqual(
            proofs.challenge(*args, proof.commitments, b'n'),
            proofs.challenge(*args, proof.commitments, b'n'),
        )
        commitments = (proof.commitment_u, proof.commitment_e, proof.commitment_y + 1)
        self.assertNotEqual(proofs.challenge(*args, commitments), proof.challenge)


class TestVerifiableEncryption(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        _setup_scheme(cls)

    def test_completeness(self):
        pk, sk, group, params = self.pk, self.sk, self.group, self.params
        for x in [0, 1, 42, params.bound - 1, random.randrange(params.bound)]:
            y = group.power(x)
            ciphertext, proof = verenc.prove_and_encrypt(pk, x, group, y, params)
            self.assertEqual(verenc.verify_and_decrypt(sk, pk, ciphertext, proof, group, y, params), x)

    def test_range_rejection(self):
        pk, group, params = self.pk, self.group, self.params
        for x in [-1, params.bound, params.bound + 1, 2**100, '1', 1.0]:
            rng = CountingRandom(0)
            self.assertRaises(
                errors.WitnessOutOfRange,
                verenc.prove_and_encrypt, pk, x, group, group.generator, params, b'', rng,
            )
            # no cryptographic work was done
            self.assertEqual(rng.calls, 0)

    def test_incompatible_parameters(self):
        pk, sk, group = self.pk, self.sk, self.group
        params = proofs.RangeParameters(group.order + 1)
        self.assertRaises(ValueError, verenc.prove_and_encrypt, pk, 1, group, group.generator, params)

        # verifiers refuse them as well
        y = group.power(7)
        ciphertext, proof = verenc.prove_and_encrypt(pk, 7, group, y, self.params)
        too_wide = proofs.RangeParameters(group.order + 1)
        too_slack = proofs.RangeParameters(2**10, 64, pk.n.bit_length())
        for params in [too_wide, too_slack]:
            self.assertRaises(ValueError, proofs.verify, pk, group, params, ciphertext, y, proof)
            self.assertRaises(ValueError, verenc.verify_and_decrypt, sk, pk, ciphertext, proof, group, y, params)
            scheme = verenc.VerifiableEncryption(group, params)
            self.assertRaises(ValueError, scheme.verify, pk, ciphertext, proof, y)
            verifier = proofs.verify_encryption(pk, group, params, ciphertext, y)
            self.assertRaises(ValueError, next, verifier)

    def test_negated_ciphertext(self):
        pk, sk, group, params = self.pk, self.sk, self.group, self.params
        n2 = pk.nsquare
        x = 42
        y = group.power(x)
        r = pk.random_for_encrypt()
        honest = pk.encrypt(x, r)

        # (u, -e) with the commitment -e~ satisfies the unsquared equations
        # whenever the challenge is odd
        ciphertext = camshoup.Ciphertext(pk, honest.u, n2 - honest.e)
        for attempt in range(256):
            nonce = 'attempt {}'.format(attempt).encode()
            prover = proofs.prove_encryption(pk, group, params, x, r)
            commitment_u, commitment_e, commitment_y = next(prover)
            commitments = commitment_u, n2 - commitment_e, commitment_y
            c = proofs.challenge(pk, group, params, ciphertext, y, commitments, nonce)
            if c % 2 == 1:
                break
        response_x, response_r = prover.send(c)
        proof = proofs.Proof(*commitments, c, response_x, response_r)

        # a ciphertext that passes verification decrypts to the witness
        proofs.verify(pk, group, params, ciphertext, y, proof, nonce)
        self.assertEqual(verenc.verify_and_decrypt(sk, pk, ciphertext, proof, group, y, params, nonce), x)

    def test_no_decryption_of_unverified(self):
        pk, group, params = self.pk, self.group, self.params
        test = self

        class SecretKey(camshoup.SecretKey):
            def decrypt(self, ciphertext):
                test.fail('decrypted an unverified ciphertext')

        sk = SecretKey(pk, self.sk.x, self.sk.p, self.sk.q)
        y = group.power(12)
        ciphertext, proof = verenc.prove_and_encrypt(pk, 12, group, y, params)
        other_y = group.power(13)
        self.assertRaises(errors.ProofError, verenc.verify_and_decrypt, sk, pk, ciphertext, proof, group, other_y, params)

        # mismatched keys
        pkk, _ = camshoup.generate_keypair(128)
        self.assertRaises(ValueError, verenc.verify_and_decrypt, sk, pkk, ciphertext, proof, group, y, params)

    def test_facade(self):
        scheme = verenc.VerifiableEncryption(self.group, self.params)
        ciphertext, proof = scheme.encrypt_and_prove(self.pk, 1234, nonce=b'context')
        y = self.group.power(1234)
        scheme.verify(self.pk, ciphertext, proof, y, nonce=b'context')
        self.assertEqual(scheme.verify_and_decrypt(self.sk, ciphertext, proof, y, nonce=b'context'), 1234)
        self.assertRaises(errors.ProofError, scheme.verify, self.pk, ciphertext, proof, y)
        self.assertRaises(errors.WitnessOutOfRange, scheme.encrypt_and_prove, self.pk, -5)

    def test_end_to_end(self):
        # keys from a fixed seed
        rng = random.Random(2024)
        pk, sk = camshoup.generate_keypair(_N_BITS, rng)
        group = dlog.generate_group(_GROUP_BITS, rng)
        params = proofs.RangeParameters.from_bits(_BOUND_BITS)

        y = group.power(42)
        ciphertext, proof = verenc.prove_and_encrypt(pk, 42, group, y, params, rng=rng)
        proofs.verify(pk, group, params, ciphertext, y, proof)
        self.assertEqual(verenc.verify_and_decrypt(sk, pk, ciphertext, proof, group, y, params), 42)

        # flip one bit of e
        tampered = camshoup.Ciphertext(pk, ciphertext.u, ciphertext.e ^ 1)
        try:
            self.assertNotEqual(sk.decrypt(tampered), 42)
        except errors.DecryptionError:
            pass
        self.assertRaises(errors.ProofError, proofs.verify, pk, group, params, tampered, y, proof)
        self.assertRaises(errors.ProofError, verenc.verify_and_decrypt, sk, pk, tampered, proof, group, y, params)


class TestPortableBackend(unittest.TestCase):
    """The scheme with the arithmetic of python-paillier"""
    @classmethod
    def setUpClass(cls):
        _setup_scheme(cls)

    def setUp(self):
        previous = util.set_backend('phe')
        self.addCleanup(util.set_backend, previous)

    def test_keygen(self):
        self.assertIsInstance(util.ring, util.PheRing)
        pk, sk = camshoup.generate_keypair(128, random.Random(3))
        self.assertEqual(sk.p * sk.q, pk.n)
        self.assertEqual(sk.decrypt(pk.encrypt(17)), 17)

    def test_end_to_end(self):
        self.assertIsInstance(util.ring, util.PheRing)
        pk, sk, group, params = self.pk, self.sk, self.group, self.params
        sk_exponent_only = camshoup.SecretKey(pk, sk.x)
        for x in [0, 42, params.bound - 1]:
            y = group.power(x)
            ciphertext, proof = verenc.prove_and_encrypt(pk, x, group, y, params)
            # with the factors: CRT decryption
            self.assertEqual(verenc.verify_and_decrypt(sk, pk, ciphertext, proof, group, y, params), x)
            self.assertEqual(sk_exponent_only.decrypt(ciphertext), x)

        tampered = camshoup.Ciphertext(pk, ciphertext.u, ciphertext.e ^ 1)
        self.assertRaises(errors.ProofError, proofs.verify, pk, group, params, tampered, y, proof)


class TestEncoding(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        _setup_scheme(cls)

    def test_round_trip(self):
        y = self.group.power(7)
        ciphertext, proof = verenc.prove_and_encrypt(self.pk, 7, self.group, y, self.params)
        for obj in [self.pk, ciphertext, proof, self.group, self.params]:
            data = encoding.dumps(obj)
            self.assertIsInstance(data, bytes)
            self.assertEqual(encoding.loads(data), obj)

        # decoded values are usable
        pk = encoding.loads(encoding.dumps(self.pk))
        self.assertEqual(pk.nsquare, self.pk.nsquare)
        ciphertext = encoding.loads(encoding.dumps(ciphertext))
        proof = encoding.loads(encoding.dumps(proof))
        self.assertEqual(verenc.verify_and_decrypt(self.sk, pk, ciphertext, proof, self.group, y, self.params), 7)

    def test_secret_key(self):
        self.assertRaises(TypeError, encoding.dumps, self.sk)
        sk = encoding.loads(encoding.dumps(self.sk, include_secret=True))
        self.assertEqual(sk.public_key, self.pk)
        self.assertEqual((sk.x, sk.p, sk.q), (self.sk.x, self.sk.p, self.sk.q))
        self.assertEqual(sk.decrypt(self.pk.encrypt(99)), 99)

        erased = camshoup.SecretKey(self.pk, self.sk.x)
        erased.erase()
        self.assertRaises(ValueError, encoding.dumps, erased, True)

    def test_invalid(self):
        self.assertRaises(TypeError, encoding.dumps, 12)
        self.assertRaises(ValueError, encoding.loads, b'\xff')
        self.assertRaises(ValueError, encoding.loads, b'not json')
        self.assertRaises(ValueError, encoding.loads, b'[]')
        self.assertRaises(ValueError, encoding.loads, b'{"type": "public_key", "version": 2}')
        self.assertRaises(ValueError, encoding.loads, b'{"type": "unknown", "version": 1}')
        self.assertRaises(ValueError, encoding.loads, b'{"type": "public_key", "version": 1, "n": 15}')
        self.assertRaises(ValueError, encoding.loads, '{"type": "public_key", "version": 1}')
        self.assertRaises(ValueError, encoding.loads, None)


def _load_cli():
    path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '__main__.py')
    module_spec = importlib.util.spec_from_file_location('verenc_cli', path)
    cli = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(cli)
    return cli


class TestCommandLine(unittest.TestCase):
    def test_main(self):
        cli = _load_cli()

        with tempfile.TemporaryDirectory() as directory:
            key_cache = os.path.join(directory, 'key.cache')
            argv = [
                '--debug', '0', '--bits', '512', '--group-bits', '128',
                '--bound-bits', '16', '--runs', '2', '--key-cache', key_cache,
            ]
            # generate and cache the keys
            self.assertEqual(cli.main(argv), 0)
            self.assertTrue(os.path.exists(key_cache))
            # load them
            self.assertEqual(cli.main(argv + ['3']), 0)

    def test_run_test(self):
        cli = _load_cli()
        cli.debug_level = 0
        rng = random.Random(0)
        pk, sk = camshoup.generate_keypair(_N_BITS, rng)
        scheme = verenc.VerifiableEncryption(dlog.generate_group(_GROUP_BITS, rng),
                                             proofs.RangeParameters.from_bits(16))

        # the seed picks the witness but not the randomness of the encryption
        first, first_proof = cli.run_test(5, pk, sk, scheme)
        second, second_proof = cli.run_test(5, pk, sk, scheme)
        self.assertNotEqual(first, second)
        self.assertNotEqual(first_proof.response_x, second_proof.response_x)
        self.assertEqual(sk.decrypt(first), sk.decrypt(second))


if __name__ == '__main__':
    unittest.main()
