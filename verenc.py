#!/usr/bin/env python3
"""Verifiable encryption and decryption of discrete logarithms

A prover encrypts the discrete logarithm `x` of a public `Y = G^x` under the
public key of a third party, and proves that the ciphertext encrypts the
discrete logarithm of `Y` (with `0 ≤ x < B`), without revealing `x`. Anyone
can check the proof; the holder of the secret key can recover `x`.

The main entry points of this module are `prove_and_encrypt()` and
`verify_and_decrypt()`. `VerifiableEncryption` binds the deployment
parameters (the group and the range parameters) to avoid passing them around.
"""
import proofs
from errors import WitnessOutOfRange, InvalidCiphertext


def prove_and_encrypt(pk, x, group, y, params, nonce=b'', rng=None):
    """Encrypt a discrete logarithm and prove it

    Arguments:
        pk (camshoup.PublicKey): public key of the party that may decrypt
        x (int): the discrete logarithm, from `[0, params.bound)`
        group (dlog.DiscreteLogGroup): the group where `Y = G^x`
        y (int): the public value `Y`
        params (proofs.RangeParameters): the range parameters
        nonce (bytes, optional): context the proof is bound to
        rng (random.Random, optional): source of randomness

    Returns:
        tuple: a pair `(ciphertext, proof)` (`camshoup.Ciphertext`,
            `proofs.Proof`)

    Raises:
        WitnessOutOfRange: if `x` is not in `[0, params.bound)`; nothing is
            computed (and no randomness is drawn) in this case
        ValueError: if the parameters cannot be used with this key and group
    """
    if not params.contains(x):
        raise WitnessOutOfRange('witness is not in [0, {})'.format(params.bound))
    params.check_compatible(pk, group)

    r = pk.random_for_encrypt(rng)
    ciphertext = pk.encrypt(x, r)
    proof = proofs.prove(pk, group, params, ciphertext, y, x, r, nonce, rng)
    return ciphertext, proof


def verify_and_decrypt(sk, pk, ciphertext, proof, group, y, params, nonce=b''):
    """Check the proof of a verifiable encryption, then decrypt

    The ciphertext is only decrypted when the proof is valid.

    Arguments:
        sk (camshoup.SecretKey): secret key corresponding to `pk`
        pk (camshoup.PublicKey): the public key used for the encryption
        ciphertext (camshoup.Ciphertext): the ciphertext
        proof (proofs.Proof): the proof
        group (dlog.DiscreteLogGroup): the group where `Y = G^x`
        y (int): the public value `Y`
        params (proofs.RangeParameters): the range parameters
        nonce (bytes, optional): context the proof is bound to

    Returns:
        int: `x` such that `Y = G^x`

    Raises:
        ProofError: if the proof is not valid
        DecryptionError: if the ciphertext cannot be decrypted, or does not
            decrypt to the discrete logarithm of `Y`
    """
    if sk.public_key != pk:
        raise ValueError('secret key does not match the public key')
    proofs.verify(pk, group, params, ciphertext, y, proof, nonce)
    x = sk.decrypt(ciphertext)
    # should not happen after a successful verification
    if group.power(x) != y:
        raise InvalidCiphertext('plaintext is not the discrete logarithm of Y')
    return x


class VerifiableEncryption:
    """Verifiable encryption for a given group and range

    Attributes:
        group (dlog.DiscreteLogGroup): the group where the statements live
        params (proofs.RangeParameters): the range parameters
    """
    def __init__(self, group, params):
        self.group = group
        self.params = params

    def encrypt_and_prove(self, pk, x, y=None, nonce=b'', rng=None):
        """See `prove_and_encrypt()`; `y` defaults to `G^x`"""
        if y is None:
            if not self.params.contains(x):
                raise WitnessOutOfRange('witness is not in [0, {})'.format(self.params.bound))
            y = self.group.power_secret(x)
        return prove_and_encrypt(pk, x, self.group, y, self.params, nonce, rng)

    def verify(self, pk, ciphertext, proof, y, nonce=b''):
        """See `proofs.verify()`"""
        proofs.verify(pk, self.group, self.params, ciphertext, y, proof, nonce)

    def verify_and_decrypt(self, sk, ciphertext, proof, y, nonce=b''):
        """See `verify_and_decrypt()`"""
        return verify_and_decrypt(sk, sk.public_key, ciphertext, proof, self.group, y,
                                  self.params, nonce)
