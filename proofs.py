#!/usr/bin/env python3
"""Proof that a ciphertext encrypts a discrete logarithm

The prover knows `(x, r)` such that:
    * `u = g^r mod n²`
    * `e = h^r (1+n)^x mod n²`
    * `Y = G^x` in a group of prime order
    * `0 ≤ x < B`

The proof is a Sigma protocol. Responses are computed over the integers (the
order of Z_n² is unknown to the prover, and reducing them would lose the
bound on `x`); the masking values are wider than `challenge × witness` by a
statistical security margin, so the responses hide the witness, and the
verifier checks that the response for `x` is not too large, which shows that
`x` lies in a (loosened) interval.

The interactive version of the protocol is given as generators, to be run
with `util.run_protocol()`; `prove()` and `verify()` are the non-interactive
versions, obtained with the Fiat-Shamir transformation.
"""
import util
import transcript
from errors import TranscriptMismatch, RangeViolation

DOMAIN_LABEL = b'camenisch-shoup verifiable encryption of a discrete logarithm'

_MIN_CHALLENGE_BITS = 64
_MIN_STATISTICAL_SECURITY = 40


class RangeParameters:
    """Public parameters of the range argument

    Attributes:
        bound (int): the bound `B`; the witness must be in `[0, B)`
        challenge_bits (int): size of the challenges
        statistical_security (int): number of extra bits of the masking
            values; the responses leak at most `2^-statistical_security`
            about the witness
    """
    def __init__(self, bound, challenge_bits=128, statistical_security=80):
        if not isinstance(bound, int) or bound < 1:
            raise ValueError('bound must be a positive integer')
        if challenge_bits < _MIN_CHALLENGE_BITS:
            raise ValueError('challenges must have at least {} bits'.format(_MIN_CHALLENGE_BITS))
        if statistical_security < _MIN_STATISTICAL_SECURITY:
            raise ValueError('statistical security must be at least {} bits'.format(
                _MIN_STATISTICAL_SECURITY))
        self.bound = bound
        self.challenge_bits = challenge_bits
        self.statistical_security = statistical_security

    @classmethod
    def from_bits(cls, bound_bits, **kwargs):
        """Parameters for witnesses from `[0, 2^bound_bits)`"""
        return cls(1 << bound_bits, **kwargs)

    def __eq__(self, other):
        if not isinstance(other, RangeParameters):
            return NotImplemented
        return (self.bound, self.challenge_bits, self.statistical_security) == \
            (other.bound, other.challenge_bits, other.statistical_security)

    def __hash__(self):
        return hash((self.bound, self.challenge_bits, self.statistical_security))

    def __repr__(self):
        return 'RangeParameters(bound={}, challenge_bits={}, statistical_security={})'.format(
            self.bound, self.challenge_bits, self.statistical_security)

    @property
    def slack_bits(self):
        return self.challenge_bits + self.statistical_security

    @property
    def mask_bound(self):
        """Masking values for the witness are drawn from `[0, B × 2^slack_bits)`"""
        return self.bound << self.slack_bits

    @property
    def response_bound(self):
        """Honest responses for the witness are below `B × 2^(slack_bits+1)`"""
        return self.bound << (self.slack_bits + 1)

    def contains(self, x):
        return isinstance(x, int) and 0 <= x < self.bound

    def check_compatible(self, pk, group):
        """Check that these parameters can be used with a key and a group

        The discrete logarithm of `Y` must be unique in `[0, B)`, and any
        witness the proof accounts for must be decryptable without wrapping
        around `n`.

        Raises:
            ValueError: if the parameters are not compatible
        """
        if self.bound > group.order:
            raise ValueError('bound exceeds the order of the group')
        if self.response_bound >= pk.n // 2:
            raise ValueError('modulus n is too small for these range parameters')


class Proof:
    """Non-interactive proof of verifiable encryption

    Attributes:
        commitment_u (int): `g^r~ mod n²`
        commitment_e (int): `h^r~ (1+n)^x~ mod n²`
        commitment_y (int): `G^x~`
        challenge (int): Fiat-Shamir challenge; the verifier derives it again
        response_x (int): `x~ + challenge × x`
        response_r (int): `r~ + challenge × r`
    """
    def __init__(self, commitment_u, commitment_e, commitment_y, challenge,
                 response_x, response_r):
        self.commitment_u = commitment_u
        self.commitment_e = commitment_e
        self.commitment_y = commitment_y
        self.challenge = challenge
        self.response_x = response_x
        self.response_r = response_r

    @property
    def commitments(self):
        return self.commitment_u, self.commitment_e, self.commitment_y

    @property
    def responses(self):
        return self.response_x, self.response_r

    def _fields(self):
        return self.commitments + (self.challenge,) + self.responses

    def __eq__(self, other):
        if not isinstance(other, Proof):
            return NotImplemented
        return self._fields() == other._fields()

    def __hash__(self):
        return hash(self._fields())

    def __repr__(self):
        return 'Proof(challenge={:#x})'.format(self.challenge)


def prove_encryption(pk, group, params, x, r, rng=None):
    """Prove that a ciphertext encrypts a discrete logarithm

    Arguments:
        pk (camshoup.PublicKey): the key used for the encryption
        group (dlog.DiscreteLogGroup): the group where `Y = G^x`
        params (RangeParameters): the range parameters
        x (int): the witness, i.e. the plaintext of the ciphertext
        r (int): the randomization used for the ciphertext
        rng (random.Random, optional): source of randomness

    Returns:
        generator: the corresponding protocol
    """
    x_tilde = util.randrange(0, params.mask_bound, rng)
    r_tilde = util.randrange(0, (pk.n // 4) << params.slack_bits, rng)
    commitment_u, commitment_e, _ = pk.raw_encrypt(x_tilde, r_tilde)
    commitment_y = group.power_secret(x_tilde)

    challenge = yield commitment_u, commitment_e, commitment_y
    if not 0 <= challenge < 2**params.challenge_bits:
        raise ValueError('challenge out of range')
    # no modular reduction of the responses
    yield x_tilde + challenge * x, r_tilde + challenge * r


def verify_encryption(pk, group, params, ciphertext, y, rng=None):
    """Check the proof that a ciphertext encrypts a discrete logarithm

    Arguments:
        pk (camshoup.PublicKey): the key used for the encryption
        group (dlog.DiscreteLogGroup): the group where `Y = G^x`
        params (RangeParameters): the range parameters
        ciphertext (camshoup.Ciphertext): the ciphertext
        y (int): the public value `Y`
        rng (random.Random, optional): source of randomness

    Returns:
        generator: the corresponding protocol

    Raises:
        TranscriptMismatch: if a verification equation does not hold
        RangeViolation: if the response exceeds the allowed bound
        ValueError: if the parameters cannot be used with this key and group
    """
    params.check_compatible(pk, group)
    commitments = yield
    challenge = util.randrange(0, 2**params.challenge_bits, rng)
    responses = yield challenge
    _well_formed(ciphertext, y, commitments, responses)
    _conclude(*_check(pk, group, params, ciphertext, y, commitments, challenge, responses))


def challenge(pk, group, params, ciphertext, y, commitments, nonce=b''):
    """Fiat-Shamir challenge for the proof of verifiable encryption

    Every public input of the statement is absorbed, in a fixed order, before
    the commitments.

    Arguments:
        nonce (bytes, optional): binds the proof to a context (e.g. a session
            identifier)

    Returns:
        int: the challenge, from `[0, 2^params.challenge_bits)`
    """
    commitment_u, commitment_e, commitment_y = commitments
    t = transcript.Transcript(DOMAIN_LABEL)
    t.append(b'nonce', nonce)
    inputs = [
        (b'n', pk.n),
        (b'g', pk.g),
        (b'h', pk.h),
        (b'P', group.modulus),
        (b'G', group.generator),
        (b'order', group.order),
        (b'bound', params.bound),
        (b'challenge_bits', params.challenge_bits),
        (b'statistical_security', params.statistical_security),
        (b'u', ciphertext.u),
        (b'e', ciphertext.e),
        (b'Y', y),
        (b'commitment u', commitment_u),
        (b'commitment e', commitment_e),
        (b'commitment Y', commitment_y),
    ]
    for label, value in inputs:
        t.append_int(label, value)
    return t.challenge_int(b'challenge', params.challenge_bits)


def prove(pk, group, params, ciphertext, y, x, r, nonce=b'', rng=None):
    """Non-interactive proof that `ciphertext` encrypts `x` where `Y = G^x`

    Arguments:
        pk (camshoup.PublicKey): the key used for the encryption
        group (dlog.DiscreteLogGroup): the group where `Y = G^x`
        params (RangeParameters): the range parameters
        ciphertext (camshoup.Ciphertext): encryption of `x` under `r`
        y (int): the public value `Y`
        x (int): the witness
        r (int): the randomization of `ciphertext`
        nonce (bytes, optional): context the proof is bound to
        rng (random.Random, optional): source of randomness

    Returns:
        Proof: the proof
    """
    prover = prove_encryption(pk, group, params, x, r, rng)
    commitments = next(prover)
    c = challenge(pk, group, params, ciphertext, y, commitments, nonce)
    response_x, response_r = prover.send(c)
    return Proof(*commitments, c, response_x, response_r)


def verify(pk, group, params, ciphertext, y, proof, nonce=b''):
    """Check a non-interactive proof of verifiable encryption

    All the checks are evaluated before the outcome is decided, and the
    outcome does not tell which verification equation failed.

    Raises:
        TranscriptMismatch: if the challenge or a verification equation does
            not match
        RangeViolation: if the response for the witness is out of bounds
        ValueError: if the parameters cannot be used with this key and group
    """
    params.check_compatible(pk, group)
    _well_formed(ciphertext, y, proof.commitments, proof.responses, proof.challenge)
    c = challenge(pk, group, params, ciphertext, y, proof.commitments, nonce)
    valid, in_range = _check(pk, group, params, ciphertext, y, proof.commitments, c,
                             proof.responses)
    valid &= c == proof.challenge
    _conclude(valid, in_range)


def _well_formed(ciphertext, y, commitments, responses, *others):
    # transcripts only encode non-negative integers
    values = (ciphertext.u, ciphertext.e, y) + tuple(commitments) + others
    if len(commitments) != 3 or len(responses) != 2:
        raise TranscriptMismatch('malformed proof')
    if not all(isinstance(v, int) for v in values + tuple(responses)):
        raise TranscriptMismatch('malformed proof')
    if any(v < 0 for v in values):
        raise TranscriptMismatch('malformed proof')


def _check(pk, group, params, ciphertext, y, commitments, challenge, responses):
    n, n2 = pk.n, pk.nsquare
    u, e = ciphertext.u, ciphertext.e
    commitment_u, commitment_e, commitment_y = commitments
    response_x, response_r = responses

    valid = pk.is_unit(u) & pk.is_unit(e)
    valid &= pk.is_unit(commitment_u) & pk.is_unit(commitment_e)
    valid &= group.contains(y) & group.contains(commitment_y)
    # Z_n² has elements of order 2 (e.g. -1) that a prover could slip into the
    # ciphertext; both sides are squared to get rid of them
    # g^(2 s_r) = (u~ × u^c)²
    valid &= util.powmod(pk.g, 2 * response_r, n2) == \
        util.powmod(commitment_u * util.powmod(u, challenge, n2), 2, n2)
    # h^(2 s_r) × (1+n)^(2 s_x) = (e~ × e^c)²
    valid &= util.powmod(pk.h, 2 * response_r, n2) * (1 + 2 * response_x * n) % n2 == \
        util.powmod(commitment_e * util.powmod(e, challenge, n2), 2, n2)
    # G^s_x = Y~ × Y^c
    valid &= group.power(response_x) == \
        group.mul(commitment_y, group.pow(y, challenge))
    in_range = 0 <= response_x < params.response_bound
    return valid, in_range


def _conclude(valid, in_range):
    if not in_range:
        raise RangeViolation('response exceeds the range bound')
    if not valid:
        raise TranscriptMismatch('invalid proof')
