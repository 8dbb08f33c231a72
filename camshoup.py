#!/usr/bin/env python3
"""Implementation of the Camenisch-Shoup cryptosystem

The Camenisch-Shoup cryptosystem is a variant of Paillier where the
randomization lives in a separate group element, which makes it possible to
prove statements about the plaintext of a ciphertext (see `proofs`). A
ciphertext is a pair `(u, e) = (g^r, h^r (1+n)^m)` of elements of Z_n².

Like Paillier, it is homomorphic for addition (i.e. we can combine the
ciphertexts of two messages to obtain a ciphertext of the sum of these two
messages).

The main entry points of this module are `generate_keypair()` and
`keypair_from_safe_primes()`.

Reference: J. Camenisch and V. Shoup, Practical Verifiable Encryption and
Decryption of Discrete Logarithms, CRYPTO 2003.
"""
import util
from errors import InvalidCiphertext


def generate_keypair(n_bits=2048, rng=None, max_attempts=util.DEFAULT_MAX_ATTEMPTS):
    """Generate a pair of keys for the Camenisch-Shoup cryptosystem

    Arguments:
        n_bits (int, optional): the number of bits for the parameter n; the
            security corresponds to the difficulty of factoring `n` (as in
            RSA); as of 2018, NIST and ANSSI recommend at least 2048 bits and
            NSA 3072 bits; generating a 2048 bit keypair takes about a minute
            since both factors must be safe primes
        rng (random.Random, optional): source of randomness; a seeded
            generator gives reproducible keys (for tests only)
        max_attempts (int, optional): budget of candidates for each safe
            prime

    Returns:
        tuple: pair of two elements, usually named respectively `pk`
            (`PublicKey`), and `sk` (`SecretKey`)

    Raises:
        KeyGenError: if a safe prime could not be found within `max_attempts`
    """
    p = util.genprime(n_bits // 2, True, rng, max_attempts)
    q = util.genprime(n_bits - n_bits // 2, True, rng, max_attempts)
    # Paillier-like schemes do not work if p == q
    while p == q:
        q = util.genprime(n_bits - n_bits // 2, True, rng, max_attempts)
    return keypair_from_safe_primes(p, q, rng, check=False)


def keypair_from_safe_primes(p, q, rng=None, check=True):
    """Build a pair of keys from two known safe primes

    Arguments:
        p (int): first safe prime
        q (int): second safe prime, different from `p`
        rng (random.Random, optional): source of randomness for `g` and for
            the secret exponent
        check (bool, optional): whether to check that `p` and `q` are safe
            primes

    Returns:
        tuple: pair of two elements, `pk` (`PublicKey`), and `sk`
            (`SecretKey`)
    """
    if p == q:
        raise ValueError('p and q must be distinct')
    if check:
        for prime in (p, q):
            if not (util.is_prime(prime) and util.is_prime((prime - 1) // 2)):
                raise ValueError('{} is not a safe prime'.format(prime))

    n = p * q
    nsquare = n * n
    p_, q_ = (p - 1) // 2, (q - 1) // 2

    # g = g'^(2n) lives in the subgroup of order dividing n' = p'q'; we insist
    # on the order being exactly n'
    while True:
        g_ = util.randrange(2, nsquare, rng)
        if util.gcd(g_, n) != 1:
            continue
        g = util.powmod(g_, 2 * n, nsquare)
        if util.powmod(g, p_, nsquare) != 1 and util.powmod(g, q_, nsquare) != 1:
            break

    x = util.randrange(0, nsquare * p_ * q_ // 4, rng)
    h = util.powmod_secret(g, x, nsquare)
    sk = SecretKey(PublicKey(n, g, h), x, p, q)
    return sk.public_key, sk


class PublicKey:
    """Public key for the Camenisch-Shoup cryptosystem

    Attributes:
        n (int): product of two safe primes
        g (int): element of Z_n² of order `n'`, where `n = (2p'+1)(2q'+1)`
        h (int): `g^x mod n²` where `x` is the secret exponent
        nsquare (int): cached value of `n × n`
    """

    def __init__(self, n, g, h):
        """Constructor

        Arguments:
            n (int): parameter from the cryptosystem
            g (int): parameter from the cryptosystem
            h (int): parameter from the cryptosystem
        """
        self.n = n
        self.g = g
        self.h = h
        self.nsquare = n * n

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return (self.n, self.g, self.h) == (other.n, other.g, other.h)

    def __hash__(self):
        return hash((self.n, self.g, self.h))

    def __repr__(self):
        return 'PublicKey(n={:#x}, g={:#x}, h={:#x})'.format(self.n, self.g, self.h)

    def random_for_encrypt(self, rng=None):
        """Random randomization factor from `[1, n/4)`"""
        return util.randrange(1, self.n // 4, rng)

    def is_unit(self, a):
        """Whether `a` is an invertible element of Z_n²"""
        return 0 < a < self.nsquare and util.gcd(a, self.n) == 1

    def encrypt(self, m, randomization=None, rng=None):
        """Encrypt a message m into a ciphertext

        Arguments:
            m (int): the message to be encrypted, from `[0, n)`
            randomization (int, optional): the randomization factor `r`;
                if not provided, a fresh value is drawn from `[1, n/4)`; a
                value must never be used for two encryptions
            rng (random.Random, optional): source of randomness

        Returns:
            Ciphertext: a ciphertext for the given integer `m` it can be
                decrypted using the secret key corresponding to this public
                key
        """
        if not isinstance(m, int) or not 0 <= m < self.n:
            raise ValueError('plaintext must be an integer from [0, n)')
        if randomization is not None and randomization < 0:
            raise ValueError('randomization must be non-negative')
        u, e, _ = self.raw_encrypt(m, randomization, rng)
        return Ciphertext(self, u, e)

    def raw_encrypt(self, m, randomization=None, rng=None):
        """Encrypt without checking the ranges of the operands

        The proof system uses it to commit to masking values that are larger
        than `n`.

        Arguments:
            m (int): the plaintext
            randomization (int, optional): the randomization factor; if not
                provided, a secure-random value is chosen

        Returns:
            tuple: a triplet of integers, `(u, e, r)`: the two components of
            the ciphertext and the randomization used
        """
        n2 = self.nsquare
        if randomization is None:
            randomization = self.random_for_encrypt(rng)
        u = util.powmod_secret(self.g, randomization, n2)
        # (1+n)^m = 1 + mn mod n²
        e = util.powmod_secret(self.h, randomization, n2) * (1 + m * self.n) % n2
        return u, e, randomization

    @staticmethod
    def L(u, n):
        """Discrete logarithm in base `1+n` of `u = 1 + mn mod n²`

        Arguments:
            u (int): element of the form `(1+n)^m mod n²`
            n (int): modulus currently in use

        Returns:
            int: `m`, or None if `u` is not of this form
        """
        m, r = divmod(u - 1, n)
        if r != 0:
            return None
        return m


class SecretKey:
    """Secret key for the Camenisch-Shoup cryptosystem

    The secret values are only held by this object. They are never shown by
    `repr()`, the object cannot be pickled, and `erase()` (also called when
    leaving a `with` block) overwrites them. Python integers are immutable,
    so the erasure drops every reference this object holds rather than
    scrubbing memory.

    Attributes:
        public_key (PublicKey): the corresponding public key
        x (int): secret exponent, `h = g^x`
        p (int): first prime in the factorization of `n`, or None
        q (int): second prime in the factorization of `n`, or None
        erased (bool): whether the secret values have been erased
    """
    def __init__(self, public_key, x, p=None, q=None):
        """Constructor

        Arguments:
            public_key (PublicKey): the corresponding public key
            x (int): the secret exponent
            p (int, optional): first factor of `n`; allows faster decryption
                and subgroup checks
            q (int, optional): second factor of `n`
        """
        if (p is None) != (q is None):
            raise ValueError('give both factors of n or none of them')
        if p is not None and p * q != public_key.n:
            raise ValueError('p and q are not the factors of n')
        self.public_key = public_key
        self.x = x
        self.p = p
        self.q = q
        self.erased = False

        # pre-computations
        if p is not None:
            self.n_prime = (p - 1) // 2 * ((q - 1) // 2)
            self.psquare = p * p
            self.qsquare = q * q
            # valid ciphertexts live in a group of exponent dividing n × n'
            self.x_reduced = x % self.n_prime

    @property
    def has_factors(self):
        return self.p is not None

    def __repr__(self):
        state = 'erased' if self.erased else 'n={:#x}'.format(self.public_key.n)
        return '<SecretKey {}>'.format(state)

    def __reduce__(self):
        raise TypeError('secret keys cannot be pickled')

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.erase()

    def erase(self):
        """Overwrite the secret values; the key is unusable afterwards"""
        self.x = 0
        if self.p is not None:
            self.p = self.q = 0
            self.n_prime = self.psquare = self.qsquare = self.x_reduced = 0
        self.erased = True

    def decrypt(self, ciphertext):
        """Decrypt a ciphertext

        Arguments:
            ciphertext (Ciphertext): the ciphertext to be decrypted

        Returns:
            int: the message represented in the ciphertext, from `[0, n)`

            If homomorphic operations have been performed, the result of
            these operations on the original messages is returned (modulo
            `n`). Components of order 2 of `u` and `e` are ignored, since
            the proofs only bind the squares of the ciphertext elements.

        Raises:
            InvalidCiphertext: if the ciphertext is not made of elements of
                the expected subgroup, or does not decrypt to a plaintext
        """
        if self.erased:
            raise ValueError('secret key has been erased')
        pk = self.public_key
        if ciphertext.public_key != pk:
            raise ValueError('ciphertext was not created under this key')
        n, n2 = pk.n, pk.nsquare
        u, e = ciphertext.u, ciphertext.e

        if not (pk.is_unit(u) and pk.is_unit(e)):
            raise InvalidCiphertext('ciphertext elements are not units of Z_n²')

        if self.has_factors:
            # order check: u = ±g^r, so u² has no component of order n; e needs
            # no check since a stray component of order dividing n' makes L()
            # fail below
            if util.powmod(u, 2 * self.n_prime, n2) != 1:
                raise InvalidCiphertext('ciphertext elements are not in the expected subgroup')
            p2, q2 = self.psquare, self.qsquare
            ux = util.crt([
                util.powmod_secret(u % p2, self.x_reduced, p2),
                util.powmod_secret(u % q2, self.x_reduced, q2),
            ], [p2, q2])
        else:
            ux = util.powmod_secret(u, self.x, n2)

        # 2 × (2^-1 mod n) is even and equals 1 modulo n: it clears the
        # components of order 2 (such as -1) and keeps (1+n)^m
        two_inv_two = 2 * util.invert(2, n)
        m = pk.L(util.powmod(e * util.invert(ux, n2) % n2, two_inv_two, n2), n)
        if m is None or not 0 <= m < n:
            raise InvalidCiphertext('ciphertext does not encrypt a valid plaintext')
        return m


class Ciphertext:
    """Ciphertext from the Camenisch-Shoup cryptosystem

    Attributes:
        public_key (PublicKey): the public key used to generate this
            ciphertext
        u (int): `g^r mod n²`, where `r` is the randomization
        e (int): `h^r (1+n)^m mod n²`, where `m` is the message
    """
    def __init__(self, public_key, u, e):
        """Constructor

        Arguments:
            public_key (PublicKey): the public key
            u (int): first component of the ciphertext
            e (int): second component of the ciphertext
        """
        self.public_key = public_key
        self.u = u
        self.e = e

    def __eq__(self, other):
        if not isinstance(other, Ciphertext):
            return NotImplemented
        return (self.public_key, self.u, self.e) == (other.public_key, other.u, other.e)

    def __hash__(self):
        return hash((self.public_key, self.u, self.e))

    def __repr__(self):
        return 'Ciphertext(u={:#x}, e={:#x})'.format(self.u, self.e)

    def __add__(a, b):
        """Homomorphically add two ciphertexts together

        The components are multiplied together; the result encrypts the sum
        of the messages under the sum of the randomizations.

        Arguments:
            a (Ciphertext): left operand
            b (Ciphertext or int): right operand

        Returns:
            Ciphertext: decrypting this ciphertext should yield the sum of the
                values obtained by decrypting the ciphertexts `a` and `b` (or
                `b` itself)
        """
        pk = a.public_key
        n2 = pk.nsquare
        if isinstance(b, Ciphertext):
            if b.public_key != pk:
                raise ValueError('cannot sum values under different public keys')
            return Ciphertext(pk, a.u * b.u % n2, a.e * b.e % n2)
        return Ciphertext(pk, a.u, a.e * (1 + b * pk.n) % n2)

    def __radd__(a, b):
        return a + b

    def __neg__(a):
        """Homomorphically negate a ciphertext (modulo `n`)"""
        return a * -1

    def __sub__(a, b):
        return a + -b

    def __rsub__(a, b):
        return b + -a

    def __mul__(a, b):
        """Homomorphically multiply a ciphertext by an integer

        Note that it is not possible to perform this operation between two
        ciphertexts, the cryptosystem being only partially homomorphic.

        Arguments:
            a (Ciphertext): left operand
            b (int): right operand

        Returns:
            Ciphertext: encryption of `b × m` under the randomization `b × r`
        """
        if isinstance(b, Ciphertext):
            raise NotImplementedError('ciphertexts can only be multiplied by integers')
        pk = a.public_key
        return Ciphertext(pk, util.powmod(a.u, b, pk.nsquare), util.powmod(a.e, b, pk.nsquare))

    def __rmul__(a, b):
        return a * b
