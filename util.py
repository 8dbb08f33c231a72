#!/usr/bin/env python3
"""Some utilities (mostly arithmetic)

The arithmetic is exposed through the `IntegerRing` capability. Two backends
are offered:

    gmpy2: native GMP arithmetic; secret exponents use `powmod_sec()`, which
        runs in constant time
    phe: the portable helpers from python-paillier (`phe.util`); there is no
        constant-time exponentiation in this backend

The backend is selected once, when this module is imported, from the
`VERENC_BACKEND` environment variable (`gmpy2` when unset). The module-level
functions `powmod()`, `invert()`, ... are bound to the selected backend;
`set_backend()` rebinds them.
"""
import os
import random

import gmpy2
import phe.util

from errors import KeyGenError


class IntegerRing:
    """Arithmetic over the integers, as needed by the cryptosystem

    Subclasses provide `powmod()`, `powmod_secret()`, `invert()`, `gcd()` and
    `is_prime()`. Exponentiations where the exponent is secret (decryption,
    responses of the prover) must go through `powmod_secret()`.
    """
    name = None

    def powmod(self, x, y, m):
        raise NotImplementedError

    def powmod_secret(self, x, y, m):
        raise NotImplementedError

    def invert(self, x, m):
        raise NotImplementedError

    def gcd(self, a, b):
        raise NotImplementedError

    def is_prime(self, x, rounds=25):
        raise NotImplementedError

    def next_prime(self, x):
        """Smallest probable prime strictly greater than `x`"""
        if x < 2:
            return 2
        x = x + 1 if x % 2 == 0 else x + 2
        while not self.is_prime(x):
            x += 2
        return x

    def randrange(self, low, high, rng=None):
        """Uniform random integer from `[low, high)`

        Arguments:
            low (int): lower bound (included)
            high (int): upper bound (excluded)
            rng (random.Random, optional): source of randomness; a
                `random.SystemRandom` is used if not provided
        """
        if rng is None:
            rng = random.SystemRandom()
        return rng.randrange(low, high)


class Gmpy2Ring(IntegerRing):
    """GMP-backed arithmetic through `gmpy2`"""
    name = 'gmpy2'

    def powmod(self, x, y, m):
        """Computes `x^y mod m`

        The method `powmod()` from `gmpy2` is faster than Python's builtin
        `powmod()`. However, it does add some overhead which should be skipped
        for `x = 1`.

        Arguments:
            x (int): base of the exponentiation
            y (int): exponent
            m (int): modulus

        Returns:
            int: the result of `x^y mod m`
        """
        if x == 1:
            return 1
        elif y < 0:
            return self.invert(self.powmod(x, -y, m), m)
        else:
            return int(gmpy2.powmod(x, y, m))

    def powmod_secret(self, x, y, m):
        """Computes `x^y mod m` in constant time

        `powmod_sec()` only accepts odd moduli and positive exponents; every
        modulus of the scheme is odd.
        """
        if y < 0:
            return self.invert(self.powmod_secret(x, -y, m), m)
        elif y == 0:
            return 1 % m
        return int(gmpy2.powmod_sec(x, y, m))

    def invert(self, x, m):
        """Computes the invert of `x` modulo `m`

        This is a wrapper for `invert() from `gmpy2`.

        Arguments:
            x (int): element to be inverted
            m (int): modulus

        Returns:
            int: y such that `x × y = 1 mod m`
        """
        return int(gmpy2.invert(x, m))

    def gcd(self, a, b):
        return int(gmpy2.gcd(a, b))

    def is_prime(self, x, rounds=25):
        """Tests whether `x` is probably prime

        This is a wrapper for `is_prime() from `gmpy2`.

        Arguments:
            x (int): the candidate prime
            rounds (int): number of Miller-Rabin rounds

        Returns:
            bool: `True` if `x` is probably prime else `False`
        """
        return bool(gmpy2.is_prime(x, rounds))

    def next_prime(self, x):
        return int(gmpy2.next_prime(x))


class PheRing(IntegerRing):
    """Portable arithmetic through the helpers of python-paillier"""
    name = 'phe'

    def powmod(self, x, y, m):
        if x == 1:
            return 1
        elif y < 0:
            return self.invert(self.powmod(x, -y, m), m)
        else:
            return phe.util.powmod(x, y, m)

    def powmod_secret(self, x, y, m):
        # no constant-time exponentiation available
        return self.powmod(x, y, m)

    def invert(self, x, m):
        return phe.util.invert(x % m, m)

    def gcd(self, a, b):
        r, _, _ = phe.util.extended_euclidean_algorithm(a, b)
        return abs(r)

    def is_prime(self, x, rounds=25):
        if x < 2:
            return False
        return phe.util.is_prime(x, rounds)


_BACKENDS = {
    Gmpy2Ring.name: Gmpy2Ring,
    PheRing.name: PheRing,
}


def load_backend(name):
    """Instantiate the arithmetic backend called `name`

    Raises:
        ImportError: if there is no such backend
    """
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ImportError('unknown arithmetic backend {!r}'.format(name))


def set_backend(name):
    """Bind the module-level arithmetic functions to the backend `name`

    Returns:
        str: the name of the backend in use before the call
    """
    global ring, powmod, powmod_secret, invert, gcd, is_prime, next_prime, randrange
    previous = ring.name if ring is not None else None
    ring = load_backend(name)
    powmod = ring.powmod
    powmod_secret = ring.powmod_secret
    invert = ring.invert
    gcd = ring.gcd
    is_prime = ring.is_prime
    next_prime = ring.next_prime
    randrange = ring.randrange
    return previous


ring = None
set_backend(os.environ.get('VERENC_BACKEND', Gmpy2Ring.name))

# candidates tried before a prime search gives up; for 1024-bit safe primes a
# candidate succeeds with probability about 1/350
DEFAULT_MAX_ATTEMPTS = 1 << 16


def genprime(n_bits, safe_prime=False, rng=None, max_attempts=DEFAULT_MAX_ATTEMPTS):
    """Generate a probable prime number of n_bits

    Arguments:
        n_bits (int): the size of the prime to be generated, in bits
        safe_prime (bool): whether the returned value should be a safe prime a
            just a common prime
        rng (random.Random, optional): source of randomness; giving a seeded
            generator makes the output reproducible
        max_attempts (int, optional): number of candidates to try before
            giving up; unlimited if `None`

    Returns:
        int: a probable prime `x` from `[2^(n_bits-1), 2^n_bits)`

        Is `safe_prime` is `True`, then `x` is also a probable safe prime

    Raises:
        KeyGenError: if no prime was found in `max_attempts` candidates
    """
    if n_bits < 3:
        raise ValueError('cannot generate primes of {} bits'.format(n_bits))
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        if safe_prime:
            # q of the form 2*p + 1 such that p is prime as well
            p = _random_prime(n_bits - 1, rng)
            q = 2*p + 1
            if q.bit_length() == n_bits and is_prime(q):
                return q
        else:
            p = _random_prime(n_bits, rng)
            if p.bit_length() == n_bits:
                return p
    raise KeyGenError('no prime of {} bits found in {} attempts'.format(n_bits, attempts))


def _random_prime(n_bits, rng):
    # the top bit is forced so that the prime has exactly n_bits (unless
    # next_prime() overflows, which the caller checks)
    n = randrange(2**(n_bits-1), 2**n_bits, rng) | 1
    return next_prime(n)


def crt(residues, moduli):
    """Applies the Chinese Remainder Theorem on given residues

    Arguments:
        residues (list): the residues (int)
        moduli (list): the corresponding modulis (int) in the same order

    Returns:
        int: `x` such that `x < ∏ moduli` and `x % modulus = residue` for
        residue, modulus in `zip(moduli, residues)`
    """
    moduli = list(moduli)
    product = prod(moduli)
    r = 0
    for residue, modulus in zip(residues, moduli):
        NX = product // modulus
        r += residue * NX * invert(NX, modulus)
        r %= product
    return r


def prod(elements_iterable, modulus=None):
    """Computes the product of the given elements

    Arguments:
        elements_iterable (iterable): values (int) to be multiplied together
        modulus (int): if provided, the result will be given modulo this value

    Returns:
        int: the product of the elements from elements_iterable

        If modulus is not None, then the result is reduced modulo the provided
        value.
    """
    elements_iterator = iter(elements_iterable)
    product = next(elements_iterator)
    for element in elements_iterator:
        product *= element
        if modulus is not None:
            product %= modulus
    return product


def int_to_bytes(x):
    """Big-endian encoding of a non-negative integer on as few bytes as
    possible (one byte for zero)"""
    if x < 0:
        raise ValueError('cannot encode negative integer')
    return int(x).to_bytes(max(1, (x.bit_length() + 7) // 8), 'big')


def run_protocol(prover, verifier):
    """Run an interactive protocol between a prover and a verifier

    Both parties are generators. The verifier is first primed (advanced to
    its first `yield`), then the messages of each party are fed to the
    other one until one of them stops. The prover speaks first.

    Arguments:
        prover (generator): the protocol of the prover
        verifier (generator): the protocol of the verifier

    Returns:
        the value returned by the verifier

    Raises:
        any exception raised by either party (e.g. an `errors.ProofError`
        when the verifier rejects the proof)
    """
    next(verifier)
    message = next(prover)
    try:
        while True:
            reply = verifier.send(message)
            message = prover.send(reply)
    except StopIteration as e:
        return e.value
