#!/usr/bin/env python3
"""Groups where the discrete logarithm is hard

The statement proved by the verifiable encryption is `Y = G^x` in a group
of prime order. This module implements the subgroup of quadratic residues of
Z_P* for a safe prime `P = 2q + 1`, which has prime order `q`.
"""
import util


def generate_group(n_bits=2048, rng=None, max_attempts=util.DEFAULT_MAX_ATTEMPTS):
    """Generate a group of prime order

    Arguments:
        n_bits (int, optional): size of the modulus `P` in bits
        rng (random.Random, optional): source of randomness
        max_attempts (int, optional): budget of candidates for the safe prime

    Returns:
        DiscreteLogGroup: the subgroup of order `(P-1)/2` of Z_P*
    """
    modulus = util.genprime(n_bits, True, rng, max_attempts)
    return group_from_safe_prime(modulus, rng)


def group_from_safe_prime(modulus, rng=None):
    """Build the group of quadratic residues modulo a known safe prime

    The generator is the square of a random element; any square other than 1
    generates the whole subgroup since its order is prime.
    """
    order = (modulus - 1) // 2
    if not (util.is_prime(modulus) and util.is_prime(order)):
        raise ValueError('{} is not a safe prime'.format(modulus))
    while True:
        generator = util.powmod(util.randrange(2, modulus - 1, rng), 2, modulus)
        if generator != 1:
            return DiscreteLogGroup(modulus, generator, order)


class DiscreteLogGroup:
    """Cyclic group of prime order, as a subgroup of Z_P*

    Attributes:
        modulus (int): the prime `P`
        generator (int): the generator `G`
        order (int): the prime order `q` of `G`
    """
    def __init__(self, modulus, generator, order):
        self.modulus = modulus
        self.generator = generator
        self.order = order

    def __eq__(self, other):
        if not isinstance(other, DiscreteLogGroup):
            return NotImplemented
        return (self.modulus, self.generator, self.order) == \
            (other.modulus, other.generator, other.order)

    def __hash__(self):
        return hash((self.modulus, self.generator, self.order))

    def __repr__(self):
        return 'DiscreteLogGroup(modulus={:#x}, generator={:#x}, order={:#x})'.format(
            self.modulus, self.generator, self.order)

    def power(self, exponent):
        """`G^exponent mod P`"""
        return util.powmod(self.generator, exponent, self.modulus)

    def power_secret(self, exponent):
        """`G^exponent mod P` for a secret exponent"""
        return util.powmod_secret(self.generator, exponent, self.modulus)

    def pow(self, base, exponent):
        return util.powmod(base, exponent, self.modulus)

    def mul(self, a, b):
        return a * b % self.modulus

    def contains(self, element):
        """Whether `element` belongs to the subgroup generated by `G`"""
        return 0 < element < self.modulus and \
            util.powmod(element, self.order, self.modulus) == 1
