#!/usr/bin/env python3
import random
import argparse
import datetime

import util
import dlog
import proofs
import verenc
import camshoup
import encoding

# debug_level = 0: quiet
# debug_level = 1: normal output
# debug_level = 2: some intermediate values
debug_level = 1


def run_test(seed, pk, sk, scheme):
    rng = random.Random(seed)
    x = rng.randrange(scheme.params.bound)
    y = scheme.group.power(x)
    if debug_level >= 2:
        print('x =', x)
        print('Y =', y)

    start = datetime.datetime.now()
    # the seed only picks the witness; encryption and proof use SystemRandom
    ciphertext, proof = scheme.encrypt_and_prove(pk, x, y)
    proved = datetime.datetime.now()
    decrypted = scheme.verify_and_decrypt(sk, ciphertext, proof, y)
    done = datetime.datetime.now()

    if debug_level >= 2:
        print('ciphertext =', ciphertext)
        print('proof =', proof)
    if debug_level >= 1:
        print('Encrypted and proved in {}, verified and decrypted in {}'.format(
            proved - start, done - proved))

    assert decrypted == x
    return ciphertext, proof


def load_keypair(args):
    if args.key_cache is None:
        pk, sk = camshoup.generate_keypair(args.bits)
        if debug_level >= 1:
            print('Key generated')
        return pk, sk

    # load cached keys or generate new ones
    try:
        with open(args.key_cache, 'rb') as f:
            sk = encoding.loads(f.read())
    except (FileNotFoundError, ValueError):
        pk, sk = camshoup.generate_keypair(args.bits)
        # cache them
        with open(args.key_cache, 'wb') as f:
            f.write(encoding.dumps(sk, include_secret=True))
        if debug_level >= 1:
            print('Key generated')
    else:
        pk = sk.public_key
        if debug_level >= 1:
            print('Keys loaded')
    return pk, sk


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.description = 'Verifiable encryption of discrete logarithms'
    parser.add_argument('--debug', '-d', default=1, type=int)
    parser.add_argument('--bits', '-b', default=2048, type=int,
                        help='size of the modulus n')
    parser.add_argument('--group-bits', '-g', default=2048, type=int,
                        help='size of the modulus of the discrete log group')
    parser.add_argument('--bound-bits', '-l', default=256, type=int,
                        help='witnesses are taken from [0, 2^bound_bits)')
    parser.add_argument('--runs', default=1, type=int)
    parser.add_argument('--key-cache', default=None,
                        help='file where the key pair is cached (contains the secret key)')
    parser.add_argument('seed', default=0, type=int, nargs='?')
    args = parser.parse_args(argv)

    global debug_level
    debug_level = args.debug

    if debug_level >= 1:
        print('Arithmetic backend: {}'.format(util.ring.name))

    pk, sk = load_keypair(args)
    group = dlog.generate_group(args.group_bits)
    params = proofs.RangeParameters.from_bits(args.bound_bits)
    params.check_compatible(pk, group)
    scheme = verenc.VerifiableEncryption(group, params)

    seed = args.seed
    for _ in range(args.runs):
        if debug_level >= 1:
            print('Seed: {}'.format(seed))
        run_test(seed, pk, sk, scheme)
        seed += 1
    return 0


if __name__ == '__main__':
    main()
