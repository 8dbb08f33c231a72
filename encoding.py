#!/usr/bin/env python3
"""Serialization of keys, ciphertexts, groups, parameters and proofs

Objects are encoded as UTF-8 JSON objects tagged with their type and the
version of the format; integers are plain JSON integers. Secret keys are only
encoded when explicitly requested.
"""
import json

import dlog
import proofs
import camshoup

VERSION = 1


def _public_key(pk):
    return {'n': pk.n, 'g': pk.g, 'h': pk.h}


def _load_public_key(d):
    return camshoup.PublicKey(d['n'], d['g'], d['h'])


def _secret_key(sk):
    if sk.erased:
        raise ValueError('secret key has been erased')
    return {'public_key': _public_key(sk.public_key), 'x': sk.x, 'p': sk.p, 'q': sk.q}


def _load_secret_key(d):
    return camshoup.SecretKey(_load_public_key(d['public_key']), d['x'], d['p'], d['q'])


def _ciphertext(ciphertext):
    return {'public_key': _public_key(ciphertext.public_key), 'u': ciphertext.u, 'e': ciphertext.e}


def _load_ciphertext(d):
    return camshoup.Ciphertext(_load_public_key(d['public_key']), d['u'], d['e'])


def _group(group):
    return {'modulus': group.modulus, 'generator': group.generator, 'order': group.order}


def _load_group(d):
    return dlog.DiscreteLogGroup(d['modulus'], d['generator'], d['order'])


def _params(params):
    return {
        'bound': params.bound,
        'challenge_bits': params.challenge_bits,
        'statistical_security': params.statistical_security,
    }


def _load_params(d):
    return proofs.RangeParameters(d['bound'], d['challenge_bits'], d['statistical_security'])


_PROOF_FIELDS = [
    'commitment_u', 'commitment_e', 'commitment_y',
    'challenge', 'response_x', 'response_r',
]


def _proof(proof):
    return {field: getattr(proof, field) for field in _PROOF_FIELDS}


def _load_proof(d):
    return proofs.Proof(*[d[field] for field in _PROOF_FIELDS])


# type -> (tag, encoder, decoder)
_CODECS = [
    (camshoup.PublicKey, 'public_key', _public_key, _load_public_key),
    (camshoup.SecretKey, 'secret_key', _secret_key, _load_secret_key),
    (camshoup.Ciphertext, 'ciphertext', _ciphertext, _load_ciphertext),
    (dlog.DiscreteLogGroup, 'group', _group, _load_group),
    (proofs.RangeParameters, 'range_parameters', _params, _load_params),
    (proofs.Proof, 'proof', _proof, _load_proof),
]


def to_dict(obj, include_secret=False):
    """Encode an object as a JSON-compatible dictionary

    Arguments:
        obj: the object to encode
        include_secret (bool, optional): must be set to encode secret keys

    Raises:
        TypeError: if the type of the object is not supported, or if `obj`
            is a secret key and `include_secret` is not set
    """
    if isinstance(obj, camshoup.SecretKey) and not include_secret:
        raise TypeError('refusing to encode a secret key without include_secret=True')
    for type_, tag, encode, _ in _CODECS:
        if isinstance(obj, type_):
            d = encode(obj)
            d['type'] = tag
            d['version'] = VERSION
            return d
    raise TypeError('cannot encode objects of type {}'.format(type(obj).__name__))


def from_dict(d):
    """Decode an object encoded by `to_dict()`

    Raises:
        ValueError: if the dictionary is not a valid encoding
    """
    if not isinstance(d, dict):
        raise ValueError('expected a JSON object')
    if d.get('version') != VERSION:
        raise ValueError('unsupported version {!r}'.format(d.get('version')))
    for _, tag, _, decode in _CODECS:
        if d.get('type') == tag:
            try:
                return decode(d)
            except (KeyError, TypeError) as e:
                raise ValueError('malformed {}: {}'.format(tag, e))
    raise ValueError('unknown type {!r}'.format(d.get('type')))


def dumps(obj, include_secret=False):
    """Serialize an object to bytes

    Arguments:
        obj: a public key, secret key, ciphertext, group, range parameters or
            proof
        include_secret (bool, optional): must be set to serialize secret keys

    Returns:
        bytes: the encoding of the object
    """
    return json.dumps(to_dict(obj, include_secret), sort_keys=True).encode()


def loads(data):
    """Deserialize an object serialized by `dumps()`

    Raises:
        ValueError: if `data` is not a valid encoding
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError('expected bytes, got {}'.format(type(data).__name__))
    try:
        d = json.loads(data.decode())
    except (UnicodeDecodeError, json.decoder.JSONDecodeError) as e:
        raise ValueError('invalid encoding: {}'.format(e))
    return from_dict(d)
