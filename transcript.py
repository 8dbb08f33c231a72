#!/usr/bin/env python3
"""Fiat-Shamir transcripts

A transcript absorbs labeled messages in order, and squeezes challenges that
depend on everything absorbed so far. Each label and message is framed with
its length, so that no two different sequences of messages can be confused.
"""
import struct
import hashlib

import util

_PROTOCOL = b'verenc transcript v1'


def _frame(data):
    return struct.pack('<Q', len(data)) + data


class Transcript:
    """Transcript of a non-interactive protocol

    Attributes:
        domain_label (bytes): label separating this protocol from any other
            protocol using transcripts
    """
    def __init__(self, domain_label):
        """Constructor

        Arguments:
            domain_label (bytes): domain separation label
        """
        self.domain_label = bytes(domain_label)
        self._state = hashlib.shake_256(_frame(_PROTOCOL))
        self.append(b'dom-sep', self.domain_label)

    def append(self, label, data):
        """Absorb a labeled message

        Arguments:
            label (bytes): what the message is
            data (bytes): the message
        """
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError('transcript messages must be bytes')
        self._state.update(_frame(bytes(label)))
        self._state.update(_frame(bytes(data)))

    def append_int(self, label, value):
        """Absorb a labeled non-negative integer"""
        self.append(label, util.int_to_bytes(value))

    def challenge_bytes(self, label, length):
        """Squeeze a challenge

        The challenge is absorbed back in the transcript, so that requesting
        another challenge yields a different value.

        Arguments:
            label (bytes): what the challenge is for
            length (int): the size of the challenge, in bytes

        Returns:
            bytes: the challenge
        """
        self._state.update(_frame(bytes(label)))
        self._state.update(struct.pack('<Q', length))
        challenge = self._state.copy().digest(length)
        self.append(b'challenge', challenge)
        return challenge

    def challenge_int(self, label, n_bits):
        """Squeeze a challenge as an integer from `[0, 2^n_bits)`"""
        data = self.challenge_bytes(label, (n_bits + 7) // 8)
        return int.from_bytes(data, 'big') >> (-n_bits % 8)
