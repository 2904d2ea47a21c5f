""" Shared parameters and helpers of the credential scheme. """

import secrets
from binascii import hexlify
from collections import namedtuple
from hashlib import sha256

from .bp import BpGroup, DEFAULT_CURVE
from .errors import MalformedInputError, RandomnessError

Params = namedtuple("Params", ["G", "o", "g1", "g2", "e"])


def setup(curve=DEFAULT_CURVE):
    """ Generates the public parameters (G, o, g1, g2, e) for a curve. """
    G = BpGroup(curve)
    g1, g2 = G.gen1(), G.gen2()
    e, o = G.pair, G.order()
    return Params(G, o, g1, g2, e)


def rand_zr(o):
    """ Samples a uniform non-zero scalar modulo o. """
    try:
        return secrets.randbelow(o - 1) + 1
    except OSError as e:
        raise RandomnessError("randomness source failed: %s" % e) from e


def hash_to_zr(o, data):
    """ Hashes a byte string to a scalar modulo o. """
    return int.from_bytes(sha256(data).digest(), "big") % o


def _to_binary(x):
    if hasattr(x, "export"):
        return x.export()
    if isinstance(x, str):
        return x.encode("utf8")
    if isinstance(x, bytes):
        return x
    if isinstance(x, int):
        return x.to_bytes((x.bit_length() + 7) // 8 or 1, "big")
    raise TypeError("Cannot hash %r" % (x,))


def to_challenge(o, elements):
    """ Generates a Fiat-Shamir challenge by hashing a transcript.

    Example:
        >>> params = setup()
        >>> c = to_challenge(params.o, ["label", params.g1, params.g2, 7])
        >>> c == to_challenge(params.o, ["label", params.g1, params.g2, 7])
        True
        >>> c == to_challenge(params.o, ["label", params.g1, params.g2, 8])
        False
    """
    Cstring = b",".join([hexlify(_to_binary(x)) for x in elements])
    return hash_to_zr(o, Cstring)


def attr_to_zr(o, attr):
    """ Maps a string attribute to a scalar by hashing its UTF-8 encoding.

    Distinct strings map to distinct scalars unless SHA-256 collides, so a
    disclosed value cannot be replaced by another one that verifies.

    Example:
        >>> o = setup().o
        >>> attr_to_zr(o, "A") == hash_to_zr(o, b"A")
        True
        >>> attr_to_zr(o, "A") == attr_to_zr(o, "\\x00A")
        False
    """
    if not isinstance(attr, str):
        raise MalformedInputError("Attribute values must be strings, got %r" % (attr,))
    return hash_to_zr(o, attr.encode("utf8"))


def check_scalars(values, what):
    """ Checks that every value is a plain integer scalar. """
    for x in values:
        if not isinstance(x, int) or isinstance(x, bool):
            raise MalformedInputError("%s must be integers, got %r" % (what, x))


def ec_sum(elements, zero):
    """ Sums a list of group elements, returning zero for an empty list. """
    ret = zero
    for elem in elements:
        ret = ret + elem
    return ret


def check_mask(mask, n):
    """ Checks a disclosure mask of n flags (1 discloses, 0 hides). """
    if mask is None or len(mask) != n:
        raise MalformedInputError("Mask must have one flag per attribute.")
    for flag in mask:
        if flag not in (0, 1):
            raise MalformedInputError("Mask flags must be 0 or 1, got %r" % (flag,))


def hide_indices(mask):
    """ The attribute indices that will not be disclosed. """
    return [i for i, flag in enumerate(mask) if flag == 0]


def disclose_indices(mask):
    """ The attribute indices that will be disclosed. """
    return [i for i, flag in enumerate(mask) if flag == 1]


# --- TESTS ---

import pytest


def test_setup():
    (G, o, g1, g2, e) = setup()
    assert o == G.order()
    assert e(g1, g2) == G.pair(g1, g2)


def test_rand_zr():
    o = setup().o
    xs = set(rand_zr(o) for _ in range(20))
    assert len(xs) == 20
    assert all(0 < x < o for x in xs)


def test_attr_to_zr():
    o = setup().o
    assert attr_to_zr(o, "companyA") == hash_to_zr(o, b"companyA")
    assert attr_to_zr(o, "") == hash_to_zr(o, b"")

    # Values that share a big-endian number stay apart
    assert attr_to_zr(o, "000000") != attr_to_zr(o, "\x00000000")

    for bad in [1.5, 5, True, b"000000", None]:
        with pytest.raises(MalformedInputError):
            attr_to_zr(o, bad)


def test_masks():
    mask = [1, 0, 1, 0]
    check_mask(mask, 4)
    assert hide_indices(mask) == [1, 3]
    assert disclose_indices(mask) == [0, 2]

    with pytest.raises(MalformedInputError):
        check_mask([1, 0], 4)
    with pytest.raises(MalformedInputError):
        check_mask([1, 2, 0, 0], 4)


def test_check_scalars():
    check_scalars([0, 1, 2**300], "scalars")
    for bad in [[1, "2"], [True], [None], [1.0]]:
        with pytest.raises(MalformedInputError):
            check_scalars(bad, "scalars")


def test_ec_sum():
    (G, o, g1, g2, e) = setup()
    from .bp import G1Elem
    assert ec_sum([], G1Elem.inf(G)).isinf()
    assert ec_sum([g1, g1, g1], G1Elem.inf(G)) == 3 * g1
