"""The module provides functions to pack and unpack group elements, big
scalars and the credential structures into msgpack byte strings.

Example:
    >>> from pscred.utils import setup
    >>> params = setup()
    >>> test_data = [params.g1, params.g2, params.o, {"k": [1, 2]}]
    >>> decode(encode(test_data)) == test_data
    True

The encoding is deterministic, so the encoding of a structure can be hashed.
Tuples are packed as arrays and come back as lists.
"""

import msgpack

from .bp import BpGroup, G1Elem, G2Elem, GTElem
from . import structs

__all__ = ["encode", "decode", "register_coders"]

_pack_reg = {}
_unpack_reg = {}
_groups = {}


def register_coders(cls, num, enc_func, dec_func):
    """ Register a new type for encoding and decoding.
    Take a class type, a number, an encoding and a decoding function."""

    if num in _unpack_reg or cls in _pack_reg:
        raise Exception("Class or number already in use.")

    coders = (cls, num, enc_func, dec_func)
    _pack_reg[cls] = coders
    _unpack_reg[num] = coders


def _group(curve):
    if curve not in _groups:
        _groups[curve] = BpGroup(curve)
    return _groups[curve]


def int_enc(obj):
    # Only integers that overflow the msgpack range end up here
    if obj < 0:
        neg = b"-"
        obj = -obj
    else:
        neg = b"+"
    return neg + obj.to_bytes((obj.bit_length() + 7) // 8, "big")


def int_dec(data):
    num = int.from_bytes(data[1:], "big")
    if data[:1] == b"-":
        return -num
    return num


def _elem_coders(cls):
    def enc(obj):
        return msgpack.packb((obj.group.curve, obj.export()), use_bin_type=True)

    def dec(data):
        curve, ptdata = msgpack.unpackb(data, raw=False)
        return cls.from_bytes(ptdata, _group(curve))

    return enc, dec


def _struct_coders(cls):
    def enc(obj):
        fields = obj.fields() if hasattr(obj, "fields") else list(obj)
        return _packb(fields)

    def dec(data):
        return cls(*msgpack.unpackb(data, ext_hook=ext_hook, raw=False))

    return enc, dec


_STRUCTS = [
    structs.IssuerSecretKey,
    structs.IssuerPublicKey,
    structs.IssuerKey,
    structs.UserSecretKey,
    structs.UserPublicKey,
    structs.UserKey,
    structs.CredRequest,
    structs.BlindCredential,
    structs.PrimaryCredential,
    structs.DeriveCredential,
    structs.AggregateCredential,
    structs.RsaKey,
    structs.StoredCredential,
]


def _init_coders():
    global _pack_reg, _unpack_reg
    _pack_reg, _unpack_reg = {}, {}
    register_coders(int, 0, int_enc, int_dec)
    for num, cls in enumerate([G1Elem, G2Elem, GTElem], 1):
        register_coders(cls, num, *_elem_coders(cls))
    for num, cls in enumerate(_STRUCTS, 10):
        register_coders(cls, num, *_struct_coders(cls))

    # Imported here since the accumulator module depends on this one
    from .accumulator import Accumulator, WitnessList
    register_coders(Accumulator, 30, *_struct_coders(Accumulator))
    register_coders(WitnessList, 31, *_struct_coders(WitnessList))


def default(obj):
    # Exact types only: named tuples must not be packed as plain arrays
    T = type(obj)
    if T in _pack_reg:
        _, num, enc, _ = _pack_reg[T]
        return msgpack.ExtType(num, enc(obj))

    if T is tuple:
        return list(obj)

    raise TypeError("Unknown type: %r" % (T,))


# Register default coders
_init_coders()


def _packb(structure):
    return msgpack.packb(structure, default=default, use_bin_type=True, strict_types=True)


def ext_hook(code, data):
    if code in _unpack_reg:
        _, _, _, dec = _unpack_reg[code]
        return dec(data)

    # Other
    return msgpack.ExtType(code, data)


def encode(structure):
    """ Encode a structure containing group elements and credentials to a binary format. """
    return _packb(structure)


def decode(packed_data):
    """ Decode a binary byte sequence into a structure containing group elements and credentials. """
    return msgpack.unpackb(packed_data, ext_hook=ext_hook, raw=False)


# --- TESTS ---

import pytest


def test_basic():
    x = [b'spam', u'egg', None, 12]
    assert decode(encode(x)) == x


def test_big_ints():
    o = _group("bn128").order()
    test_data = [o, -o, 2**64, -(2**64) - 1, 2**63, 0]
    assert decode(encode(test_data)) == test_data


def test_elements():
    G = _group("bn128")
    g1, g2 = G.gen1(), G.gen2()
    test_data = [g1, 5 * g1, G1Elem.inf(G), g2, 3 * g2, G.pair(g1, g2)]
    x = decode(encode(test_data))
    assert x == test_data


def test_structs():
    G = _group("bn128")
    g1, g2 = G.gen1(), G.gen2()
    cred = structs.PrimaryCredential(2 * g2, 3 * g2)
    x = decode(encode(cred))
    assert isinstance(x, structs.PrimaryCredential)
    assert x == cred

    dc = structs.DeriveCredential(g2, g2, g1, g1, [0, 2], ["a", "", "c", ""])
    agg = structs.AggregateCredential(g2, g2, [dc, dc])
    y = decode(encode(agg))
    assert isinstance(y.messages[1], structs.DeriveCredential)
    assert y == agg


def test_tuples_become_lists():
    assert decode(encode((1, (2, 3)))) == [1, [2, 3]]


def test_deterministic():
    G = _group("bn128")
    dc = structs.DeriveCredential(G.gen2(), G.gen2(), G.gen1(), G.gen1(), [1], ["", "x"])
    assert encode(dc) == encode(decode(encode(dc)))


def test_unknown_type():
    with pytest.raises(TypeError):
        encode([object()])


def test_register_twice():
    with pytest.raises(Exception):
        register_coders(G1Elem, 99, None, None)
