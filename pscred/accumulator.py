""" A dynamic RSA accumulator used to revoke credentials.

The accumulator of a set ``U`` under the public RSA group ``(N, G)`` is
``G^(prod Hprime(u)) mod N``, where ``Hprime`` maps a value to a prime. A
member proves membership with a witness ``W`` such that
``W^Hprime(u) mod N == acc``.

Example:
    >>> key = rsa_keygen(1024)
    >>> acc = generate_acc(key, [b"alice", b"bob"])
    >>> wl = acc.witness_init()
    >>> acc.add_member(b"carol", wl)
    >>> verify(b"carol", wl.witness(b"carol"), acc.acc, acc.N)
    True
"""

import logging
import secrets
import threading
import time
from hashlib import sha256
from math import gcd

from cryptography.hazmat.primitives.asymmetric import rsa
from sympy import nextprime

from .errors import MalformedInputError, MemberNotFoundError
from .structs import RsaKey

logger = logging.getLogger(__name__)


def rsa_keygen(bits=1024):
    """ Generates the public group (N, G) of a revocation authority.

    N is the modulus of a fresh RSA key whose factors are discarded, and G is
    the square of a random unit modulo N.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    N = private_key.public_key().public_numbers().n

    while True:
        F = secrets.randbelow(N)
        if F > 1 and gcd(F, N) == 1:
            break

    return RsaKey(N, pow(F, 2, N))


def member_bytes(u):
    """ The canonical byte form of a member value (bytes, str or int). """
    if isinstance(u, bytes):
        return u
    if isinstance(u, str):
        return u.encode("utf8")
    if isinstance(u, int) and not isinstance(u, bool) and u >= 0:
        return u.to_bytes((u.bit_length() + 7) // 8 or 1, "big")
    raise MalformedInputError("Unsupported member value: %r" % (u,))


def hprime(u):
    """ Maps a member to the smallest prime not below the SHA-256 of its bytes. """
    h = int.from_bytes(sha256(member_bytes(u)).digest(), "big")
    return int(nextprime(h - 1))


def create_cri(raw):
    """ The credential revocation information (a prime) of an encoded credential. """
    p = hprime(raw)
    return p.to_bytes((p.bit_length() + 7) // 8, "big")


def _precompute(g, items, N, witnesses):
    if not items:
        return
    if len(items) == 1:
        witnesses[items[0][0]] = g
        return

    A = items[:len(items) // 2]
    B = items[len(items) // 2:]

    # The witnesses of A exclude every member of A but include all of B
    gA = g
    for _, e in B:
        gA = pow(gA, e, N)
    gB = g
    for _, e in A:
        gB = pow(gB, e, N)

    _precompute(gA, A, N, witnesses)
    _precompute(gB, B, N, witnesses)


def precompute_witness(g, members, N):
    """ Computes the witnesses of all members with O(n log n) exponentiations.

    Returns a dict from the hex form of each member to its witness.
    """
    items = [(member_bytes(u).hex(), hprime(u)) for u in members]
    witnesses = {}
    _precompute(g, items, N, witnesses)
    return witnesses


def generate_witness(key, u, members):
    """ Computes the witness of a single member in O(n). """
    u = member_bytes(u)
    W = key.G
    for other in members:
        other = member_bytes(other)
        if other != u:
            W = pow(W, hprime(other), key.N)
    return W


def verify(u, W, acc, N):
    """ Checks that W is a witness of u in the accumulator acc. """
    return pow(W, hprime(u), N) == acc


class WitnessList(object):
    """ The witnesses of all members, computed against the value ``acc``. """

    def __init__(self, acc, witnesses=None):
        self.acc = acc
        self.witnesses = dict(witnesses or {})

    def fields(self):
        return [self.acc, self.witnesses]

    def witness(self, u):
        try:
            return self.witnesses[member_bytes(u).hex()]
        except KeyError:
            raise MemberNotFoundError("No witness for %r" % (u,))

    def __eq__(self, other):
        return isinstance(other, WitnessList) and self.fields() == other.fields()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __len__(self):
        return len(self.witnesses)


class Accumulator(object):
    """ The accumulator value of a set of members under an RSA group.

    Mutations are serialized by a lock and replace the accumulator value,
    the member list and the witness mapping together once the new state is
    complete.
    """

    def __init__(self, acc, members, N, G):
        self.acc = acc
        self.members = _unique_members(members)
        self.N = N
        self.G = G
        self._lock = threading.Lock()

    def fields(self):
        return [self.acc, list(self.members), self.N, self.G]

    def key(self):
        return RsaKey(self.N, self.G)

    def __eq__(self, other):
        return isinstance(other, Accumulator) and self.fields() == other.fields()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __contains__(self, u):
        return member_bytes(u) in self.members

    def witness_init(self):
        """ Returns an empty witness list bound to the current value. """
        return WitnessList(self.acc)

    def _is_current(self, wl):
        return (wl.acc == self.acc and len(wl.witnesses) == len(self.members)
                and len(wl.witnesses) > 0)

    def add_member(self, u, wl):
        """ Adds u and brings the witness list up to date. """
        u = member_bytes(u)
        t0 = time.time()
        with self._lock:
            if u in self.members:
                raise MalformedInputError("%r is already a member" % (u,))

            e = hprime(u)
            new_acc = pow(self.acc, e, self.N)
            new_members = self.members + [u]

            if self._is_current(wl):
                witnesses = dict((k, pow(W, e, self.N)) for k, W in wl.witnesses.items())
                witnesses[u.hex()] = self.acc
            else:
                witnesses = precompute_witness(self.G, new_members, self.N)

            self.acc, self.members = new_acc, new_members
            wl.acc, wl.witnesses = new_acc, witnesses

        logger.debug("add member took %.3f sec", time.time() - t0)

    def delete_member(self, u, wl):
        """ Removes u and recomputes every remaining witness. """
        u = member_bytes(u)
        t0 = time.time()
        with self._lock:
            if u not in self.members:
                raise MemberNotFoundError("%r is not a member" % (u,))

            if self._is_current(wl) and u.hex() in wl.witnesses:
                new_acc = wl.witnesses[u.hex()]
            else:
                new_acc = generate_witness(self.key(), u, self.members)

            new_members = [m for m in self.members if m != u]
            witnesses = precompute_witness(self.G, new_members, self.N)

            self.acc, self.members = new_acc, new_members
            wl.acc, wl.witnesses = new_acc, witnesses

        logger.debug("delete member took %.3f sec", time.time() - t0)

    def verify_member(self, u, W):
        """ Checks a witness of u against the current value. """
        with self._lock:
            acc, N = self.acc, self.N
        return verify(u, W, acc, N)


def _unique_members(members):
    members = [member_bytes(u) for u in members]
    if len(set(members)) != len(members):
        raise MalformedInputError("Members must be distinct.")
    return members


def generate_acc(key, members):
    """ Accumulates distinct members under the RSA group of key. """
    members = _unique_members(members)
    acc = key.G
    for u in members:
        acc = pow(acc, hprime(u), key.N)
    return Accumulator(acc, members, key.N, key.G)


# --- TESTS ---

import pytest


@pytest.fixture(scope="module")
def key():
    return rsa_keygen(1024)


def test_rsa_keygen(key):
    N, G = key
    assert N.bit_length() == 1024
    assert 1 < G < N
    assert gcd(G, N) == 1


def test_hprime():
    from sympy import isprime
    p = hprime(b"alice")
    assert isprime(p)
    assert p >= int.from_bytes(sha256(b"alice").digest(), "big")
    assert hprime("alice") == p
    assert hprime(b"bob") != p

    with pytest.raises(MalformedInputError):
        hprime(1.5)


def test_create_cri():
    cri = create_cri(b"some credential")
    assert int.from_bytes(cri, "big") == hprime(b"some credential")


def test_generate_acc(key):
    acc = generate_acc(key, [b"a", b"b", b"c"])
    e = hprime(b"a") * hprime(b"b") * hprime(b"c")
    assert acc.acc == pow(key.G, e, key.N)
    assert b"b" in acc
    assert generate_acc(key, []).acc == key.G


def test_generate_acc_duplicates(key):
    with pytest.raises(MalformedInputError):
        generate_acc(key, [b"a", b"b", b"a"])
    # str and bytes of the same value are one member
    with pytest.raises(MalformedInputError):
        generate_acc(key, ["a", b"a"])
    with pytest.raises(MalformedInputError):
        Accumulator(key.G, [b"a", b"a"], key.N, key.G)


def test_precompute_witness(key):
    members = [b"m%d" % i for i in range(7)]
    acc = generate_acc(key, members)
    witnesses = precompute_witness(key.G, members, key.N)
    assert len(witnesses) == 7
    for u in members:
        W = witnesses[u.hex()]
        assert W == generate_witness(key, u, members)
        assert verify(u, W, acc.acc, key.N)


def test_add_member(key):
    acc = generate_acc(key, [b"alice", b"bob"])
    wl = acc.witness_init()
    assert len(wl) == 0

    # Empty list: everything is precomputed
    acc.add_member(b"carol", wl)
    assert wl.acc == acc.acc
    for u in [b"alice", b"bob", b"carol"]:
        assert verify(u, wl.witness(u), acc.acc, acc.N)

    # Current list: witnesses are updated in place
    acc.add_member(b"dave", wl)
    assert len(wl) == 4
    for u in acc.members:
        assert acc.verify_member(u, wl.witness(u))

    with pytest.raises(MalformedInputError):
        acc.add_member(b"dave", wl)


def test_add_member_stale_list(key):
    acc = generate_acc(key, [b"alice"])
    wl = acc.witness_init()
    acc.add_member(b"bob", wl)
    stale = WitnessList(wl.acc, wl.witnesses)
    acc.add_member(b"carol", wl)

    acc.add_member(b"dave", stale)
    for u in acc.members:
        assert acc.verify_member(u, stale.witness(u))


def test_delete_member(key):
    acc = generate_acc(key, [])
    wl = acc.witness_init()
    for u in [b"alice", b"bob", b"carol", b"dave"]:
        acc.add_member(u, wl)

    old = wl.witness(b"bob")
    acc.delete_member(b"bob", wl)

    assert not acc.verify_member(b"bob", old)
    assert acc.members == [b"alice", b"carol", b"dave"]
    for u in acc.members:
        assert acc.verify_member(u, wl.witness(u))

    with pytest.raises(MemberNotFoundError):
        wl.witness(b"bob")
    with pytest.raises(MemberNotFoundError):
        acc.delete_member(b"bob", wl)


def test_delete_member_without_witnesses(key):
    acc = generate_acc(key, [b"alice", b"bob", b"carol"])
    wl = acc.witness_init()
    acc.delete_member(b"alice", wl)
    assert acc.acc == generate_acc(key, [b"bob", b"carol"]).acc
    assert acc.verify_member(b"carol", wl.witness(b"carol"))


def test_delete_last_member(key):
    acc = generate_acc(key, [b"alice"])
    wl = acc.witness_init()
    acc.delete_member(b"alice", wl)
    assert acc.acc == key.G
    assert len(wl) == 0


def test_pack_accumulator(key):
    from .pack import encode, decode
    acc = generate_acc(key, [b"alice", b"bob"])
    wl = acc.witness_init()
    acc.add_member(b"carol", wl)

    acc2, wl2 = decode(encode([acc, wl]))
    assert acc2 == acc
    assert wl2 == wl
    assert acc2.verify_member(b"alice", wl2.witness(b"alice"))
