""" Issuer and user key generation for the Pointcheval-Sanders credentials.

The issuer holds ``x`` and ``y[0..n)`` and publishes their images in both
source groups together with the cross terms ``Z[i][j] = (y[i] * y[j]) * g1``
that a user needs to prove consistency of hidden attributes. The user key has
the same shape without cross terms and is used for aggregation.

Both public keys carry a hash of their own encoding (computed with the hash
field cleared) that binds later zero-knowledge challenges to the key.
"""

import logging

from .bp import G1Elem, G2Elem
from .errors import MalformedInputError, ProofInvalidError
from .pack import encode
from .structs import (IssuerSecretKey, IssuerPublicKey, IssuerKey,
                      UserSecretKey, UserPublicKey, UserKey)
from .utils import rand_zr, hash_to_zr

logger = logging.getLogger(__name__)


def _key_hash(params, pk):
    return hash_to_zr(params.o, encode(pk._replace(hash=None)))


def issuer_keygen(params, n=None, attribute_names=None):
    """ Generates an issuer key pair for credentials of n attributes.

    Either ``n`` or a list of distinct ``attribute_names`` may be given.
    """
    (G, o, g1, g2, e) = params

    if attribute_names is not None:
        seen = set()
        for name in attribute_names:
            if name in seen:
                raise ValueError("attribute %s appears multiple times in attribute_names" % name)
            seen.add(name)
        n = len(attribute_names)

    if n is None or n < 1:
        raise ValueError("An issuer key needs at least one attribute.")

    x = rand_zr(o)
    y = [rand_zr(o) for _ in range(n)]
    isk = IssuerSecretKey(x, y)

    X = x * g1
    Y = [yi * g1 for yi in y]
    YBar = [yi * g2 for yi in y]
    Z = [[None if i == j else ((y[i] * y[j]) % o) * g1 for j in range(n)]
         for i in range(n)]

    ipk = issuer_key_set_hash(params, IssuerPublicKey(X, Y, YBar, Z, None))
    logger.info("Generated issuer key for %d attributes", n)
    return IssuerKey(isk, ipk)


def issuer_key_set_hash(params, ipk):
    """ Returns the public key with its hash recomputed over all other fields. """
    return ipk._replace(hash=_key_hash(params, ipk))


def _check_elems(elems, cls, what):
    for elem in elems:
        if not isinstance(elem, cls):
            raise MalformedInputError("some part of the %s is undefined" % what)


def issuer_key_check(params, ipk):
    """ Checks that an issuer public key is well formed and consistent.

    Raises MalformedInputError when a component is missing and
    ProofInvalidError when the key does not match its hash or the bases in
    G1 and G2 do not share exponents.
    """
    (G, o, g1, g2, e) = params

    if ipk is None or ipk.Y is None or ipk.YBar is None or ipk.Z is None:
        raise MalformedInputError("some part of the public key is undefined")

    n = len(ipk.Y)
    if n < 1 or len(ipk.YBar) != n or len(ipk.Z) != n:
        raise MalformedInputError("public key bases have inconsistent lengths")

    _check_elems([ipk.X] + list(ipk.Y), G1Elem, "public key")
    _check_elems(ipk.YBar, G2Elem, "public key")
    for i, row in enumerate(ipk.Z):
        if len(row) != n or row[i] is not None:
            raise MalformedInputError("cross terms are not an n x n table")
        _check_elems([z for j, z in enumerate(row) if j != i], G1Elem, "public key")

    if ipk.X.isinf() or any(Yi.isinf() for Yi in ipk.Y):
        raise MalformedInputError("public key contains the identity")

    for Yi, YBari in zip(ipk.Y, ipk.YBar):
        if e(Yi, g2) != e(g1, YBari):
            raise ProofInvalidError("Y and YBar bases do not match")

    if ipk.hash != _key_hash(params, ipk):
        raise ProofInvalidError("issuer public key hash does not match")

    return True


def user_keygen(params, n):
    """ Generates a user key pair with n aggregation weights. """
    (G, o, g1, g2, e) = params

    if n is None or n < 1:
        raise ValueError("A user key needs at least one weight.")

    b = rand_zr(o)
    w = [rand_zr(o) for _ in range(n)]
    usk = UserSecretKey(b, w)

    upk = UserPublicKey(b * g1, b * g2,
                        [wi * g1 for wi in w],
                        [wi * g2 for wi in w],
                        None)
    upk = upk._replace(hash=_key_hash(params, upk))

    logger.info("Generated user key with %d weights", n)
    return UserKey(usk, upk)


def user_key_check(params, upk):
    """ Checks that a user public key is well formed and consistent. """
    (G, o, g1, g2, e) = params

    if upk is None or upk.W is None or upk.WBar is None:
        raise MalformedInputError("some part of the public key is undefined")
    if len(upk.W) < 1 or len(upk.W) != len(upk.WBar):
        raise MalformedInputError("public key bases have inconsistent lengths")

    _check_elems([upk.B] + list(upk.W), G1Elem, "public key")
    _check_elems([upk.BBar] + list(upk.WBar), G2Elem, "public key")

    if e(upk.B, g2) != e(g1, upk.BBar):
        raise ProofInvalidError("B and BBar do not match")
    for Wi, WBari in zip(upk.W, upk.WBar):
        if e(Wi, g2) != e(g1, WBari):
            raise ProofInvalidError("W and WBar bases do not match")

    if upk.hash != _key_hash(params, upk):
        raise ProofInvalidError("user public key hash does not match")

    return True


# --- TESTS ---

import pytest
from .utils import setup


def test_issuer_keygen():
    params = setup()
    (G, o, g1, g2, e) = params
    isk, ipk = issuer_keygen(params, 3)

    assert ipk.X == isk.x * g1
    for i in range(3):
        assert ipk.Y[i] == isk.y[i] * g1
        assert ipk.YBar[i] == isk.y[i] * g2
        for j in range(3):
            if i == j:
                assert ipk.Z[i][j] is None
            else:
                assert ipk.Z[i][j] == (isk.y[i] * isk.y[j]) * g1

    assert issuer_key_check(params, ipk)


def test_issuer_key_hash_binds_fields():
    params = setup()
    _, ipk = issuer_keygen(params, 2)
    changed = ipk._replace(X=ipk.X + params.g1)
    with pytest.raises(ProofInvalidError):
        issuer_key_check(params, changed)

    # Recomputing the hash makes it consistent again
    rehashed = issuer_key_set_hash(params, changed)
    assert rehashed.hash != ipk.hash
    assert issuer_key_check(params, rehashed)


def test_issuer_key_from_names():
    params = setup()
    _, ipk = issuer_keygen(params, attribute_names=["One", "Two"])
    assert len(ipk.Y) == 2

    with pytest.raises(ValueError):
        issuer_keygen(params, attribute_names=["One", "One"])
    with pytest.raises(ValueError):
        issuer_keygen(params, 0)


def test_issuer_key_malformed():
    params = setup()
    _, ipk = issuer_keygen(params, 2)
    with pytest.raises(MalformedInputError):
        issuer_key_check(params, ipk._replace(YBar=ipk.YBar[:1]))
    with pytest.raises(MalformedInputError):
        issuer_key_check(params, ipk._replace(Y=[ipk.Y[0], None]))


def test_issuer_key_mismatched_bases():
    params = setup()
    _, ipk = issuer_keygen(params, 2)
    bad = ipk._replace(YBar=[ipk.YBar[1], ipk.YBar[0]])
    with pytest.raises(ProofInvalidError):
        issuer_key_check(params, issuer_key_set_hash(params, bad))


def test_user_keygen():
    params = setup()
    (G, o, g1, g2, e) = params
    usk, upk = user_keygen(params, 4)
    assert upk.B == usk.b * g1
    assert upk.BBar == usk.b * g2
    assert [usk.w[i] * g1 for i in range(4)] == upk.W
    assert user_key_check(params, upk)

    with pytest.raises(ProofInvalidError):
        user_key_check(params, upk._replace(B=2 * upk.B))
