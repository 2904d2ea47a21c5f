""" Blind issuance and selective disclosure of Pointcheval-Sanders credentials.

A primary credential on attributes ``m`` is a pair ``(H, S)`` of G2 elements
with ``S = (x + sum(y[i] * m[i])) * H``. It is checked with one pairing
equation:

    e(X + sum(m[i] * Y[i]), H) == e(g1, S)

The issuer signs the commitment of a credential request without learning
``m``; the user removes the blinding factor. To show the credential the
user derives a fresh, re-randomized credential that discloses only the
attributes selected by a mask.

Example:
    >>> from pscred.utils import setup
    >>> from pscred.keys import issuer_keygen
    >>> params = setup()
    >>> ikey = issuer_keygen(params, 2)
    >>> cred = issue(params, ikey, ["Alice", "1999-01-01"])
    >>> verify_primary(params, ikey.ipk, cred, ["Alice", "1999-01-01"])
    True
    >>> dc = derive(params, ikey.ipk, cred, ["Alice", "1999-01-01"], [1, 0])
    >>> dc.disclose_msg
    ['Alice', '']
    >>> verify_derive(params, ikey.ipk, dc)
    True
"""

import logging
import time

from .bp import G1Elem, G2Elem
from .errors import MalformedInputError, ProofInvalidError
from .request import new_cred_request, verify_cred_request
from .structs import BlindCredential, PrimaryCredential, DeriveCredential
from .utils import (rand_zr, attr_to_zr, ec_sum, check_mask, check_scalars,
                    hide_indices, disclose_indices)

logger = logging.getLogger(__name__)


def _attrs_to_zr(params, ipk, attrs):
    if attrs is None or len(attrs) != len(ipk.Y):
        raise MalformedInputError("Expected %d attributes." % len(ipk.Y))
    return [attr_to_zr(params.o, m) for m in attrs]


def blind_sign(params, isk, ipk, req):
    """ The issuer signs the commitment of a verified credential request. """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    if not verify_cred_request(params, ipk, req):
        raise ProofInvalidError("credential request does not verify")

    u = rand_zr(o)
    H = u * g2
    S = u * (isk.x * g2 + req.commitment)

    logger.debug("blind signature took %.3f sec", time.time() - t0)
    return BlindCredential(H, S)


def unblind(params, ipk, blind, d, attrs):
    """ Removes the blinding factor d and checks the resulting credential. """
    if blind is None or blind.H is None or blind.S is None:
        raise MalformedInputError("some part of the blind credential is undefined")

    cred = PrimaryCredential(blind.H, blind.S - d * blind.H)
    if not verify_primary(params, ipk, cred, attrs):
        raise ProofInvalidError("unblinded credential does not verify")

    logger.info("Unblinded a credential on %d attributes", len(attrs))
    return cred


def verify_primary(params, ipk, cred, attrs):
    """ Checks a primary credential against all of its attributes. """
    (G, o, g1, g2, e) = params

    if cred is None or not isinstance(cred.H, G2Elem) or not isinstance(cred.S, G2Elem):
        raise MalformedInputError("some part of the credential is undefined")
    m = _attrs_to_zr(params, ipk, attrs)

    if cred.H.isinf():
        logger.warning("credential has the identity as base")
        return False

    Xp = ipk.X + ec_sum([mi * Yi for mi, Yi in zip(m, ipk.Y)], G1Elem.inf(G))
    ok = e(Xp, cred.H) == e(g1, cred.S)
    if not ok:
        logger.warning("primary credential failed to verify")
    return ok


def issue(params, ikey, attrs):
    """ Runs the request, signing and unblinding steps in one place. """
    isk, ipk = ikey
    req, d = new_cred_request(params, ipk, attrs)
    blind = blind_sign(params, isk, ipk, req)
    return unblind(params, ipk, blind, d, attrs)


def derive(params, ipk, cred, attrs, mask):
    """ Derives a re-randomized credential disclosing the attributes whose
    mask flag is 1. Hidden slots of ``disclose_msg`` are empty strings.
    """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    if not verify_primary(params, ipk, cred, attrs):
        raise ProofInvalidError("primary credential does not verify")

    check_mask(mask, len(ipk.Y))
    hide = hide_indices(mask)
    disclose = disclose_indices(mask)
    m = _attrs_to_zr(params, ipk, attrs)

    r = rand_zr(o)
    t = rand_zr(o)

    Hp = r * cred.H
    Sp = r * cred.S + t * Hp

    SigmaOnep = t * g1 + ec_sum([m[j] * ipk.Y[j] for j in hide], G1Elem.inf(G))

    YSum = ec_sum([ipk.Y[i] for i in disclose], G1Elem.inf(G))
    cross = [m[j] * ipk.Z[i][j] for i in disclose for j in hide]
    SigmaTwop = t * YSum + ec_sum(cross, G1Elem.inf(G))

    disclose_msg = [attrs[i] if mask[i] == 1 else "" for i in range(len(attrs))]

    logger.debug("derivation took %.3f sec", time.time() - t0)
    return DeriveCredential(Hp, Sp, SigmaOnep, SigmaTwop, disclose, disclose_msg)


def _check_derive_layout(ipk, cred):
    n = len(ipk.Y)
    if cred is None or any(x is None for x in cred):
        raise MalformedInputError("some part of the derived credential is undefined")
    if not isinstance(cred.Hp, G2Elem) or not isinstance(cred.Sp, G2Elem):
        raise MalformedInputError("Hp and Sp must be in G2")
    if not isinstance(cred.SigmaOnep, G1Elem) or not isinstance(cred.SigmaTwop, G1Elem):
        raise MalformedInputError("SigmaOnep and SigmaTwop must be in G1")
    if not isinstance(cred.disclose_msg, (list, tuple)) \
            or not isinstance(cred.disclose_indices, (list, tuple)):
        raise MalformedInputError("Disclosed indices and messages must be lists")
    if len(cred.disclose_msg) != n:
        raise MalformedInputError("Expected %d disclosed message slots." % n)

    check_scalars(cred.disclose_indices, "Disclosed indices")
    indices = list(cred.disclose_indices)
    if indices != sorted(set(indices)) or any(not 0 <= i < n for i in indices):
        raise MalformedInputError("Disclosed indices must be sorted, distinct and in range.")
    for j in range(n):
        if j not in indices and cred.disclose_msg[j] != "":
            raise MalformedInputError("Hidden attribute %d carries a value." % j)
    return indices


def verify_derive(params, ipk, cred):
    """ Checks a derived credential against the disclosed attributes.

    When nothing is disclosed the second pairing check compares two
    identities and always holds, so anyone who knows ``X`` can build a
    derived credential that verifies without holding one. An empty
    disclosure is not evidence that a credential was issued.
    """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    disclose = _check_derive_layout(ipk, cred)

    if cred.Hp.isinf():
        logger.warning("derived credential has the identity as base")
        return False

    m = [attr_to_zr(o, cred.disclose_msg[i]) for i in disclose]
    Xp = ipk.X + cred.SigmaOnep + ec_sum(
        [mi * ipk.Y[i] for mi, i in zip(m, disclose)], G1Elem.inf(G))
    YBarSum = ec_sum([ipk.YBar[i] for i in disclose], G2Elem.inf(G))

    ok = (e(Xp, cred.Hp) == e(g1, cred.Sp)
          and e(cred.SigmaOnep, YBarSum) == e(cred.SigmaTwop, g2))
    if not ok:
        logger.warning("derived credential failed to verify")

    logger.debug("verify derivation took %.3f sec", time.time() - t0)
    return ok


# --- TESTS ---

import itertools
import pytest
from .utils import setup
from .keys import issuer_keygen

SCENARIO = ["000000", "companyA", "2022-12-12", "LevelOne"]


@pytest.fixture(scope="module")
def issued():
    params = setup()
    ikey = issuer_keygen(params, 4)
    cred = issue(params, ikey, SCENARIO)
    return params, ikey, cred


def test_round_trip(issued):
    params, ikey, cred = issued
    assert verify_primary(params, ikey.ipk, cred, SCENARIO)
    assert not verify_primary(params, ikey.ipk, cred,
                              ["000001", "companyA", "2022-12-12", "LevelOne"])


def test_blind_sign_step_by_step():
    params = setup()
    isk, ipk = issuer_keygen(params, 2)
    attrs = ["a", "42"]

    req, d = new_cred_request(params, ipk, attrs)
    blind = blind_sign(params, isk, ipk, req)
    assert not verify_primary(params, ipk, PrimaryCredential(*blind), attrs)

    cred = unblind(params, ipk, blind, d, attrs)
    assert cred.H == blind.H
    assert verify_primary(params, ipk, cred, attrs)

    with pytest.raises(ProofInvalidError):
        unblind(params, ipk, blind, (d + 1) % params.o, attrs)


def test_blind_sign_rejects_bad_request():
    params = setup()
    isk, ipk = issuer_keygen(params, 2)
    req, _ = new_cred_request(params, ipk, ["a", "b"])
    with pytest.raises(ProofInvalidError):
        blind_sign(params, isk, ipk, req._replace(rp=req.rp + 1))


def test_verify_primary_malformed(issued):
    params, ikey, cred = issued
    with pytest.raises(MalformedInputError):
        verify_primary(params, ikey.ipk, cred, SCENARIO[:3])
    with pytest.raises(MalformedInputError):
        verify_primary(params, ikey.ipk, cred._replace(S=None), SCENARIO)

    inf = G2Elem.inf(params.G)
    assert not verify_primary(params, ikey.ipk, PrimaryCredential(inf, inf), SCENARIO)


def test_concrete_scenario(issued):
    params, ikey, cred = issued
    dc = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])
    assert dc.disclose_indices == [0, 2]
    assert dc.disclose_msg == ["000000", "", "2022-12-12", ""]
    assert verify_derive(params, ikey.ipk, dc)


@pytest.mark.parametrize("mask", list(itertools.product([0, 1], repeat=4)))
def test_derive_masks(issued, mask):
    params, ikey, cred = issued
    mask = list(mask)
    dc = derive(params, ikey.ipk, cred, SCENARIO, mask)
    for i, flag in enumerate(mask):
        if flag == 0:
            assert dc.disclose_msg[i] == ""
        else:
            assert dc.disclose_msg[i] == SCENARIO[i]
    assert verify_derive(params, ikey.ipk, dc)


def test_unlinkability(issued):
    params, ikey, cred = issued
    dc1 = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])
    dc2 = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])
    assert dc1.Hp != dc2.Hp
    assert dc1.Sp != dc2.Sp
    assert dc1.Hp != cred.H


def test_derive_tampering(issued):
    params, ikey, cred = issued
    (G, o, g1, g2, e) = params
    dc = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])

    msg = list(dc.disclose_msg)
    msg[0] = "000001"
    assert not verify_derive(params, ikey.ipk, dc._replace(disclose_msg=msg))

    msg = list(dc.disclose_msg)
    msg[2] = "2022-12-13"
    assert not verify_derive(params, ikey.ipk, dc._replace(disclose_msg=msg))

    assert not verify_derive(params, ikey.ipk, dc._replace(SigmaOnep=dc.SigmaOnep + g1))
    assert not verify_derive(params, ikey.ipk, dc._replace(SigmaTwop=dc.SigmaTwop + g1))
    assert not verify_derive(params, ikey.ipk, dc._replace(Sp=dc.Sp + g2))


def test_derive_aliased_values(issued):
    params, ikey, cred = issued
    o = params.o
    dc = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])
    num = int.from_bytes(b"000000", "big")

    # Values that encode the same number as "000000" do not verify
    for alias in [(num + 7 * o).to_bytes(64, "big"), num, b"000000"]:
        msg = list(dc.disclose_msg)
        msg[0] = alias
        with pytest.raises(MalformedInputError):
            verify_derive(params, ikey.ipk, dc._replace(disclose_msg=msg))

    msg = list(dc.disclose_msg)
    msg[0] = "\x00000000"
    assert not verify_derive(params, ikey.ipk, dc._replace(disclose_msg=msg))


def test_empty_disclosure_proves_nothing(issued):
    params, ikey, cred = issued
    (G, o, g1, g2, e) = params

    # Built from the public key alone
    k = 12345
    forged = DeriveCredential(g2, k * g2, k * g1 - ikey.ipk.X, G1Elem.inf(G),
                              [], ["", "", "", ""])
    assert verify_derive(params, ikey.ipk, forged)


def test_derive_other_issuer(issued):
    params, ikey, cred = issued
    other = issuer_keygen(params, 4)
    dc = derive(params, ikey.ipk, cred, SCENARIO, [1, 1, 1, 1])
    assert not verify_derive(params, other.ipk, dc)


def test_derive_bad_mask(issued):
    params, ikey, cred = issued
    with pytest.raises(MalformedInputError):
        derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1])
    with pytest.raises(MalformedInputError):
        derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 2, 0])


def test_derive_rejects_invalid_primary(issued):
    params, ikey, cred = issued
    with pytest.raises(ProofInvalidError):
        derive(params, ikey.ipk, cred._replace(S=cred.S + params.g2), SCENARIO, [1, 0, 1, 0])


def test_verify_derive_malformed(issued):
    params, ikey, cred = issued
    dc = derive(params, ikey.ipk, cred, SCENARIO, [1, 0, 1, 0])

    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_msg=dc.disclose_msg[:3]))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_indices=[2, 0]))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_indices=[0, 4]))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(
            disclose_msg=["000000", "companyA", "2022-12-12", ""]))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(Hp=None))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_indices=[0, "2"]))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_indices=7))
    with pytest.raises(MalformedInputError):
        verify_derive(params, ikey.ipk, dc._replace(disclose_msg="000000"))

    inf = G2Elem.inf(params.G)
    assert not verify_derive(params, ikey.ipk, dc._replace(Hp=inf, Sp=inf))
