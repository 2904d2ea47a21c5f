""" Aggregation of several derived credentials under a user key.

Each derived credential is hashed to a scalar ``D_i`` from its canonical
encoding and weighted by the user secret ``w[i]`` of its position:

    SigmaOnepp = k * g2
    SigmaTwopp = k * (BBar + sum(w[i] * D_i) * g2)

so that the aggregate verifies with ``e(B + sum(D_i * W[i]), SigmaOnepp) ==
e(g1, SigmaTwopp)``. Removing, reordering or duplicating a member changes
the weighted sum.
"""

import logging
import time

from .bp import G1Elem, G2Elem
from .errors import MalformedInputError, ProofInvalidError
from .pack import encode
from .scheme import verify_derive
from .structs import AggregateCredential, DeriveCredential
from .utils import rand_zr, hash_to_zr, ec_sum

logger = logging.getLogger(__name__)


def message_digest(params, message):
    """ The scalar that binds a derived credential into an aggregate. """
    return hash_to_zr(params.o, encode(message))


def _check_count(messages, weights):
    if messages is None or not 1 <= len(messages) <= len(weights):
        raise MalformedInputError(
            "Can aggregate between 1 and %d credentials." % len(weights))


def aggregate(params, ukey, ipk, messages):
    """ Aggregates derived credentials issued under ipk with the user key. """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    usk, upk = ukey
    _check_count(messages, usk.w)

    for i, msg in enumerate(messages):
        if not verify_derive(params, ipk, msg):
            raise ProofInvalidError("derived credential %d does not verify" % i)

    D = [message_digest(params, msg) for msg in messages]
    k = rand_zr(o)

    SigmaOnepp = k * g2
    s = sum(wi * Di for wi, Di in zip(usk.w, D)) % o
    SigmaTwopp = k * (upk.BBar + s * g2)

    logger.debug("aggregation of %d credentials took %.3f sec", len(messages), time.time() - t0)
    return AggregateCredential(SigmaOnepp, SigmaTwopp, list(messages))


def verify_aggregate(params, upk, cred, ipk):
    """ Checks an aggregate credential under the user public key.

    Every aggregated credential must also verify on its own under the
    issuer key ipk.
    """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    if cred is None or not isinstance(cred.SigmaOnepp, G2Elem) \
            or not isinstance(cred.SigmaTwopp, G2Elem):
        raise MalformedInputError("some part of the aggregate credential is undefined")
    _check_count(cred.messages, upk.W)
    if ipk is None:
        raise MalformedInputError("the issuer public key is needed to check the members")
    if any(not isinstance(msg, DeriveCredential) for msg in cred.messages):
        raise MalformedInputError("aggregated messages must be derived credentials")

    for i, msg in enumerate(cred.messages):
        if not verify_derive(params, ipk, msg):
            logger.warning("aggregated credential %d failed to verify", i)
            return False

    if cred.SigmaOnepp.isinf():
        logger.warning("aggregate credential has the identity as base")
        return False

    D = [message_digest(params, msg) for msg in cred.messages]
    Bp = upk.B + ec_sum([Di * Wi for Di, Wi in zip(D, upk.W)], G1Elem.inf(G))

    ok = e(Bp, cred.SigmaOnepp) == e(g1, cred.SigmaTwopp)
    if not ok:
        logger.warning("aggregate credential failed to verify")

    logger.debug("verify aggregation took %.3f sec", time.time() - t0)
    return ok


# --- TESTS ---

import pytest
from .utils import setup
from .keys import issuer_keygen, user_keygen
from .scheme import issue, derive

SCENARIO = ["000000", "companyA", "2022-12-12", "LevelOne"]


@pytest.fixture(scope="module")
def derived():
    params = setup()
    ikey = issuer_keygen(params, 4)
    ukey = user_keygen(params, 3)
    cred = issue(params, ikey, SCENARIO)
    dcs = [derive(params, ikey.ipk, cred, SCENARIO, mask)
           for mask in ([1, 0, 1, 0], [0, 1, 0, 0], [1, 1, 1, 1])]
    return params, ikey, ukey, dcs


def test_aggregate(derived):
    params, ikey, ukey, dcs = derived
    agg = aggregate(params, ukey, ikey.ipk, dcs)
    assert agg.messages == dcs
    assert verify_aggregate(params, ukey.upk, agg, ikey.ipk)

    single = aggregate(params, ukey, ikey.ipk, dcs[:1])
    assert verify_aggregate(params, ukey.upk, single, ikey.ipk)


def test_aggregate_remove_duplicate_reorder(derived):
    params, ikey, ukey, dcs = derived
    ipk = ikey.ipk
    agg = aggregate(params, ukey, ipk, dcs[:2])

    assert not verify_aggregate(params, ukey.upk, agg._replace(messages=dcs[:1]), ipk)
    assert not verify_aggregate(params, ukey.upk, agg._replace(messages=dcs[:2] + dcs[1:2]), ipk)
    assert not verify_aggregate(params, ukey.upk, agg._replace(messages=[dcs[1], dcs[0]]), ipk)


def test_aggregate_wrong_keys(derived):
    params, ikey, ukey, dcs = derived
    agg = aggregate(params, ukey, ikey.ipk, dcs)

    other = user_keygen(params, 3)
    assert not verify_aggregate(params, other.upk, agg, ikey.ipk)

    other_issuer = issuer_keygen(params, 4)
    assert not verify_aggregate(params, ukey.upk, agg, other_issuer.ipk)


def test_aggregate_invalid_member(derived):
    params, ikey, ukey, dcs = derived
    bad = dcs[0]._replace(SigmaOnep=dcs[0].SigmaOnep + params.g1)
    with pytest.raises(ProofInvalidError):
        aggregate(params, ukey, ikey.ipk, [bad, dcs[1]])


def _sign_members(params, ukey, messages, k=5):
    # Aggregates without checking the members first
    (G, o, g1, g2, e) = params
    usk, upk = ukey
    s = sum(wi * message_digest(params, m) for wi, m in zip(usk.w, messages)) % o
    return AggregateCredential(k * g2, k * (upk.BBar + s * g2), list(messages))


def test_verify_aggregate_checks_members(derived):
    params, ikey, ukey, dcs = derived
    (G, o, g1, g2, e) = params

    good = _sign_members(params, ukey, dcs[:2])
    assert verify_aggregate(params, ukey.upk, good, ikey.ipk)

    bad = dcs[0]._replace(SigmaTwop=dcs[0].SigmaTwop + g1)
    forged = _sign_members(params, ukey, [bad, dcs[1]])
    assert not verify_aggregate(params, ukey.upk, forged, ikey.ipk)

    bogus = DeriveCredential(g2, g2, g1, g1, [0], ["anything", "", "", ""])
    assert not verify_derive(params, ikey.ipk, bogus)
    forged = _sign_members(params, ukey, [bogus])
    assert not verify_aggregate(params, ukey.upk, forged, ikey.ipk)


def test_aggregate_counts(derived):
    params, ikey, ukey, dcs = derived
    with pytest.raises(MalformedInputError):
        aggregate(params, ukey, ikey.ipk, [])
    with pytest.raises(MalformedInputError):
        aggregate(params, ukey, ikey.ipk, dcs + dcs[:1])

    agg = aggregate(params, ukey, ikey.ipk, dcs[:1])
    with pytest.raises(MalformedInputError):
        verify_aggregate(params, ukey.upk, agg._replace(messages=[]), ikey.ipk)
    with pytest.raises(MalformedInputError):
        verify_aggregate(params, ukey.upk, agg._replace(SigmaOnepp=None), ikey.ipk)
    with pytest.raises(MalformedInputError):
        verify_aggregate(params, ukey.upk, agg._replace(messages=[list(dcs[0])]), ikey.ipk)
    with pytest.raises(MalformedInputError):
        verify_aggregate(params, ukey.upk, agg, None)
