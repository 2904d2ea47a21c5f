""" The credential request: a commitment to the attributes and a
non-interactive proof of knowledge of its opening.

The user commits to attributes ``m`` with a fresh blinding factor ``d``:

    C = d * g2 + sum(m[i] * YBar[i])

and proves knowledge of ``(d, m)`` with a Schnorr proof made
non-interactive by the Fiat-Shamir heuristic. The challenge binds the
commitment to the issuer key through its hash.
"""

import logging
import time

from .bp import G2Elem
from .errors import MalformedInputError
from .structs import CredRequest
from .utils import rand_zr, to_challenge, attr_to_zr, ec_sum, check_scalars

logger = logging.getLogger(__name__)

CHALLENGE_LABEL = "credRequest"


def _attrs_to_zr(params, ipk, attrs):
    if attrs is None or len(attrs) != len(ipk.YBar):
        raise MalformedInputError("Expected %d attributes." % len(ipk.YBar))
    return [attr_to_zr(params.o, m) for m in attrs]


def _request_challenge(params, ipk, C, K):
    return to_challenge(params.o, [CHALLENGE_LABEL, C, K, params.g2, ipk.hash])


def new_cred_request(params, ipk, attrs):
    """ Commits to attrs for the issuer ipk.

    Returns the request and the blinding factor ``d`` the user needs to
    unblind the signature.
    """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    m = _attrs_to_zr(params, ipk, attrs)

    d = rand_zr(o)
    C = d * g2 + ec_sum([mi * Ybi for mi, Ybi in zip(m, ipk.YBar)], G2Elem.inf(G))

    # Witnesses of the proof
    p = rand_zr(o)
    w = [rand_zr(o) for _ in m]
    K = p * g2 + ec_sum([wi * Ybi for wi, Ybi in zip(w, ipk.YBar)], G2Elem.inf(G))

    c = _request_challenge(params, ipk, C, K)

    rp = (p + c * d) % o
    rw = [(wi + c * mi) % o for wi, mi in zip(w, m)]

    logger.debug("credential request took %.3f sec", time.time() - t0)
    return CredRequest(C, K, c, rp, rw), d


def verify_cred_request(params, ipk, req):
    """ Checks the proof of knowledge carried by a credential request.

    Returns False if the proof does not verify and raises
    MalformedInputError if the request is missing a component.
    """
    (G, o, g1, g2, e) = params
    t0 = time.time()

    if req is None or any(x is None for x in req):
        raise MalformedInputError("some part of the credential request is undefined")
    if not isinstance(req.commitment, G2Elem) or not isinstance(req.K, G2Elem):
        raise MalformedInputError("credential request elements must be in G2")
    if not isinstance(req.rw, (list, tuple)) or len(req.rw) != len(ipk.YBar):
        raise MalformedInputError("Expected %d responses." % len(ipk.YBar))
    check_scalars([req.challenge, req.rp] + list(req.rw), "Challenge and responses")

    c = req.challenge
    lhs = req.rp * g2 + ec_sum([ri * Ybi for ri, Ybi in zip(req.rw, ipk.YBar)], G2Elem.inf(G))
    rhs = req.K + c * req.commitment

    ok = lhs == rhs and c == _request_challenge(params, ipk, req.commitment, req.K)
    if not ok:
        logger.warning("credential request proof failed to verify")

    logger.debug("verify credential request took %.3f sec", time.time() - t0)
    return ok


# --- TESTS ---

import pytest
from .utils import setup
from .keys import issuer_keygen


def test_request():
    params = setup()
    _, ipk = issuer_keygen(params, 4)
    attrs = ["000000", "companyA", "2022-12-12", "LevelOne"]

    req, d = new_cred_request(params, ipk, attrs)
    assert 0 < d < params.o
    assert verify_cred_request(params, ipk, req)

    # The commitment opens to (d, attrs)
    m = [attr_to_zr(params.o, a) for a in attrs]
    C = d * params.g2
    for mi, Ybi in zip(m, ipk.YBar):
        C = C + mi * Ybi
    assert C == req.commitment


def test_request_wrong_length():
    params = setup()
    _, ipk = issuer_keygen(params, 3)
    with pytest.raises(MalformedInputError):
        new_cred_request(params, ipk, ["a", "b"])

    req, _ = new_cred_request(params, ipk, ["a", "b", "c"])
    with pytest.raises(MalformedInputError):
        verify_cred_request(params, ipk, req._replace(rw=req.rw[:2]))
    with pytest.raises(MalformedInputError):
        verify_cred_request(params, ipk, req._replace(K=None))


def test_request_wrong_types():
    params = setup()
    _, ipk = issuer_keygen(params, 2)
    req, _ = new_cred_request(params, ipk, ["a", "b"])

    for bad in [req._replace(rp="1"), req._replace(rw=[req.rw[0], b"x"]),
                req._replace(rw=5), req._replace(challenge=[1]),
                req._replace(rp=True)]:
        with pytest.raises(MalformedInputError):
            verify_cred_request(params, ipk, bad)


def test_request_tampered():
    params = setup()
    _, ipk = issuer_keygen(params, 2)
    req, _ = new_cred_request(params, ipk, ["a", "b"])

    assert not verify_cred_request(params, ipk, req._replace(rp=(req.rp + 1) % params.o))
    assert not verify_cred_request(params, ipk, req._replace(
        rw=[req.rw[0], (req.rw[1] + 1) % params.o]))
    assert not verify_cred_request(params, ipk, req._replace(
        commitment=req.commitment + params.g2))


def test_request_challenge_recomputed():
    params = setup()
    (G, o, g1, g2, e) = params
    _, ipk = issuer_keygen(params, 1)
    req, d = new_cred_request(params, ipk, ["a"])

    # A proof that satisfies the equation for a challenge not derived from
    # the transcript is rejected.
    c = (req.challenge + 1) % o
    rp, rw = 5, [7]
    K = rp * g2 + rw[0] * ipk.YBar[0] - c * req.commitment
    forged = CredRequest(req.commitment, K, c, rp, rw)
    assert not verify_cred_request(params, ipk, forged)


def test_request_bound_to_issuer():
    params = setup()
    _, ipk1 = issuer_keygen(params, 2)
    _, ipk2 = issuer_keygen(params, 2)
    req, _ = new_cred_request(params, ipk1, ["a", "b"])
    assert not verify_cred_request(params, ipk2, req)
