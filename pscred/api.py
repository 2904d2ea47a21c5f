""" Entry points that consume and produce the msgpack encodings of keys,
requests, credentials and accumulator state.

Every function takes the public parameters (see ``pscred.utils.setup``)
explicitly, except the accumulator functions which only need the RSA group
carried by the accumulator itself.
"""

import msgpack

from . import accumulator, aggregate, keys, request, scheme
from .errors import MalformedInputError
from .pack import encode, decode
from .structs import (IssuerSecretKey, IssuerPublicKey, UserSecretKey,
                      UserPublicKey, UserKey, CredRequest, BlindCredential,
                      PrimaryCredential, DeriveCredential, AggregateCredential,
                      RsaKey, IssuerKey)


def _load(data, cls):
    try:
        obj = decode(data)
    except (ValueError, TypeError, msgpack.UnpackException) as e:
        raise MalformedInputError("Cannot decode %s: %s" % (cls.__name__, e)) from e
    if not isinstance(obj, cls):
        raise MalformedInputError("Expected %s, got %s" % (cls.__name__, type(obj).__name__))
    return obj


def generate_issuer_key(params, n):
    isk, ipk = keys.issuer_keygen(params, n)
    return encode(isk), encode(ipk)


def generate_user_key(params, n):
    usk, upk = keys.user_keygen(params, n)
    return encode(usk), encode(upk)


def generate_revocation_key(bits=1024):
    return encode(accumulator.rsa_keygen(bits))


def new_request(params, ipk, attrs):
    """ Returns the encoded request and the encoded blinding factor. """
    req, d = request.new_cred_request(params, _load(ipk, IssuerPublicKey), attrs)
    return encode(req), encode(d)


def verify_request(params, ipk, req):
    return request.verify_cred_request(
        params, _load(ipk, IssuerPublicKey), _load(req, CredRequest))


def sign_request(params, isk, ipk, req):
    blind = scheme.blind_sign(params, _load(isk, IssuerSecretKey),
                              _load(ipk, IssuerPublicKey), _load(req, CredRequest))
    return encode(blind)


def unblind_credential(params, ipk, blind, d, attrs):
    cred = scheme.unblind(params, _load(ipk, IssuerPublicKey),
                          _load(blind, BlindCredential), _load(d, int), attrs)
    return encode(cred)


def issue_primary(params, isk, ipk, attrs):
    ikey = IssuerKey(_load(isk, IssuerSecretKey), _load(ipk, IssuerPublicKey))
    return encode(scheme.issue(params, ikey, attrs))


def derive_credential(params, ipk, cred, attrs, mask):
    dc = scheme.derive(params, _load(ipk, IssuerPublicKey),
                       _load(cred, PrimaryCredential), attrs, mask)
    return encode(dc)


def verify_derive_credential(params, ipk, cred):
    return scheme.verify_derive(params, _load(ipk, IssuerPublicKey),
                                _load(cred, DeriveCredential))


def aggregate_credentials(params, usk, upk, ipk, creds):
    ukey = UserKey(_load(usk, UserSecretKey), _load(upk, UserPublicKey))
    messages = [_load(c, DeriveCredential) for c in creds]
    agg = aggregate.aggregate(params, ukey, _load(ipk, IssuerPublicKey), messages)
    return encode(agg)


def verify_aggregate_credential(params, upk, cred, ipk):
    return aggregate.verify_aggregate(params, _load(upk, UserPublicKey),
                                      _load(cred, AggregateCredential),
                                      _load(ipk, IssuerPublicKey))


def create_accumulator(key, members):
    """ Returns the encoded accumulator of members and its witness list. """
    acc = accumulator.generate_acc(_load(key, RsaKey), members)
    wl = acc.witness_init()
    wl.witnesses = accumulator.precompute_witness(acc.G, acc.members, acc.N)
    return encode(acc), encode(wl)


def add_member(acc, wl, u):
    acc, wl = _load(acc, accumulator.Accumulator), _load(wl, accumulator.WitnessList)
    acc.add_member(u, wl)
    return encode(acc), encode(wl)


def delete_member(acc, wl, u):
    acc, wl = _load(acc, accumulator.Accumulator), _load(wl, accumulator.WitnessList)
    acc.delete_member(u, wl)
    return encode(acc), encode(wl)


def verify_member(acc, wl, u):
    acc, wl = _load(acc, accumulator.Accumulator), _load(wl, accumulator.WitnessList)
    return acc.verify_member(u, wl.witness(u))


# --- TESTS ---

import pytest
from .utils import setup


def test_credential_flow():
    params = setup()
    attrs = ["000000", "companyA", "2022-12-12", "LevelOne"]

    isk, ipk = generate_issuer_key(params, 4)
    usk, upk = generate_user_key(params, 2)

    req, d = new_request(params, ipk, attrs)
    assert verify_request(params, ipk, req)
    blind = sign_request(params, isk, ipk, req)
    cred = unblind_credential(params, ipk, blind, d, attrs)

    dc1 = derive_credential(params, ipk, cred, attrs, [1, 0, 1, 0])
    dc2 = derive_credential(params, ipk, cred, attrs, [0, 0, 0, 1])
    assert verify_derive_credential(params, ipk, dc1)
    assert decode(dc1).disclose_msg == ["000000", "", "2022-12-12", ""]

    agg = aggregate_credentials(params, usk, upk, ipk, [dc1, dc2])
    assert verify_aggregate_credential(params, upk, agg, ipk)
    with pytest.raises(MalformedInputError):
        verify_aggregate_credential(params, upk, agg, None)


def test_issue_primary():
    params = setup()
    isk, ipk = generate_issuer_key(params, 2)
    cred = issue_primary(params, isk, ipk, ["a", "b"])
    dc = derive_credential(params, ipk, cred, ["a", "b"], [0, 1])
    assert verify_derive_credential(params, ipk, dc)


def test_wrong_types():
    params = setup()
    isk, ipk = generate_issuer_key(params, 2)
    with pytest.raises(MalformedInputError):
        new_request(params, isk, ["a", "b"])
    with pytest.raises(MalformedInputError):
        verify_derive_credential(params, ipk, b"\xc1garbage")


def test_accumulator_flow():
    key = generate_revocation_key(1024)
    acc, wl = create_accumulator(key, [b"alice", b"bob"])
    assert verify_member(acc, wl, b"alice")

    acc, wl = add_member(acc, wl, b"carol")
    assert verify_member(acc, wl, b"carol")
    assert verify_member(acc, wl, b"bob")

    acc, wl = delete_member(acc, wl, b"bob")
    assert verify_member(acc, wl, b"carol")
    assert decode(acc).members == [b"alice", b"carol"]
