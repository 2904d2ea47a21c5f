""" Revoking credentials with the RSA accumulator of pscred.

Each issued credential is stored beside its credential revocation
information (CRI), a prime derived from its encoding. The revocation
authority accumulates the CRIs of valid credentials; a holder shows its
witness, and a revoked holder's witness no longer verifies.
"""

import time

from pscred.accumulator import rsa_keygen, generate_acc, create_cri, verify
from pscred.pack import encode
from pscred.scheme import issue
from pscred.keys import issuer_keygen
from pscred.utils import setup


def issue_handles(params, ikey, holders):
    handles = {}
    for name in holders:
        cred = issue(params, ikey, [name])
        handles[name] = create_cri(encode(cred))
    return handles


def main(count=16):
    params = setup()
    ikey = issuer_keygen(params, 1)
    handles = issue_handles(params, ikey, ["holder%d" % i for i in range(count)])

    acc = generate_acc(rsa_keygen(1024), [])
    wl = acc.witness_init()

    t0 = time.time()
    for cri in handles.values():
        acc.add_member(cri, wl)
    print("Added %d members: %.2f sec" % (count, time.time() - t0))

    revoked = handles["holder0"]
    old = wl.witness(revoked)

    t0 = time.time()
    acc.delete_member(revoked, wl)
    print("Deleted one member: %.2f sec" % (time.time() - t0))

    print("Revoked holder verifies: %s" % verify(revoked, old, acc.acc, acc.N))
    print("Other holder verifies: %s" % acc.verify_member(handles["holder1"],
                                                          wl.witness(handles["holder1"])))


# ---------- TESTS -------------

def test_revocation():
    params = setup()
    ikey = issuer_keygen(params, 1)
    handles = issue_handles(params, ikey, ["a", "b", "c"])

    acc = generate_acc(rsa_keygen(1024), handles.values())
    wl = acc.witness_init()
    acc.add_member(b"late", wl)

    old = wl.witness(handles["a"])
    acc.delete_member(handles["a"], wl)
    assert not verify(handles["a"], old, acc.acc, acc.N)
    for name in ["b", "c"]:
        assert acc.verify_member(handles[name], wl.witness(handles[name]))


if __name__ == "__main__":
    main()
