""" A walk through one credential life cycle with the pscred library: an
issuer certifies four attributes of a device without seeing them, the holder
shows the credential disclosing only the serial number and the date, and
finally aggregates two presentations under its own key.

Run it with ``python examples/presentation.py`` or collect its tests with
``py.test examples/presentation.py``.
"""

import time

from pscred.utils import setup
from pscred.keys import issuer_keygen, user_keygen
from pscred.request import new_cred_request
from pscred.scheme import blind_sign, unblind, derive, verify_derive
from pscred.aggregate import aggregate, verify_aggregate

ATTRIBUTES = ["000000", "companyA", "2022-12-12", "LevelOne"]


def present(params, ikey, ukey, attrs, masks):
    isk, ipk = ikey

    # Holder: commit to the attributes
    req, d = new_cred_request(params, ipk, attrs)

    # Issuer: sign the commitment
    blind = blind_sign(params, isk, ipk, req)

    # Holder: unblind and derive one presentation per mask
    cred = unblind(params, ipk, blind, d, attrs)
    shown = [derive(params, ipk, cred, attrs, mask) for mask in masks]

    return shown, aggregate(params, ukey, ipk, shown)


def main():
    params = setup()
    ikey = issuer_keygen(params, len(ATTRIBUTES))
    ukey = user_keygen(params, 2)

    t0 = time.time()
    shown, agg = present(params, ikey, ukey, ATTRIBUTES, [[1, 0, 1, 0], [0, 0, 0, 1]])
    print("Issue, derive and aggregate: %.2f sec" % (time.time() - t0))

    for dc in shown:
        print("Disclosed %s: %s" % (dc.disclose_msg, verify_derive(params, ikey.ipk, dc)))
    print("Aggregate: %s" % verify_aggregate(params, ukey.upk, agg, ikey.ipk))


# ---------- TESTS -------------

def test_present():
    params = setup()
    ikey = issuer_keygen(params, len(ATTRIBUTES))
    ukey = user_keygen(params, 1)

    shown, agg = present(params, ikey, ukey, ATTRIBUTES, [[1, 0, 1, 0]])
    assert shown[0].disclose_msg == ["000000", "", "2022-12-12", ""]
    assert verify_derive(params, ikey.ipk, shown[0])
    assert verify_aggregate(params, ukey.upk, agg, ikey.ipk)


if __name__ == "__main__":
    main()
