""" Value types exchanged by the issuer, the user and the verifier.

All of them are immutable named tuples: a protocol step never changes its
inputs but returns fresh values. Group elements are ``pscred.bp`` objects and
scalars are integers modulo the group order.
"""

from collections import namedtuple

# Issuer keys. Z is a dense n x n table whose diagonal holds None.
IssuerSecretKey = namedtuple("IssuerSecretKey", ["x", "y"])
IssuerPublicKey = namedtuple("IssuerPublicKey", ["X", "Y", "YBar", "Z", "hash"])
IssuerKey = namedtuple("IssuerKey", ["isk", "ipk"])

# User keys, used to aggregate derived credentials.
UserSecretKey = namedtuple("UserSecretKey", ["b", "w"])
UserPublicKey = namedtuple("UserPublicKey", ["B", "BBar", "W", "WBar", "hash"])
UserKey = namedtuple("UserKey", ["usk", "upk"])

# Commitment to the attributes and proof of knowledge of its opening.
CredRequest = namedtuple("CredRequest", ["commitment", "K", "challenge", "rp", "rw"])

# Issuer output before the user removes the blinding factor.
BlindCredential = namedtuple("BlindCredential", ["H", "S"])
PrimaryCredential = namedtuple("PrimaryCredential", ["H", "S"])

DeriveCredential = namedtuple("DeriveCredential", [
    "Hp", "Sp", "SigmaOnep", "SigmaTwop", "disclose_indices", "disclose_msg"])

AggregateCredential = namedtuple("AggregateCredential", [
    "SigmaOnepp", "SigmaTwopp", "messages"])

# Public RSA group of the revocation authority.
RsaKey = namedtuple("RsaKey", ["N", "G"])

# An encoded credential with its credential revocation information.
StoredCredential = namedtuple("StoredCredential", ["cred", "cri"])
