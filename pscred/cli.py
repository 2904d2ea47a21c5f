""" The ``pscred`` command line tool.

Keys, credentials and the revocation accumulator are kept as msgpack files
under an output directory::

    config/issuer-key/{IssuerSecretKey,IssuerPublicKey,RevocationKey}
    config/user-key/{UserSecretKey,UserPublicKey}
    config/user-cred/{PrimaryCred,DeriveCred,AggregateCred}
    config/revocation/{Accumulator,WitnessList}

Credentials are stored together with their credential revocation
information (see ``pscred.accumulator.create_cri``).
"""

import argparse
import logging
import os
import sys
from collections import namedtuple

from . import api
from .accumulator import create_cri
from .bp import _CURVES, DEFAULT_CURVE
from .errors import PsCredError
from .pack import encode, decode
from .structs import StoredCredential
from .utils import setup

logger = logging.getLogger(__name__)

Config = namedtuple("Config", ["output_dir", "curve", "rsa_bits"])

DEFAULT_ATTRIBUTES = ["000000", "companyA", "2022-12-12", "LevelOne"]
DEFAULT_MASK = "1,0,1,0"

ISSUER_KEY_DIR = "issuer-key"
USER_KEY_DIR = "user-key"
USER_CRED_DIR = "user-cred"
REVOCATION_DIR = "revocation"


def _path(config, dirname, filename):
    return os.path.join(config.output_dir, dirname, filename)


def write_file(config, dirname, filename, data):
    os.makedirs(os.path.join(config.output_dir, dirname), mode=0o770, exist_ok=True)
    path = _path(config, dirname, filename)
    with open(path, "wb") as f:
        f.write(data)
    logger.info("Wrote %s", path)


def read_file(config, dirname, filename):
    with open(_path(config, dirname, filename), "rb") as f:
        return f.read()


def store_credential(config, filename, cred):
    write_file(config, USER_CRED_DIR, filename, encode(StoredCredential(cred, create_cri(cred))))


def load_credential(config, filename):
    return decode(read_file(config, USER_CRED_DIR, filename)).cred


def _params(config):
    return setup(config.curve)


def _member(args, config):
    if args.primary:
        return decode(read_file(config, USER_CRED_DIR, "PrimaryCred")).cri
    if args.member is None:
        raise ValueError("Give a member value or --primary.")
    return args.member.encode("utf8")


def cmd_issuer_keygen(config, args):
    params = _params(config)
    isk, ipk = api.generate_issuer_key(params, args.attributes)
    usk, upk = api.generate_user_key(params, args.weights)
    rk = api.generate_revocation_key(config.rsa_bits)

    write_file(config, ISSUER_KEY_DIR, "IssuerSecretKey", isk)
    write_file(config, ISSUER_KEY_DIR, "IssuerPublicKey", ipk)
    write_file(config, ISSUER_KEY_DIR, "RevocationKey", rk)
    write_file(config, USER_KEY_DIR, "UserSecretKey", usk)
    write_file(config, USER_KEY_DIR, "UserPublicKey", upk)
    return 0


def cmd_primary_cred(config, args):
    params = _params(config)
    isk = read_file(config, ISSUER_KEY_DIR, "IssuerSecretKey")
    ipk = read_file(config, ISSUER_KEY_DIR, "IssuerPublicKey")

    logger.info("Attributes are %s", args.attr)
    cred = api.issue_primary(params, isk, ipk, args.attr)
    store_credential(config, "PrimaryCred", cred)
    return 0


def cmd_derive_cred(config, args):
    params = _params(config)
    ipk = read_file(config, ISSUER_KEY_DIR, "IssuerPublicKey")
    cred = load_credential(config, "PrimaryCred")

    try:
        mask = [int(flag) for flag in args.mask.split(",")]
    except ValueError:
        raise ValueError("Mask must be a comma separated list of 0 and 1.")

    dc = api.derive_credential(params, ipk, cred, args.attr, mask)
    store_credential(config, "DeriveCred", dc)
    return 0


def cmd_aggregate_cred(config, args):
    params = _params(config)
    ipk = read_file(config, ISSUER_KEY_DIR, "IssuerPublicKey")
    usk = read_file(config, USER_KEY_DIR, "UserSecretKey")
    upk = read_file(config, USER_KEY_DIR, "UserPublicKey")
    dc = load_credential(config, "DeriveCred")

    agg = api.aggregate_credentials(params, usk, upk, ipk, [dc])
    store_credential(config, "AggregateCred", agg)
    return 0


def _report(ok, what):
    print("%s: %s" % (what, "valid" if ok else "invalid"))
    return 0 if ok else 1


def cmd_verify_derive(config, args):
    params = _params(config)
    ipk = read_file(config, ISSUER_KEY_DIR, "IssuerPublicKey")
    dc = load_credential(config, "DeriveCred")
    return _report(api.verify_derive_credential(params, ipk, dc), "DeriveCred")


def cmd_verify_aggregate(config, args):
    params = _params(config)
    ipk = read_file(config, ISSUER_KEY_DIR, "IssuerPublicKey")
    upk = read_file(config, USER_KEY_DIR, "UserPublicKey")
    agg = load_credential(config, "AggregateCred")
    return _report(api.verify_aggregate_credential(params, upk, agg, ipk), "AggregateCred")


def _write_accumulator(config, acc, wl):
    write_file(config, REVOCATION_DIR, "Accumulator", acc)
    write_file(config, REVOCATION_DIR, "WitnessList", wl)


def _read_accumulator(config):
    return (read_file(config, REVOCATION_DIR, "Accumulator"),
            read_file(config, REVOCATION_DIR, "WitnessList"))


def cmd_acc_create(config, args):
    rk = read_file(config, ISSUER_KEY_DIR, "RevocationKey")
    members = [m.encode("utf8") for m in args.members]
    _write_accumulator(config, *api.create_accumulator(rk, members))
    return 0


def cmd_acc_add(config, args):
    acc, wl = _read_accumulator(config)
    _write_accumulator(config, *api.add_member(acc, wl, _member(args, config)))
    return 0


def cmd_acc_delete(config, args):
    acc, wl = _read_accumulator(config)
    _write_accumulator(config, *api.delete_member(acc, wl, _member(args, config)))
    return 0


def cmd_acc_verify(config, args):
    acc, wl = _read_accumulator(config)
    return _report(api.verify_member(acc, wl, _member(args, config)), "member")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pscred", description="Issue, derive and aggregate anonymous credentials.")
    parser.add_argument("--output", default="config",
                        help="The output directory in which to place artifacts")
    parser.add_argument("-c", "--curve", default=DEFAULT_CURVE, choices=sorted(_CURVES),
                        help="The curve to use to generate the crypto material")
    parser.add_argument("--rsa-bits", type=int, default=1024,
                        help="Size of the revocation RSA modulus")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log timings")

    sub = parser.add_subparsers(dest="command")
    sub.required = True

    p = sub.add_parser("issuer-keygen", help="Generate issuer, user and revocation keys")
    p.add_argument("--attributes", type=int, default=len(DEFAULT_ATTRIBUTES),
                   help="Number of attributes of a credential")
    p.add_argument("--weights", type=int, default=len(DEFAULT_ATTRIBUTES),
                   help="Number of credentials a user key can aggregate")
    p.set_defaults(func=cmd_issuer_keygen)

    for name, func, text in [
            ("primary-cred", cmd_primary_cred, "Generate a primary credential"),
            ("derive-cred", cmd_derive_cred, "Derive a credential from the primary one")]:
        p = sub.add_parser(name, help=text)
        p.add_argument("--attr", action="append",
                       help="An attribute value, repeated once per attribute")
        if name == "derive-cred":
            p.add_argument("--mask", default=DEFAULT_MASK,
                           help="Comma separated disclosure flags")
        p.set_defaults(func=func)

    p = sub.add_parser("aggregate-cred", help="Aggregate the derived credential")
    p.set_defaults(func=cmd_aggregate_cred)
    p = sub.add_parser("verify-derive", help="Verify the derived credential")
    p.set_defaults(func=cmd_verify_derive)
    p = sub.add_parser("verify-aggregate", help="Verify the aggregate credential")
    p.set_defaults(func=cmd_verify_aggregate)

    p = sub.add_parser("acc-create", help="Create a revocation accumulator")
    p.add_argument("members", nargs="*", help="Initial members")
    p.set_defaults(func=cmd_acc_create)

    for name, func, text in [
            ("acc-add", cmd_acc_add, "Add a member to the accumulator"),
            ("acc-delete", cmd_acc_delete, "Delete a member from the accumulator"),
            ("acc-verify", cmd_acc_verify, "Verify the witness of a member")]:
        p = sub.add_parser(name, help=text)
        p.add_argument("member", nargs="?", help="The member value")
        p.add_argument("--primary", action="store_true",
                       help="Use the revocation information of the primary credential")
        p.set_defaults(func=func)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if getattr(args, "attr", "missing") is None:
        args.attr = list(DEFAULT_ATTRIBUTES)

    config = Config(args.output, args.curve, args.rsa_bits)
    try:
        return args.func(config, args)
    except (PsCredError, OSError, ValueError) as e:
        print("Error: %s" % e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())


# --- TESTS ---

import pytest


def _run(tmp_path, *argv):
    return main(["--output", str(tmp_path)] + list(argv))


def test_credential_commands(tmp_path, capsys):
    assert _run(tmp_path, "issuer-keygen") == 0
    assert os.path.exists(os.path.join(str(tmp_path), "issuer-key", "RevocationKey"))

    assert _run(tmp_path, "primary-cred") == 0
    assert _run(tmp_path, "derive-cred", "--mask", "1,0,1,0") == 0
    assert _run(tmp_path, "verify-derive") == 0
    assert "DeriveCred: valid" in capsys.readouterr().out

    dc = decode(load_credential(Config(str(tmp_path), DEFAULT_CURVE, 1024), "DeriveCred"))
    assert dc.disclose_msg == ["000000", "", "2022-12-12", ""]

    assert _run(tmp_path, "aggregate-cred") == 0
    assert _run(tmp_path, "verify-aggregate") == 0
    assert "AggregateCred: valid" in capsys.readouterr().out


def test_stored_credential_cri(tmp_path):
    assert _run(tmp_path, "issuer-keygen", "--attributes", "2") == 0
    assert _run(tmp_path, "primary-cred", "--attr", "a", "--attr", "b") == 0
    stored = decode(read_file(Config(str(tmp_path), DEFAULT_CURVE, 1024),
                              USER_CRED_DIR, "PrimaryCred"))
    assert stored.cri == create_cri(stored.cred)


def test_accumulator_commands(tmp_path, capsys):
    assert _run(tmp_path, "issuer-keygen", "--attributes", "1", "--weights", "1") == 0
    assert _run(tmp_path, "primary-cred", "--attr", "x") == 0

    assert _run(tmp_path, "acc-create", "alice", "bob") == 0
    assert _run(tmp_path, "acc-add", "--primary") == 0
    assert _run(tmp_path, "acc-verify", "--primary") == 0
    assert _run(tmp_path, "acc-verify", "alice") == 0

    assert _run(tmp_path, "acc-delete", "alice") == 0
    assert _run(tmp_path, "acc-verify", "bob") == 0
    assert "member: valid" in capsys.readouterr().out

    # Unknown members are reported as errors
    assert _run(tmp_path, "acc-verify", "alice") == 1
    assert _run(tmp_path, "acc-delete", "alice") == 1
    assert "Error" in capsys.readouterr().err


def test_errors(tmp_path, capsys):
    # Nothing generated yet
    assert _run(tmp_path, "primary-cred") == 1
    assert _run(tmp_path, "issuer-keygen", "--attributes", "2") == 0
    assert _run(tmp_path, "primary-cred") == 1
    assert _run(tmp_path, "primary-cred", "--attr", "a", "--attr", "b") == 0
    assert _run(tmp_path, "derive-cred", "--attr", "a", "--attr", "b", "--mask", "1,x") == 1
    assert "Error" in capsys.readouterr().err

    with pytest.raises(SystemExit):
        _run(tmp_path, "--curve", "nope", "issuer-keygen")
