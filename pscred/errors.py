""" The exceptions raised by the credential and accumulator operations. """


class PsCredError(Exception):
    """Base class of all pscred failures."""


class MalformedInputError(PsCredError):
    """A proof, key or credential is missing a component or is badly shaped."""


class ProofInvalidError(PsCredError):
    """A zero-knowledge proof or a pairing equation did not verify."""


class RandomnessError(PsCredError):
    """The operating system could not provide randomness."""


class MemberNotFoundError(PsCredError):
    """The value is not a member of the accumulator."""
