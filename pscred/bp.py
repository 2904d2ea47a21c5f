""" Bilinear pairing groups G1, G2 and GT for the credential scheme.

The arithmetic itself is provided by the optimized curves of ``py_ecc``; this
module wraps the raw projective points into group element objects with a
stable byte encoding, equality and operators, so that the protocol code can be
written in additive notation:

    >>> G = BpGroup()
    >>> g1, g2 = G.gen1(), G.gen2()
    >>> (2 * g1).eq(g1.double())
    True
    >>> G.pair(3 * g1, g2) == G.pair(g1, 3 * g2)
    True

"""

from py_ecc import optimized_bn128, optimized_bls12_381

from .errors import MalformedInputError

_CURVES = {
    "bn128": optimized_bn128,
    "bls12_381": optimized_bls12_381,
}

DEFAULT_CURVE = "bn128"


def _num(coeff):
    return coeff.n if hasattr(coeff, "n") else int(coeff)


def _int_bytes(num, size):
    return _num(num).to_bytes(size, "big")


class BpGroup(object):

    def __init__(self, curve=DEFAULT_CURVE):
        """Build a BP group from a curve name ("bn128" or "bls12_381")."""
        if curve not in _CURVES:
            raise ValueError("Unknown curve: %s" % curve)

        self.curve = curve
        self.lib = _CURVES[curve]

        field_modulus = self.lib.FQ.field_modulus
        self.fsize = (field_modulus.bit_length() + 7) // 8

        self.g1 = G1Elem(self, self.lib.G1)
        self.g2 = G2Elem(self, self.lib.G2)

    def order(self):
        """Returns the order of the groups G1, G2 and GT.

        Example:
            >>> G = BpGroup()
            >>> print(G.order())
            21888242871839275222246405745257275088548364400416034343698204186575808495617

        """
        return self.lib.curve_order

    def gen1(self):
        """ Returns the generator for G1. """
        return self.g1

    def gen2(self):
        """ Returns the generator for G2. """
        return self.g2

    def pair(self, g1, g2):
        """ The pairing operation e(G1, G2) -> GT.

            Example:
                >>> G = BpGroup()
                >>> g1, g2 = G.gen1(), G.gen2()
                >>> gt = G.pair(g1, g2)
                >>> gt6 = G.pair(g1.mul(2), g2.mul(3))
                >>> gt.exp(6).eq( gt6 )
                True

        """
        if not isinstance(g1, G1Elem) or not isinstance(g2, G2Elem):
            raise TypeError("pairing needs a G1 and a G2 element")
        return GTElem(self, self.lib.pairing(g2.pt, g1.pt))

    def __eq__(self, other):
        return isinstance(other, BpGroup) and self.curve == other.curve

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.curve)

    def __repr__(self):
        return "BpGroup(%r)" % self.curve


class _CurveElem(object):
    """ Common behaviour of the points of G1 and G2. """

    __slots__ = ["group", "pt"]

    def __init__(self, group, pt=None):
        self.group = group
        if pt is None:
            pt = self._zero(group)
        self.pt = pt

    @classmethod
    def inf(cls, group):
        """ Returns the element at infinity. """
        return cls(group, cls._zero(group))

    def __copy__(self):
        return self.__class__(self.group, self.pt)

    def add(self, other):
        """ Returns the sum of two points. """
        self._check_same(other)
        return self.__class__(self.group, self.group.lib.add(self.pt, other.pt))

    def double(self):
        """ Returns the double of the point. """
        return self.__class__(self.group, self.group.lib.double(self.pt))

    def inv(self):
        """ Returns the inverse point.

            Example:
                >>> g1 = BpGroup().gen1()
                >>> g1.add(g1.inv()).isinf()
                True

        """
        return self.__class__(self.group, self.group.lib.neg(self.pt))

    def eq(self, other):
        """ Returns True if points are equal. """
        if not isinstance(other, self.__class__) or self.group != other.group:
            return False
        return self.group.lib.eq(self.pt, other.pt)

    def isinf(self):
        return self.group.lib.is_inf(self.pt)

    def mul(self, scalar):
        """ Multiplies the point with a scalar.

            Example:
                >>> g2 = BpGroup().gen2()
                >>> g2.mul(2).eq(g2.double())
                True

        """
        o = self.group.order()
        return self.__class__(self.group, self.group.lib.multiply(self.pt, int(scalar) % o))

    def export(self):
        """ Export a point to its uncompressed affine byte representation.

        The point at infinity is exported as all zero bytes, which is never
        the encoding of a point on the curve.
        """
        size = self._coords * self.group.fsize
        if self.isinf():
            return b"\x00" * size
        x, y = self.group.lib.normalize(self.pt)
        return b"".join(_int_bytes(c, self.group.fsize) for c in self._coeffs(x) + self._coeffs(y))

    @classmethod
    def from_bytes(cls, sbin, group):
        """ Import a point from bytes, checking that it lies in the group. """
        size = cls._coords * group.fsize
        if len(sbin) != size:
            raise MalformedInputError("Wrong length for a point encoding: %d" % len(sbin))

        if sbin == b"\x00" * size:
            return cls.inf(group)

        fs = group.fsize
        nums = [int.from_bytes(sbin[i:i + fs], "big") for i in range(0, size, fs)]
        half = len(nums) // 2
        x, y = cls._field(group, nums[:half]), cls._field(group, nums[half:])
        pt = (x, y, x.one())

        if not group.lib.is_on_curve(pt, cls._b(group)):
            raise MalformedInputError("Point is not on the curve.")
        if not group.lib.is_inf(group.lib.multiply(pt, group.order())):
            raise MalformedInputError("Point is not in the prime order subgroup.")
        return cls(group, pt)

    def _check_same(self, other):
        if not isinstance(other, self.__class__) or self.group != other.group:
            raise TypeError("Cannot combine %r with %r" % (self, other))

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.add(other.inv())

    def __neg__(self):
        return self.inv()

    def __mul__(self, scalar):
        if isinstance(scalar, int):
            return self.mul(scalar)
        return NotImplemented

    __rmul__ = __mul__

    def __eq__(self, other):
        return self.eq(other)

    def __ne__(self, other):
        return not self.eq(other)

    def __hash__(self):
        return hash(self.export())

    def __repr__(self):
        return "%s(%s)" % (self.__class__.__name__, self.export().hex()[:16])


class G1Elem(_CurveElem):
    """ An element of the first source group. """

    __slots__ = []
    _coords = 2

    @staticmethod
    def _zero(group):
        return group.lib.Z1

    @staticmethod
    def _coeffs(c):
        return [c]

    @staticmethod
    def _field(group, nums):
        return group.lib.FQ(nums[0])

    @staticmethod
    def _b(group):
        return group.lib.b


class G2Elem(_CurveElem):
    """ An element of the second source group, over the quadratic extension. """

    __slots__ = []
    _coords = 4

    @staticmethod
    def _zero(group):
        return group.lib.Z2

    @staticmethod
    def _coeffs(c):
        return list(c.coeffs)

    @staticmethod
    def _field(group, nums):
        return group.lib.FQ2(nums)

    @staticmethod
    def _b(group):
        return group.lib.b2


class GTElem(object):
    """ An element of the target group, written multiplicatively. """

    __slots__ = ["group", "elem"]

    def __init__(self, group, elem=None):
        self.group = group
        if elem is None:
            elem = group.lib.FQ12.one()
        self.elem = elem

    @staticmethod
    def one(group):
        """ Returns the unit of GT. """
        return GTElem(group, group.lib.FQ12.one())

    def isone(self):
        return self.elem == self.group.lib.FQ12.one()

    def mul(self, other):
        """ Returns the product of two elements.

            Example:
                >>> G = BpGroup()
                >>> gt = G.pair(G.gen1(), G.gen2())
                >>> gt.mul(gt.inv()).isone()
                True
        """
        return GTElem(self.group, self.elem * other.elem)

    def inv(self):
        """ Returns the inverse element. """
        return GTElem(self.group, self.elem.inv())

    def sqr(self):
        """ Returns the square of an element. """
        return self.mul(self)

    def exp(self, scalar):
        """ Exponentiates the element with a scalar. """
        o = self.group.order()
        return GTElem(self.group, self.elem ** (int(scalar) % o))

    def eq(self, other):
        """ Returns True if elements are equal. """
        return isinstance(other, GTElem) and self.elem == other.elem

    def export(self):
        """ Export an element to a byte representation. """
        return b"".join(_int_bytes(c, self.group.fsize) for c in self.elem.coeffs)

    @staticmethod
    def from_bytes(sbin, group):
        """ Import a GT element from bytes.

            Export:
                >>> G = BpGroup()
                >>> gt = G.pair(G.gen1(), G.gen2())
                >>> buf = gt.export()
                >>> gtp = GTElem.from_bytes(buf, G)
                >>> gt.eq(gtp)
                True

        """
        fs = group.fsize
        if len(sbin) != 12 * fs:
            raise MalformedInputError("Wrong length for a GT encoding: %d" % len(sbin))
        nums = [int.from_bytes(sbin[i:i + fs], "big") for i in range(0, 12 * fs, fs)]
        return GTElem(group, group.lib.FQ12(nums))

    def __mul__(self, other):
        return self.mul(other)

    def __pow__(self, scalar):
        return self.exp(scalar)

    def __eq__(self, other):
        return self.eq(other)

    def __ne__(self, other):
        return not self.eq(other)

    def __hash__(self):
        return hash(self.export())


# --- TESTS ---

import pytest


def test_group_order():
    G = BpGroup()
    o = G.order()
    assert (o * G.gen1()).isinf()
    assert (o * G.gen2()).isinf()


def test_g1_arithmetic():
    G = BpGroup()
    g1 = G.gen1()
    assert (g1 + g1).eq(g1.double())
    assert (g1 - g1).isinf()
    assert (5 * g1) == (2 * g1) + (3 * g1)
    assert G1Elem.inf(G).isinf()
    assert (g1 + G1Elem.inf(G)) == g1


def test_g2_arithmetic():
    G = BpGroup()
    g2 = G.gen2()
    assert (g2 + g2).eq(g2.double())
    assert (-g2 + g2).isinf()
    assert (7 * g2) == g2.mul(7)


def test_export_import():
    G = BpGroup()
    g1, g2 = G.gen1(), G.gen2()

    for elem, cls in [(g1, G1Elem), (11 * g1, G1Elem), (g2, G2Elem), (13 * g2, G2Elem)]:
        buf = elem.export()
        assert cls.from_bytes(buf, G) == elem

    assert G1Elem.from_bytes(G1Elem.inf(G).export(), G).isinf()
    assert G2Elem.from_bytes(G2Elem.inf(G).export(), G).isinf()


def test_import_rejects_garbage():
    G = BpGroup()
    buf = bytearray(G.gen1().export())
    buf[-1] ^= 1
    with pytest.raises(MalformedInputError):
        G1Elem.from_bytes(bytes(buf), G)

    with pytest.raises(MalformedInputError):
        G2Elem.from_bytes(b"\x01" * 5, G)


def test_pairing_bilinear():
    G = BpGroup()
    g1, g2 = G.gen1(), G.gen2()
    gt = G.pair(g1, g2)
    assert G.pair(6 * g1, g2) == gt.exp(6)
    assert G.pair(g1, 6 * g2) == gt ** 6
    assert G.pair(G1Elem.inf(G), g2).isone()
    assert GTElem.from_bytes(gt.export(), G) == gt


def test_unknown_curve():
    with pytest.raises(ValueError):
        BpGroup("secp256k1")


def test_mixed_groups():
    G = BpGroup()
    with pytest.raises(TypeError):
        G.gen1() + G.gen2()
    assert not G.gen1().eq(G.gen2())
