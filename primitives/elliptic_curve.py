"""Affine points on short Weierstrass curves y^2 = x^3 + alpha * x + beta over FF."""

from dataclasses import dataclass

from primitives.field import FF, TWO, ZERO

THREE = FF(3)


@dataclass(frozen=True)
class EllipticCurve:
    """Curve coefficients; the STARK curve uses alpha = 1."""
    alpha: FF
    beta: FF

    def contains(self, point: "EcPoint") -> bool:
        return bool(point.y * point.y == point.x * point.x * point.x + self.alpha * point.x + self.beta)


@dataclass(frozen=True)
class EcPoint:
    """Affine curve point. The point at infinity has no affine form and is never stored."""
    x: FF
    y: FF

    @classmethod
    def from_ints(cls, x: int, y: int) -> "EcPoint":
        return cls(FF(x), FF(y))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EcPoint):
            return NotImplemented
        return bool(self.x == other.x) and bool(self.y == other.y)

    def __neg__(self) -> "EcPoint":
        return EcPoint(self.x, -self.y)

    def __add__(self, other: "EcPoint") -> "EcPoint":
        """Chord addition; the two points must have different x coordinates."""
        assert self.x != other.x, "Adding points with equal x coordinates"
        slope = (other.y - self.y) / (other.x - self.x)
        x = slope * slope - self.x - other.x
        return EcPoint(x, slope * (self.x - x) - self.y)

    def __sub__(self, other: "EcPoint") -> "EcPoint":
        return self + (-other)

    def double(self, alpha: FF) -> "EcPoint":
        assert self.y != ZERO, "Doubling a point of order 2"
        slope = (THREE * self.x * self.x + alpha) / (TWO * self.y)
        x = slope * slope - TWO * self.x
        return EcPoint(x, slope * (self.x - x) - self.y)
