"""Integer index boxes for block-structured grids.

A box is a logically rectangular set of cell indices described by its lower
and upper corners. Both corners are inclusive, so a box with
``lower == upper`` holds exactly one cell.
"""

import itertools
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple


@dataclass(frozen=True)
class Box:
    """Cell-index box with inclusive corners."""

    lower: Tuple[int, ...]
    upper: Tuple[int, ...]

    def __post_init__(self):
        if len(self.lower) != len(self.upper):
            raise ValueError(f"Box corners differ in dimension: {self.lower} vs {self.upper}")
        object.__setattr__(self, "lower", tuple(int(i) for i in self.lower))
        object.__setattr__(self, "upper", tuple(int(i) for i in self.upper))

    @classmethod
    def from_shape(cls, shape, lower=None) -> "Box":
        """Box with the given number of cells per axis, starting at ``lower``."""
        if lower is None:
            lower = (0,) * len(shape)
        return cls(tuple(lower), tuple(lo + n - 1 for lo, n in zip(lower, shape)))

    @property
    def dim(self) -> int:
        return len(self.lower)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(max(u - l + 1, 0) for l, u in zip(self.lower, self.upper))

    @property
    def size(self) -> int:
        n = 1
        for s in self.shape:
            n *= s
        return n

    def is_empty(self) -> bool:
        return any(u < l for l, u in zip(self.lower, self.upper))

    def contains(self, index) -> bool:
        return all(l <= i <= u for l, i, u in zip(self.lower, index, self.upper))

    def contains_box(self, other: "Box") -> bool:
        return self.contains(other.lower) and self.contains(other.upper)

    def grow(self, width) -> "Box":
        if isinstance(width, int):
            width = (width,) * self.dim
        return Box(
            tuple(l - w for l, w in zip(self.lower, width)),
            tuple(u + w for u, w in zip(self.upper, width)),
        )

    def shift(self, axis: int, amount: int) -> "Box":
        lower = list(self.lower)
        upper = list(self.upper)
        lower[axis] += amount
        upper[axis] += amount
        return Box(tuple(lower), tuple(upper))

    def intersect(self, other: "Box") -> Optional["Box"]:
        """Intersection of two boxes, or ``None`` if they do not overlap."""
        box = Box(
            tuple(max(a, b) for a, b in zip(self.lower, other.lower)),
            tuple(min(a, b) for a, b in zip(self.upper, other.upper)),
        )
        return None if box.is_empty() else box

    def refine(self, ratio: int) -> "Box":
        return Box(
            tuple(l * ratio for l in self.lower),
            tuple((u + 1) * ratio - 1 for u in self.upper),
        )

    def coarsen(self, ratio: int) -> "Box":
        return Box(
            tuple(l // ratio for l in self.lower),
            tuple(u // ratio for u in self.upper),
        )

    def face_box(self, axis: int) -> "Box":
        """Indices of the faces normal to ``axis`` that bound the cells of this box."""
        upper = list(self.upper)
        upper[axis] += 1
        return Box(self.lower, tuple(upper))

    def slices(self, origin: Tuple[int, ...]) -> Tuple[slice, ...]:
        """Array slices addressing this box in an array whose first entry is ``origin``."""
        return tuple(slice(l - o, u - o + 1) for l, u, o in zip(self.lower, self.upper, origin))

    def indices(self) -> Iterator[Tuple[int, ...]]:
        return itertools.product(*(range(l, u + 1) for l, u in zip(self.lower, self.upper)))
