"""
In-memory point collection shared by every stage of a processing run.

A PointSet holds XYZ coordinates plus any number of named per-point
attribute arrays (classification, intensity, the buffer flag, ...).
Arrays are frozen on construction; every filtering or merging step
returns a new PointSet.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from .bounds import Bounds2D

BUFFER_ATTRIBUTE = "buffer"
CLASSIFICATION_ATTRIBUTE = "classification"


def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True, eq=False)
class PointSet:
    """Immutable ordered collection of points.

    Attributes:
        xyz: (N, 3) float64 array of coordinates
        attributes: Per-point arrays keyed by attribute name, each of length N
    """
    xyz: np.ndarray
    attributes: Mapping[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        xyz = np.asarray(self.xyz, dtype=np.float64)
        if xyz.ndim != 2 or xyz.shape[1] != 3:
            raise ValueError(f"xyz must be (N, 3), got {xyz.shape}")
        attrs: Dict[str, np.ndarray] = {}
        for name, values in self.attributes.items():
            values = np.asarray(values)
            if values.shape[:1] != (len(xyz),):
                raise ValueError(
                    f"Attribute '{name}' has {values.shape[:1]} values for {len(xyz)} points"
                )
            attrs[name] = _frozen(values)
        object.__setattr__(self, "xyz", _frozen(xyz))
        object.__setattr__(self, "attributes", attrs)

    @classmethod
    def empty(cls, attribute_names: Iterable[str] = ()) -> "PointSet":
        return cls(np.empty((0, 3)), {name: np.empty(0) for name in attribute_names})

    @classmethod
    def from_arrays(cls, x, y, z, **attributes) -> "PointSet":
        """Build a PointSet from separate coordinate arrays."""
        xyz = np.column_stack([np.asarray(x, dtype=np.float64),
                               np.asarray(y, dtype=np.float64),
                               np.asarray(z, dtype=np.float64)])
        return cls(xyz, attributes)

    @classmethod
    def concatenate(cls, parts: Iterable["PointSet"]) -> "PointSet":
        """Concatenate point sets in the given order.

        Only attributes present in every part survive the merge.
        """
        parts = list(parts)
        if not parts:
            return cls.empty()
        common = set(parts[0].attributes)
        for p in parts[1:]:
            common &= set(p.attributes)
        names = [n for n in parts[0].attributes if n in common]
        xyz = np.concatenate([p.xyz for p in parts], axis=0)
        attrs = {n: np.concatenate([p.attributes[n] for p in parts]) for n in names}
        return cls(xyz, attrs)

    def __len__(self) -> int:
        return len(self.xyz)

    @property
    def is_empty(self) -> bool:
        return len(self.xyz) == 0

    @property
    def x(self) -> np.ndarray:
        return self.xyz[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.xyz[:, 1]

    @property
    def z(self) -> np.ndarray:
        return self.xyz[:, 2]

    @property
    def xy(self) -> np.ndarray:
        return self.xyz[:, :2]

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def attribute(self, name: str) -> np.ndarray:
        try:
            return self.attributes[name]
        except KeyError:
            raise KeyError(f"PointSet has no attribute '{name}'") from None

    def subset(self, mask: np.ndarray) -> "PointSet":
        """Return the points selected by a boolean mask or index array."""
        return PointSet(self.xyz[mask], {n: v[mask] for n, v in self.attributes.items()})

    def with_z(self, z: np.ndarray) -> "PointSet":
        z = np.asarray(z, dtype=np.float64)
        if z.shape != (len(self),):
            raise ValueError(f"z must have shape ({len(self)},), got {z.shape}")
        xyz = self.xyz.copy()
        xyz[:, 2] = z
        return PointSet(xyz, self.attributes)

    def with_attribute(self, name: str, values: np.ndarray) -> "PointSet":
        attrs = dict(self.attributes)
        attrs[name] = values
        return PointSet(self.xyz, attrs)

    def without_attribute(self, name: str) -> "PointSet":
        return PointSet(self.xyz, {n: v for n, v in self.attributes.items() if n != name})

    def trim_buffer(self) -> "PointSet":
        """Drop points flagged as belonging to a chunk's buffer margin.

        The buffer flag itself is removed from the returned set.
        """
        if BUFFER_ATTRIBUTE not in self.attributes:
            return self
        keep = ~self.attributes[BUFFER_ATTRIBUTE].astype(bool)
        return self.subset(keep).without_attribute(BUFFER_ATTRIBUTE)

    def bounds(self) -> Optional[Bounds2D]:
        if self.is_empty:
            return None
        return Bounds2D(
            min_x=float(self.x.min()),
            min_y=float(self.y.min()),
            max_x=float(self.x.max()),
            max_y=float(self.y.max()),
        )
