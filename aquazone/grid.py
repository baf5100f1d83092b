"""
Raster and Vector Data Model.

Immutable containers passed between pipeline stages:
- RasterGrid: a single-band gridded variable with CRS, transform and no-data
- RasterStack: congruent grids of one variable at different time points
- BoundaryPolygonSet: named boundary polygons (e.g. EEZ regions) with a CRS

Transforms never modify these objects; they build new ones. Cell arrays are
copied on construction and marked read-only.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from rasterio.transform import Affine, array_bounds

from aquazone.errors import BoundaryError, IncongruentStackError

logger = logging.getLogger(__name__)

# Transform coefficients closer than this are considered equal
TRANSFORM_PRECISION = 1e-9

_UNSET = object()


def _readonly(data: np.ndarray) -> np.ndarray:
    arr = np.array(data, copy=True)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class RasterGrid:
    """
    Single-band raster with georeferencing.

    Attributes:
        data: 2D cell values (height, width), stored read-only
        transform: Affine transform mapping (col, row) to CRS coordinates
        crs: CRS identifier (e.g. "EPSG:4326"), None if undefined
        nodata: No-data sentinel; when None, NaN cells are treated as missing
        name: Dataset identifier used in logs and error messages
    """

    data: np.ndarray
    transform: Affine
    crs: Optional[str]
    nodata: Optional[float] = None
    name: str = "raster"

    def __post_init__(self):
        """Validate and freeze cell data."""
        data = np.asarray(self.data)
        if data.ndim != 2:
            raise ValueError(f"RasterGrid '{self.name}' expects 2D data, got {data.ndim}D")
        if data.size == 0:
            raise ValueError(f"RasterGrid '{self.name}' has no cells")
        if not isinstance(self.transform, Affine):
            # Plain sequences are read in Affine (a, b, c, d, e, f) order
            object.__setattr__(self, "transform", Affine(*tuple(self.transform)[:6]))
        if self.transform.b != 0 or self.transform.d != 0:
            raise ValueError(f"RasterGrid '{self.name}' has a rotated transform")
        object.__setattr__(self, "data", _readonly(data))

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid shape (height, width)."""
        return self.data.shape

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Extent as (minx, miny, maxx, maxy)."""
        return tuple(float(v) for v in array_bounds(self.height, self.width, self.transform))

    @property
    def resolution(self) -> Tuple[float, float]:
        """Cell size (x, y) in CRS units."""
        return (abs(self.transform.a), abs(self.transform.e))

    def valid_mask(self) -> np.ndarray:
        """Boolean array, True where the cell holds a measurement."""
        data = self.data
        if np.issubdtype(data.dtype, np.floating):
            valid = ~np.isnan(data)
        else:
            valid = np.ones(data.shape, dtype=bool)
        if self.nodata is not None and not np.isnan(self.nodata):
            valid &= data != self.nodata
        return valid

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Coordinates of every cell centre.

        Returns:
            Tuple of (xs, ys) arrays shaped like the grid
        """
        rows, cols = np.indices(self.shape, dtype=np.float64)
        t = self.transform
        xs = t.c + (cols + 0.5) * t.a
        ys = t.f + (rows + 0.5) * t.e
        return xs, ys

    def congruency_problems(self, other: "RasterGrid") -> List[str]:
        """Describe every way this grid differs spatially from another."""
        from aquazone.normalization.projection import crs_equivalent

        problems = []
        if not crs_equivalent(self.crs, other.crs):
            problems.append(f"crs {self.crs} != {other.crs}")
        if self.shape != other.shape:
            problems.append(f"shape {self.shape} != {other.shape}")
        if not self.transform.almost_equals(other.transform, precision=TRANSFORM_PRECISION):
            problems.append(
                f"extent/resolution {self.bounds}@{self.resolution} != "
                f"{other.bounds}@{other.resolution}"
            )
        return problems

    def is_congruent(self, other: "RasterGrid") -> bool:
        """True if both grids share CRS, extent and resolution."""
        return not self.congruency_problems(other)

    def with_data(
        self,
        data: np.ndarray,
        nodata: Any = _UNSET,
        name: Optional[str] = None,
    ) -> "RasterGrid":
        """Build a congruent grid holding new cell values."""
        return RasterGrid(
            data=data,
            transform=self.transform,
            crs=self.crs,
            nodata=self.nodata if nodata is _UNSET else nodata,
            name=name or self.name,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Describe the grid (without cell values)."""
        return {
            "name": self.name,
            "crs": self.crs,
            "shape": list(self.shape),
            "bounds": list(self.bounds),
            "resolution": list(self.resolution),
            "nodata": self.nodata,
            "dtype": str(self.data.dtype),
        }


@dataclass(frozen=True)
class RasterStack:
    """
    Ordered, spatially congruent grids of one variable.

    Attributes:
        members: Grids in time order
        labels: Optional per-member labels (e.g. years)

    Raises:
        IncongruentStackError: If members differ in CRS, extent or resolution
    """

    members: Tuple[RasterGrid, ...]
    labels: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        members = tuple(self.members)
        labels = tuple(str(label) for label in self.labels)
        if not members:
            raise IncongruentStackError("Raster stack needs at least one member")
        if labels and len(labels) != len(members):
            raise ValueError(
                f"Got {len(labels)} labels for {len(members)} stack members"
            )

        reference = members[0]
        for member in members[1:]:
            problems = reference.congruency_problems(member)
            if problems:
                raise IncongruentStackError(
                    f"Stack member '{member.name}' is not congruent with "
                    f"'{reference.name}': {'; '.join(problems)}",
                    expected=reference.to_dict(),
                    actual=member.to_dict(),
                )

        object.__setattr__(self, "members", members)
        object.__setattr__(self, "labels", labels)

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[RasterGrid]:
        return iter(self.members)

    @property
    def reference(self) -> RasterGrid:
        """First member, which defines the stack's grid."""
        return self.members[0]

    @property
    def crs(self) -> Optional[str]:
        return self.reference.crs


@dataclass(frozen=True)
class BoundaryPolygonSet:
    """
    Named boundary polygons sharing one CRS.

    Attributes:
        names: Region names, unique
        geometries: Shapely Polygon or MultiPolygon per region
        crs: CRS identifier, None if undefined
        name: Dataset identifier used in logs and error messages

    Raises:
        BoundaryError: On empty, invalid or self-intersecting geometries,
            or missing/duplicate names
    """

    names: Tuple[str, ...]
    geometries: Tuple[Any, ...]
    crs: Optional[str]
    name: str = "boundaries"

    def __post_init__(self):
        names = tuple(self.names)
        geometries = tuple(self.geometries)

        if not names:
            raise BoundaryError(f"Boundary set '{self.name}' has no polygons")
        if len(names) != len(geometries):
            raise BoundaryError(
                f"Boundary set '{self.name}' has {len(names)} names "
                f"for {len(geometries)} geometries"
            )

        seen = set()
        for region, geom in zip(names, geometries):
            if not region:
                raise BoundaryError(f"Boundary set '{self.name}' has an unnamed region")
            if region in seen:
                raise BoundaryError(f"Duplicate region name '{region}' in '{self.name}'")
            seen.add(region)
            _validate_polygon(region, geom)

        object.__setattr__(self, "names", names)
        object.__setattr__(self, "geometries", geometries)

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(zip(self.names, self.geometries))

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Combined extent (minx, miny, maxx, maxy) of all regions."""
        boxes = np.array([geom.bounds for geom in self.geometries])
        return (
            float(boxes[:, 0].min()),
            float(boxes[:, 1].min()),
            float(boxes[:, 2].max()),
            float(boxes[:, 3].max()),
        )

    def with_geometries(self, geometries: Sequence[Any], crs: Optional[str]) -> "BoundaryPolygonSet":
        """Build a set with the same names and new geometries."""
        return BoundaryPolygonSet(
            names=self.names,
            geometries=tuple(geometries),
            crs=crs,
            name=self.name,
        )


def _validate_polygon(region: str, geom: Any) -> None:
    from shapely.validation import explain_validity

    geom_type = getattr(geom, "geom_type", None)
    if geom_type not in ("Polygon", "MultiPolygon"):
        raise BoundaryError(f"Region '{region}' is a {geom_type}, expected a polygon")
    if geom.is_empty:
        raise BoundaryError(f"Region '{region}' has an empty geometry")
    if not geom.is_valid:
        raise BoundaryError(
            f"Region '{region}' has an invalid geometry: {explain_validity(geom)}"
        )
