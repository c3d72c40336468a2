"""Circulation datasets: model grid, wet mask and transport operator.

A circulation is stored as a single ``.npz`` archive holding the wet mask,
the grid coordinates (degrees and meters) and the transport operator as
CSC components. Published circulations are described by a DataSource and
fetched once into the configured data directory, verified by sha256.

    wet3d, grid, T = load(source)
"""

import hashlib
import logging
import shutil
import tempfile
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple, Optional, Tuple, Union

import numpy as np
import pint
from scipy import sparse

from .config import load_settings
from .errors import DataIntegrityError
from .parameters.units import Quantity

logger = logging.getLogger(__name__)

_ARCHIVE_KEYS = ("wet3d", "lat", "lon", "depth", "thickness", "T_data", "T_indices", "T_indptr", "T_shape")


@dataclass(frozen=True, eq=False)
class Grid:
    """Regular latitude-longitude-depth grid.

    Coordinates are pint quantities so that, e.g., the top layer thickness
    can be added to a parameter table directly.

    Attributes:
        lat: Latitudes of box centers (degrees)
        lon: Longitudes of box centers (degrees)
        depth: Depths of layer centers (meters)
        thickness: Layer thicknesses (meters)
    """
    lat: pint.Quantity
    lon: pint.Quantity
    depth: pint.Quantity
    thickness: pint.Quantity

    def __post_init__(self):
        for name, unit in (("lat", "degree"), ("lon", "degree"), ("depth", "meter"), ("thickness", "meter")):
            value = getattr(self, name)
            if not isinstance(value, pint.Quantity):
                value = Quantity(np.asarray(value, dtype=np.float64), unit)
            value = value.to(unit)
            if np.ndim(value.magnitude) != 1:
                raise ValueError(f"Grid {name} must be one-dimensional, got shape {np.shape(value.magnitude)}")
            object.__setattr__(self, name, value)

        if len(self.depth.magnitude) != len(self.thickness.magnitude):
            raise ValueError(
                f"Grid has {len(self.depth.magnitude)} depths but {len(self.thickness.magnitude)} thicknesses"
            )

    @property
    def shape(self) -> Tuple[int, int, int]:
        return len(self.lat.magnitude), len(self.lon.magnitude), len(self.depth.magnitude)

    @property
    def top_layer_thickness(self) -> pint.Quantity:
        return self.thickness[0]

    @property
    def depth_3d(self) -> pint.Quantity:
        """Depth of every box, shaped like the grid."""
        return Quantity(np.broadcast_to(self.depth.magnitude, self.shape).copy(), self.depth.units)


class Circulation(NamedTuple):
    """Wet mask, grid and transport operator (in 1/s, acting on wet boxes)."""
    wet3d: np.ndarray
    grid: Grid
    T: sparse.csc_matrix


def wet_indices(circulation: Circulation) -> np.ndarray:
    """Flat (C-order) indices of wet boxes; the state vector follows this order."""
    return np.flatnonzero(circulation.wet3d)


def surface_mask(circulation: Circulation) -> np.ndarray:
    """Boolean vector over wet boxes, true for boxes in the top layer."""
    depth_3d = circulation.grid.depth_3d.magnitude
    top = circulation.grid.depth.magnitude[0]
    return depth_3d.ravel()[wet_indices(circulation)] == top


def _validate(circulation: Circulation) -> Circulation:
    wet3d, grid, T = circulation
    if wet3d.shape != grid.shape:
        raise DataIntegrityError(f"Wet mask shape {wet3d.shape} does not match grid shape {grid.shape}")
    n = int(wet3d.sum())
    if T.shape != (n, n):
        raise DataIntegrityError(f"Transport operator shape {T.shape} does not match {n} wet boxes")
    return circulation


def save_archive(path: Union[str, Path], circulation: Circulation) -> None:
    """Write a circulation to a compressed ``.npz`` archive."""
    wet3d, grid, T = _validate(circulation)
    T = sparse.csc_matrix(T)
    np.savez_compressed(
        path,
        wet3d=np.asarray(wet3d, dtype=bool),
        lat=grid.lat.to("degree").magnitude,
        lon=grid.lon.to("degree").magnitude,
        depth=grid.depth.to("meter").magnitude,
        thickness=grid.thickness.to("meter").magnitude,
        T_data=T.data,
        T_indices=T.indices,
        T_indptr=T.indptr,
        T_shape=np.asarray(T.shape),
    )
    logger.info(f"Saved circulation with {T.shape[0]} wet boxes to {path}")


def load_archive(path: Union[str, Path]) -> Circulation:
    """Read a circulation from a ``.npz`` archive.

    Raises:
        FileNotFoundError: If the archive doesn't exist
        DataIntegrityError: If the archive is incomplete or inconsistent
    """
    with np.load(path) as data:
        missing = [k for k in _ARCHIVE_KEYS if k not in data.files]
        if missing:
            raise DataIntegrityError(f"Circulation archive {path} is missing {missing}")
        grid = Grid(
            lat=Quantity(data["lat"], "degree"),
            lon=Quantity(data["lon"], "degree"),
            depth=Quantity(data["depth"], "meter"),
            thickness=Quantity(data["thickness"], "meter"),
        )
        T = sparse.csc_matrix(
            (data["T_data"], data["T_indices"], data["T_indptr"]),
            shape=tuple(int(n) for n in data["T_shape"]),
        )
        wet3d = data["wet3d"].astype(bool)

    return _validate(Circulation(wet3d, grid, T))


@dataclass(frozen=True)
class DataSource:
    """A published circulation archive.

    Attributes:
        name: Short identifier, also the cache subdirectory
        url: Persistent download URL
        sha256: Expected hex digest of the archive
        filename: Local file name
        citation: References to cite when using the data
    """
    name: str
    url: str
    sha256: str
    filename: str
    citation: str = field(default="", repr=False)


def sha256_file(path: Path, chunk_size: int = 1 << 20) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def fetch(source: DataSource, data_dir: Optional[Path] = None, timeout: float = 60.0) -> Path:
    """Download ``source`` into the data directory unless already cached.

    A failed or interrupted download leaves nothing behind in the cache.

    Returns:
        Path of the verified local file

    Raises:
        DataIntegrityError: If the downloaded file fails the sha256 check
    """
    data_dir = Path(data_dir) if data_dir is not None else load_settings().data_dir
    path = data_dir / source.name / source.filename

    if path.exists():
        if sha256_file(path) == source.sha256:
            logger.debug(f"Using cached {source.name} at {path}")
            return path
        logger.warning(f"Cached {path} does not match its checksum; downloading again")

    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading {source.name} from {source.url}")
    with tempfile.NamedTemporaryFile(dir=path.parent, delete=False) as tmp:
        tmp_path = Path(tmp.name)
        try:
            with urllib.request.urlopen(source.url, timeout=timeout) as response:
                shutil.copyfileobj(response, tmp)
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    digest = sha256_file(tmp_path)
    if digest != source.sha256:
        tmp_path.unlink()
        raise DataIntegrityError(
            f"Checksum mismatch for {source.url}: expected {source.sha256}, got {digest}"
        )
    tmp_path.replace(path)
    return path


def load(source: DataSource, data_dir: Optional[Path] = None) -> Circulation:
    """Fetch (if needed) and load a published circulation."""
    circulation = load_archive(fetch(source, data_dir))
    logger.info(f"Loaded {source.name}: {circulation.T.shape[0]} wet boxes on a {circulation.grid.shape} grid")
    if source.citation:
        logger.info(f"When using {source.name}, please cite:\n{source.citation}")
    return circulation
