"""
Product metadata derived from Sentinel-2 product filenames.

Products converted from SAFE archives follow the short naming convention

    S2<mission><level>_<YYYYMMDD>_<orbit>_<extent>_<prod_type>_<res>.<ext>

e.g. ``S2A2A_20200101_022_32TNR_BOA_10.tif``. The fields are used as join
keys to pair each input product with the classification rasters (SCL) it
needs for masking.

Author: Diego Bengochea
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from shared_utils import get_logger

from .errors import MetadataParseError, MissingAncillaryError


PRODUCT_NAME_PATTERN = re.compile(
    r'^S2(?P<mission>[A-D])(?P<level>1C|2A)'
    r'_(?P<sensing_date>\d{8})'
    r'_(?P<orbit_id>\d{3})'
    r'_(?P<extent_name>[^_.]+)'
    r'_(?P<prod_type>[^_.]+)'
    r'_(?P<res>\d{2})'
    r'(?:\.(?P<file_ext>[^_]+))?$'
)

# MGRS tile identifier (e.g. 32TNR); any other extent name denotes a clipped/merged product
TILE_ID_PATTERN = re.compile(r'^\d{2}[A-Z]{3}$')

ACQUISITION_TILE = 'tile'
ACQUISITION_CLIPPED = 'clipped'


@dataclass(frozen=True)
class ProductMetadata:
    """Fields encoded in a product filename."""
    mission: str
    level: str
    sensing_date: date
    orbit_id: str
    extent_name: str
    acquisition_type: str
    product_type: str
    resolution: int
    file_ext: str

    def matches(self, other: 'ProductMetadata', product_type: str) -> bool:
        """
        Check whether ``self`` is the ``product_type`` counterpart of ``other``.

        All join keys must be equal; the product type is compared against the
        required ancillary type instead of ``other``'s own type.
        """
        return (
            self.product_type == product_type
            and self.acquisition_type == other.acquisition_type
            and self.mission == other.mission
            and self.sensing_date == other.sensing_date
            and self.orbit_id == other.orbit_id
            and self.resolution == other.resolution
        )


def parse_product_name(path: Union[str, Path]) -> ProductMetadata:
    """
    Extract product metadata from a filename.

    Args:
        path: Path or basename of a product file

    Returns:
        ProductMetadata: Parsed fields

    Raises:
        MetadataParseError: If the filename does not follow the naming convention

    Examples:
        >>> meta = parse_product_name("/data/S2A2A_20200101_022_32TNR_BOA_10.tif")
        >>> meta.product_type, meta.resolution
        ('BOA', 10)
    """
    name = Path(path).name
    match = PRODUCT_NAME_PATTERN.match(name)
    if match is None:
        raise MetadataParseError(f"Filename does not follow the product naming convention: {name}")

    try:
        sensing_date = datetime.strptime(match.group('sensing_date'), '%Y%m%d').date()
    except ValueError:
        raise MetadataParseError(f"Invalid sensing date in filename: {name}")

    extent_name = match.group('extent_name')
    acquisition_type = ACQUISITION_TILE if TILE_ID_PATTERN.match(extent_name) else ACQUISITION_CLIPPED

    return ProductMetadata(
        mission=match.group('mission'),
        level=match.group('level'),
        sensing_date=sensing_date,
        orbit_id=match.group('orbit_id'),
        extent_name=extent_name,
        acquisition_type=acquisition_type,
        product_type=match.group('prod_type'),
        resolution=int(match.group('res')),
        file_ext=match.group('file_ext') or ''
    )


def parse_candidates(paths: Iterable[Union[str, Path]]) -> List[Tuple[str, ProductMetadata]]:
    """
    Parse classification raster candidates, dropping names that do not parse.

    Args:
        paths: Candidate classification raster paths

    Returns:
        list: (path, metadata) pairs in input order
    """
    logger = get_logger('masking')
    candidates = []
    for path in paths:
        try:
            candidates.append((str(path), parse_product_name(path)))
        except MetadataParseError as e:
            logger.warning(f"Ignoring classification raster: {e}")
    return candidates


def find_ancillary(
    infile_meta: ProductMetadata,
    candidates: Sequence[Tuple[str, ProductMetadata]],
    product_type: str
) -> Optional[str]:
    """
    Return the first candidate of type ``product_type`` matching an input product.

    Args:
        infile_meta: Metadata of the input product
        candidates: (path, metadata) pairs of classification rasters
        product_type: Required ancillary product type (e.g. 'SCL')

    Returns:
        str or None: Path of the first matching candidate, None if none matches
    """
    for path, meta in candidates:
        if meta.matches(infile_meta, product_type):
            return path
    return None


def match_ancillary_files(
    infile: Union[str, Path],
    infile_meta: ProductMetadata,
    candidates: Sequence[Tuple[str, ProductMetadata]],
    required_types: Iterable[str]
) -> Dict[str, str]:
    """
    Locate one classification raster for each required ancillary type.

    Args:
        infile: Input product path (for error messages)
        infile_meta: Metadata of the input product
        candidates: (path, metadata) pairs of classification rasters
        required_types: Ancillary product types required by the masking policy

    Returns:
        dict: Ancillary product type -> classification raster path

    Raises:
        MissingAncillaryError: If any required type has no matching candidate
    """
    matched = {}
    for product_type in required_types:
        path = find_ancillary(infile_meta, candidates, product_type)
        if path is None:
            raise MissingAncillaryError(
                f"No {product_type} product matching {Path(infile).name} was found"
            )
        matched[product_type] = path
    return matched


def product_types(metadata: Mapping[int, ProductMetadata]) -> List[str]:
    """Distinct product types in order of first appearance."""
    return list(dict.fromkeys(meta.product_type for meta in metadata.values()))
