"""
Sentinel-2 Masking Component

Cloud and quality masking of Sentinel-2 products converted from SAFE archives
to GDAL-readable rasters, driven by the Scene Classification Layer (SCL).

This component provides:
- Pairing of products with their classification rasters from filename metadata
- Binary masks for predefined masking policies (no data, clouds, shadows, cirrus)
- Optional smoothing and buffering of masks
- Regridding of masks to the product resolution
- Masked outputs in any GDAL format, with sequential or parallel batches

Author: Diego Bengochea
"""

from .core.masking_pipeline import S2MaskingPipeline, MaskingReport, run_masking, mask_products
from .core.mask_builder import MASK_POLICIES, get_mask_policy
from .core.smoothing import smooth_mask
from .core.errors import (
    MaskingError,
    MetadataParseError,
    MissingAncillaryError,
    UnsupportedPolicyError,
    UnsupportedFormatError,
    ExternalToolError
)

__version__ = "1.0.0"
__component__ = "sentinel2_masking"

__all__ = [
    "S2MaskingPipeline",
    "MaskingReport",
    "run_masking",
    "mask_products",
    "MASK_POLICIES",
    "get_mask_policy",
    "smooth_mask",
    "MaskingError",
    "MetadataParseError",
    "MissingAncillaryError",
    "UnsupportedPolicyError",
    "UnsupportedFormatError",
    "ExternalToolError",
    "__version__",
    "__component__"
]

# Component configuration
DEFAULT_CONFIG_PATH = "config.yaml"
COMPONENT_NAME = "sentinel2_masking"

# Classification products able to drive masks
SUPPORTED_CLASSIFICATION_PRODUCTS = ['SCL']
