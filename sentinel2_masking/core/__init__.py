"""
Sentinel-2 Masking Core Modules

Core functionality for SCL-based cloud masking of Sentinel-2 products.

Modules:
    product_metadata: Filename metadata and classification raster matching
    mask_builder: Masking policies, binary mask construction and combination
    smoothing: Smoothing and buffering of binary masks
    raster_tools: Fill/translate backends (rasterio or GDAL command line)
    resampling: Alignment of masks to the product grid
    mask_application: Masked writes and output format handling
    executors: Sequential and process-pool execution strategies
    masking_pipeline: Batch orchestration and configuration-driven pipeline
    errors: Exception hierarchy

Author: Diego Bengochea
"""

from .errors import (
    MaskingError,
    MetadataParseError,
    MissingAncillaryError,
    UnsupportedPolicyError,
    UnsupportedFormatError,
    ExternalToolError
)

from .product_metadata import (
    ProductMetadata,
    parse_product_name,
    find_ancillary,
    match_ancillary_files
)

from .mask_builder import (
    MASK_POLICIES,
    get_mask_policy,
    build_binary_mask,
    combine_binary_masks
)

from .smoothing import smooth_mask
from .raster_tools import RasterioTools, GdalCliTools, get_raster_tools
from .resampling import reconcile_resolution
from .mask_application import apply_mask, check_output_format, driver_extension
from .executors import SequentialExecutor, ParallelExecutor, get_executor

from .masking_pipeline import (
    MaskingReport,
    run_masking,
    mask_products,
    S2MaskingPipeline
)

__all__ = [
    # Errors
    "MaskingError",
    "MetadataParseError",
    "MissingAncillaryError",
    "UnsupportedPolicyError",
    "UnsupportedFormatError",
    "ExternalToolError",

    # Metadata matching
    "ProductMetadata",
    "parse_product_name",
    "find_ancillary",
    "match_ancillary_files",

    # Mask construction
    "MASK_POLICIES",
    "get_mask_policy",
    "build_binary_mask",
    "combine_binary_masks",
    "smooth_mask",
    "RasterioTools",
    "GdalCliTools",
    "get_raster_tools",
    "reconcile_resolution",

    # Mask application
    "apply_mask",
    "check_output_format",
    "driver_extension",

    # Execution
    "SequentialExecutor",
    "ParallelExecutor",
    "get_executor",

    # Pipeline
    "MaskingReport",
    "run_masking",
    "mask_products",
    "S2MaskingPipeline"
]
