"""
Sentinel-2 Cloud Masking Pipeline

Applies SCL-based cloud masks to Sentinel-2 products already converted to a
GDAL-readable format. For each input product the pipeline:

1. parses the product filename and finds the matching classification rasters
2. builds a binary mask per classification layer and combines them
3. optionally smooths and buffers the mask
4. regrids the mask to the product grid when resolutions differ
5. writes the masked product (masked pixels set to no-data)

Inputs are independent; they can be processed sequentially or on a bounded
pool of worker processes. Per-input failures are logged as warnings and do
not stop the batch; configuration errors (unknown masking policy or output
format) abort the call before any processing.

Author: Diego Bengochea
"""

import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

from rasterio.errors import RasterioError

from shared_utils import (
    setup_logging, get_logger, load_config, validate_config, get_config_value,
    ensure_directory, find_files, validate_file_exists, log_pipeline_start, log_pipeline_end, log_section
)

from .errors import MaskingError, MetadataParseError, MissingAncillaryError
from .executors import get_executor
from .mask_application import (
    MaskedProduct, apply_mask, check_output_format, is_sidecar, output_driver, output_filename
)
from .mask_builder import build_binary_mask, combine_binary_masks, get_mask_policy
from .product_metadata import (
    ProductMetadata, match_ancillary_files, parse_candidates, parse_product_name, product_types
)
from .resampling import DEFAULT_RESAMPLING, get_resampling, reconcile_resolution
from .smoothing import smooth_mask


PathLike = Union[str, Path]

# Errors that only affect the input being processed
INPUT_ERRORS = (MaskingError, OSError, RasterioError, ValueError)


@dataclass
class MaskTask:
    """Everything a worker needs to mask one input product."""
    index: int
    infile: str
    maskfiles: List[str]
    masked_values: List[FrozenSet[int]]
    outfile: str
    driver: str
    compress: Optional[str] = 'DEFLATE'
    overwrite: bool = False
    smooth: float = 0
    buffer: float = 0
    resampling: str = DEFAULT_RESAMPLING
    tmpdir: Optional[str] = None
    binpaths: Optional[Dict[str, Optional[str]]] = None


@dataclass
class MaskingReport:
    """
    Outcome of a masking batch.

    ``outputs`` lists produced (or already existing) outputs in input order;
    ``skipped`` and ``failed`` hold (input, reason) pairs.
    """
    outputs: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    masked_fractions: Dict[str, float] = field(default_factory=dict)

    def summary(self) -> Dict[str, int]:
        return {
            'outputs': len(self.outputs),
            'created': len(self.outputs) - len(self.existing),
            'existing': len(self.existing),
            'skipped': len(self.skipped),
            'failed': len(self.failed),
        }


def process_mask_task(task: MaskTask) -> MaskedProduct:
    """
    Mask a single product. Runs in worker processes, so it must stay importable.

    Intermediate rasters live in a scratch directory private to the task,
    removed once the output is written or the task fails.
    """
    if task.tmpdir:
        ensure_directory(task.tmpdir)
    scratch = Path(tempfile.mkdtemp(prefix='s2mask_', dir=task.tmpdir))

    try:
        layer_masks = [
            build_binary_mask(maskfile, values, scratch / f"layer_{i}.tif")
            for i, (maskfile, values) in enumerate(zip(task.maskfiles, task.masked_values))
        ]
        mask = combine_binary_masks(layer_masks, scratch / "combined.tif")

        if task.smooth > 0 or task.buffer != 0:
            mask = smooth_mask(
                mask, scratch / "smooth",
                radius=task.smooth, buffer=task.buffer, binpaths=task.binpaths
            )

        mask = reconcile_resolution(mask, task.infile, scratch / "resampled.tif", task.resampling)

        return apply_mask(
            task.infile, mask, task.outfile,
            driver=task.driver, compress=task.compress, overwrite=task.overwrite
        )
    finally:
        shutil.rmtree(scratch, ignore_errors=True)


def run_masking(
    infiles: Sequence[PathLike],
    maskfiles: Sequence[PathLike],
    mask_type: str = 'cloud_medium_proba',
    outdir: PathLike = './masked',
    format: Optional[str] = None,
    subdirs: Optional[bool] = None,
    compress: Optional[str] = 'DEFLATE',
    parallel: bool = False,
    overwrite: bool = False,
    smooth: float = 0,
    buffer: float = 0,
    resampling: str = DEFAULT_RESAMPLING,
    tmpdir: Optional[PathLike] = None,
    binpaths: Optional[Mapping[str, Optional[str]]] = None,
    show_progress: bool = True
) -> MaskingReport:
    """
    Apply cloud masks to a batch of Sentinel-2 products.

    Args:
        infiles: Products to mask, named after the product naming convention
        maskfiles: Candidate classification rasters (e.g. SCL); they do not
            need to correspond one to one with ``infiles``
        mask_type: Masking policy (see ``MASK_POLICIES``)
        outdir: Output directory, created if missing
        format: GDAL driver of the outputs (default: input format, GTiff for VRT inputs)
        subdirs: Put outputs in per-product-type subdirectories; None creates them
            only when the batch holds more than one product type
        compress: GeoTIFF compression
        parallel: Process inputs on a pool of worker processes
        overwrite: Replace existing outputs; otherwise existing outputs are kept
        smooth: Smoothing radius in map units (0 disables smoothing)
        buffer: Buffer applied to the masked area after smoothing, in map units
        resampling: Kernel used when mask and product resolutions differ
        tmpdir: Parent directory for scratch files (default: system temp)
        binpaths: Paths of 'gdal_translate' and 'gdal_fillnodata' used for
            smoothing; in-process rasterio is used when not given
        show_progress: Display a progress bar

    Returns:
        MaskingReport: Outputs in input order plus skipped and failed inputs

    Raises:
        UnsupportedPolicyError: Unknown or unimplemented ``mask_type``
        UnsupportedFormatError: ``format`` not available in GDAL
        ValueError: Unknown ``resampling`` kernel
    """
    logger = get_logger('masking')

    # Call-wide checks, before touching any file
    policy = get_mask_policy(mask_type)
    if format:
        check_output_format(format)
    resampling = get_resampling(resampling).name

    report = MaskingReport()
    outdir = ensure_directory(outdir)

    candidates = parse_candidates(maskfiles)

    # Parse input metadata; unparsable inputs are dropped
    infiles_meta: Dict[int, ProductMetadata] = {}
    for i, infile in enumerate(infiles):
        try:
            infiles_meta[i] = parse_product_name(infile)
        except MetadataParseError as e:
            logger.warning(f"Skipping {infile}: {e}")
            report.failed.append((str(infile), str(e)))

    prod_types = product_types(infiles_meta)
    if subdirs is None:
        subdirs = len(prod_types) > 1
    if subdirs:
        for prod_type in prod_types:
            ensure_directory(outdir / prod_type)

    # Plan: resolve classification rasters and output names
    planned: Dict[int, str] = {}
    tasks: List[MaskTask] = []
    for i, meta in infiles_meta.items():
        infile = str(infiles[i])
        try:
            validate_file_exists(infile, "input product")
            matched = match_ancillary_files(infile, meta, candidates, policy.keys())
            driver = output_driver(infile, format)
        except MissingAncillaryError as e:
            logger.warning(f"Skipping {infile}: {e}")
            report.skipped.append((infile, str(e)))
            continue
        except INPUT_ERRORS as e:
            logger.warning(f"Skipping {infile}: {e}")
            report.failed.append((infile, str(e)))
            continue

        out_subdir = outdir / meta.product_type if subdirs else outdir
        outfile = str(output_filename(infile, out_subdir, meta.file_ext, driver))
        planned[i] = outfile

        if Path(outfile).exists() and not overwrite:
            logger.info(f"Output {outfile} already exists, skipping {infile}")
            report.existing.append(outfile)
            continue

        tasks.append(MaskTask(
            index=i,
            infile=infile,
            maskfiles=[matched[t] for t in policy],
            masked_values=[policy[t] for t in policy],
            outfile=outfile,
            driver=driver,
            compress=compress,
            overwrite=overwrite,
            smooth=smooth,
            buffer=buffer,
            resampling=resampling,
            tmpdir=str(tmpdir) if tmpdir else None,
            binpaths=dict(binpaths) if binpaths else None
        ))

    logger.info(f"Masking {len(tasks)} products ({len(report.existing)} already existing)")

    executor = get_executor(parallel, len(tasks), show_progress=show_progress)
    outcomes = executor.run(process_mask_task, tasks, desc="Masking products")

    for task, outcome in zip(tasks, outcomes):
        if outcome.ok:
            report.masked_fractions[task.outfile] = outcome.result.masked_fraction
            logger.info(f"Masked {task.infile} ({outcome.result.masked_fraction:.1%} masked)")
        else:
            logger.warning(f"Masking failed for {task.infile}: {outcome.error}")
            report.failed.append((task.infile, str(outcome.error)))
            del planned[task.index]

    report.outputs = [planned[i] for i in sorted(planned)]
    return report


def mask_products(
    infiles: Sequence[PathLike],
    maskfiles: Sequence[PathLike],
    mask_type: str = 'cloud_medium_proba',
    outdir: PathLike = './masked',
    format: Optional[str] = None,
    subdirs: Optional[bool] = None,
    compress: Optional[str] = 'DEFLATE',
    parallel: bool = False,
    overwrite: bool = False,
    **kwargs
) -> List[str]:
    """
    Apply cloud masks and return the paths of the masked products.

    Same arguments as ``run_masking``. The returned list follows the order of
    ``infiles`` and includes outputs that already existed; inputs that could
    not be masked are left out.

    Examples:
        >>> outputs = mask_products(
        ...     ["S2A2A_20200101_022_32TNR_BOA_10.tif"],
        ...     ["S2A2A_20200101_022_32TNR_SCL_10.tif"],
        ...     mask_type="cloud_high_proba", outdir="masked"
        ... )
    """
    return run_masking(
        infiles, maskfiles, mask_type=mask_type, outdir=outdir, format=format,
        subdirs=subdirs, compress=compress, parallel=parallel, overwrite=overwrite,
        **kwargs
    ).outputs


class S2MaskingPipeline:
    """
    Configuration-driven masking of the products found in a directory.

    Input products and classification rasters are discovered in the
    configured directories; classification rasters are the files whose
    product type is required by the masking policy.
    """

    REQUIRED_SECTIONS = ['paths', 'masking']

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the masking pipeline.

        Args:
            config_path: Path to configuration file, uses default if None
            config: Already loaded configuration, takes precedence over ``config_path``
        """
        if config is None:
            config = load_config(config_path, component_name='sentinel2_masking')
        validate_config(config, self.REQUIRED_SECTIONS)
        self.config = config

        self.logger = get_logger('masking')
        self.report: Optional[MaskingReport] = None
        self.start_time = None

    @classmethod
    def from_config_file(cls, config_path: Optional[str] = None) -> 'S2MaskingPipeline':
        """Load configuration and set up logging as configured."""
        config = load_config(config_path, component_name='sentinel2_masking')
        setup_logging(
            level=get_config_value(config, 'logging.level', 'INFO'),
            component_name='masking',
            log_file=get_config_value(config, 'logging.log_file')
        )
        return cls(config=config)

    def collect_files(self) -> Tuple[List[Path], List[Path]]:
        """
        Discover input products and classification rasters.

        Returns:
            tuple: (input products, classification rasters)
        """
        input_dir = get_config_value(self.config, 'paths.input_dir', '.')
        classification_dir = get_config_value(self.config, 'paths.classification_dir', input_dir)
        pattern = get_config_value(self.config, 'paths.pattern', 'S2*_*')
        recursive = get_config_value(self.config, 'paths.recursive', False)
        mask_type = get_config_value(self.config, 'masking.mask_type', 'cloud_medium_proba')
        ancillary_types = set(get_mask_policy(mask_type))

        def ancillary(path: Path) -> bool:
            try:
                return parse_product_name(path).product_type in ancillary_types
            except MetadataParseError:
                return False

        infiles = [
            f for f in find_files(input_dir, pattern, recursive=recursive)
            if not ancillary(f) and not is_sidecar(f)
        ]
        maskfiles = [
            f for f in find_files(classification_dir, pattern, recursive=recursive)
            if ancillary(f) and not is_sidecar(f)
        ]

        self.logger.info(f"Found {len(infiles)} products and {len(maskfiles)} classification rasters")
        return infiles, maskfiles

    def run(self) -> MaskingReport:
        """
        Mask all discovered products.

        Returns:
            MaskingReport: Batch outcome
        """
        self.start_time = time.time()
        log_pipeline_start(self.logger, 'Sentinel-2 cloud masking', {
            k: v for k, v in self.config.items() if k in ('masking', 'smoothing', 'paths')
        })

        log_section(self.logger, "Input discovery")
        infiles, maskfiles = self.collect_files()
        binpaths = self.config.get('tools') or None

        log_section(self.logger, "Masking")
        self.report = run_masking(
            infiles,
            maskfiles,
            mask_type=get_config_value(self.config, 'masking.mask_type', 'cloud_medium_proba'),
            outdir=get_config_value(self.config, 'paths.output_dir', './masked'),
            format=get_config_value(self.config, 'masking.format'),
            subdirs=get_config_value(self.config, 'masking.subdirs'),
            compress=get_config_value(self.config, 'masking.compress', 'DEFLATE'),
            parallel=get_config_value(self.config, 'masking.parallel', False),
            overwrite=get_config_value(self.config, 'masking.overwrite', False),
            smooth=get_config_value(self.config, 'smoothing.radius', 0),
            buffer=get_config_value(self.config, 'smoothing.buffer', 0),
            resampling=get_config_value(self.config, 'masking.resampling', DEFAULT_RESAMPLING),
            tmpdir=get_config_value(self.config, 'paths.tmpdir'),
            binpaths=binpaths
        )

        summary = self.report.summary()
        self.logger.info(f"Masking summary: {summary}")
        log_pipeline_end(
            self.logger, 'Sentinel-2 cloud masking',
            success=summary['failed'] == 0,
            elapsed_time=time.time() - self.start_time
        )
        return self.report
