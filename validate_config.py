"""
Lightweight config validation to catch obvious mistakes early.
Run automatically by offset_lab.py after loading config.
"""

import sys
from filterlib.logger import get_logger
from filterlib.exceptions import InvalidParameter

logger = get_logger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: dict) -> None:
    errors = []

    # Global sample rate (fallback when no recording supplies one)
    sr = config.get("global", {}).get("sample_rate")
    if not isinstance(sr, int) or isinstance(sr, bool) or sr <= 0:
        errors.append("global.sample_rate must be a positive integer")
        sr = None
    elif sr < 1000 or sr > 384000:
        errors.append(f"global.sample_rate ({sr}) outside reasonable range [1000, 384000]")

    # Paths
    paths = config.get("paths", {})
    for key in ("input_audio", "output_dir"):
        value = paths.get(key)
        if not isinstance(value, str) or value.strip() == "":
            errors.append(f"paths.{key} must be a non-empty string")

    # Offset estimation: search range
    est = config.get("offset_estimation", {})
    search_min = est.get("search_min_hz")
    search_max = est.get("search_max_hz")
    if search_min is not None and (not _is_number(search_min) or search_min < 0):
        errors.append("offset_estimation.search_min_hz must be a non-negative number")
    if search_max is not None and (not _is_number(search_max) or search_max <= 0):
        errors.append("offset_estimation.search_max_hz must be a positive number")
    if _is_number(search_min) and _is_number(search_max) and search_min >= search_max:
        errors.append("offset_estimation.search_min_hz must be below search_max_hz")
    if sr and _is_number(search_max) and search_max > sr / 2:
        # Bins above Nyquist are mirror images; the search still works
        logger.warning(f"search_max_hz ({search_max}) exceeds Nyquist of global.sample_rate ({sr / 2} Hz)")

    if not isinstance(est.get("exclude_dc", True), bool):
        errors.append("offset_estimation.exclude_dc must be true/false")

    num_peaks = est.get("num_peaks")
    if num_peaks is not None and (not isinstance(num_peaks, int) or num_peaks < 1):
        errors.append("offset_estimation.num_peaks must be a positive integer")

    min_distance = est.get("min_peak_distance")
    if min_distance is not None and (not isinstance(min_distance, int) or min_distance < 0):
        errors.append("offset_estimation.min_peak_distance must be a non-negative integer")

    threshold = est.get("peak_threshold_ratio")
    if threshold is not None and (not _is_number(threshold) or not (0 <= threshold < 1)):
        errors.append("offset_estimation.peak_threshold_ratio must be in [0, 1)")

    sym_ratio = est.get("symmetric_min_ratio")
    if sym_ratio is not None and (not _is_number(sym_ratio) or not (0 < sym_ratio <= 1)):
        errors.append("offset_estimation.symmetric_min_ratio must be in (0, 1]")

    sym_max = est.get("symmetric_max_hz")
    if sym_max is not None and (not _is_number(sym_max) or sym_max <= 0):
        errors.append("offset_estimation.symmetric_max_hz must be a positive number")

    bands = est.get("energy_bands", [])
    if bands:
        for band in bands:
            if (not isinstance(band, (list, tuple)) or len(band) != 2
                    or not all(_is_number(v) for v in band) or band[0] >= band[1]):
                errors.append(f"offset_estimation.energy_bands entry {band} must be [low, high] with low < high")

    # Filters
    filters = config.get("filters", {})
    order = filters.get("order")
    if not isinstance(order, int) or isinstance(order, bool) or order < 1:
        errors.append("filters.order must be a positive integer")
    elif order > 16:
        logger.warning(f"filters.order ({order}) is high; expanded coefficients lose precision")

    baseband = filters.get("baseband_hz")
    if not _is_number(baseband) or baseband <= 0:
        errors.append("filters.baseband_hz must be a positive number")
    elif sr and baseband >= sr / 2:
        errors.append(f"filters.baseband_hz ({baseband}) must be less than Nyquist frequency ({sr / 2} Hz)")

    points = filters.get("response_points")
    if points is not None and (not isinstance(points, int) or isinstance(points, bool) or points < 2):
        errors.append("filters.response_points must be an integer >= 2 or null")

    # Plots
    plots = config.get("plots", {})
    if not isinstance(plots.get("enabled", True), bool):
        errors.append("plots.enabled must be true/false")
    max_freq = plots.get("max_freq_hz")
    if max_freq is not None and (not _is_number(max_freq) or max_freq <= 0):
        errors.append("plots.max_freq_hz must be a positive number or null")

    if errors:
        error_msg = "Invalid configuration:\n" + "\n".join([f"- {e}" for e in errors])
        logger.error(error_msg)
        raise InvalidParameter(error_msg, context={"error_count": len(errors)})


if __name__ == "__main__":
    import yaml
    import os
    from filterlib.logger import log_success

    config_path = "config.yaml"
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            try:
                config = yaml.safe_load(f)
                validate_config(config)
                log_success(logger, "Configuration is valid.")
            except Exception as e:
                logger.error(f"Config validation failed: {e}")
                sys.exit(1)
    else:
        logger.error(f"{config_path} not found. Run offset_lab.py first to generate it.")
        sys.exit(1)
