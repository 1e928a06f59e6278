#!/usr/bin/env python3
"""
offset_lab.py: Main CLI entrypoint for offset estimation and filter design.

Usage:
  python offset_lab.py --all
  python offset_lab.py --estimate-offset
  python offset_lab.py --design-filters
  python offset_lab.py --design-filters --offset 3225.1032 --sample-rate 22050
  python offset_lab.py --check-cutoff
  python offset_lab.py --demodulate
"""

import argparse
import os
import sys
from typing import List, Optional, Tuple

import yaml

from filterlib import demodulation, io_utils, plotting, spectrum, verification
from filterlib.butterworth import DigitalFilter, design_highpass, design_lowpass
from filterlib.exceptions import FilterLabError, InvalidParameter
from filterlib.logger import configure_root_logger, get_logger, log_success
from filterlib.response import response_arrays
from validate_config import validate_config

logger = get_logger("filterlab.cli")

OFFSET_RESULTS_FILE = "offset_results.txt"
SPECTRUM_CSV_FILE = "spectrum.csv"
COEFFICIENTS_FILE = "filter_coefficients.txt"
RESPONSE_SUMMARY_FILE = "frequency_response.txt"
DEFAULT_RESPONSE_POINTS = 8192
DEMOD_IDEAL_FILE = "demodulated_ideal.wav"
DEMOD_IIR_FILE = "demodulated_iir.wav"
COMPARISON_FILE = "comparison.txt"


DEFAULT_CONFIG_YAML = """# Global settings
global:
  sample_rate: 22050          # Fallback rate when designing without a recording

# Paths
paths:
  input_audio: project.wav    # Mis-demodulated recording to analyze
  output_dir: output          # Results, reports and plots

# Frequency offset estimation
offset_estimation:
  search_min_hz: 10.0         # Main peak search range (Hz)
  search_max_hz: 10000.0
  exclude_dc: true            # Skip the DC bin in the peak search
  num_peaks: 5                # Peaks considered for symmetry analysis
  min_peak_distance: 20       # Minimum spacing between peaks (bins)
  peak_threshold_ratio: 0.1   # Ignore peaks below this fraction of the main peak
  symmetric_max_hz: 5000.0    # Only peaks below this may form a symmetric pair
  symmetric_min_ratio: 0.9    # Height ratio required for two peaks to pair
  energy_bands:               # Bands reported in the energy distribution
    - [0, 1000]
    - [1000, 2000]
    - [2000, 4000]
    - [4000, 8000]
    - [8000, 11025]

# Filter design
filters:
  order: 8                    # Butterworth order for both filters
  baseband_hz: 4000           # Low-pass cutoff (signal bandwidth)
  response_points: null       # Response grid size; null = recording length

# Plots
plots:
  enabled: true
  max_freq_hz: 10000          # Upper frequency shown (null = Nyquist)
"""


def load_or_create_config(config_path: str = "config.yaml") -> dict:
    """
    Load config from file or create default if missing.

    Args:
        config_path: Path to config.yaml

    Returns:
        Configuration dictionary
    """
    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
            logger.info(f"Loaded config from {config_path}")
            return config

    logger.info(f"Config not found, creating default at {config_path}")
    with open(config_path, 'w') as f:
        f.write(DEFAULT_CONFIG_YAML)
    return yaml.safe_load(DEFAULT_CONFIG_YAML)


def _output_path(config: dict, filename: str) -> str:
    return os.path.join(config['paths']['output_dir'], filename)


def run_estimate_offset(config: dict) -> spectrum.OffsetEstimate:
    """Load the recording, estimate the offset and write results."""
    est_cfg = config.get('offset_estimation', {})
    plot_cfg = config.get('plots', {})
    output_dir = config['paths']['output_dir']
    os.makedirs(output_dir, exist_ok=True)

    samples, sr = io_utils.load_audio(config['paths']['input_audio'])

    estimate = spectrum.estimate_offset(
        samples,
        sr,
        search_range=(est_cfg.get('search_min_hz', 10.0), est_cfg.get('search_max_hz', 10000.0)),
        exclude_dc=est_cfg.get('exclude_dc', True),
        num_peaks=est_cfg.get('num_peaks', 5),
        min_distance=est_cfg.get('min_peak_distance', 20),
        threshold_ratio=est_cfg.get('peak_threshold_ratio', 0.1),
        symmetric_max_hz=est_cfg.get('symmetric_max_hz', 5000.0),
        symmetric_min_ratio=est_cfg.get('symmetric_min_ratio', 0.9),
    )

    spec = spectrum.compute_spectrum(samples, sr)
    freqs, mags = spec.single_sided()
    mags_db = spec.magnitude_db()[:len(freqs)]

    bands = est_cfg.get('energy_bands', [])
    if bands:
        for label, percent in spectrum.energy_distribution(freqs, mags, [tuple(b) for b in bands]):
            logger.info(f"  Energy {label}: {percent:.2f}%")

    io_utils.write_offset_results(
        _output_path(config, OFFSET_RESULTS_FILE),
        estimate,
        baseband_hz=config['filters']['baseband_hz'],
    )
    io_utils.export_spectrum_csv(_output_path(config, SPECTRUM_CSV_FILE), freqs, mags, mags_db)

    if plot_cfg.get('enabled', True):
        max_freq = plot_cfg.get('max_freq_hz')
        plotting.plot_spectrum(freqs, mags, _output_path(config, "spectrum.png"),
                               "Spectrum of Recording", max_freq)
        plotting.plot_spectrum(freqs, mags_db, _output_path(config, "spectrum_db.png"),
                               "Spectrum of Recording (dB)", max_freq, in_db=True)
        plotting.plot_waveform(samples, sr, _output_path(config, "waveform.png"), "Waveform of Recording")

    log_success(logger, f"Frequency offset f_d = {estimate.offset_hz:.4f} Hz")
    return estimate


def resolve_design_inputs(
    config: dict,
    offset_hz: Optional[float] = None,
    sample_rate: Optional[float] = None,
) -> Tuple[float, float, Optional[int]]:
    """
    Work out (sample_rate, offset_hz, num_samples) for filter design.

    Explicit arguments win; otherwise the offset results file is read. The
    config sample rate is used only when an offset is given explicitly.

    Raises:
        InvalidParameter: If no offset is available from either source
    """
    results_path = _output_path(config, OFFSET_RESULTS_FILE)
    if offset_hz is None:
        if not os.path.exists(results_path):
            raise InvalidParameter(
                "No frequency offset available; run --estimate-offset or pass --offset",
                context={"results_path": results_path}
            )
        results = io_utils.read_offset_results(results_path)
        num_samples = int(results['num_samples']) if 'num_samples' in results else None
        return (
            sample_rate if sample_rate is not None else results['sample_rate'],
            results['frequency_offset'],
            num_samples,
        )

    fs = sample_rate if sample_rate is not None else config['global']['sample_rate']
    return float(fs), float(offset_hz), None


def build_filters(
    config: dict,
    offset_hz: Optional[float] = None,
    sample_rate: Optional[float] = None,
    baseband_hz: Optional[float] = None,
) -> Tuple[DigitalFilter, DigitalFilter, Optional[int]]:
    """Design the offset high-pass and the baseband low-pass."""
    fs, f_d, num_samples = resolve_design_inputs(config, offset_hz, sample_rate)
    order = config['filters']['order']
    f_b = baseband_hz if baseband_hz is not None else config['filters']['baseband_hz']

    logger.info(f"Designing order-{order} Butterworth filters at {fs:g} Hz")
    logger.info(f"  High-pass cutoff (f_d): {f_d:.4f} Hz")
    logger.info(f"  Low-pass cutoff (f_B): {f_b:g} Hz")

    highpass = design_highpass(order, f_d, fs)
    lowpass = design_lowpass(order, f_b, fs)
    return highpass, lowpass, num_samples


def run_design_filters(
    config: dict,
    offset_hz: Optional[float] = None,
    sample_rate: Optional[float] = None,
    baseband_hz: Optional[float] = None,
) -> Tuple[DigitalFilter, DigitalFilter]:
    """Design both filters and write coefficients, response summary and plots."""
    highpass, lowpass, num_samples = build_filters(config, offset_hz, sample_rate, baseband_hz)
    os.makedirs(config['paths']['output_dir'], exist_ok=True)

    num_points = config['filters'].get('response_points') or num_samples or DEFAULT_RESPONSE_POINTS
    logger.info(f"Calculating frequency responses ({num_points} points)")
    hp_response = response_arrays(highpass, num_points)
    lp_response = response_arrays(lowpass, num_points)

    io_utils.write_filter_coefficients(_output_path(config, COEFFICIENTS_FILE), [highpass, lowpass])
    io_utils.write_response_summary(
        _output_path(config, RESPONSE_SUMMARY_FILE),
        [("High-pass Filter", hp_response), ("Low-pass Filter", lp_response)],
    )

    plot_cfg = config.get('plots', {})
    if plot_cfg.get('enabled', True):
        max_freq = plot_cfg.get('max_freq_hz')
        for name, response in (("highpass", hp_response), ("lowpass", lp_response)):
            label = "High-pass" if name == "highpass" else "Low-pass"
            plotting.plot_magnitude_response(
                response, _output_path(config, f"{name}_magnitude.png"),
                f"{label} Filter Magnitude Response", max_freq)
            plotting.plot_magnitude_response(
                response, _output_path(config, f"{name}_magnitude_db.png"),
                f"{label} Filter Magnitude Response (dB)", max_freq, in_db=True)
            plotting.plot_phase_response(
                response, _output_path(config, f"{name}_phase.png"),
                f"{label} Filter Phase Response", max_freq)
        plotting.plot_combined_magnitude(
            hp_response, lp_response, _output_path(config, "combined_magnitude.png"),
            "Combined Filter Magnitude Responses", max_freq)

    log_success(logger, f"Filter design written to {config['paths']['output_dir']}/")
    return highpass, lowpass


def run_check_cutoff(filters: List[DigitalFilter]) -> List[verification.CutoffReport]:
    """Measure the actual -3 dB point and stability of each filter."""
    reports = [verification.verify_design(filt) for filt in filters]
    if all(r.stable for r in reports):
        log_success(logger, "All filters are stable")
    return reports


def run_demodulate(config: dict, highpass: DigitalFilter, lowpass: DigitalFilter) -> demodulation.ComparisonResult:
    """Demodulate the recording both ways, save the audio and compare the results."""
    samples, sr = io_utils.load_audio(config['paths']['input_audio'])
    if sr != highpass.sample_rate_hz:
        raise InvalidParameter(
            "Recording and filters use different sample rates",
            context={"recording": sr, "filters": highpass.sample_rate_hz}
        )
    os.makedirs(config['paths']['output_dir'], exist_ok=True)

    logger.info(f"Demodulating at f_d = {highpass.cutoff_hz:.4f} Hz, f_B = {lowpass.cutoff_hz:g} Hz")
    ideal = demodulation.demodulate_ideal(samples, sr, highpass.cutoff_hz, lowpass.cutoff_hz)
    iir = demodulation.demodulate_iir(samples, highpass, lowpass)

    io_utils.save_audio(_output_path(config, DEMOD_IDEAL_FILE), ideal, sr)
    io_utils.save_audio(_output_path(config, DEMOD_IIR_FILE), iir, sr)

    result = demodulation.compare_signals(ideal, iir)
    io_utils.write_comparison(_output_path(config, COMPARISON_FILE), result)
    logger.info(
        f"  MSE {result.mse:.6e}, correlation {result.correlation:.6f}, SNR {result.snr_db:.2f} dB"
    )

    if config.get('plots', {}).get('enabled', True):
        plotting.plot_signal_comparison(
            ideal, iir, _output_path(config, "comparison_full.png"), "Demodulated Signals (Full Waveform)")
        plotting.plot_signal_comparison(
            ideal, iir, _output_path(config, "comparison_detail.png"), "Demodulated Signals (Detail)",
            max_samples=2000)

    log_success(logger, f"Demodulated audio written to {config['paths']['output_dir']}/")
    return result


def dry_run_preview(config: dict, operations: list) -> None:
    """Describe what would run without touching any files."""
    logger.info("DRY RUN: nothing will be written")
    if 'estimate_offset' in operations:
        audio = config['paths']['input_audio']
        found = "found" if os.path.exists(audio) else "MISSING"
        logger.info(f"[ESTIMATE OFFSET] recording {audio} ({found})")
    if 'design_filters' in operations:
        filters = config['filters']
        logger.info(
            f"[DESIGN FILTERS] order {filters['order']}, low-pass {filters['baseband_hz']} Hz, "
            f"high-pass at estimated offset"
        )
    if 'check_cutoff' in operations:
        logger.info("[CHECK CUTOFF] -3 dB search and stability check on both filters")
    if 'demodulate' in operations:
        logger.info("[DEMODULATE] ideal and IIR demodulation of the recording, compared")
    logger.info(f"Output directory: {config['paths']['output_dir']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate a frequency offset and design Butterworth correction filters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python offset_lab.py --all --dry-run       # Preview what would run
  python offset_lab.py --all                 # Estimate, design, verify and demodulate
  python offset_lab.py --estimate-offset     # Spectrum analysis only
  python offset_lab.py --design-filters --offset 3225.1 --sample-rate 22050
        """
    )

    parser.add_argument('--all', action='store_true', help='Run every step')
    parser.add_argument('--estimate-offset', action='store_true',
                        help='Estimate the frequency offset of the input recording')
    parser.add_argument('--design-filters', action='store_true',
                        help='Design high-pass and low-pass filters and write reports')
    parser.add_argument('--check-cutoff', action='store_true',
                        help='Verify the -3 dB cutoff and stability of the designed filters')
    parser.add_argument('--demodulate', action='store_true',
                        help='Recover the baseband with ideal and IIR filters and compare them')
    parser.add_argument('--offset', type=float, default=None,
                        help='Use this offset (Hz) instead of the estimation results')
    parser.add_argument('--sample-rate', type=float, default=None,
                        help='Sample rate (Hz) for design when not taken from results')
    parser.add_argument('--baseband', type=float, default=None,
                        help='Override filters.baseband_hz (Hz)')
    parser.add_argument('--config', type=str, default='config.yaml',
                        help='Path to config.yaml (default: config.yaml)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='DEBUG, INFO, WARNING, ERROR (default: FILTERLAB_LOG_LEVEL or INFO)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Preview what would run without creating files')

    args = parser.parse_args(argv)

    if not any([args.all, args.estimate_offset, args.design_filters, args.check_cutoff, args.demodulate]):
        parser.print_help()
        return 1

    if args.log_level:
        configure_root_logger(args.log_level)

    config = load_or_create_config(args.config)
    validate_config(config)

    operations = []
    if args.all or args.estimate_offset:
        operations.append('estimate_offset')
    if args.all or args.design_filters:
        operations.append('design_filters')
    if args.all or args.check_cutoff:
        operations.append('check_cutoff')
    if args.all or args.demodulate:
        operations.append('demodulate')

    if args.dry_run:
        dry_run_preview(config, operations)
        return 0

    try:
        if 'estimate_offset' in operations:
            run_estimate_offset(config)

        filters = None
        if 'design_filters' in operations:
            filters = list(run_design_filters(config, args.offset, args.sample_rate, args.baseband))

        if 'check_cutoff' in operations:
            if filters is None:
                highpass, lowpass, _ = build_filters(config, args.offset, args.sample_rate, args.baseband)
                filters = [highpass, lowpass]
            reports = run_check_cutoff(filters)
            if not all(r.stable for r in reports):
                return 2

        if 'demodulate' in operations:
            if filters is None:
                highpass, lowpass, _ = build_filters(config, args.offset, args.sample_rate, args.baseband)
                filters = [highpass, lowpass]
            run_demodulate(config, filters[0], filters[1])
    except (FilterLabError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
