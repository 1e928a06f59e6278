"""
filterlib: frequency-offset analysis and Butterworth IIR filter design.

Modules:
  - prototype: Normalized analog Butterworth poles
  - butterworth: Bilinear-transform low-pass and spectral-inversion high-pass design
  - response: Frequency response evaluation
  - verification: -3 dB cutoff search, pole and stability checks
  - spectrum: FFT spectrum and frequency-offset estimation
  - demodulation: Ideal and IIR baseband recovery, signal comparison
  - io_utils: Recording loading and saving, result files, coefficient and comparison reports
  - plotting: Response, spectrum and signal comparison plots
"""

__version__ = "0.1.0"
