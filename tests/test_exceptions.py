"""
Tests for the custom exception hierarchy.

Verifies exception creation, context preservation, and inheritance.
"""

import unittest

from filterlib.butterworth import design_lowpass
from filterlib.exceptions import (
    AudioError,
    ConfigurationError,
    FilesystemError,
    FilterLabError,
    InvalidParameter,
    NumericDegenerate,
    OffsetEstimationError,
    ProcessingError,
    SilentArtifact,
)


class TestFilterLabError(unittest.TestCase):
    """Test the base FilterLabError exception."""

    def test_creation_without_context(self):
        error = FilterLabError("Something went wrong")
        self.assertEqual(error.message, "Something went wrong")
        self.assertEqual(error.context, {})
        self.assertEqual(str(error), "Something went wrong")

    def test_creation_with_context(self):
        error = FilterLabError("Bad cutoff", context={"cutoff_hz": 0.0, "sample_rate_hz": 22050})
        self.assertEqual(error.context["cutoff_hz"], 0.0)
        self.assertIn("cutoff_hz=0.0", str(error))
        self.assertIn("sample_rate_hz=22050", str(error))
        self.assertTrue(str(error).startswith("Bad cutoff (context: "))

    def test_can_be_caught_as_exception(self):
        with self.assertRaises(Exception):
            raise FilterLabError("boom")


class TestHierarchy(unittest.TestCase):
    """Every specific error is catchable through its family and the base."""

    def test_configuration_family(self):
        self.assertTrue(issubclass(InvalidParameter, ConfigurationError))
        self.assertTrue(issubclass(ConfigurationError, FilterLabError))

    def test_processing_family(self):
        for cls in (NumericDegenerate, OffsetEstimationError):
            self.assertTrue(issubclass(cls, ProcessingError))
            self.assertTrue(issubclass(cls, FilterLabError))

    def test_audio_family(self):
        self.assertTrue(issubclass(SilentArtifact, AudioError))
        self.assertTrue(issubclass(AudioError, FilterLabError))

    def test_filesystem(self):
        self.assertTrue(issubclass(FilesystemError, FilterLabError))
        self.assertFalse(issubclass(FilesystemError, OSError))


class TestRaisedContext(unittest.TestCase):
    """Design errors carry the offending values."""

    def test_cutoff_context(self):
        with self.assertRaises(InvalidParameter) as cm:
            design_lowpass(4, 20000.0, 22050.0)
        self.assertEqual(cm.exception.context["cutoff_hz"], 20000.0)
        self.assertEqual(cm.exception.context["sample_rate_hz"], 22050.0)

    def test_caught_by_base(self):
        with self.assertRaises(FilterLabError):
            design_lowpass(0, 1000.0, 22050.0)
