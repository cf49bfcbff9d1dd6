"""
Tests for golden-angle color assignment in annotation_core.class_registry.
"""

import os
import sys
import unittest

# Add project root directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotation_core.class_registry import ClassRegistry, golden_angle_hue  # noqa: E402
from annotation_core.schema import (  # noqa: E402
    FALLBACK_COLOR_HEX,
    ClassColor,
    FallbackColor,
)


class TestAssignColor(unittest.TestCase):
    def setUp(self):
        self.registry = ClassRegistry()

    def test_first_class_gets_hue_zero(self):
        color = self.registry.assign_color("cat")
        self.assertEqual(color.hue, 0.0)
        self.assertEqual(color.css, "hsl(0, 70%, 50%)")

    def test_nth_class_follows_golden_angle(self):
        for name in ("a", "b", "c", "d"):
            self.registry.assign_color(name)
        self.assertAlmostEqual(self.registry.color_of("b").hue, 137.50776)
        self.assertAlmostEqual(self.registry.color_of("c").hue, 275.01552)
        self.assertAlmostEqual(self.registry.color_of("d").hue, (3 * 137.50776) % 360)

    def test_reassignment_is_stable(self):
        first = self.registry.assign_color("dog")
        self.registry.assign_color("cat")
        again = self.registry.assign_color("dog")
        self.assertEqual(first, again)
        self.assertEqual(len(self.registry), 2)

    def test_registration_is_logged_once(self):
        with self.assertLogs("annotation_core.class_registry", level="INFO") as logs:
            self.registry.assign_color("cat")
            self.registry.assign_color("cat")
        self.assertEqual(len(logs.records), 1)
        self.assertEqual(logs.records[0].levelname, "INFO")
        self.assertIn("Registered class 'cat'", logs.output[0])

    def test_names_are_case_sensitive(self):
        self.registry.assign_color("Car")
        self.registry.assign_color("car")
        self.assertEqual(self.registry.names(), ["Car", "car"])

    def test_same_sequence_gives_same_colors(self):
        other = ClassRegistry()
        for name in ("person", "bicycle", "car"):
            self.registry.assign_color(name)
            other.assign_color(name)
        self.assertEqual(self.registry.to_dict(), other.to_dict())

    def test_custom_saturation_and_lightness(self):
        registry = ClassRegistry(saturation=40, lightness=60)
        color = registry.assign_color("x")
        self.assertEqual(color.css, "hsl(0, 40%, 60%)")


class TestColorOf(unittest.TestCase):
    def test_unknown_name_returns_fallback(self):
        registry = ClassRegistry()
        color = registry.color_of("never-seen")
        self.assertIsInstance(color, FallbackColor)
        self.assertEqual(color.css, FALLBACK_COLOR_HEX)
        self.assertNotIn("never-seen", registry)

    def test_known_name_returns_assigned_color(self):
        registry = ClassRegistry()
        assigned = registry.assign_color("tree")
        self.assertIs(registry.color_of("tree"), assigned)


class TestClassColor(unittest.TestCase):
    def test_hex_for_red_hue(self):
        self.assertEqual(ClassColor(hue=0.0, saturation=100, lightness=50).hex, "#ff0000")

    def test_golden_angle_hue_wraps(self):
        self.assertLess(golden_angle_hue(100), 360.0)
        self.assertGreaterEqual(golden_angle_hue(100), 0.0)


if __name__ == "__main__":
    unittest.main()
