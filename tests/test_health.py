"""Tests for health scoring, indicators and the health bar."""

import random
import unittest

from lograil.config import DEFAULT_HEALTH_RANGES, HealthRange
from lograil.health import (
    HealthScorer,
    clamp_health,
    format_delta,
    health_bar,
    health_description,
    health_indicator,
    normalize_health,
)


class TestNormalization(unittest.TestCase):
    def test_clamp(self):
        self.assertEqual(clamp_health(150), 100)
        self.assertEqual(clamp_health(-250), -100)
        self.assertEqual(clamp_health(37), 37)

    def test_no_total_treats_raw_as_percent(self):
        self.assertEqual(normalize_health(42, 0), 42)
        self.assertEqual(normalize_health(300, 0), 100)
        self.assertEqual(normalize_health(-130, 0), -100)

    def test_scaled_by_total(self):
        self.assertEqual(normalize_health(25, 100), 25)
        self.assertEqual(normalize_health(50, 200), 25)
        self.assertEqual(normalize_health(150, 50), 100)

    def test_truncates_toward_zero(self):
        self.assertEqual(normalize_health(1, 3), 33)
        self.assertEqual(normalize_health(-1, 3), -33)
        self.assertEqual(normalize_health(2, 3), 66)
        self.assertEqual(normalize_health(-2, 3), -66)

    def test_always_in_range(self):
        rng = random.Random(1234)
        for _ in range(500):
            raw = rng.randint(-10_000, 10_000)
            total = rng.choice([0, 1, 7, 100, 1000, -50])
            value = normalize_health(raw, total)
            self.assertGreaterEqual(value, -100)
            self.assertLessEqual(value, 100)


class TestIndicator(unittest.TestCase):
    def test_band_boundaries(self):
        cases = {
            100: "💚",
            90: "💚",
            89: "💙",
            42: "🤍",
            10: "⚠️",
            1: "☠️",
            0: "⚫",
            -1: "🔴",
            -9: "🔴",
            -10: "🟠",
            -79: "⚫",
            -89: "⬛",
            -90: "💀",
            -100: "💀",
        }
        for health, indicator in cases.items():
            self.assertEqual(health_indicator(health), indicator, health)

    def test_below_every_band(self):
        self.assertEqual(health_indicator(-101), "❓")
        self.assertEqual(health_indicator(50, ()), "❓")

    def test_custom_table(self):
        table = (HealthRange(0, "+", "up"), HealthRange(-100, "-", "down"))
        self.assertEqual(health_indicator(5, table), "+")
        self.assertEqual(health_indicator(-5, table), "-")
        self.assertEqual(health_description(-5, table), "down")

    def test_description(self):
        self.assertEqual(health_description(95), DEFAULT_HEALTH_RANGES[0].description)
        self.assertEqual(health_description(-200), "")


class TestBar(unittest.TestCase):
    def test_extremes(self):
        self.assertEqual(health_bar(100), "[" + "█" * 20 + "]")
        self.assertEqual(health_bar(-100), "[" + "░" * 20 + "]")

    def test_midpoint(self):
        self.assertEqual(health_bar(0), "[" + "█" * 10 + "░" * 10 + "]")

    def test_partial(self):
        self.assertEqual(health_bar(42), "[" + "█" * 14 + "░" * 6 + "]")
        self.assertEqual(health_bar(-55), "[" + "█" * 4 + "░" * 16 + "]")

    def test_width_and_clamping(self):
        self.assertEqual(health_bar(0, width=10), "[" + "█" * 5 + "░" * 5 + "]")
        self.assertEqual(health_bar(500), health_bar(100))

    def test_delta(self):
        self.assertEqual(format_delta(5), "+5")
        self.assertEqual(format_delta(-10), "-10")
        self.assertEqual(format_delta(0), "0")


class TestHealthScorer:
    def test_declared_total_scenario(self):
        scorer = HealthScorer()
        scorer.declare_total(100)
        assert scorer.update(5) == 5
        assert scorer.update(20) == 25
        assert scorer.raw == 25
        assert scorer.normalized == 25

    def test_raw_is_never_clamped(self):
        scorer = HealthScorer()
        for _ in range(30):
            scorer.update(10)
        assert scorer.raw == 300
        assert scorer.normalized == 100

    def test_declare_mid_sequence_applies_forward(self):
        scorer = HealthScorer()
        scorer.update(40)
        assert scorer.normalized == 40
        scorer.declare_total(200)
        assert scorer.normalized == 40
        assert scorer.update(10) == 25
        assert scorer.total == 200

    def test_random_sequences_stay_bounded(self):
        rng = random.Random(99)
        for _ in range(50):
            scorer = HealthScorer()
            if rng.random() < 0.5:
                scorer.declare_total(rng.randint(1, 500))
            for _ in range(40):
                value = scorer.update(rng.randint(-60, 60))
                assert -100 <= value <= 100
