from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import Literal, Optional

from opp_match import InvalidArgumentError, ValidatedModel, ValidationError


@dataclass(frozen=True)
class PollingConfig(ValidatedModel):
    interval_ms: int = field(default=1000, metadata={"gt": 0})
    threshold: float = field(default=50.0, metadata={"ge": 0, "le": 100})
    mode: Literal["fast", "slow"] = "fast"
    label: str = field(default="default", metadata={"non_empty": True})
    region: Optional[str] = field(default=None, metadata={"choices": ["us-east-1", "eu-west-1"]})
    enabled: bool = True


@dataclass(frozen=True)
class Window(ValidatedModel):
    start: int = 0
    end: int = 1

    def model_validate(self) -> None:
        if self.end <= self.start:
            raise ValidationError("end must be greater than start.")


class ValidatedModelTests(unittest.TestCase):
    def test_valid_data_passes(self) -> None:
        config = PollingConfig(interval_ms=5, threshold=99.5, mode="slow", region="eu-west-1")
        self.assertEqual(config.interval_ms, 5)
        self.assertEqual(config.mode, "slow")

    def test_float_accepts_int(self) -> None:
        self.assertEqual(PollingConfig(threshold=70).threshold, 70)

    def test_invalid_type_raises(self) -> None:
        with self.assertRaises(ValidationError):
            PollingConfig(interval_ms="5")  # type: ignore[arg-type]

    def test_bool_rejected_for_numbers(self) -> None:
        with self.assertRaises(ValidationError):
            PollingConfig(interval_ms=True)
        with self.assertRaises(ValidationError):
            PollingConfig(threshold=False)

    def test_bool_field_rejects_strings(self) -> None:
        with self.assertRaises(ValidationError):
            PollingConfig(enabled="yes")  # type: ignore[arg-type]

    def test_range_constraints(self) -> None:
        PollingConfig(threshold=0)
        PollingConfig(threshold=100)
        with self.assertRaises(ValidationError):
            PollingConfig(threshold=100.01)
        with self.assertRaises(ValidationError) as ctx:
            PollingConfig(interval_ms=0)
        self.assertIn("interval_ms", str(ctx.exception))
        self.assertIn(">", str(ctx.exception))

    def test_literal_and_choices(self) -> None:
        with self.assertRaises(ValidationError):
            PollingConfig(mode="turbo")  # type: ignore[arg-type]
        with self.assertRaises(ValidationError):
            PollingConfig(region="ap-south-1")
        self.assertIsNone(PollingConfig(region=None).region)

    def test_non_empty_whitespace_only_raises(self) -> None:
        with self.assertRaises(ValidationError):
            PollingConfig(label="   ")

    def test_model_level_hook_raises(self) -> None:
        with self.assertRaises(ValidationError):
            Window(start=3, end=3)

    def test_with_changes_returns_validated_copy(self) -> None:
        config = PollingConfig()
        updated = config.with_changes({"threshold": 80})

        self.assertEqual(updated.threshold, 80)
        self.assertEqual(config.threshold, 50.0)
        with self.assertRaises(ValidationError):
            config.with_changes({"threshold": -1})
        with self.assertRaises(ValidationError) as ctx:
            config.with_changes({"thresold": 80})
        self.assertIn("thresold", str(ctx.exception))

    def test_to_dict(self) -> None:
        self.assertEqual(
            Window(start=1, end=2).to_dict(),
            {"start": 1, "end": 2},
        )

    def test_validation_error_is_invalid_argument(self) -> None:
        self.assertTrue(issubclass(ValidationError, InvalidArgumentError))
        self.assertTrue(issubclass(ValidationError, ValueError))


if __name__ == "__main__":
    unittest.main()
