"""
Intake step definitions, submission checks and the sliding-window limiter.
"""

import unittest
from datetime import date

from app.rate_limit import RateLimiter
from intakegate import InvalidSubmissionError, intake_steps, validate_responses


class TestIntakeSteps(unittest.TestCase):

    def setUp(self):
        self.steps = intake_steps(today=date(2026, 3, 1))

    def test_year_options(self):
        fields = {f["id"]: f for f in self.steps[0]["fields"]}
        self.assertEqual(
            fields["taxYears"]["options"],
            ["2026", "2025", "2024", "2023", "2022", "2021", "2020"],
        )

    def test_complete_answers_pass(self):
        answers = {"fullName": "Ada", "taxYears": "2025"}
        self.assertIs(validate_responses(answers, self.steps), answers)

    def test_missing_or_blank_required(self):
        cases = [
            ({"taxYears": "2025"}, "MISSING_FIELD:fullName"),
            ({"fullName": "   ", "taxYears": "2025"}, "MISSING_FIELD:fullName"),
            ({"fullName": "Ada", "taxYears": []}, "MISSING_FIELD:taxYears"),
        ]
        for answers, code in cases:
            with self.subTest(answers=answers):
                with self.assertRaises(InvalidSubmissionError) as ctx:
                    validate_responses(answers, self.steps)
                self.assertEqual(ctx.exception.code, code)
                self.assertEqual(ctx.exception.http_status, 400)

    def test_non_object_rejected(self):
        with self.assertRaises(InvalidSubmissionError) as ctx:
            validate_responses(["Ada"], self.steps)
        self.assertEqual(ctx.exception.code, "INVALID_SUBMISSION")


class FakeTime:

    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


class TestRateLimiter(unittest.TestCase):

    def setUp(self):
        self.time = FakeTime()
        self.limiter = RateLimiter(3, window_seconds=60, clock=self.time)

    def test_limit_per_key(self):
        results = [self.limiter.allow("10.0.0.1") for _ in range(4)]
        self.assertEqual(results, [True, True, True, False])
        self.assertTrue(self.limiter.allow("10.0.0.2"))

    def test_window_slides(self):
        for _ in range(3):
            self.limiter.allow("k")
        result = self.limiter.check("k")
        self.assertFalse(result.allowed)
        self.assertEqual(result.retry_after, 60.0)

        self.time.t += 60
        self.assertTrue(self.limiter.allow("k"))

    def test_reset_and_cleanup(self):
        self.limiter.allow("a")
        self.limiter.allow("b")
        self.limiter.reset("a")
        self.time.t += 61
        self.assertEqual(self.limiter.cleanup_expired(), 1)

    def test_idle_keys_pruned_during_checks(self):
        limiter = RateLimiter(3, window_seconds=60, clock=self.time, cleanup_every=2)
        limiter.allow("old")
        self.time.t += 61
        limiter.allow("new")

        # "old" was dropped by the second check, so nothing is left to clean
        self.assertEqual(limiter.cleanup_expired(), 0)


if __name__ == "__main__":
    unittest.main()
