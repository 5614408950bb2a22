from __future__ import annotations

import sys
import unittest
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from records import MonthlyPlanningData, Person, RecurrenceRule, WageSettings  # noqa: E402
from validation import rule_conflict_warnings, rule_issues, validate_planning_inputs, validate_rules  # noqa: E402
from wages import baseline_wages, validate_wages  # noqa: E402


def _rule(rule_id: str, **overrides) -> RecurrenceRule:
    payload = {"id": rule_id, "technician_id": "alice", "days": [1], "status": "off"}
    payload.update(overrides)
    return RecurrenceRule.from_dict(payload)


class RuleValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.roster = [Person(id="alice", name="Alice", role="MIT Tech")]

    def test_clean_rule_has_no_issues(self) -> None:
        self.assertEqual(rule_issues(_rule("r1"), self.roster), [])

    def test_structural_problems_are_reported(self) -> None:
        rule = _rule("r1", technician_id="ghost", days=[], status="asleep", end_date="2024-01-01", start_date="2024-02-01")
        kinds = {issue["type"] for issue in rule_issues(rule, self.roster)}
        self.assertEqual(kinds, {"unknown_technician", "no_days", "status", "window"})

    def test_every_other_needs_anchor_one_or_two(self) -> None:
        rule = _rule("r1", frequency="every-other", week_anchor=3)
        self.assertEqual([issue["type"] for issue in rule_issues(rule)], ["week_anchor"])

    def test_overlapping_rules_warn_that_first_wins(self) -> None:
        rules = [_rule("r1", days=[1, 2]), _rule("r2", days=[2, 3], status="on")]
        warnings = rule_conflict_warnings(rules)
        self.assertEqual(len(warnings), 1)
        self.assertEqual(warnings[0]["rule_ids"], ["r1", "r2"])
        self.assertEqual(warnings[0]["days"], [2])
        self.assertIn("first one wins", warnings[0]["message"])

    def test_disjoint_rules_do_not_warn(self) -> None:
        rules = [
            _rule("r1", end_date="2024-01-31"),
            _rule("r2", start_date="2024-02-01"),
            _rule("r3", frequency="every-other", week_anchor=1, days=[4]),
            _rule("r4", frequency="every-other", week_anchor=2, days=[4]),
            _rule("r5", technician_id="bob"),
        ]
        self.assertEqual(rule_conflict_warnings(rules), [])

    def test_validate_rules_combines_findings(self) -> None:
        report = validate_rules([_rule("r1"), _rule("r2", days=[])], self.roster)
        self.assertEqual([issue["type"] for issue in report["issues"]], ["no_days"])
        self.assertEqual(report["warnings"], [])


class PlanningValidationTests(unittest.TestCase):
    def test_rates_must_be_fractions(self) -> None:
        data = MonthlyPlanningData(leads_target=100, days_in_month=20, booking_rate=85)
        report = validate_planning_inputs(data)
        self.assertEqual([issue["field"] for issue in report["issues"]], ["booking_rate"])

    def test_missing_values_produce_warnings(self) -> None:
        report = validate_planning_inputs(MonthlyPlanningData())
        self.assertEqual({warning["field"] for warning in report["warnings"]}, {"days_in_month", "leads_target"})

    def test_drive_time_filling_the_shift_is_an_error(self) -> None:
        data = MonthlyPlanningData(leads_target=100, days_in_month=20, average_drive_time=9)
        fields = [issue["field"] for issue in validate_planning_inputs(data)["issues"]]
        self.assertIn("average_drive_time", fields)


class WageValidationTests(unittest.TestCase):
    def test_defaults_are_valid(self) -> None:
        self.assertEqual(validate_wages(baseline_wages()), {})

    def test_zero_and_inverted_wages_are_flagged(self) -> None:
        wages = WageSettings.from_dict(dict(baseline_wages().to_dict(), foreman_wage=0, avg_ot_wage=10, field_supervisor_bonus=0))
        problems = validate_wages(wages)
        self.assertEqual(set(problems), {"foreman_wage", "avg_ot_wage"})


if __name__ == "__main__":
    unittest.main()
