"""Tests for the league to rule table lookup."""

from __future__ import annotations

import unittest

from xc_optimizer import scoring_rules
from xc_optimizer.errors import ConfigurationError


class TestResolve(unittest.TestCase):
    def test_every_league_resolves_to_a_table(self) -> None:
        for league, rule_name in scoring_rules.LEAGUES.items():
            with self.subTest(league=league):
                table = scoring_rules.resolve(league)
                self.assertIs(table, scoring_rules.SCORING_RULES[rule_name])
                self.assertTrue(table)
                for entry in table:
                    self.assertIn(entry["code"], ("od", "tri", "fai", "oar"))
                    self.assertGreater(entry["multiplier"], 0)

    def test_league_names(self) -> None:
        self.assertEqual(scoring_rules.get_scoring_rule_name("xc"), "XContest")
        self.assertEqual(scoring_rules.get_scoring_rule_name("fr"), "FFVL")
        self.assertEqual(scoring_rules.get_scoring_rule_name("wxc"), "WorldXC")

    def test_unknown_league_fails(self) -> None:
        for league in ("zz", "", None, "XContest"):
            with self.subTest(league=league):
                with self.assertRaises(ConfigurationError):
                    scoring_rules.resolve(league)

    def test_unknown_rule_name_fails(self) -> None:
        with self.assertRaises(ConfigurationError):
            scoring_rules.resolve_rule("Nowhere")

    def test_tables_are_read_only(self) -> None:
        entry = scoring_rules.resolve("xc")[0]
        with self.assertRaises(TypeError):
            entry["multiplier"] = 10
        with self.assertRaises(TypeError):
            scoring_rules.SCORING_RULES["XContest"] = ()


if __name__ == "__main__":
    unittest.main()
