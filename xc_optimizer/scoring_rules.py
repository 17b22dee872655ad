"""
Scoring rule tables handed to the engine, and the league lookup.

Each table lists the circuits a league scores. Every entry carries the circuit
code the engine reports back, the multiplier applied to the distance, and when
the circuit must be closed, the closing threshold: either a fixed distance
(closingDistanceFixed, km) or a ratio of the scored distance
(closingDistanceRelative). minSide is the shortest leg of a FAI triangle as a
ratio of its perimeter.
"""
import logging
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError


logger = logging.getLogger(__name__)

RuleTable = Tuple[Mapping, ...]

FAI_MIN_SIDE = 0.28


def _circuit(name: str, code: str, multiplier: float, closing_fixed: Optional[float] = None,
             closing_relative: Optional[float] = None, min_side: Optional[float] = None) -> Mapping:
    entry = {'name': name, 'code': code, 'multiplier': multiplier}
    if closing_fixed is not None:
        entry['closingDistanceFixed'] = closing_fixed
    if closing_relative is not None:
        entry['closingDistanceRelative'] = closing_relative
    if min_side is not None:
        entry['minSide'] = min_side
    return MappingProxyType(entry)


def _czech(od: float, tri: float, fai: float) -> RuleTable:
    return (
        _circuit('Volne preleteni', 'od', od),
        _circuit('Plochy trojuhelnik', 'tri', tri, closing_relative=0.05),
        _circuit('FAI trojuhelnik', 'fai', fai, closing_relative=0.05, min_side=FAI_MIN_SIDE),
    )


def _uk_league(oar: float, tri: float, fai: float) -> RuleTable:
    return (
        _circuit('Open Distance', 'od', 1),
        _circuit('Out and Return', 'oar', oar, closing_fixed=0.8),
        _circuit('Flat Triangle', 'tri', tri, closing_fixed=0.8),
        _circuit('FAI Triangle', 'fai', fai, closing_fixed=0.8, min_side=FAI_MIN_SIDE),
    )


SCORING_RULES: Mapping[str, RuleTable] = MappingProxyType({
    'CzechLocal': _czech(1.0, 1.2, 1.4),
    'CzechEurope': _czech(1.0, 1.2, 1.4),
    'CzechOutsideEurope': _czech(0.8, 0.8, 1.0),
    'FFVL': (
        _circuit('Distance libre', 'od', 1),
        _circuit('Triangle plat', 'tri', 1.2, closing_relative=0.05),
        _circuit('Triangle FAI', 'fai', 1.4, closing_relative=0.05, min_side=FAI_MIN_SIDE),
    ),
    'Leonardo': (
        _circuit('Free Flight', 'od', 1.5),
        _circuit('Free Triangle', 'tri', 1.75, closing_relative=0.2),
        _circuit('FAI Triangle', 'fai', 2.0, closing_relative=0.2, min_side=FAI_MIN_SIDE),
    ),
    'Norway': (
        _circuit('Fri distanse', 'od', 1),
        _circuit('Flat trekant', 'tri', 1.7, closing_fixed=1.0),
        _circuit('FAI trekant', 'fai', 2.4, closing_fixed=1.0, min_side=FAI_MIN_SIDE),
    ),
    'UKClub': _uk_league(2.0, 2.0, 3.0),
    'UKInternational': _uk_league(1.5, 1.5, 2.0),
    'UKNational': _uk_league(1.7, 1.7, 2.5),
    'XContest': (
        _circuit('Free Flight', 'od', 1),
        _circuit('Free Triangle', 'tri', 1.2, closing_relative=0.2),
        _circuit('FAI Triangle', 'fai', 1.4, closing_relative=0.2, min_side=FAI_MIN_SIDE),
        _circuit('Closed Free Triangle', 'tri', 1.4, closing_relative=0.05),
        _circuit('Closed FAI Triangle', 'fai', 1.6, closing_relative=0.05, min_side=FAI_MIN_SIDE),
    ),
    'XContestPPG': (
        _circuit('Free Flight', 'od', 1),
        _circuit('Free Triangle', 'tri', 1.2, closing_relative=0.2),
        _circuit('FAI Triangle', 'fai', 1.4, closing_relative=0.2, min_side=FAI_MIN_SIDE),
    ),
    'WorldXC': (
        _circuit('Free Flight', 'od', 1),
        _circuit('Out and Return', 'oar', 1.2, closing_relative=0.05),
        _circuit('Free Triangle', 'tri', 1.2, closing_relative=0.05),
        _circuit('FAI Triangle', 'fai', 1.4, closing_relative=0.05, min_side=FAI_MIN_SIDE),
    ),
})

# League identifiers used by the application, mapped onto rule tables.
LEAGUES: Mapping[str, str] = MappingProxyType({
    'czl': 'CzechLocal',
    'cze': 'CzechEurope',
    'czo': 'CzechOutsideEurope',
    'fr': 'FFVL',
    'leo': 'Leonardo',
    'nor': 'Norway',
    'ukc': 'UKClub',
    'uki': 'UKInternational',
    'ukn': 'UKNational',
    'xc': 'XContest',
    'xcppg': 'XContestPPG',
    'wxc': 'WorldXC',
})


def get_scoring_rule_name(league: str) -> str:
    try:
        return LEAGUES[league]
    except (KeyError, TypeError):
        raise ConfigurationError(f"no Scoring Rules for league {league!r}") from None


def resolve_rule(rule_name: str) -> RuleTable:
    """Rule table for a rule name such as 'XContest'."""
    try:
        return SCORING_RULES[rule_name]
    except (KeyError, TypeError):
        raise ConfigurationError(f"unknown scoring rule {rule_name!r}") from None


def resolve(league: str) -> RuleTable:
    """
    Rule table for a league id such as 'xc'.

    Unknown leagues raise ConfigurationError, there is no default table.
    """
    rule_name = get_scoring_rule_name(league)
    logger.debug(f"League {league} scored with {rule_name} rules")
    return resolve_rule(rule_name)
