"""Per-ecosystem version comparators behind one ``compare(from, to)`` interface."""

from depsentinel.exceptions import UnsupportedEcosystemError
from depsentinel.models import Ecosystem, VersionDiff
from depsentinel.versions.base import VersionComparator
from depsentinel.versions.go import GoComparator
from depsentinel.versions.pep440 import Pep440Comparator
from depsentinel.versions.ruby import RubyGemsComparator
from depsentinel.versions.semver import SemverComparator

COMPARATORS: dict[Ecosystem, VersionComparator] = {
    Ecosystem.GO: GoComparator(),
    Ecosystem.JAVA: SemverComparator(Ecosystem.JAVA),
    Ecosystem.JAVASCRIPT: SemverComparator(Ecosystem.JAVASCRIPT),
    Ecosystem.PYTHON: Pep440Comparator(),
    Ecosystem.RUBY: RubyGemsComparator(),
}


def comparator_for(ecosystem: Ecosystem | str) -> VersionComparator:
    if isinstance(ecosystem, str):
        ecosystem = Ecosystem.parse(ecosystem)
    try:
        return COMPARATORS[ecosystem]
    except KeyError:
        raise UnsupportedEcosystemError(str(ecosystem)) from None


def compare(ecosystem: Ecosystem | str, from_version: str, to_version: str) -> VersionDiff:
    return comparator_for(ecosystem).compare(from_version, to_version)


__all__ = [
    "COMPARATORS",
    "GoComparator",
    "Pep440Comparator",
    "RubyGemsComparator",
    "SemverComparator",
    "VersionComparator",
    "comparator_for",
    "compare",
]
