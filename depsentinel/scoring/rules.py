"""Per-ecosystem criticality rule tables.

Every table is evaluated in the same order: usage band, directness, scope,
critical allow-list, instability, conflict signals, then the ecosystem's own
red flags.
"""

from __future__ import annotations

import re

from depsentinel.models import Dependency, Ecosystem, Scope
from depsentinel.scoring.evaluator import Rule, RuleTable

_UNSTABLE_RE = re.compile(
    r"(?i)(snapshot|alpha|beta|preview|canary|nightly|milestone"
    r"|(?:\d|[.\-_])rc\d*\b|\.dev\d*$|-dev\b|-m\d+$|\d(?:a|b)\d+$"
    r"|-\d{14}-[0-9a-f]{12}$)"
)

GO_CRITICAL = (
    "github.com/gin-gonic/gin",
    "github.com/gorilla/mux",
    "github.com/labstack/echo",
    "github.com/gofiber/fiber",
    "github.com/stretchr/testify",
    "gorm.io/gorm",
    "go.uber.org/zap",
    "google.golang.org/grpc",
)
JS_FRAMEWORKS = ("react", "vue", "angular", "express", "next", "webpack", "typescript", "babel")
JS_UTILITIES = ("lodash", "ramda", "date-fns", "axios")
PYTHON_FRAMEWORKS = (
    "django",
    "flask",
    "fastapi",
    "starlette",
    "sqlalchemy",
    "celery",
    "pydantic",
    "numpy",
    "pandas",
    "tensorflow",
    "torch",
)
PYTHON_UTILITIES = ("requests", "httpx", "urllib3", "click", "pyyaml", "boto3", "attrs", "python-dateutil")
RUBY_CRITICAL = ("rails", "activerecord", "activesupport", "actionpack", "bundler", "rake", "nokogiri")
RAILS_COMPONENTS = frozenset(
    {
        "actioncable",
        "actionmailbox",
        "actionmailer",
        "actionpack",
        "actiontext",
        "actionview",
        "activejob",
        "activemodel",
        "activerecord",
        "activestorage",
        "activesupport",
        "railties",
    }
)
JAVA_CRITICAL = (
    "spring-core",
    "spring-boot-starter",
    "junit",
    "log4j-core",
    "logback-classic",
    "jackson-databind",
    "hibernate-core",
    "commons-lang3",
    "guava",
)
JAVA_SECURITY_SENSITIVE = ("struts", "commons-collections", "jackson", "spring-security")

# Packages maintained by the language team itself
OFFICIAL_PACKAGES: dict[Ecosystem, tuple[str, ...]] = {
    Ecosystem.GO: ("golang.org/x/",),
    Ecosystem.PYTHON: ("typing-extensions", "importlib-metadata", "importlib-resources", "backports"),
    Ecosystem.JAVASCRIPT: ("@types/",),
    Ecosystem.JAVA: ("org.jetbrains.kotlin:kotlin-stdlib", "org.scala-lang:scala-library"),
    Ecosystem.RUBY: (),
}

# Upgrade-risk allow-lists; independent of the criticality tables above
RISK_CRITICAL_PACKAGES: dict[Ecosystem, tuple[str, ...]] = {
    Ecosystem.GO: (
        "github.com/gin-gonic/gin",
        "github.com/gorilla/mux",
        "github.com/labstack/echo",
        "github.com/gofiber/fiber",
        "github.com/stretchr/testify",
        "gorm.io/gorm",
        "go.uber.org/zap",
    ),
    Ecosystem.JAVASCRIPT: ("react", "vue", "angular", "express", "webpack", "typescript", "babel"),
    Ecosystem.PYTHON: (
        "django",
        "flask",
        "fastapi",
        "requests",
        "numpy",
        "pandas",
        "sqlalchemy",
        "pytest",
        "celery",
        "gunicorn",
        "uwsgi",
        "pillow",
        "psycopg2",
        "mysqlclient",
    ),
    Ecosystem.RUBY: RUBY_CRITICAL,
    Ecosystem.JAVA: JAVA_CRITICAL,
}


def is_unstable(version: str | None) -> bool:
    return bool(version) and bool(_UNSTABLE_RE.search(version))


def matches_list(coordinate: str, names: tuple[str, ...]) -> bool:
    """Case-insensitive substring match of *coordinate* against *names*."""
    lowered = coordinate.lower()
    return any(name.lower() in lowered for name in names)


def is_official(coordinate: str, ecosystem: Ecosystem) -> bool:
    return matches_list(coordinate, OFFICIAL_PACKAGES.get(ecosystem, ()))


def _version(dep: Dependency) -> str | None:
    return dep.effective_version


# ── shared rule groups ───────────────────────────────────────────────────

USAGE_RULES = (
    Rule("usage.high", 3, "High usage ({usage_count} import sites)", lambda d, c: d.usage_count >= 10),
    Rule("usage.medium", 2, "Moderate usage ({usage_count} import sites)", lambda d, c: 5 <= d.usage_count < 10),
    Rule("usage.low", 1, "Low usage ({usage_count} import sites)", lambda d, c: 1 <= d.usage_count < 5),
)

DIRECT_RULE = Rule("direct", 2, "Direct dependency", lambda d, c: d.is_direct)

SCOPE_RULES = (
    Rule(
        "scope.runtime",
        1,
        "Runtime-shaping scope ({scope})",
        lambda d, c: d.scope in (Scope.COMPILE, Scope.RUNTIME),
    ),
    Rule("scope.system", 2, "System scope ({scope})", lambda d, c: d.scope is Scope.SYSTEM),
    Rule(
        "scope.non_runtime",
        -1,
        "Non-runtime scope ({scope})",
        lambda d, c: d.scope in (Scope.TEST, Scope.DEV, Scope.PROVIDED, Scope.OPTIONAL),
    ),
)


def _allow_list(rule_id: str, weight: int, message: str, names: tuple[str, ...]) -> Rule:
    return Rule(rule_id, weight, message, lambda d, c: matches_list(d.coordinate, names))


def _instability(weight: int) -> Rule:
    return Rule("unstable", weight, "Unstable version ({version})", lambda d, c: is_unstable(_version(d)))


CONFLICT_RULES = (
    Rule(
        "conflict.versions",
        2,
        "Version conflict across declarations ({declared_versions})",
        lambda d, c: d.has_version_conflict,
    ),
    Rule("conflict.evicted", 1, "Evicted by resolver in favour of {evicted_by}", lambda d, c: d.evicted),
    Rule("conflict.replaced", 1, "Replaced ({replacements})", lambda d, c: bool(d.replacements)),
)


def _table(
    ecosystem: Ecosystem,
    allow_list: tuple[Rule, ...],
    red_flags: tuple[Rule, ...],
    instability_weight: int = 1,
) -> RuleTable:
    return RuleTable(
        ecosystem=ecosystem,
        rules=(
            *USAGE_RULES,
            DIRECT_RULE,
            *SCOPE_RULES,
            *allow_list,
            _instability(instability_weight),
            *CONFLICT_RULES,
            *red_flags,
        ),
    )


GO_RULES = _table(
    Ecosystem.GO,
    (_allow_list("critical", 2, "Well-known critical Go module", GO_CRITICAL),),
    (
        Rule("go.cgo", 2, "Imported from cgo code", lambda d, c: "cgo" in d.usage.kinds),
        Rule("go.dot_import", 1, "Dot import", lambda d, c: "dot" in d.usage.kinds),
        Rule("go.blank_import", 1, "Blank import for side effects", lambda d, c: "blank" in d.usage.kinds),
        Rule("go.build_tags", 1, "Imported under build constraints", lambda d, c: bool(d.usage.build_tags)),
        Rule(
            "go.extended_stdlib",
            -1,
            "Extended standard library (golang.org/x)",
            lambda d, c: d.coordinate.startswith("golang.org/x/"),
        ),
    ),
)

JAVASCRIPT_RULES = _table(
    Ecosystem.JAVASCRIPT,
    (
        _allow_list("framework", 2, "Core framework or build tool", JS_FRAMEWORKS),
        _allow_list("utility", 1, "Widely used utility library", JS_UTILITIES),
    ),
    (
        Rule("js.side_effect", 1, "Side-effect import", lambda d, c: "side_effect" in d.usage.kinds),
        Rule("js.dynamic_only", -1, "Only imported dynamically", lambda d, c: d.usage.dynamic_only),
        Rule("js.type_only", -1, "Only imported for types", lambda d, c: d.usage.type_only),
    ),
)

PYTHON_RULES = _table(
    Ecosystem.PYTHON,
    (
        _allow_list("framework", 2, "Core framework", PYTHON_FRAMEWORKS),
        _allow_list("utility", 1, "Widely used utility library", PYTHON_UTILITIES),
    ),
    (
        Rule(
            "python.conditional_only",
            -1,
            "Only imported conditionally",
            lambda d, c: d.usage.conditional_only,
        ),
    ),
)

RUBY_RULES = _table(
    Ecosystem.RUBY,
    (_allow_list("critical", 2, "Well-known critical gem", RUBY_CRITICAL),),
    (
        Rule(
            "ruby.rails_component",
            1,
            "Rails component in a Rails application",
            lambda d, c: c.rails_project and d.coordinate in RAILS_COMPONENTS,
        ),
        Rule(
            "ruby.unconstrained",
            1,
            "Direct gem without a version constraint",
            lambda d, c: d.is_direct and not d.declared_version,
        ),
    ),
)

JAVA_RULES = _table(
    Ecosystem.JAVA,
    (
        _allow_list("critical", 2, "Well-known critical library", JAVA_CRITICAL),
        _allow_list("security_sensitive", 2, "Security-sensitive library", JAVA_SECURITY_SENSITIVE),
    ),
    (Rule("java.exclusions", 1, "Declares exclusions", lambda d, c: bool(d.exclusions)),),
    instability_weight=2,
)

RULE_TABLES: dict[Ecosystem, RuleTable] = {
    Ecosystem.GO: GO_RULES,
    Ecosystem.JAVASCRIPT: JAVASCRIPT_RULES,
    Ecosystem.PYTHON: PYTHON_RULES,
    Ecosystem.RUBY: RUBY_RULES,
    Ecosystem.JAVA: JAVA_RULES,
}
