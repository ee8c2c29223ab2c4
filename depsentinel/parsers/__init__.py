"""Import all parser modules so they self-register in PARSER_REGISTRY."""

from depsentinel.parsers import gemfile  # noqa: F401
from depsentinel.parsers import go_mod  # noqa: F401
from depsentinel.parsers import gradle_build  # noqa: F401
from depsentinel.parsers import gradle_catalog  # noqa: F401
from depsentinel.parsers import maven_pom  # noqa: F401
from depsentinel.parsers import package_json  # noqa: F401
from depsentinel.parsers import pip_requirements  # noqa: F401
from depsentinel.parsers import pipfile  # noqa: F401
from depsentinel.parsers import pyproject_toml  # noqa: F401
from depsentinel.parsers import python_lock  # noqa: F401
from depsentinel.parsers import sbt_build  # noqa: F401
