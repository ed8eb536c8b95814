"""Built-in workflow steps.

Importing this package registers every built-in step type with the
default registry.
"""

from . import assignment, course, group, log, script  # noqa: F401
