"""Planning errors.

Every error here is fatal for the planning run: it propagates out of
``TransferPlanner.plan()`` and nothing already handed to the refiner is
rolled back. Recoverable conditions (an optional input with no replica, a
stage-out destination that already holds the file) are logged instead.
"""


class PlanningError(RuntimeError):
    """Base class for errors that abort a planning run."""


class MissingSiteError(PlanningError):
    """A referenced site is absent from the site store."""


class MissingFileServerError(PlanningError):
    """A directory role / operation combination has no file server."""


class UnresolvableInputError(PlanningError):
    """A required logical file has no known replica."""


class InvalidLocatorError(PlanningError):
    """A locator uses a scheme that cannot be used where it appears."""


class LayoutError(PlanningError):
    """The output layout allocator cannot produce a path."""


def site_not_found_msg(site: str) -> str:
    return f"No matching entry for site {site} found in the site catalog"


def missing_server_msg(job_name: str | None, role: str, operation: str, site: str) -> str:
    prefix = f"For job ({job_name}). " if job_name else ""
    return f"{prefix}File server not specified for {operation} operation on {role} filesystem for site: {site}"
