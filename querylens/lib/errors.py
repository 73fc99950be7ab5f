"""Exception types raised inside the correlation core."""


class QueryLensError(Exception):
  """Base class for QueryLens errors."""

  pass


class PlanParseError(QueryLensError):
  """Raised when a plan document cannot be turned into an operator tree."""

  pass


class MalformedPlanError(PlanParseError):
  """Raised when plan text is not a fragment-id -> plan-node mapping."""

  def __init__(self, message: str, plan_excerpt: str | None = None):
    super().__init__(message)
    self.message = message
    self.plan_excerpt = plan_excerpt


class InvalidReferenceError(QueryLensError):
  """Raised when nested input metadata has the wrong shape for a reference."""

  pass
