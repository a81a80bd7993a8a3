"""Exceptions raised by the bandit arena."""


class BanditArenaError(Exception):
    """Base class for all arena errors."""


class ConfigurationError(BanditArenaError, ValueError):
    """Invalid arm set: bad arm count, duplicate ids, unknown family or out-of-domain parameters.

    Always raised before the arm registry (or anything depending on it) is touched.
    """


class StrategyInitializationError(BanditArenaError, RuntimeError):
    """A strategy type is unknown or its construction failed."""

    def __init__(self, message, failures=None):
        super().__init__(message)
        # type id -> reason, for every strategy that could not be built
        self.failures = dict(failures or {})


class StateLookupError(BanditArenaError, LookupError):
    """The optimal policy was asked about a (t, state) its backward induction never reached."""

    def __init__(self, t, state, reason):
        super().__init__(f"No optimal action for t={t}, state={state}: {reason}")
        self.t = t
        self.state = state
