"""Error taxonomy for the quiz engine.

Only ProviderError is recovered internally (by falling back to the local
question generator). Everything else propagates to the caller unmodified and
is mapped to an HTTP status in main.py.
"""


class QuizError(Exception):
    """Base class for all quiz engine errors"""


class ValidationError(QuizError):
    """Client supplied an invalid value (bad option index, mismatched ids)"""


class InvalidChoiceError(ValidationError):
    """Selected option index outside the question's options"""


class NotFoundError(QuizError):
    """Unknown question, category, skill or learner"""


class AlreadyAnsweredError(QuizError):
    """A question record can move from unanswered to answered only once"""


class ProviderError(QuizError):
    """External question generation failed or returned an unusable payload"""


class ProviderNotConfiguredError(ProviderError):
    """No API key configured; the local generator is used without a network call"""


class PersistenceError(QuizError):
    """Storage failure; the surrounding transaction has been rolled back"""
