"""
IRT (Item Response Theory) Ability Model for the Adaptive Quiz Engine

Two-parameter logistic (2PL) model relating learner ability (theta),
item difficulty (b) and discrimination (a):

    P(correct) = 1 / (1 + exp(-a * (theta - b)))

Key contracts honored:
- Pure functions only: no I/O, no module state, safe to call concurrently
- Bounds are enforced inside every public function, never by callers:
  * theta in [-3.0, 3.0]
  * difficulty in [0.5, 4.5]
  * confidence in [1.0, 3.0]
- Theta updates are amplified by the item information p*(1-p): responses
  whose outcome was least predictable (p near 0.5) move theta the most
- Target probabilities are clamped into the open interval (0, 1) before the
  2PL inversion so the logarithm never sees 0 or infinity
"""

import math
import logging
from typing import Dict, Iterable, Mapping, Union

import numpy as np

logger = logging.getLogger(__name__)

THETA_MIN, THETA_MAX = -3.0, 3.0
DIFFICULTY_MIN, DIFFICULTY_MAX = 0.5, 4.5
CONFIDENCE_MIN, CONFIDENCE_MAX = 1.0, 3.0

DEFAULT_THETA_LEARNING_RATE = 0.1
DEFAULT_DIFFICULTY_LEARNING_RATE = 0.05
DEFAULT_TARGET_PROBABILITY = 0.7

# Keeps ln((1-p)/p) finite for target probabilities at or beyond 0 and 1
PROBABILITY_EPSILON = 1e-6

Response = Union[Mapping[str, object], Dict[str, object]]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_theta(theta: float) -> float:
    return clamp(theta, THETA_MIN, THETA_MAX)


def clamp_difficulty(difficulty: float) -> float:
    return clamp(difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX)


def sigmoid(x: float) -> float:
    """Logistic function, split on the sign of x so exp() never overflows."""
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def probability_correct(theta: float, difficulty: float,
                        discrimination: float = 1.0) -> float:
    """Probability of a correct response under the 2PL model"""
    return sigmoid(discrimination * (theta - difficulty))


def information_weight(theta: float, difficulty: float,
                       discrimination: float = 1.0) -> float:
    """p * (1 - p): how informative this item is at this ability level"""
    p = probability_correct(theta, difficulty, discrimination)
    return p * (1.0 - p)


def update_theta(theta: float, difficulty: float, is_correct: bool,
                 learning_rate: float = DEFAULT_THETA_LEARNING_RATE,
                 discrimination: float = 1.0) -> float:
    """
    Single-response ability update.

        error  = y - p
        theta' = theta + lr * error * (1 + p * (1 - p))

    Args:
        theta: current ability estimate
        difficulty: difficulty of the answered item
        is_correct: observed outcome
        learning_rate: step size (see adaptive_learning_rate)
        discrimination: item discrimination

    Returns:
        Updated theta clamped to [-3, 3]
    """
    p = probability_correct(theta, difficulty, discrimination)
    error = (1.0 if is_correct else 0.0) - p
    weight = p * (1.0 - p)
    updated = theta + learning_rate * error * (1.0 + weight)
    return clamp_theta(updated)


def update_difficulty(difficulty: float, responses: Iterable[Response],
                      learning_rate: float = DEFAULT_DIFFICULTY_LEARNING_RATE,
                      discrimination: float = 1.0) -> float:
    """
    Nudge an item difficulty from a batch of observed responses.

    Each response is a mapping with ``is_correct`` and ``theta`` (the learner's
    ability when answering). Errors are weighted by item information and
    normalised by the total information; when every response carries zero
    information the plain mean error is used instead.
    """
    responses = list(responses)
    if not responses:
        return difficulty

    outcomes = np.array([1.0 if r["is_correct"] else 0.0 for r in responses])
    thetas = np.array([float(r["theta"]) for r in responses])

    exponent = discrimination * (thetas - difficulty)
    z = np.exp(-np.abs(exponent))
    probabilities = np.where(exponent >= 0, 1.0 / (1.0 + z), z / (1.0 + z))
    errors = outcomes - probabilities
    weights = probabilities * (1.0 - probabilities)

    total_information = float(np.sum(weights))
    if total_information > 0:
        normalized_error = float(np.sum(errors * weights)) / total_information
    else:
        normalized_error = float(np.mean(errors))

    return clamp_difficulty(difficulty - learning_rate * normalized_error)


def estimate_optimal_difficulty(theta: float,
                                target_probability: float = DEFAULT_TARGET_PROBABILITY,
                                discrimination: float = 1.0) -> float:
    """
    Invert the 2PL formula: the difficulty at which a learner with this
    theta answers correctly with ``target_probability``.

        b = theta + (1 / a) * ln((1 - p) / p)
    """
    if discrimination <= 0:
        raise ValueError(f"discrimination must be positive, got {discrimination}")

    p = clamp(target_probability, PROBABILITY_EPSILON, 1.0 - PROBABILITY_EPSILON)
    if p != target_probability:
        logger.debug(f"Target probability {target_probability} clamped to {p}")

    difficulty = theta + (1.0 / discrimination) * math.log((1.0 - p) / p)
    return clamp_difficulty(difficulty)


def adaptive_learning_rate(base_rate: float, correct_ratio: float) -> float:
    """Learn faster when recent performance is lopsided, slower near 50%"""
    return base_rate * (1.0 + 2.0 * abs(correct_ratio - 0.5))


def target_probability_for(theta: float, base: float = 0.8, step: float = 0.05) -> float:
    """Success probability to aim for; capped at ``base`` for weaker learners"""
    return base - max(0.0, theta) * step


def confidence_for_attempts(total_attempts: int) -> float:
    """Confidence grows by 0.1 per attempt from 1.0 up to 3.0"""
    confidence = 1.0 + max(0, total_attempts) / 10.0
    return clamp(confidence, CONFIDENCE_MIN, CONFIDENCE_MAX)


def discrimination_for_confidence(confidence: float) -> float:
    """Slightly sharper discrimination once the estimate is better established"""
    confidence = clamp(confidence, CONFIDENCE_MIN, CONFIDENCE_MAX)
    return 1.0 + (confidence - 1.0) * 0.2
