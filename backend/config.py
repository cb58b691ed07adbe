import os
from typing import Dict, Tuple


class Config:
    """Configuration class for the Adaptive Quiz Engine"""

    # Database Configuration
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./adaptive_quiz.db")

    # IRT Ability Model Configuration
    IRT_CONFIG = {
        "theta_learning_rate": float(os.getenv("THETA_LEARNING_RATE", "0.1")),
        "difficulty_learning_rate": float(os.getenv("DIFFICULTY_LEARNING_RATE", "0.05")),
        "base_target_probability": float(os.getenv("TARGET_PROBABILITY", "0.8")),
        "strong_learner_step": float(os.getenv("STRONG_LEARNER_STEP", "0.05")),
        "initial_theta": 0.0,
    }

    # Content history / avoidance context
    HISTORY_CONFIG = {
        "window": int(os.getenv("HISTORY_WINDOW", "50")),
        "recent_tier_end": 5,
        "mid_tier_end": 20,
        "older_tier_end": 50,
        "cache_max_size": int(os.getenv("HISTORY_CACHE_SIZE", "100")),
        "cache_bucket_minutes": int(os.getenv("HISTORY_CACHE_BUCKET_MINUTES", "10")),
    }

    # Skill selection policy
    SELECTION_CONFIG = {
        "exploit_probability": float(os.getenv("WEAK_SKILL_PROBABILITY", "0.7")),
        "weak_fraction": float(os.getenv("WEAK_SKILL_FRACTION", "0.3")),
        "random_seed": int(os.environ["SELECTION_SEED"]) if os.getenv("SELECTION_SEED") else None,
    }

    # External question generation provider
    GENERATION_CONFIG = {
        "api_key": os.getenv("GENERATION_API_KEY", ""),
        "endpoint": os.getenv("GENERATION_API_ENDPOINT", "https://api.deepseek.com/v1/chat/completions"),
        "model": os.getenv("GENERATION_MODEL", "deepseek-chat"),
        "timeout": float(os.getenv("GENERATION_TIMEOUT", "15")),
        "temperature": float(os.getenv("GENERATION_TEMPERATURE", "0.7")),
        "max_tokens": int(os.getenv("GENERATION_MAX_TOKENS", "1000")),
        "subcall_cache_size": 1000,
        "duplicate_window_days": int(os.getenv("DUPLICATE_WINDOW_DAYS", "30")),
        "max_generation_attempts": int(os.getenv("MAX_GENERATION_ATTEMPTS", "3")),
        "expose_correct_answer": os.getenv("EXPOSE_CORRECT_ANSWER", "true").lower() == "true",
    }

    # Open interval a target probability must fall in
    PROBABILITY_BOUNDS: Tuple[float, float] = (0.0, 1.0)

    # API Configuration
    API_CONFIG = {
        "host": os.getenv("API_HOST", "0.0.0.0"),
        "port": int(os.getenv("API_PORT", "8000")),
        "cors_origins": os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
        "title": "Adaptive Quiz API",
        "version": "1.0.0"
    }

    # Logging Configuration
    LOGGING_CONFIG = {
        "level": os.getenv("LOG_LEVEL", "INFO"),
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "log_file": os.getenv("LOG_FILE", "adaptive_quiz.log"),
    }

    @classmethod
    def get_irt_config(cls):
        """Get IRT configuration"""
        return cls.IRT_CONFIG

    @classmethod
    def get_history_config(cls) -> Dict:
        return cls.HISTORY_CONFIG

    @classmethod
    def get_selection_config(cls) -> Dict:
        return cls.SELECTION_CONFIG

    @classmethod
    def get_generation_config(cls) -> Dict:
        return cls.GENERATION_CONFIG

    @classmethod
    def validate_config(cls):
        """Validate configuration values"""
        errors = []
        low, high = cls.PROBABILITY_BOUNDS

        if not low < cls.IRT_CONFIG["base_target_probability"] < high:
            errors.append("TARGET_PROBABILITY must be strictly between 0 and 1")

        if cls.IRT_CONFIG["theta_learning_rate"] <= 0:
            errors.append("THETA_LEARNING_RATE must be positive")

        if cls.IRT_CONFIG["difficulty_learning_rate"] <= 0:
            errors.append("DIFFICULTY_LEARNING_RATE must be positive")

        if not 0.0 <= cls.SELECTION_CONFIG["exploit_probability"] <= 1.0:
            errors.append("WEAK_SKILL_PROBABILITY must be within [0, 1]")

        if not 0.0 < cls.SELECTION_CONFIG["weak_fraction"] <= 1.0:
            errors.append("WEAK_SKILL_FRACTION must be within (0, 1]")

        if cls.HISTORY_CONFIG["window"] < cls.HISTORY_CONFIG["older_tier_end"]:
            errors.append("HISTORY_WINDOW must cover all three history tiers (>= 50)")

        if cls.HISTORY_CONFIG["cache_max_size"] <= 0:
            errors.append("HISTORY_CACHE_SIZE must be positive")

        if not 1 <= cls.HISTORY_CONFIG["cache_bucket_minutes"] <= 60:
            errors.append("HISTORY_CACHE_BUCKET_MINUTES must be between 1 and 60")

        if cls.GENERATION_CONFIG["timeout"] <= 0:
            errors.append("GENERATION_TIMEOUT must be positive")

        if cls.GENERATION_CONFIG["max_generation_attempts"] < 1:
            errors.append("MAX_GENERATION_ATTEMPTS must be at least 1")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True


def get_config():
    """Get configuration based on environment"""
    return Config()
