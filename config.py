# config.py - Configuration management for the service mapping engine

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class AppConfig:
    """
    Centralized configuration management for the application
    """

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./service_mapping.db")

    # Provider selection - only providers with this status are matched
    PROVIDER_ACTIVE_STATUS: str = os.getenv("PROVIDER_ACTIVE_STATUS", "ativo")

    # Matching policy. These are tunable heuristics, not derived constants.
    AUTO_ACCEPT_THRESHOLD: int = int(os.getenv("AUTO_ACCEPT_THRESHOLD", "85"))
    HIGH_MATCH_THRESHOLD: int = int(os.getenv("HIGH_MATCH_THRESHOLD", "60"))
    MEDIUM_MATCH_THRESHOLD: int = int(os.getenv("MEDIUM_MATCH_THRESHOLD", "40"))
    MAX_SUGGESTIONS: int = int(os.getenv("MAX_SUGGESTIONS", "3"))

    # Persistence batching
    BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "100"))
    BATCH_WRITE_TIMEOUT_SECONDS: float = float(os.getenv("BATCH_WRITE_TIMEOUT_SECONDS", "30"))

    # Report output directory (CSV / markdown side artifacts)
    EXPORT_DIR: str = os.getenv("EXPORT_DIR", "data")

    # Server Configuration
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Optional shared secret for the run endpoint
    ADMIN_API_KEY: Optional[str] = os.getenv("ADMIN_API_KEY")

    @classmethod
    def validate_config(cls) -> bool:
        """
        Validate that required configuration is present and consistent
        """
        problems = []

        if not cls.DATABASE_URL:
            problems.append("DATABASE_URL is empty")

        if not (0 < cls.MEDIUM_MATCH_THRESHOLD < cls.HIGH_MATCH_THRESHOLD <= 100):
            problems.append(
                f"match thresholds out of order (medium={cls.MEDIUM_MATCH_THRESHOLD}, "
                f"high={cls.HIGH_MATCH_THRESHOLD})"
            )

        if not (0 < cls.AUTO_ACCEPT_THRESHOLD <= 100):
            problems.append(f"AUTO_ACCEPT_THRESHOLD must be in 1..100, got {cls.AUTO_ACCEPT_THRESHOLD}")

        if cls.MAX_SUGGESTIONS < 1 or cls.MAX_SUGGESTIONS > 3:
            problems.append(f"MAX_SUGGESTIONS must be in 1..3, got {cls.MAX_SUGGESTIONS}")

        if cls.BATCH_SIZE < 1:
            problems.append(f"BATCH_SIZE must be positive, got {cls.BATCH_SIZE}")

        if problems:
            print(f"❌ Invalid configuration: {'; '.join(problems)}")
            return False

        return True

    @classmethod
    def get_matching_config(cls) -> dict:
        """
        Get matching-policy configuration
        """
        return {
            "auto_accept_threshold": cls.AUTO_ACCEPT_THRESHOLD,
            "high_match_threshold": cls.HIGH_MATCH_THRESHOLD,
            "medium_match_threshold": cls.MEDIUM_MATCH_THRESHOLD,
            "max_suggestions": cls.MAX_SUGGESTIONS,
            "batch_size": cls.BATCH_SIZE,
            "batch_write_timeout_seconds": cls.BATCH_WRITE_TIMEOUT_SECONDS,
            "environment": cls.ENVIRONMENT,
        }
