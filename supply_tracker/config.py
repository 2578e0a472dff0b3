"""
Supply Tracker Configuration
"""

import os


def _optional_int(name):
    value = os.environ.get(name)
    return int(value) if value else None


class Config:
    """Base configuration."""

    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")

    # Ledger
    LEDGER_BACKEND = os.environ.get("LEDGER_BACKEND", "simulated")  # simulated, web3
    LEDGER_RPC_URL = os.environ.get("LEDGER_RPC_URL", "http://127.0.0.1:8545")
    LEDGER_CHAIN_ID = _optional_int("LEDGER_CHAIN_ID")
    CONTRACT_ADDRESS = os.environ.get(
        "CONTRACT_ADDRESS", "0x5c3662570Cb5688007a6C5A395b7a3BefC952A0f"
    )

    # Signing identity attached at startup (optional)
    SIGNER_ADDRESS = os.environ.get("SIGNER_ADDRESS")
    SIGNER_PRIVATE_KEY = os.environ.get("SIGNER_PRIVATE_KEY")

    # Timeouts and limits
    CONFIRMATION_TIMEOUT = float(os.environ.get("CONFIRMATION_TIMEOUT", 120))
    RELOAD_CONCURRENCY = int(os.environ.get("RELOAD_CONCURRENCY", 8))
    SIMULATED_CONFIRMATION_DELAY = float(os.environ.get("SIMULATED_CONFIRMATION_DELAY", 0.5))

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        """Fail fast on missing ledger settings."""
        if cls.LEDGER_BACKEND == "web3" and (not cls.LEDGER_RPC_URL or not cls.CONTRACT_ADDRESS):
            raise ValueError("Please set LEDGER_RPC_URL and CONTRACT_ADDRESS for the web3 backend")


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    TESTING = False
    LEDGER_BACKEND = os.environ.get("LEDGER_BACKEND", "web3")
    LEDGER_RPC_URL = os.environ.get("LEDGER_RPC_URL")
    CONTRACT_ADDRESS = os.environ.get("CONTRACT_ADDRESS")


class TestingConfig(Config):
    """Testing configuration."""

    DEBUG = True
    TESTING = True
    LEDGER_BACKEND = "simulated"
    SIMULATED_CONFIRMATION_DELAY = 0.0
    SIGNER_ADDRESS = "0x00000000000000000000000000000000000000aa"
    SIGNER_PRIVATE_KEY = None


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config():
    """Get configuration based on environment."""
    env = os.environ.get("TRACKER_ENV", "development")
    return config.get(env, config["default"])
