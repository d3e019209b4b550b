"""
Application configuration using Pydantic Settings.
"""

import os
from decimal import Decimal
from functools import lru_cache
from pydantic_settings import BaseSettings

from fincalc.kernel import SolverConfig


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("APP_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "FinCalc"
    debug: bool = False
    log_level: str = "INFO"
    app_env: str = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Cash-flow root finder (IRR, real estate, private credit)
    solver_max_iterations: int = 50
    solver_tolerance: Decimal = Decimal("0.0000001")
    solver_rate_floor: Decimal = Decimal("-0.99")
    solver_rate_ceiling: Decimal = Decimal("10.0")
    solver_default_guess: Decimal = Decimal("0.10")

    # Bond yields are solved in a tighter band
    bond_solver_max_iterations: int = 30
    bond_solver_tolerance: Decimal = Decimal("0.0000001")
    bond_solver_rate_floor: Decimal = Decimal("-0.5")
    bond_solver_rate_ceiling: Decimal = Decimal("1.0")

    class Config:
        env_file = get_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_solver_config() -> SolverConfig:
    """Root-finder guard rails for IRR-style solves."""
    return SolverConfig.from_settings(get_settings(), prefix="solver")


def get_bond_solver_config() -> SolverConfig:
    """Root-finder guard rails for bond yield solves."""
    return SolverConfig.from_settings(get_settings(), prefix="bond_solver")
