# simcore/config.py
"""
Engine configuration and numerical policy constants.
"""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class EngineConfig:
    """Global engine configuration."""

    # Dirichlet enforcement (penalty method): must dominate K's natural scale
    penalty: float = 1e12

    # Direct solver: a pivot below pivot_tolerance * (largest entry of its
    # original row) counts as zero
    pivot_tolerance: float = 1e-12

    # Solver defaults used when settings leave them out
    default_tolerance: float = 1e-6
    default_max_iterations: int = 1000

    # Eigenvalues closer than this (relative) are reported as one mode
    mode_merge_rtol: float = 1e-9

    # Worker pool for submitted analyses
    max_workers: int = 4

    # Fallbacks for material properties the material itself leaves out
    default_youngs_modulus: float = 200e9     # Pa
    default_poissons_ratio: float = 0.3
    default_density: float = 7850.0           # kg/m³
    default_yield_strength: float = 250e6     # Pa
    default_thermal_conductivity: float = 50.0  # W/m·K
    default_specific_heat: float = 460.0      # J/kg·K
    default_viscosity: float = 1e-3           # Pa·s (water)

    def __post_init__(self):
        if self.penalty <= 0:
            raise ValueError(f"penalty must be positive, got {self.penalty}")
        if self.pivot_tolerance < 0:
            raise ValueError(f"pivot_tolerance must be >= 0, got {self.pivot_tolerance}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def with_overrides(self, **overrides) -> "EngineConfig":
        """Return a copy with some fields replaced (validated again)."""
        return replace(self, **overrides)


# Global config instance
CONFIG = EngineConfig()
