# simcore/post.py
"""
POST-PROCESSING: Element Fields from Nodal Solutions
====================================================

Turns the solved nodal unknowns into per-element quantities. All formulas
are deterministic linear-triangle ones:

    strain        ε = sym(∇u),  ∇u = Σ u_i ⊗ ∇N_i
    stress        σ = λ tr(ε) I + 2 μ ε        (isotropic Hooke)
                  λ = Eν / ((1+ν)(1−2ν)),  μ = E / (2(1+ν))
    von Mises     √(½[(σxx−σyy)² + (σyy−σzz)² + (σzz−σxx)²] + 3(σxy² + σyz² + σxz²))
    heat flux     q = −k ∇T
    fluid         v = −∇p / μ                  (Darcy / Hele-Shaw)

∇N_i come from kernel.elements.triangle_gradients and lie in the element
plane, so a triangle only sees in-plane variation of the field.

Also provides pandas views of a result for inspection and export.
"""

from typing import Dict, Tuple

import numpy as np
import pandas as pd

from .config import CONFIG, EngineConfig
from .errors import AssemblyError
from .kernel.assemble import element_geometry, element_viscosity, material_value
from .kernel.elements import triangle_area, triangle_gradients
from .model import ElementResult, Mesh, SimulationResult, StressState


def lame_parameters(E: float, nu: float) -> Tuple[float, float]:
    """(λ, μ) of an isotropic material; ν must be in (−1, 0.5)."""
    if not -1.0 < nu < 0.5:
        raise ValueError(f"Poisson ratio must be in (-1, 0.5), got {nu}")
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    mu = E / (2.0 * (1.0 + nu))
    return lam, mu


def von_mises(sigma: np.ndarray) -> float:
    """Von Mises equivalent of a symmetric 3×3 stress (or strain) tensor."""
    sxx, syy, szz = sigma[0, 0], sigma[1, 1], sigma[2, 2]
    sxy, syz, sxz = sigma[0, 1], sigma[1, 2], sigma[0, 2]
    value = 0.5 * ((sxx - syy) ** 2 + (syy - szz) ** 2 + (szz - sxx) ** 2) \
        + 3.0 * (sxy ** 2 + syz ** 2 + sxz ** 2)
    return float(np.sqrt(max(value, 0.0)))


def stress_state(sigma: np.ndarray) -> StressState:
    principal = np.sort(np.linalg.eigvalsh(sigma))[::-1]
    return StressState(
        von_mises=von_mises(sigma),
        principal=tuple(float(s) for s in principal),
        components=(float(sigma[0, 0]), float(sigma[1, 1]), float(sigma[2, 2]),
                    float(sigma[0, 1]), float(sigma[1, 2]), float(sigma[0, 2])),
    )


def element_strain(coords: np.ndarray, u_nodes: np.ndarray) -> np.ndarray:
    """
    Small-strain tensor of a linear triangle.

    Args:
        coords: (3, 3) node positions
        u_nodes: (3, 3) nodal displacement vectors, row i for node i
    """
    G = triangle_gradients(*coords)
    grad_u = u_nodes.T @ G          # grad_u[a, b] = ∂u_a/∂x_b
    return 0.5 * (grad_u + grad_u.T)


def structural_element_results(
    mesh: Mesh,
    nodal_displacements: np.ndarray,
    config: EngineConfig = CONFIG,
) -> Dict[str, ElementResult]:
    """
    Stress and strain per element.

    Args:
        nodal_displacements: (n_nodes, 3) in node order
    """
    node_index = mesh.node_index()
    results = {}
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        indices, coords = element_geometry(mesh, element, node_index)
        E = material_value(material, 'youngs_modulus', config.default_youngs_modulus)
        nu = material_value(material, 'poissons_ratio', config.default_poissons_ratio)
        try:
            lam, mu = lame_parameters(E, nu)
        except ValueError as e:
            raise AssemblyError(f"Material {material.id}: {e}") from e

        eps = element_strain(coords, nodal_displacements[indices])
        sigma = lam * np.trace(eps) * np.eye(3) + 2.0 * mu * eps

        results[element.id] = ElementResult(
            stress=stress_state(sigma),
            strain_von_mises=von_mises(eps),
        )
    return results


def thermal_element_results(
    mesh: Mesh,
    temperatures: np.ndarray,
    config: EngineConfig = CONFIG,
) -> Dict[str, ElementResult]:
    """Mean temperature and heat flux q = −k∇T per element."""
    node_index = mesh.node_index()
    results = {}
    for element in mesh.elements.values():
        material = mesh.element_material(element)
        indices, coords = element_geometry(mesh, element, node_index)
        k = material_value(material, 'thermal_conductivity', config.default_thermal_conductivity)

        t = temperatures[indices]
        grad_t = triangle_gradients(*coords).T @ t
        q = -k * grad_t

        results[element.id] = ElementResult(
            temperature=float(np.mean(t)),
            heat_flux=tuple(float(c) for c in q),
        )
    return results


def fluid_velocities(
    mesh: Mesh,
    pressures: np.ndarray,
    config: EngineConfig = CONFIG,
) -> Tuple[Dict[str, np.ndarray], np.ndarray]:
    """
    Element velocities v = −∇p/μ and their area-weighted nodal average.

    Returns:
        (element velocities keyed by element id, nodal velocities (n_nodes, 3))
    """
    node_index = mesh.node_index()
    element_v = {}
    nodal_sum = np.zeros((mesh.n_nodes, 3))
    weights = np.zeros(mesh.n_nodes)

    for element in mesh.elements.values():
        material = mesh.element_material(element)
        indices, coords = element_geometry(mesh, element, node_index)
        mu = element_viscosity(material, config)

        grad_p = triangle_gradients(*coords).T @ pressures[indices]
        v = -grad_p / mu
        element_v[element.id] = v

        area = triangle_area(*coords)
        for i in indices:
            nodal_sum[i] += area * v
            weights[i] += area

    nodal_v = np.zeros((mesh.n_nodes, 3))
    mask = weights > 0.0
    nodal_v[mask] = nodal_sum[mask] / weights[mask, None]
    return element_v, nodal_v


def strain_energy(K: np.ndarray, u: np.ndarray) -> float:
    """½ uᵀ K u."""
    return 0.5 * float(u @ K @ u)


# =============================================================================
# Tabular views
# =============================================================================

def node_results_frame(result: SimulationResult) -> pd.DataFrame:
    """
    One row per node, columns for whichever fields the analysis produced
    (ux, uy, uz, |u|, vx, vy, vz, |v|, temperature, pressure).
    """
    rows = []
    for node_id, nr in result.node_results.items():
        row = {'node_id': node_id}
        if nr.displacement is not None:
            row.update(ux=nr.displacement[0], uy=nr.displacement[1], uz=nr.displacement[2],
                       u_mag=float(np.linalg.norm(nr.displacement)))
        if nr.velocity is not None:
            row.update(vx=nr.velocity[0], vy=nr.velocity[1], vz=nr.velocity[2],
                       v_mag=float(np.linalg.norm(nr.velocity)))
        if nr.temperature is not None:
            row['temperature'] = nr.temperature
        if nr.pressure is not None:
            row['pressure'] = nr.pressure
        rows.append(row)
    return pd.DataFrame(rows).set_index('node_id') if rows else pd.DataFrame()


def element_results_frame(result: SimulationResult) -> pd.DataFrame:
    """One row per element: von Mises, principal stresses, heat flux, velocity."""
    rows = []
    for element_id, er in result.element_results.items():
        row = {'element_id': element_id}
        if er.stress is not None:
            s1, s2, s3 = er.stress.principal
            row.update(von_mises=er.stress.von_mises, s1=s1, s2=s2, s3=s3)
        if er.strain_von_mises is not None:
            row['strain_von_mises'] = er.strain_von_mises
        if er.temperature is not None:
            row['temperature'] = er.temperature
        if er.heat_flux is not None:
            row.update(qx=er.heat_flux[0], qy=er.heat_flux[1], qz=er.heat_flux[2])
        if er.velocity is not None:
            row.update(vx=er.velocity[0], vy=er.velocity[1], vz=er.velocity[2])
        rows.append(row)
    return pd.DataFrame(rows).set_index('element_id') if rows else pd.DataFrame()
