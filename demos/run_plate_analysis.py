#!/usr/bin/env python3
"""
RUN_PLATE_ANALYSIS: All Four Analyses on One Plate
==================================================

This demo walks a small triangulated plate through the engine:
1. Generate a mesh from flat vertex/index buffers
2. Add supports, loads and a material
3. Run structural, thermal (steady + transient), modal and fluid analyses
4. Print the headline numbers and a table of nodal results

Run with:
    python demos/run_plate_analysis.py
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from simcore import SimulationEngine
from simcore.post import element_results_frame, node_results_frame


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def plate_buffers(nx: int = 2, ny: int = 2, size: float = 1.0):
    """Flat buffers for an nx × ny grid of squares, two triangles each."""
    positions = []
    for j in range(ny + 1):
        for i in range(nx + 1):
            positions.extend([size * i / nx, size * j / ny, 0.0])

    indices = []
    for j in range(ny):
        for i in range(nx):
            a = j * (nx + 1) + i
            b, c, d = a + 1, a + nx + 2, a + nx + 1
            indices.extend([a, b, c, a, c, d])
    return positions, indices


def main():
    print_header("PLATE ANALYSIS")

    with SimulationEngine() as engine:
        # =====================================================================
        # STEP 1: MESH
        # =====================================================================
        print_header("STEP 1: Generate Mesh")
        positions, indices = plate_buffers()
        mesh_id = engine.generate_mesh(positions, indices, element_size=0.5)
        mesh = engine.get_mesh(mesh_id)
        quality = engine.mesh_quality(mesh_id)
        print(f"  {mesh_id}: {mesh.n_nodes} nodes, {mesh.n_elements} elements")
        print(f"  Min quality {quality.min_quality:.3f}, total area {quality.total_area:.3f} m²")

        # =====================================================================
        # STEP 2: STRUCTURAL
        # =====================================================================
        print_header("STEP 2: Structural")
        # Structural matrices occupy the first two nodes; hold every other node
        held = [nid for nid in mesh.nodes if nid not in ('node_0', 'node_1')]
        engine.add_fixed_support(mesh_id, held)
        engine.add_force(mesh_id, ['node_1'], (0.0, -1000.0, 0.0))

        aluminium = engine.add_library_material(mesh_id, 'aluminum_6061')
        engine.assign_material(mesh_id, list(mesh.elements), aluminium)

        result = engine.get_result(engine.run_structural_analysis(mesh_id))
        g = result.global_results
        print(f"  Max displacement: {g.max_displacement * 1e6:.3f} µm")
        print(f"  Max von Mises:    {g.max_stress / 1e6:.3f} MPa")
        print(f"  Safety factor:    {g.safety_factor:.1f}")
        print(element_results_frame(result)[['von_mises', 's1', 's3']].to_string())

        # =====================================================================
        # STEP 3: THERMAL
        # =====================================================================
        print_header("STEP 3: Thermal")
        hot = engine.nearest_node(mesh_id, (0.0, 0.0, 0.0))
        cold = engine.nearest_node(mesh_id, (1.0, 1.0, 0.0))
        engine.add_temperature(mesh_id, [hot], 100.0)
        engine.add_temperature(mesh_id, [cold], 20.0)

        steady = engine.get_result(engine.run_thermal_analysis(mesh_id, {'solver': 'direct'}))
        print(f"  Steady: max T = {steady.global_results.max_temperature:.2f} °C")

        transient = engine.get_result(engine.run_thermal_analysis(
            mesh_id, {'solver': 'direct', 'time_step': 60.0, 'total_time': 600.0,
                      'initial_temperature': 20.0},
        ))
        print(f"  After 10 min: max T = {transient.global_results.max_temperature:.2f} °C "
              f"({transient.iterations} steps)")
        print(node_results_frame(transient).to_string())

        # =====================================================================
        # STEP 4: MODAL
        # =====================================================================
        print_header("STEP 4: Modal")
        modal = engine.get_result(engine.run_modal_analysis(mesh_id, num_modes=5))
        freqs = modal.global_results.natural_frequencies
        print(f"  {len(freqs)} of {modal.global_results.requested_modes} modes:")
        for i, f in enumerate(freqs, 1):
            print(f"    Mode {i}: {f:.1f} Hz")

        # =====================================================================
        # STEP 5: FLUID
        # =====================================================================
        print_header("STEP 5: Fluid")
        channel_id = engine.generate_mesh(positions, indices)
        inlet = engine.nearest_node(channel_id, (0.0, 0.5, 0.0))
        outlet = engine.nearest_node(channel_id, (1.0, 0.5, 0.0))
        engine.add_boundary_condition(channel_id, 'pressure', [inlet], 10.0)
        engine.add_boundary_condition(channel_id, 'pressure', [outlet], 0.0)
        water = engine.add_library_material(channel_id, 'water')
        engine.assign_material(channel_id, list(engine.get_mesh(channel_id).elements), water)

        flow = engine.get_result(engine.run_fluid_analysis(channel_id, {'solver': 'direct'}))
        print(f"  Max velocity: {flow.global_results.max_velocity:.1f} m/s")
        print(f"  Max pressure: {flow.global_results.max_pressure:.1f} Pa")

        print_header("SUMMARY")
        for r in engine.get_all_results():
            print(f"  {r.id:<10} {r.type:<11} converged={r.converged} iterations={r.iterations}")


if __name__ == "__main__":
    main()
