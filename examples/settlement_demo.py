"""
Example demonstrating settlement layout generation.

Builds a small world of hexagonal tiles with a road running through it,
generates a layout for each settlement type and plots streets and buildings.
"""

import math

import matplotlib.pyplot as plt
from matplotlib.patches import Polygon as PolygonPatch

from py_citygen import SettlementPlanner, SettlementRequest, World, WorldTile
from py_citygen.config import SettlementType, configure_logging
from py_citygen.core.street_graph import EdgeType


HEX_SIZE = 80.0
ROWS, COLS = 7, 9

EDGE_STYLE = {
    EdgeType.MAIN: ("#8b5a2b", 2.5),
    EdgeType.DISTRICT: ("#a0a0a0", 1.2),
    EdgeType.ALLEY: ("#c8c8c8", 0.6),
}


def hex_center(row, col):
    x = HEX_SIZE * math.sqrt(3) * (col + 0.5 * (row % 2))
    y = HEX_SIZE * 1.5 * row
    return (x, y)


def hex_vertices(center):
    cx, cy = center
    # Rounded so neighbouring tiles share vertices exactly
    return [
        (round(cx + HEX_SIZE * math.cos(math.radians(60 * i - 30)), 6),
         round(cy + HEX_SIZE * math.sin(math.radians(60 * i - 30)), 6))
        for i in range(6)
    ]


def hex_neighbors(row, col):
    if row % 2 == 0:
        offsets = [(0, 1), (1, 0), (1, -1), (0, -1), (-1, -1), (-1, 0)]
    else:
        offsets = [(0, 1), (1, 1), (1, 0), (0, -1), (-1, 0), (-1, 1)]
    for dr, dc in offsets:
        r, c = row + dr, col + dc
        if 0 <= r < ROWS and 0 <= c < COLS:
            yield r * COLS + c


def build_world():
    world = World()
    for row in range(ROWS):
        for col in range(COLS):
            center = hex_center(row, col)
            world.add_tile(WorldTile(
                id=row * COLS + col,
                center=center,
                vertices=hex_vertices(center),
                neighbors=list(hex_neighbors(row, col)),
                is_water=(col == 0),
            ))

    # East-west road along the middle row
    middle = ROWS // 2
    for col in range(COLS - 1):
        a = middle * COLS + col
        b = a + 1
        world.get_tile(a).road_edges.append(b)
        world.get_tile(b).road_edges.append(a)
    return world


def plot_plan(ax, plan):
    if plan.boundary:
        ax.add_patch(PolygonPatch(plan.boundary, closed=True, fill=False,
                                  edgecolor="#4a7a4a", linestyle="--"))

    graph = plan.streets
    for edge in graph.edges:
        a = graph.get_node(edge.node_a)
        b = graph.get_node(edge.node_b)
        color, width = EDGE_STYLE[edge.type]
        ax.plot([a.x, b.x], [a.y, b.y], color=color, linewidth=width)

    for building in plan.buildings:
        ax.add_patch(PolygonPatch(list(building.vertices), closed=True,
                                  facecolor="#d9b38c", edgecolor="#5c4033", linewidth=0.5))

    ax.set_title(f"{plan.name} ({plan.type})")
    ax.set_aspect("equal")
    ax.autoscale_view()


def main():
    configure_logging()

    seed = "settlement_demo"
    world = build_world()
    planner = SettlementPlanner()

    middle_tile = (ROWS // 2) * COLS + COLS // 2
    center = world.get_tile(middle_tile).center

    types = list(SettlementType)
    fig, axes = plt.subplots(1, len(types), figsize=(5 * len(types), 5))

    print("Generating settlements...")
    for idx, (settlement_type, ax) in enumerate(zip(types, axes)):
        request = SettlementRequest(
            id=idx + 1,
            name=f"{settlement_type.value.title()}ville",
            type=settlement_type.value,
            position=center,
            tile_id=middle_tile,
        )
        plan = planner.generate(request, world, seed)
        stats = plan.streets.stats()

        print(f"\n{plan.name} ({settlement_type.value}):")
        print(f"  Seed: {plan.seed}")
        print(f"  Occupied tiles: {len(plan.occupied_tile_ids)}")
        print(f"  Intersections: {stats['node_count']}")
        print(f"  Streets: {stats['edge_count']} ({stats['total_length']:.0f} units)")
        print(f"  Streets by type: {stats['edges_by_type']}")
        print(f"  Blocks: {len(plan.streets.find_faces())}")
        print(f"  Buildings: {len(plan.buildings)}")

        plot_plan(ax, plan)

    plt.tight_layout()
    plt.savefig("settlement_demo.png", dpi=150)
    print("\nSaved plot to settlement_demo.png")


if __name__ == "__main__":
    main()
