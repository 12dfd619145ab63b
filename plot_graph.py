#!/usr/bin/env python3
"""Static PNG of the campus graph as stored in the backend."""

import sys

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import networkx as nx

from config import SETTINGS
from graph_model import parse_map_features, to_networkx
from icmaps_api import BackendClient


def plot_graph(markers, edges, out_path="campus_graph.png", dpi=200):
    G = to_networkx(markers, edges)

    # Set positions for plotting (lon, lat for x, y)
    pos = {node: (G.nodes[node]["lon"], G.nodes[node]["lat"]) for node in G.nodes}
    blue_lights = [n for n in G.nodes if G.nodes[n]["blue_light"]]
    plain = [n for n in G.nodes if not G.nodes[n]["blue_light"]]
    two_way = [(u, v) for u, v, d in G.edges(data=True) if d["bidir"]]
    one_way = [(u, v) for u, v, d in G.edges(data=True) if not d["bidir"]]

    fig = plt.figure(figsize=(16, 12))

    nx.draw_networkx_edges(G, pos, edgelist=two_way, alpha=0.6, arrows=False)
    nx.draw_networkx_edges(G, pos, edgelist=one_way, edge_color="#F57C00", width=2, arrows=True, arrowsize=12)
    nx.draw_networkx_nodes(G, pos, nodelist=plain, node_color="skyblue", node_size=40, label="Node")
    nx.draw_networkx_nodes(G, pos, nodelist=blue_lights, node_color="#1d4ed8", node_shape="s", node_size=80, label="Blue light")

    # Show only first 10 characters for each label
    short_labels = {node: str(node)[:10] for node in G.nodes}
    nx.draw_networkx_labels(G, pos, labels=short_labels, font_size=7)

    plt.xlabel("Longitude")
    plt.ylabel("Latitude")
    plt.title("Campus Graph: Nodes and Paths")
    if G.number_of_nodes():
        plt.legend(scatterpoints=1)
    plt.tight_layout()

    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return G


def main(api=None, out_path="campus_graph.png"):
    api = api or BackendClient(SETTINGS.BACKEND_URL, timeout=SETTINGS.REQUEST_TIMEOUT)
    markers, edges = parse_map_features(api.get_all_map_features())
    G = plot_graph(markers, edges, out_path)
    print(f"Saved as {out_path} ({G.number_of_nodes()} nodes, {G.number_of_edges()} directed edges)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
