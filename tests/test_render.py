from __future__ import annotations

import asyncio
import sys
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from elksvg.model import load_graph
from elksvg.palette import COLORS
from elksvg.render import render_graph, render_svg, wrap_text

NS = "{http://www.w3.org/2000/svg}"


def _parse(svg_text: str) -> ET.Element:
    return ET.fromstring(svg_text.encode("utf-8"))


def _by_class(root: ET.Element, tag: str, cls: str) -> list[ET.Element]:
    return [el for el in root.iter(f"{NS}{tag}") if el.get("class") == cls]


def _leaf(node_id: str, x: float, y: float, **extra) -> dict:
    node = {"id": node_id, "x": x, "y": y, "width": 100, "height": 40}
    node.update(extra)
    return node


def _edge(edge_id: str, color: str | None = None, **extra) -> dict:
    edge = {
        "id": edge_id,
        "sources": ["a"],
        "targets": ["b"],
        "sections": [{"startPoint": {"x": 0, "y": 0}, "endPoint": {"x": 10, "y": 10}}],
    }
    if color is not None:
        edge["edgeColor"] = color
    edge.update(extra)
    return edge


class WrapTextTests(unittest.TestCase):
    def test_label_that_fits_is_returned_unchanged(self) -> None:
        self.assertEqual(wrap_text("Checkout", 104, 13), ["Checkout"])
        self.assertEqual(wrap_text("two  spaces", 400, 13), ["two  spaces"])

    def test_greedy_wrap_respects_character_budget(self) -> None:
        # 84 / (13 * 0.58) -> 11 characters per line.
        self.assertEqual(wrap_text("Hello world foo bar baz", 84, 13), ["Hello world", "foo bar baz"])

    def test_wrap_preserves_word_sequence(self) -> None:
        text = "Send   confirmation email to the customer\tafter payment clears"
        lines = wrap_text(text, 60, 13)
        self.assertGreater(len(lines), 1)
        self.assertEqual(" ".join(lines).split(" "), text.split())

    def test_long_word_is_never_broken(self) -> None:
        self.assertEqual(wrap_text("Supercalifragilistic ok", 50, 13), ["Supercalifragilistic", "ok"])


class RenderSvgTests(unittest.TestCase):
    def test_leaf_only_graph_has_one_rect_per_node_and_no_paths(self) -> None:
        graph = load_graph(
            {
                "children": [_leaf("a", 0, 0), _leaf("b", 150, 0, label="Second step"), _leaf("c", 0, 80)],
                "edges": [],
            }
        )
        root = _parse(render_svg(graph))
        self.assertEqual(len(_by_class(root, "rect", "node")), 3)
        self.assertGreaterEqual(len(_by_class(root, "text", "node-label")), 3)
        self.assertEqual(list(root.iter(f"{NS}path")), [])

    def test_example_graph_dimensions_and_palette(self) -> None:
        data = {
            "children": [{"id": "a", "x": 0, "y": 0, "width": 100, "height": 40, "color": "success"}],
            "edges": [],
        }
        root = _parse(render_svg(load_graph(data), legend=False))
        self.assertEqual(root.get("width"), "180")
        self.assertEqual(root.get("height"), "120")
        self.assertEqual(root.get("viewBox"), "-40 -40 180 120")

        (rect,) = _by_class(root, "rect", "node")
        self.assertEqual(rect.get("fill"), COLORS["success"].fill)
        labels = [el.text for el in _by_class(root, "text", "node-label")]
        self.assertEqual(labels, ["a"])

        with_legend = _parse(render_svg(load_graph(data)))
        self.assertEqual(with_legend.get("width"), "180")
        self.assertEqual(with_legend.get("height"), "180")

    def test_engine_reported_size_wins_over_child_extent(self) -> None:
        graph = load_graph({"width": 300, "height": 200, "children": [_leaf("a", 0, 0)], "legend": False})
        root = _parse(render_svg(graph))
        self.assertEqual((root.get("width"), root.get("height")), ("380", "280"))

    def test_container_children_accumulate_offsets(self) -> None:
        data = {
            "children": [
                {
                    "id": "outer",
                    "x": 50,
                    "y": 50,
                    "width": 300,
                    "height": 200,
                    "children": [
                        {
                            "id": "inner",
                            "x": 10,
                            "y": 10,
                            "width": 200,
                            "height": 120,
                            "children": [_leaf("leaf", 5, 30)],
                        },
                        _leaf("sibling", 10, 150),
                    ],
                }
            ]
        }
        root = _parse(render_svg(load_graph(data)))
        containers = _by_class(root, "rect", "container")
        self.assertEqual([(el.get("x"), el.get("y")) for el in containers], [("50", "50"), ("60", "60")])
        self.assertEqual(containers[0].get("stroke-dasharray"), "6,3")
        leaves = _by_class(root, "rect", "node")
        self.assertEqual([(el.get("x"), el.get("y")) for el in leaves], [("65", "90"), ("60", "200")])
        titles = [el.text for el in _by_class(root, "text", "container-label")]
        self.assertEqual(titles, ["outer", "inner"])

    def test_one_marker_per_edge_color(self) -> None:
        data = {
            "children": [_leaf("a", 0, 0), _leaf("b", 0, 100)],
            "edges": [_edge("e1", "#FF0000"), _edge("e2", "#FF0000"), _edge("e3")],
        }
        data["children"].append(
            {
                "id": "group",
                "x": 200,
                "y": 0,
                "width": 200,
                "height": 100,
                "children": [_leaf("c", 10, 10)],
                "edges": [_edge("e4", "#FF0000", dashed=True)],
            }
        )
        root = _parse(render_svg(load_graph(data)))
        markers = list(root.iter(f"{NS}marker"))
        self.assertEqual([m.get("id") for m in markers], ["arrowhead-FF0000", "arrowhead-64748B"])
        paths = _by_class(root, "path", "edge")
        self.assertEqual(len(paths), 4)
        self.assertEqual(
            [p.get("marker-end") for p in paths],
            ["url(#arrowhead-FF0000)", "url(#arrowhead-FF0000)", "url(#arrowhead-64748B)", "url(#arrowhead-FF0000)"],
        )
        self.assertEqual(paths[3].get("stroke-dasharray"), "5,3")

    def test_marker_ids_stay_unique_when_colors_sanitize_alike(self) -> None:
        data = {"children": [], "edges": [_edge("e1", "#abc"), _edge("e2", "abc")]}
        root = _parse(render_svg(load_graph(data)))
        ids = [m.get("id") for m in root.iter(f"{NS}marker")]
        self.assertEqual(ids, ["arrowhead-abc", "arrowhead-abc-1"])

    def test_edge_path_follows_bend_points(self) -> None:
        edge = _edge("e1", strokeWidth=2)
        edge["sections"] = [
            {
                "startPoint": {"x": 10, "y": 20},
                "bendPoints": [{"x": 10, "y": 60}, {"x": 80.5, "y": 60}],
                "endPoint": {"x": 80.5, "y": 100},
            }
        ]
        root = _parse(render_svg(load_graph({"children": [], "edges": [edge]})))
        (path,) = _by_class(root, "path", "edge")
        self.assertEqual(path.get("d"), "M 10 20 L 10 60 L 80.5 60 L 80.5 100")
        self.assertEqual(path.get("stroke-width"), "2")
        self.assertEqual(path.get("fill"), "none")

    def test_nested_edges_and_labels_use_container_offset(self) -> None:
        nested = _edge("e1", labels=[{"text": "yes", "x": 10, "y": 20, "width": 30, "height": 14}])
        nested["sections"] = [{"startPoint": {"x": 5, "y": 5}, "endPoint": {"x": 20, "y": 30}}]
        data = {
            "children": [
                {
                    "id": "group",
                    "x": 50,
                    "y": 50,
                    "width": 200,
                    "height": 100,
                    "children": [_leaf("a", 0, 0)],
                    "edges": [nested],
                }
            ]
        }
        root = _parse(render_svg(load_graph(data)))
        (path,) = _by_class(root, "path", "edge")
        self.assertEqual(path.get("d"), "M 55 55 L 70 80")
        (bg,) = _by_class(root, "rect", "edge-label-bg")
        self.assertEqual((bg.get("x"), bg.get("y"), bg.get("width"), bg.get("height")), ("58", "69", "34", "16"))
        (label,) = _by_class(root, "text", "edge-label")
        self.assertEqual((label.get("x"), label.get("y"), label.text), ("75", "82", "yes"))

    def test_unplaced_edge_label_is_skipped(self) -> None:
        data = {"children": [], "edges": [_edge("e1", labels=[{"text": "maybe"}])]}
        root = _parse(render_svg(load_graph(data)))
        self.assertEqual(_by_class(root, "text", "edge-label"), [])

    def test_legend_lists_only_canonical_leaf_categories(self) -> None:
        data = {
            "children": [
                _leaf("a", 0, 0, color="success"),
                _leaf("b", 0, 50, color="core"),
                _leaf("c", 0, 100, color="container"),
                _leaf("d", 0, 150, color="success"),
                _leaf("e", 0, 200, color="decision"),
                {"id": "g", "x": 200, "y": 0, "width": 100, "height": 100, "color": "data", "children": [_leaf("f", 0, 0)]},
            ]
        }
        root = _parse(render_svg(load_graph(data)))
        (heading,) = _by_class(root, "text", "legend-title")
        self.assertEqual(heading.text, "LEGEND")
        labels = [el.text for el in _by_class(root, "text", "legend-label")]
        self.assertEqual(labels, ["Positive outcome", "Decision point"])
        swatches = _by_class(root, "rect", "legend-swatch")
        self.assertEqual([s.get("fill") for s in swatches], [COLORS["success"].fill, COLORS["decision"].fill])

    def test_legend_wraps_into_four_columns(self) -> None:
        keys = ["action", "external", "decision", "user", "success", "negative"]
        data = {"children": [_leaf(key, 0, idx * 50, color=key) for idx, key in enumerate(keys)]}
        root = _parse(render_svg(load_graph(data)))
        swatches = _by_class(root, "rect", "legend-swatch")
        self.assertEqual(len(swatches), 6)
        self.assertEqual(swatches[4].get("x"), swatches[0].get("x"))
        self.assertGreater(float(swatches[4].get("y")), float(swatches[0].get("y")))

    def test_legend_can_be_disabled(self) -> None:
        data = {"legend": False, "children": [_leaf("a", 0, 0, color="user")]}
        root = _parse(render_svg(load_graph(data)))
        self.assertEqual(_by_class(root, "text", "legend-title"), [])
        self.assertEqual(root.get("height"), "120")

    def test_title_subtitle_and_wrapped_label(self) -> None:
        data = {
            "title": "Order <flow>",
            "children": [
                _leaf("a", 0, 0, label="Validate the shipping address", subtitle="calls geocoder", width=90, height=70)
            ],
        }
        svg_text = render_svg(load_graph(data))
        self.assertIn("Order &lt;flow&gt;", svg_text)
        root = _parse(svg_text)
        (title,) = _by_class(root, "text", "title")
        self.assertEqual(title.text, "Order <flow>")
        lines = [el.text for el in _by_class(root, "text", "node-label")]
        self.assertGreater(len(lines), 1)
        self.assertEqual(" ".join(lines), "Validate the shipping address")
        subtitle = _by_class(root, "text", "node-subtitle")
        self.assertEqual(" ".join(el.text for el in subtitle), "calls geocoder")
        self.assertEqual(subtitle[0].get("font-size"), "10")

    def test_control_characters_are_dropped_from_text(self) -> None:
        data = {
            "title": "Bell\x07 flow",
            "children": [
                _leaf("a", 0, 0, label="Ste\x01p", subtitle="no\x0bte", width=200),
                {"id": "grp\x1f", "x": 0, "y": 100, "width": 200, "height": 100, "children": [_leaf("b", 10, 30)]},
            ],
            "edges": [_edge("e1", labels=[{"text": "y\x00es\ttab", "x": 0, "y": 0, "width": 40, "height": 14}])],
        }
        root = _parse(render_svg(load_graph(data)))
        (title,) = _by_class(root, "text", "title")
        self.assertEqual(title.text, "Bell flow")
        labels = [el.text for el in _by_class(root, "text", "node-label")]
        self.assertIn("Step", labels)
        (subtitle,) = _by_class(root, "text", "node-subtitle")
        self.assertEqual(subtitle.text, "note")
        (heading,) = _by_class(root, "text", "container-label")
        self.assertEqual(heading.text, "grp")
        (edge_label,) = _by_class(root, "text", "edge-label")
        self.assertEqual(edge_label.text, "yes\ttab")


class RenderGraphTests(unittest.TestCase):
    def test_engine_output_is_rendered(self) -> None:
        class ShiftingEngine:
            def __init__(self) -> None:
                self.calls: list[dict] = []

            async def layout(self, graph: dict) -> dict:
                self.calls.append(graph)
                laid = dict(graph)
                laid["children"] = [dict(child, x=20, y=30, width=100, height=40) for child in graph["children"]]
                laid["width"] = 140
                laid["height"] = 90
                return laid

        engine = ShiftingEngine()
        raw = {"id": "root", "layoutOptions": {"elk.direction": "DOWN"}, "children": [{"id": "a"}], "edges": []}
        root = _parse(asyncio.run(render_graph(raw, engine, legend=False)))
        self.assertEqual(engine.calls, [raw])
        (rect,) = _by_class(root, "rect", "node")
        self.assertEqual((rect.get("x"), rect.get("y")), ("20", "30"))
        self.assertEqual(root.get("width"), "220")


if __name__ == "__main__":
    unittest.main()
