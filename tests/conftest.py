"""Shared fixtures: a small two-view sheet with a BOM table and a balloon."""

import json

import pytest


def polyline(points, color=0, style=0, weight=1):
    flat = [float(v) for p in points for v in p]
    return [0, 0, color, style, 0, weight, 0, 0, len(points), *flat]


@pytest.fixture
def sheet_dict():
    return {
        "name": "Sheet1",
        "width": 0.42,
        "height": 0.297,
        "line_fonts": {"2": [0.00025, 2, 0.003, -0.0015]},
        "tables": [
            {
                "type": "bom",
                "rows": [
                    ["ITEM NO.", "PART NUMBER", "DESCRIPTION"],
                    ["1", "A-100", "Base plate"],
                    ["2", "B-200", "Bolt"],
                ],
            }
        ],
        "views": [
            {
                "name": "Drawing View1",
                "type": "projected",
                "scale": 1.0,
                "position": [0.1, 0.1],
                "outline": [0.05, 0.05, 0.15, 0.15],
                "polylines": polyline([(0, 0, 0), (0.02, 0, 0), (0.02, 0.02, 0)])
                + polyline([(0, 0, 0), (0, 0.02, 0)], style=2),
                "annotations": [
                    {
                        "type": "note",
                        "is_bom_balloon": True,
                        "text": "2",
                        "position": [0.14, 0.14, 0.0],
                        "has_balloon": True,
                        "balloon_info": [0.14, 0.14, 0, 0.145, 0.14, 0, 0.005],
                        "leaders": [[0.14, 0.14, 0, 0.12, 0.12, 0]],
                        "text_format": {"typeface": "Arial", "char_height": 0.0035},
                    }
                ],
            },
            {
                "name": "Drawing View2",
                "type": "projected",
                "scale": 0.5,
                "position": [0.3, 0.1],
                "outline": [0.25, 0.05, 0.35, 0.15],
                "polylines": polyline([(0, 0, 0), (0.04, 0.04, 0)]),
            },
        ],
    }


@pytest.fixture
def snapshot_path(tmp_path, sheet_dict):
    path = tmp_path / "sheet.json"
    path.write_text(json.dumps(sheet_dict), encoding="utf-8")
    return path
