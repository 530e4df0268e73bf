from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.mark.parametrize("page", ["observers", "exam_calendar", "distribution", "settings"])
def test_pages_import(page):
    mod = importlib.import_module(f"ui.pages.{page}")

    assert callable(mod.main)


def test_observer_sheet_import_rows():
    from ui.pages.observers import _import_rows

    df = pd.DataFrame({"Name": ["Ahmed", None, "  "], "Subject": ["Math", "Art", None]})

    assert _import_rows(df) == [{"name": "Ahmed", "subject": "Math"}]

    with pytest.raises(ValueError):
        _import_rows(pd.DataFrame({"teacher": ["x"]}))
