"""
data_loader.py
================

This module provides pandas helpers around draft data: loading and
cleaning a league draft order from CSV, and flattening a draft into a
tabular board (one row per pick) for display or export.

Example
-------

```python
from data_loader import load_draft_order, draft_board_frame

order = load_draft_order("data/draft_order.csv")
board = draft_board_frame(draft)
print(board.head())
```
"""

from __future__ import annotations

import os
from typing import List

import pandas as pd

from draft_models import Draft, ManagerSlot

DRAFT_ORDER_FILENAME = "draft_order.csv"

BOARD_COLUMNS = [
    "round",
    "pick_number",
    "overall_pick_number",
    "manager_id",
    "current_owner",
    "traded",
    "is_complete",
    "player_id",
]

# Accepted spellings for the two draft-order columns, compared lower-cased
# with spaces and underscores removed.
_MANAGER_ALIASES = {"managerid", "manager"}
_PICK_ALIASES = {"picknumber", "pick", "slot"}


def _normalise_header(name: str) -> str:
    return str(name).strip().lower().replace("_", "").replace(" ", "")


def _clean_draft_order(df: pd.DataFrame) -> pd.DataFrame:
    """Clean a raw draft-order DataFrame.

    - Maps the manager and pick columns onto ``manager_id`` and
      ``pick_number`` regardless of their spelling in the file.
    - Drops rows with a missing or empty manager id.
    - Coerces pick numbers to integers and drops rows where that fails.

    Parameters
    ----------
    df : pandas.DataFrame
        Raw DataFrame read from the CSV file.

    Returns
    -------
    pandas.DataFrame
        DataFrame with columns ``['manager_id', 'pick_number']`` sorted by
        pick number.
    """
    rename_map = {}
    for col in df.columns:
        key = _normalise_header(col)
        if key in _MANAGER_ALIASES:
            rename_map[col] = "manager_id"
        elif key in _PICK_ALIASES:
            rename_map[col] = "pick_number"
    df = df.rename(columns=rename_map)
    if "manager_id" not in df.columns:
        raise ValueError("draft order file has no manager column")

    df["manager_id"] = df["manager_id"].astype("string").str.strip().fillna("")
    df = df[df["manager_id"] != ""].copy()

    # Files without a pick column list managers in draft order
    if "pick_number" not in df.columns:
        df["pick_number"] = range(1, len(df) + 1)
    df["pick_number"] = pd.to_numeric(df["pick_number"], errors="coerce")
    df = df.dropna(subset=["pick_number"])
    df["pick_number"] = df["pick_number"].astype(int)

    return df[["manager_id", "pick_number"]].sort_values("pick_number").reset_index(drop=True)


def load_draft_order(path: str) -> List[ManagerSlot]:
    """Load a draft order from a CSV file.

    The file needs a manager column (``ManagerId``, ``manager_id`` or
    ``Manager``) and optionally a pick column (``PickNumber``,
    ``pick_number``, ``Pick`` or ``Slot``).  Without a pick column the row
    order is the draft order.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the file lacks a manager column, or repeats a manager or pick
        number.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(path)
    df = _clean_draft_order(pd.read_csv(path))
    if df["manager_id"].duplicated().any():
        raise ValueError(f"draft order file {path} lists a manager twice")
    if df["pick_number"].duplicated().any():
        raise ValueError(f"draft order file {path} repeats a pick number")
    return [ManagerSlot(manager_id=str(row.manager_id), pick_number=int(row.pick_number)) for row in df.itertuples()]


def load_default_draft_order(data_dir: str) -> List[ManagerSlot]:
    """Load ``draft_order.csv`` from ``data_dir``; empty list if absent."""
    path = os.path.join(data_dir, DRAFT_ORDER_FILENAME)
    if not os.path.isfile(path):
        return []
    return load_draft_order(path)


def draft_board_frame(draft: Draft) -> pd.DataFrame:
    """Flatten a draft into one row per pick, sorted by overall pick."""
    rows = [
        {
            "round": rnd.round_number,
            "pick_number": pick.pick_number,
            "overall_pick_number": pick.overall_pick_number,
            "manager_id": pick.manager_id,
            "current_owner": pick.current_owner,
            "traded": pick.is_traded,
            "is_complete": pick.is_complete,
            "player_id": pick.player_id,
        }
        for rnd, pick in draft.iter_picks()
    ]
    if not rows:
        return pd.DataFrame(columns=BOARD_COLUMNS)
    return pd.DataFrame(rows, columns=BOARD_COLUMNS).sort_values("overall_pick_number").reset_index(drop=True)


if __name__ == "__main__":
    # Simple CLI test: load a draft order file and print it
    import argparse

    parser = argparse.ArgumentParser(description="Load and clean a draft order CSV.")
    parser.add_argument("path", help="CSV file with a manager column and optional pick column")
    args = parser.parse_args()

    for slot in load_draft_order(args.path):
        print(f"{slot.pick_number:>3}  {slot.manager_id}")
