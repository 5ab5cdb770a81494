import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Union
import pandas as pd

from .errors import SheetError

logger = logging.getLogger(__name__)

# A workbook is sheet name -> raw grid (no header promoted yet).
Workbook = dict[str, pd.DataFrame]
SheetSource = Union[str, Path, bytes, Workbook]

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def get_date_suffix_for_filename() -> str:
    """Returns the current date as a YYYY-MM-DD string for filenames."""
    return datetime.now().strftime("%Y-%m-%d")


def load_csv(file_path: Path) -> pd.DataFrame:
    """
    CSV loader with an encoding fallback: UTF-8 (with BOM support) first,
    then latin-1, which can decode any byte.
    """
    try:
        return pd.read_csv(file_path, encoding="utf-8-sig", header=None, dtype=object)
    except UnicodeDecodeError:
        logger.info(f"UTF-8 decoding failed for {file_path.name}. Retrying with 'latin-1'.")
        try:
            return pd.read_csv(file_path, encoding="latin-1", header=None, dtype=object)
        except (ValueError, pd.errors.ParserError) as e:
            raise SheetError(f"Could not read {file_path.name}: {e}") from e
    except FileNotFoundError as e:
        raise SheetError(f"File not found: {file_path}") from e
    except pd.errors.EmptyDataError as e:
        raise SheetError(f"{file_path.name} is empty") from e
    except (ValueError, pd.errors.ParserError) as e:
        raise SheetError(f"Could not read {file_path.name}: {e}") from e


def load_workbook(source: SheetSource) -> Workbook:
    """
    Opens a spreadsheet as raw grids, one per sheet. CSV files become a single
    "Sheet1". An already loaded workbook is passed through.

    Raises SheetError if the file cannot be opened or decoded; that aborts the
    import before anything is written.
    """
    if isinstance(source, dict):
        return source

    if isinstance(source, bytes):
        try:
            return pd.read_excel(io.BytesIO(source), sheet_name=None, header=None, dtype=object)
        except (ValueError, OSError) as e:
            raise SheetError(f"Could not open workbook: {e}") from e

    path = Path(source)
    if not path.exists():
        raise SheetError(f"File not found: {path}")

    if path.suffix.lower() == ".csv":
        return {"Sheet1": load_csv(path)}

    if path.suffix.lower() not in EXCEL_SUFFIXES:
        raise SheetError(f"Unsupported file type: {path.name}")

    try:
        return pd.read_excel(path, sheet_name=None, header=None, dtype=object)
    except (ValueError, OSError) as e:
        raise SheetError(f"Could not open {path.name}: {e}") from e


def select_sheet(workbook: Workbook, preferred: str | int | None = None) -> tuple[str, pd.DataFrame]:
    """The preferred sheet (by name or index) when present, else the first one."""
    names = list(workbook.keys())
    if not names:
        raise SheetError("Workbook has no sheets")

    if isinstance(preferred, int):
        if preferred >= len(names):
            raise SheetError(f"Sheet index {preferred} out of range ({len(names)} sheets)")
        name = names[preferred]
    elif preferred in workbook:
        name = preferred
    else:
        name = names[0]
    return name, workbook[name]


def sheet_rows(grid: pd.DataFrame, header_row: int = 0) -> tuple[list[str], list[dict]]:
    """
    Promotes `header_row` of a raw grid to column headers and returns
    (headers, rows). Rows above the header are a preamble and are dropped.
    Duplicate headers (compared case-insensitively) keep the first occurrence;
    blank headers are ignored.
    """
    if grid is None or len(grid.index) <= header_row:
        return [], []

    raw_headers = list(grid.iloc[header_row])
    headers = []
    keep = []
    seen = set()
    for position, value in enumerate(raw_headers):
        if value is None or (isinstance(value, float) and pd.isna(value)):
            continue
        header = str(value).strip()
        # Headers match case-insensitively downstream, so "PRICE" repeats "Price"
        if not header or header.lower() in seen:
            continue
        seen.add(header.lower())
        headers.append(header)
        keep.append(position)

    body = grid.iloc[header_row + 1 :, keep].copy()
    body.columns = headers
    # NaN -> None so downstream blank checks see one empty marker
    body = body.astype(object).where(pd.notna(body), None)
    return headers, body.to_dict("records")
