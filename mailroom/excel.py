import zipfile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

EXPECTED_COLUMNS = ["name", "email"]

COLUMN_ALIASES = {
    "name": ["name", "authority", "customer", "full name", "שם", "שם רשות"],
    "email": ["email", "e-mail", "mail", "email address", "אימייל", 'דוא"ל', "מייל"],
    "status": ["status", "active", "סטטוס"],
}


def read_recipients(file_obj):
    try:
        workbook = load_workbook(file_obj, data_only=True, read_only=True)
    except (
        InvalidFileException,
        zipfile.BadZipFile,
        KeyError,
        OSError,
        ValueError,
    ) as exc:
        raise ValueError(f"Excel file could not be read: {exc}") from exc

    try:
        rows = list(workbook.active.iter_rows(values_only=True))
    finally:
        workbook.close()

    if not rows:
        raise ValueError("Excel file is empty")

    header_row_index, headers, score = _detect_header_row(rows)
    missing = [field for field in EXPECTED_COLUMNS if _find_index(headers, field) is None]
    if score <= 0 or missing:
        raise ValueError(f"Missing columns: {', '.join(missing or EXPECTED_COLUMNS)}")

    indices = {field: _find_index(headers, field) for field in COLUMN_ALIASES}
    records = []
    for row in rows[header_row_index + 1 :]:
        record = _build_record(row, indices)
        if record is not None:
            records.append(record)
    return records


def _normalize_header(value):
    return " ".join(str(value or "").strip().split()).casefold()


def _detect_header_row(rows, scan_limit=20):
    best_index = 0
    best_headers = []
    best_score = -1

    for index, row in enumerate(rows[:scan_limit]):
        headers = [_normalize_header(value) for value in row]
        score = sum(
            1 for field in EXPECTED_COLUMNS if _find_index(headers, field) is not None
        )
        if score > best_score:
            best_index = index
            best_headers = headers
            best_score = score

    return best_index, best_headers, best_score


def _find_index(headers, field):
    targets = {_normalize_header(alias) for alias in COLUMN_ALIASES[field]}
    for idx, header in enumerate(headers):
        if header in targets:
            return idx
    return None


def _cell(row, idx):
    if idx is None or idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx]).strip()


def _build_record(row, indices):
    name = _cell(row, indices["name"])
    email = _cell(row, indices["email"])
    if not name and not email:
        return None

    record = {"name": name, "email": email}
    status = _cell(row, indices["status"])
    if status:
        record["status"] = status
    return record
