"""
User CSV Import
===============

Parses user spreadsheets exported by HR into rows for bulk creation.
Header names are matched case-insensitively with spaces, dashes and
underscores normalised, so ``Employee ID``, ``employee_id`` and
``EmployeeID`` all land on the same field.
"""

import csv
import io
from typing import Any, Dict, List, Union

from helpdesk.core import ValidationException

TEMPLATE_COLUMNS = [
    "employeeId", "username", "password", "name", "email",
    "mobile", "department", "designation", "role",
]

TEMPLATE_EXAMPLE_ROW = [
    "EMP100", "jdoe", "ChangeMe@1", "Jane Doe", "jane.doe@company.com",
    "+1-555-0100", "Finance", "Accountant", "employee",
]

COLUMN_MAPPING = {
    "employeeid": "employee_id",
    "employee_id": "employee_id",
    "emp_id": "employee_id",
    "username": "username",
    "user_name": "username",
    "password": "password",
    "name": "name",
    "full_name": "name",
    "fullname": "name",
    "email": "email",
    "email_address": "email",
    "emailaddress": "email",
    "mobile": "mobile",
    "mobile_number": "mobile",
    "phone": "mobile",
    "phone_number": "mobile",
    "department": "department",
    "dept": "department",
    "designation": "designation",
    "title": "designation",
    "job_title": "designation",
    "role": "role",
}


def normalize_column_name(col: str) -> str:
    """Normalize column name for matching."""
    return col.lower().strip().replace(" ", "_").replace("-", "_")


def map_columns(headers: List[str]) -> Dict[int, str]:
    """
    Map CSV column indices to user fields.

    Returns:
        Dict of {column_index: field_name}
    """
    mapping = {}
    for i, header in enumerate(headers):
        normalized = normalize_column_name(header)
        if normalized in COLUMN_MAPPING:
            mapping[i] = COLUMN_MAPPING[normalized]
    return mapping


def parse_users_csv(file_content: Union[bytes, str]) -> List[Dict[str, Any]]:
    """
    Parse CSV content into user rows.

    Blank lines are skipped and empty cells are dropped so that
    defaults (username, role) apply.

    Raises:
        ValidationException: If the file is empty, undecodable or lacks
            an employee ID column
    """
    if isinstance(file_content, bytes):
        try:
            file_content = file_content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError:
            raise ValidationException("CSV file must be UTF-8 encoded")

    rows = list(csv.reader(io.StringIO(file_content)))
    if not rows:
        raise ValidationException("CSV file is empty")

    column_map = map_columns(rows[0])
    if "employee_id" not in column_map.values():
        raise ValidationException(
            "CSV header must include an employee ID column",
            details={"errors": [{"field": "employeeId", "message": "column missing"}]}
        )

    users = []
    for row in rows[1:]:
        if not any(cell.strip() for cell in row):
            continue
        record = {}
        for index, field in column_map.items():
            if index < len(row) and row[index].strip():
                record[field] = row[index].strip()
        users.append(record)

    return users


def build_template_csv() -> str:
    """CSV template with the header and one example row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TEMPLATE_COLUMNS)
    writer.writerow(TEMPLATE_EXAMPLE_ROW)
    return buffer.getvalue()
