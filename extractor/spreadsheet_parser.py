from io import BytesIO

import pandas as pd

from planning.user_record import is_blank
from utils.exceptions import UpstreamError, ValidationError
from utils.logger import get_logger

Logger = get_logger("spreadsheet_parser")

REQUIRED_HEADER = [
    'skillName', 'skillProviderName', 'metricValue', 'skillCertifierId', 'skillCertifiedDate',
    'achievementsProviderName', 'achievementsName', 'achievementsUri', 'achievementsCertifierId',
    'achievementsCertifiedDate'
]
IDENTITY_COLUMNS = ['handle', 'email']


def parse_spreadsheet(file: bytes):
    """
    Parse the first sheet of an Excel file.

    Args:
        file (bytes): content of the .xlsx file
    Returns:
        tuple[list, list]: the header (column names in sheet order) and one dict per
        non empty row, holding only the non empty cells of that row.
    Raises:
        UpstreamError: the file cannot be read as a spreadsheet.
        ValidationError: required columns are missing.
    """
    Logger.info('start parsing the excel file')
    try:
        df = pd.read_excel(BytesIO(file), sheet_name=0, dtype=object, engine="openpyxl")
    except Exception as e:
        Logger.error(f"Unable to read the excel file: {e}")
        raise UpstreamError(f"Unable to read the excel file: {e}") from e

    header = [str(column).strip() for column in df.columns]
    df.columns = header

    missing = [column for column in REQUIRED_HEADER if column not in header]
    if missing or not any(column in header for column in IDENTITY_COLUMNS):
        required = ['handle'] + REQUIRED_HEADER
        msg = f"require {required} columns, but actual columns is {header}"
        Logger.error(msg)
        raise ValidationError(msg)

    rows = []
    for record in df.to_dict(orient="records"):
        row = {column: value for column, value in record.items() if not is_blank(value)}
        if row:
            rows.append(row)

    Logger.info(f'parsing excel file finish, the record count is {len(rows)}')
    return header, rows
