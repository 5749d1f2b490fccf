"""
Error codes and user-facing messages for HTTP error bodies.
"""
from typing import Dict, Optional


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    INVALID_CONTENT = "INVALID_CONTENT"
    DATASET_NOT_FOUND = "DATASET_NOT_FOUND"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "Your file is too large",
        "detail": "The file exceeds the upload size limit.",
        "suggestion": "Upload a sample of the data or only the columns you want to chart."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "Your file looks empty",
        "detail": "No rows could be read from the uploaded file.",
        "suggestion": "Make sure the file has a header row and at least one data row."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "Unsupported file format",
        "detail": "Only CSV, Excel (.xlsx, .xls) and JSON files can be charted.",
        "suggestion": "Export the data as CSV from your spreadsheet tool and upload it again."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "We could not read your file",
        "detail": "The file content does not match its format.",
        "suggestion": "Save the file again as a fresh CSV, Excel or JSON file."
    },
    ErrorCodes.INVALID_CONTENT: {
        "message": "The file content is outside our limits",
        "detail": "The dataset has too many rows or columns, or unsafe column names.",
        "suggestion": "Trim the dataset and rename any unusual columns, then upload again."
    },
    ErrorCodes.DATASET_NOT_FOUND: {
        "message": "No dataset is loaded for this session",
        "detail": "The session is unknown or its dataset has expired.",
        "suggestion": "Upload the file again to start a new session."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "Something went wrong while processing",
        "detail": "The data could not be analyzed.",
        "suggestion": "Check that the data is organized in columns with a single header row."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Too many uploads",
        "detail": "Uploads are rate limited per client.",
        "suggestion": "Wait a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "The request took too long",
        "detail": "Processing exceeded the request time limit.",
        "suggestion": "Try a smaller file."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "An internal error occurred.",
        "suggestion": "Try again in a moment."
    }
}


def get_error_response(
    error_code: str,
    additional_detail: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Dict[str, str]:
    """
    Build the error body for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional text appended to the detail
        correlation_id: Request correlation ID, included when known

    Returns:
        Dictionary with code, message, detail and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"
    if correlation_id:
        response["correlation_id"] = correlation_id

    return response
