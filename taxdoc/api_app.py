"""JSON web API for the extraction pipeline.

Endpoints:
  POST /api/extract    multipart "document" file -> extracted form
  POST /api/map        {"forms": [...], "default_tax_year"?} -> mapping
  POST /api/calculate  {"total_income", "withheld_tax", "filing_status",
                        "itemized_deduction"?, "tax_year"?} -> return summary

Authentication, sessions and storage are left to the hosting application.
"""

import logging
from pathlib import Path

from flask import Flask, jsonify, request

from .document_parser import AcquisitionError, SourceDocument, guess_mime_type
from .federal_tax import DEFAULT_TAX_YEAR, TaxCalculationError
from .main import (
    calculate_tax_return, extract_data_from_tax_form,
    map_extracted_data_to_income_entries,
)
from .models import ExtractedForm

logger = logging.getLogger(__name__)

app = Flask(__name__)
# Acquisition capability shared by requests; None picks one per content type
app.config.setdefault("TAXDOC_CAPABILITY", None)


def _error(message: str, status: int):
    return jsonify({"error": message}), status


@app.route("/api/extract", methods=["POST"])
def extract():
    """Extract one uploaded tax document."""
    upload = request.files.get("document")
    if upload is None or not upload.filename:
        return _error("Upload a file in the 'document' field.", 400)

    filename = Path(upload.filename).name
    try:
        mime_type = request.form.get("mime_type") or guess_mime_type(filename)
    except AcquisitionError as e:
        return _error(str(e), 400)

    content = upload.read()
    if not content:
        return _error("Uploaded file is empty.", 400)

    document = SourceDocument(content=content, mime_type=mime_type, filename=filename)
    try:
        form = extract_data_from_tax_form(
            document,
            capability=app.config["TAXDOC_CAPABILITY"],
            filename_hint=filename,
        )
    except AcquisitionError as e:
        logger.error("Extraction failed for %s: %s", filename, e)
        return _error(str(e), 502)
    return jsonify(form.to_dict())


@app.route("/api/map", methods=["POST"])
def map_forms():
    """Map previously extracted forms to income line items."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not isinstance(payload.get("forms"), list):
        return _error("Body must be JSON with a 'forms' list.", 400)
    try:
        forms = [ExtractedForm.from_dict(item) for item in payload["forms"]]
        default_year = payload.get("default_tax_year")
        mapping = map_extracted_data_to_income_entries(
            forms, default_tax_year=int(default_year) if default_year else None
        )
    except (TypeError, ValueError, AttributeError) as e:
        return _error(f"Invalid form data: {e}", 400)
    return jsonify(mapping.to_dict())


@app.route("/api/calculate", methods=["POST"])
def calculate():
    """Compute the federal return summary."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error("Body must be a JSON object.", 400)
    missing = [k for k in ("total_income", "withheld_tax", "filing_status") if k not in payload]
    if missing:
        return _error(f"Missing fields: {', '.join(missing)}", 400)
    try:
        result = calculate_tax_return(
            payload["total_income"],
            payload["withheld_tax"],
            payload["filing_status"],
            itemized_deduction=payload.get("itemized_deduction"),
            tax_year=int(payload.get("tax_year") or DEFAULT_TAX_YEAR),
        )
    except (TaxCalculationError, TypeError, ValueError) as e:
        return _error(str(e), 400)
    return jsonify(result.to_dict())


if __name__ == "__main__":
    app.run(debug=False)
