"""LLM prompts for medical document field extraction."""

from claim_organizer.models.document import DocumentCategory

SYSTEM_PROMPT = """You are an extraction system for medical insurance claims.
You read the OCR text of a single scanned document (a prescription or a bill)
and return its key fields as JSON.

Rules:
1. Only report values that appear in the text. Use null when a field is absent.
2. unique_health_id is an explicit patient identifier printed on the document
   (health ID, ABHA number, UHID, MRN). Never invent one.
3. condition is the diagnosis, disease or treatment context in a few words.
4. document_date is the date the document was issued, in YYYY-MM-DD format.
5. amount is the total payable as a plain number, without currency symbols.

Return ONLY valid JSON, no markdown formatting."""


def build_user_prompt(text: str, candidate_labels: list[str] | None = None) -> str:
    """Build the user prompt for one document.

    Args:
        text: Document text, already truncated to the configured cap.
        candidate_labels: Existing claim labels the model may reuse.

    Returns:
        User prompt string
    """
    categories = ", ".join(c.value for c in DocumentCategory)

    prompt = f"""Extract the fields from the following document text:

---
{text}
---

Return a JSON object with this structure:
{{
  "category": "one of: {categories}",
  "patient_name": "Full patient name or null",
  "unique_health_id": "Explicit patient identifier or null",
  "condition": "Diagnosis or treatment context or null",
  "document_date": "YYYY-MM-DD or null",
  "clinic_name": "Hospital, clinic, pharmacy or lab name or null",
  "bill_number": "Bill or invoice number or null",
  "amount": "Total amount as a number or null",
  "claim_label": "Claim folder name for this document"
}}"""

    if candidate_labels:
        labels = "\n".join(candidate_labels)
        prompt += f"""

Existing claim folders (most recent first):
{labels}

If this document belongs to one of these claims, set claim_label to that
folder name exactly as written above. Otherwise set claim_label to a new name
of the form PatientName_Condition_YYYY-MM-DD."""
    else:
        prompt += """

Set claim_label to a new name of the form PatientName_Condition_YYYY-MM-DD."""

    return prompt
