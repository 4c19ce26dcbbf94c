"""
Configuration – environment-driven settings and document constants.

Paths and rates are read from the environment once at import time;
branding, tax-registration details and layout constants live here so the
document services never hard-code them.
"""

from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").upper()
TMP_ROOT = Path(os.getenv("INSUREDOCS_TMP", "/tmp/insuredocs"))

# Empty means "use the built-in Helvetica pair"
FONT_REGULAR_PATH = os.getenv("INSUREDOCS_FONT_REGULAR", "")
FONT_BOLD_PATH = os.getenv("INSUREDOCS_FONT_BOLD", "")

LOGO_PATH = Path(os.getenv("INSUREDOCS_LOGO_PATH", "./Logo.png"))
WEB_PLATFORM_URL = os.getenv("INSUREDOCS_PLATFORM_URL", "https://example.com")
VAT_RATE = float(os.getenv("INSUREDOCS_VAT_RATE", "0.18"))

# ---------------------------------------------------------------------------
# Branding
# ---------------------------------------------------------------------------

COMPANY_NAME = "HERITAGE INSURANCE COMPANY LTD"
COMPANY_ADDRESS = "4th Floor, Bains Avenue, Masaki Ikon"
COMPANY_BOX = "P.O.Box 7390 Dar Es Salaam, Tanzania"
COMPANY_EMAIL = "info@heritageinsurance.co.tz"
COMPANY_PHONE = "+255 222 602 984"
POWERED_BY = "Powered by: Labedan IT Solutions"
PDF_CREATOR = "Labedan IT Solutions"

LOGO_SIZE = 100
LOGO_LEFT_OFFSET = 30
LOGO_TOP_OFFSET = 0

# Tax registration, printed on receipts and invoices
TAX_INFORMATION = {
    "TIN No": "100 738 031",
    "VRN": "100 168 38A",
    "TAX OFFICE": "LARGE TAXPAYER",
    "Z BRN No": "Z025350886",
    "Z VRN": "070 015 35S",
    "VFD SERIAL": "10TZ100438",
}

DEFAULT_BANK_INFORMATION = {
    "bank_name": "CRDB BANK PLC",
    "swift_code": "CORUTZTZ",
    "account_number": "0150 2739 8500",
}

DEFAULT_Z_NUMBER = "20250801"

# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

# Page margins (points) for receipts and invoices; the border is drawn on them
DOCUMENT_MARGINS = {"left": 20, "right": 20, "top": 20, "bottom": 40}
REPORT_MARGINS = {"left": 40, "right": 40, "top": 40, "bottom": 50}

FONT_SIZES = {"small": 9, "normal": 10, "medium": 12, "heading": 14, "title": 16}

# Leading used both for measuring and drawing wrapped text
LINE_HEIGHT_RATIO = 1.2

TABLE_CONFIG = {
    "text_padding": 5,
    "min_cell_height": 14,
    "cell_padding": 5,
    "row_gap": 5,
    "top_padding": 8,
}

WIDE_LEFT_TABLE_CONFIG = {
    "label_ratio": 0.75,
    "header_height": 20,
    "row_height": 18,
    "border_slack": 10,
    "text_padding": 8,
    "font_size": 10,
}

STICKER_BOX_CONFIG = {
    "box_width": 180,
    "box_height": 22,
    "spacing": 30,
    "left_offset": 12,
    "label_spacing": 8,
}

QR_SIZE = 74

# The closing logo is only placed when the cursor is above this line
CLOSING_LOGO_LIMIT = 725
