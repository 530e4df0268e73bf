"""Export helpers (spreadsheet, markdown and image renderings of distributions)."""
