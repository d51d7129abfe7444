"""Gmail API payload decoding (the mail-source boundary)."""
