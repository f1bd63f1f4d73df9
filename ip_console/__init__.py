"""IP console - disclosures, filings, agreements and the links between them."""
