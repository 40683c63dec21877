"""Value types shared across webreach: selector queries, element records, tool envelopes."""
