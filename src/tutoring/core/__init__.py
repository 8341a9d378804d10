"""Core processing: text extraction, worksheet analysis, question generation."""
