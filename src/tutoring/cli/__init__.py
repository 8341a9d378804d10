"""Command-line interface (`tutor`)."""
