"""Browser automation that drives a dashboard through its PDF export."""
