"""Search attempt orchestration, result extraction, diagnostics, and retry policy."""
