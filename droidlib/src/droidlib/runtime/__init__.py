"""Runtime helpers for talking to devices."""
