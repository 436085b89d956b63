"""
babylog core package.

A local-only logbook for infant care events (feedings, diaper changes,
sleep, pumping, skin-to-skin time):
- SQLite storage with versioned up/down migrations (`babylog.database`)
- The event model, validation and typed store (`babylog.events`)
- A keyboard-driven terminal session (`babylog.tui`)
- A Typer-based CLI entry point (`babylog.cli`)

Configuration:
- Shared filesystem anchors live in `babylog.global_config`.
- Environment-dependent settings are resolved in `babylog.config`.
"""
