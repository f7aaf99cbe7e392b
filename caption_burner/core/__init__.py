"""Core caption model, validation, and subtitle track compilation.

WHY: The track compiler is the only part of the service with real design
content. Keeping it in its own package, free of FastAPI and FFmpeg
imports, lets the CLI, the API, and the tests use it directly.

HOW: ir.py defines the data structures, validation.py turns wire
payloads into CaptionSpan lists, compiler.py renders the ASS script.

RULES:
- Nothing in core performs network or subprocess I/O
- validation.py is the only place that reads caption files
"""
