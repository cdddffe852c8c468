"""
FDB Test-Bank Parser
====================
Parser and converters for legacy tagged test-bank files (.fdb / .et1).

Architecture:
    - Encoding Detector: Guesses the code page of a raw buffer
    - Hex Payload Decoder: Decodes hex-encoded tag payloads with fallbacks
    - Tag Extractor: Index-based scanning for named and numbered tags
    - Question Decoder: Rebuilds questions, answers and correctness
    - Category Parser: Reads the indented outline and group sections
    - Exporters: Plain text, Markdown, JSON and PDF output

Version: 1.0.0
"""

__version__ = "1.0.0"
