"""
Map bundle test suite

Structure:
- unit/: header tokenizer, pixel policy, sidecar, topology, exporter, config
- integration/: full archive imports and the HTTP API
"""
