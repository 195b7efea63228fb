"""
shadowfuzz: model-based stateful fuzzing for multi-id ledgers with shadow tokens.

Packages:
- `shadowfuzz.state`: mirror state and its update rules
- `shadowfuzz.ledger`: ledger boundary, reference ledger, fault injections
- `shadowfuzz.core`: universe generator, policies, invariant sweep
- `shadowfuzz.integration`: campaign config, driver and CLI
"""

__version__ = "0.1.0"
