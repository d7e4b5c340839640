"""
Bill Assistant - Source Package

A chat-driven bookkeeping assistant. Users describe spending in plain text
or send receipt photos; the assistant turns them into structured bills.

DESIGN PRINCIPLES:
1. The model proposes, deterministic code decides (categories, validation)
2. Uploads are all-or-nothing: no half-written file records
3. Background work never breaks the conversation
4. Every step must be auditable
5. Storage, blob and model backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Bill Assistant Team"
