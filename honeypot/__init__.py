"""
Honeypot: Scam Engagement Pipeline
==================================

Modules:
    - catalog.py   : Static signal, keyword, entity and forbidden-content patterns
    - detector.py  : Weighted four-term scam classifier
    - extractor.py : Context-gated intelligence extraction (11 entity types)
    - state.py     : Conversation phase controller
    - agent.py     : Persona-driven reply strategy engine
    - safety.py    : Outgoing reply guard (forbidden content + length envelope)
    - memory.py    : Session model, intelligence ledger and session store
    - pipeline.py  : Per-turn orchestration with all-or-nothing commits
    - callback.py  : Terminal report builder and background sender
    - errors.py    : Pipeline exception hierarchy
    - config.py    : Versioned engine config and environment settings
    - main.py      : FastAPI application entry point
    - auth.py      : API key authentication
    - models.py    : Pydantic request/response/report schemas
"""

__version__ = "1.0.0"
