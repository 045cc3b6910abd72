"""
Services Layer

Engine services that:
- Accept domain inputs (models, ids, adapters)
- Return domain outputs (matches, updates, dicts)
- Do NOT depend on HTTP request/response objects
- Raise tournament_engine.errors exceptions; routes translate them
"""
