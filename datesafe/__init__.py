"""
DateSafe Verification Service - Source Package
===============================================

Integrated verification for online-dating safety: photo forensics,
conversation behavior and social-profile checks fused into one trust score.

Modules:
    - main.py         : FastAPI application entry point and endpoints
    - engine.py       : Fusion engine (providers -> rules -> trust score -> threats)
    - photo.py        : Photo forensics analyzer (CatfishAnalysis)
    - conversation.py : Conversational behavior analyzer and scammer typing
    - profile.py      : Social profile and web presence verifier
    - providers.py    : External provider contracts and default implementations
    - patterns.py     : Versioned pattern registry loaded from data/patterns.json
    - cache.py        : Thread-safe verification result cache
    - report.py       : Summary, safety-check and export report builders
    - auth.py         : API key authentication
    - config.py       : Environment-driven settings
    - errors.py       : Pipeline error types
    - models.py       : Pydantic request/response schemas
"""

__version__ = "1.0.0"
