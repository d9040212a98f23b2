"""
SightEd Backend — Services Layer
==================================

Service Inventory:
    - LLMService (abstract) / GeminiService: generative text with retry + circuit breaker
    - VisionService: Cloud Vision label and landmark detection
    - insights: prompt building and parsing of model output (pure functions)
    - file_service: upload validation
    - AnalysisService: upload → vision → Gemini → store → cache workflow
    - UserService / ContactService: accounts and the contact form
    - GoogleOAuthService / PhotosService: Google Photos import
"""
