"""
SightEd Backend — API Routes Package
======================================

Route Inventory:
    - images.py:   POST /upload, GET /image/{id}, GET /saved,
                   GET /api/images, GET /api/images/{id}
    - quiz.py:     POST /generate-quiz, POST /generate-explanation
    - users.py:    POST /api/users/register, POST /api/users/login
    - contact.py:  POST/GET /api/contact, PATCH /api/contact/{id}/read
    - auth.py:     /auth/google*, POST /auth/google/refresh
    - photos.py:   /google-photos/*, /proxy/google-photos, /proxy/google-photo
    - health.py:   GET /, GET /health, GET /api/db-status

Routes stay thin: pull values out of the request, call a service, shape the
response. Errors are raised as SightEdError subclasses and formatted by the
global handlers in main.py.
"""
