"""
Notedly Backend — API Routes Package
======================================

Route Inventory:
    - users.py:   GET  /api/user, /api/users/me/notes, /api/users/me/assignments[/{id}]
    - boards.py:  /api/boards, /api/boards/{id}, /api/boards/{id}/permissions
    - notes.py:   /api/boards/{id}/notes, /api/notes/{id}
    - health.py:  GET  /health
    - deps.py:    bearer-token authentication dependency

Routes are thin: authenticate, call one service method, serialize. Every
access decision is made in the services.
"""
