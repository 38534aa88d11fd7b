"""
Notedly Backend — Services Layer
==================================

Service Inventory:
    - identity_service:    Identity Registry (provider assertion → User)
    - board_service:       Board Store
    - permission_service:  Permission Table (explicit grants)
    - note_service:        Note Store
    - access:              Access Evaluator (pure evaluate() + enforcement)
    - identifiers:         content-derived board/note identifiers, token hash
    - legacy_import:       JSON dumps of earlier schema revisions

Services take the AsyncSession per call and never commit; the caller owns
the transaction (get_db_session for HTTP, run_in_transaction in-process).
"""
