"""
Canopy Backend: API Routes Package
===================================

Route Inventory:
    - items.py:         /api/items (create, read, list, update, reorder,
                        bulk move/copy/delete)
    - operations.py:    /api/operations/{id} (asynchronous bulk status)
    - memberships.py:   /api/item-memberships
    - members.py:       /api/members
    - tags.py:          /api/items/{id}/tags/{type}
    - likes.py:         /api/items/liked, /api/items/{id}/like(s)
    - flags.py:         /api/items/flags, /api/items/{id}/flags
    - publications.py:  /api/collections
    - actions.py:       /api/items/{id}/actions, /api/members/actions
    - health.py:        /health

Routes stay thin: read the request, call one service method, shape the
response. Static paths such as /items/liked are registered before
/items/{item_id} (see main.py), otherwise the id route would claim them.
"""
