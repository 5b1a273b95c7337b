"""Department task board engine.

``model`` defines the task forest, ``tree`` and ``views`` hold the pure
operations over it, and ``engine`` wraps them with locking, events and
snapshot persistence.
"""
