"""
storychat: 1:1 messaging and 24h stories over a hosted key-value store.

The FastAPI app keeps no state of its own; profiles, chats, messages and
stories live in a key-value backend, uploads go to object storage and
callers are authenticated against an identity service.
"""
