"""
Migration of legacy identity documents into the canonical identity store model.
"""
