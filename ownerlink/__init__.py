"""Owner entity resolution for property-roll and donor records.

Classifies raw owner names, normalizes multi-line addresses, scores the
similarity of two owner entities with an auditable breakdown, and decides
whether entities sharing a fire number belong to the same owner.
"""
