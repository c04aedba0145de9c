"""Pure, deterministic combat rules.

Nothing in this package touches the database; services load state, call
into these modules and persist whatever they mutate.
"""
