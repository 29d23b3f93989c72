"""Routine tracking: recurrence, completion ledger, streaks and a synced store."""
