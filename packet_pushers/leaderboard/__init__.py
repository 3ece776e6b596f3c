"""Global leaderboard: the score-submission gate and its Redis-backed store.

Independent from the session engine; it only sees what the client submits at the end of a run.
"""
