"""Action admissibility checks.

Every player action (buy, sell, travel, encounter choice) flows through the same
validator pipeline before the executor is allowed to touch the session.
"""
