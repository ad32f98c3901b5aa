"""
Match status tokens shared by the scoring engine, the round selector,
the models and the football-data sync.
"""


class MatchStatus:
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"

    ALL = (SCHEDULED, LIVE, FINISHED, POSTPONED, CANCELLED)

    # Statuses the results job no longer polls the API for
    SETTLED = (FINISHED, POSTPONED, CANCELLED)

    @classmethod
    def is_valid(cls, status):
        return status in cls.ALL
