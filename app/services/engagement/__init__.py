"""Contact engagement cadence engine.

Clock -> Resolver -> Recompute (writes ``Contact.next_engagement_date``) -> Query.
"""
