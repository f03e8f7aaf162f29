from sportygo.services.event_service import EventCoordinator
from sportygo.services.invitation_service import InviteLedger
from sportygo.services.shard_service import ShardSet, Subscription, VoteAggregator
from sportygo.services.vote_service import VoteLedger
from sportygo.services.voting_window import VotingWindow

__all__ = [
    "EventCoordinator",
    "InviteLedger",
    "ShardSet",
    "Subscription",
    "VoteAggregator",
    "VoteLedger",
    "VotingWindow",
]
