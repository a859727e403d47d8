from dataclasses import dataclass, field
from typing import List

from realtyshare.core.store import DocumentStore


RELATIONSHIPS = "relationships"

PENDING = "pending"
FRIENDS = "friends"


@dataclass
class Relationships:
    friends: List[str] = field(default_factory=list)
    sent_requests: List[str] = field(default_factory=list)
    received_requests: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "friends": list(self.friends),
            "sent_requests": list(self.sent_requests),
            "received_requests": list(self.received_requests),
        }


def other_party(edge: dict, uid: str) -> str:
    return edge["addressee"] if edge["requester"] == uid else edge["requester"]


def relationships_from_edges(edges: List[dict], uid: str) -> Relationships:
    result = Relationships()
    for edge in edges:
        other = other_party(edge, uid)
        if edge["status"] == FRIENDS:
            result.friends.append(other)
        elif edge["requester"] == uid:
            result.sent_requests.append(other)
        else:
            result.received_requests.append(other)
    return result


async def load_relationships(store: DocumentStore, uid: str) -> Relationships:
    edges = await store.query(
        RELATIONSHIPS, contains={"participants": uid}, order_by="created_at"
    )
    return relationships_from_edges(edges, uid)
