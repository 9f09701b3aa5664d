"""
PromiseSeal Challenge Binding

A signing challenge is the SHA-256 digest of the canonical JSON of the
promise snapshot, base64url encoded. The authenticator signs over it, so any
later edit to id, title, content, delivery date or creator makes the
recomputed challenge diverge from the signed one.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from .hashing import canonical_hash
from .util import b64url_encode


def creator_id_of(obj: Mapping[str, Any]) -> Any:
    """
    Creator id of a promise record: the embedded creator.id when present,
    otherwise the flat creatorId.

    Raises:
        KeyError: neither form is present
    """
    creator = obj.get("creator")
    if isinstance(creator, Mapping) and "id" in creator:
        return creator["id"]
    if obj.get("creatorId") is None:
        raise KeyError("creatorId")
    return obj["creatorId"]


@dataclass(frozen=True)
class PromiseSnapshot:
    """The exact promise facts a signature commits to."""
    id: str
    title: str
    content: str
    delivery_date: str
    creator_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "deliveryDate": self.delivery_date,
            "creatorId": self.creator_id,
        }

    @classmethod
    def from_mapping(cls, obj: Mapping[str, Any]) -> 'PromiseSnapshot':
        """
        Capture a snapshot from a promise record or a signed artifact.

        The creator is resolved by creator_id_of(). A missing delivery date
        becomes "".

        Raises:
            KeyError: a required field is absent
            ValueError: a field is not a string
        """
        creator_id = creator_id_of(obj)

        delivery_date = obj.get("deliveryDate")
        if delivery_date is None:
            delivery_date = ""

        values = {
            "id": obj["id"],
            "title": obj["title"],
            "content": obj["content"],
            "delivery_date": delivery_date,
            "creator_id": creator_id,
        }
        for name, value in values.items():
            if not isinstance(value, str):
                raise ValueError(f"{name} must be a string")
        return cls(**values)


def derive_challenge(snapshot: PromiseSnapshot) -> str:
    """
    Derive the signing challenge for a snapshot.

    Pure and deterministic; equal snapshots give equal challenges.
    """
    return b64url_encode(canonical_hash(snapshot.to_dict()))
