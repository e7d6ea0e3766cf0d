"""Typed access to the governance engine's stored state."""

from typing import Iterator, Optional

from ..errors.exceptions import NotInitializedError
from ..host.numeric import U32_MAX, U64_MAX, checked_add
from ..storage.store import ContractStorage, StorageScope
from .core import DataKey, Member, Proposal


class GovernanceState:
    """Reads and writes members, proposals and counters of one engine."""

    def __init__(self, storage: ContractStorage):
        self.storage = storage

    @property
    def initialized(self) -> bool:
        return self.storage.has(StorageScope.INSTANCE, DataKey.TOKEN_ADDRESS.key())

    def require_initialized(self) -> None:
        if not self.initialized:
            raise NotInitializedError(f"Engine {self.storage.contract_id} is not initialized")

    # Instance values

    @property
    def token_address(self) -> Optional[str]:
        return self.storage.get(StorageScope.INSTANCE, DataKey.TOKEN_ADDRESS.key())

    @token_address.setter
    def token_address(self, address: str) -> None:
        self.storage.set(StorageScope.INSTANCE, DataKey.TOKEN_ADDRESS.key(), address)

    @property
    def proposal_count(self) -> int:
        return self.storage.get(StorageScope.INSTANCE, DataKey.PROPOSAL_COUNT.key(), 0)

    @proposal_count.setter
    def proposal_count(self, count: int) -> None:
        self.storage.set(StorageScope.INSTANCE, DataKey.PROPOSAL_COUNT.key(), count)

    @property
    def member_count(self) -> int:
        return self.storage.get(StorageScope.INSTANCE, DataKey.MEMBER_COUNT.key(), 0)

    @member_count.setter
    def member_count(self, count: int) -> None:
        self.storage.set(StorageScope.INSTANCE, DataKey.MEMBER_COUNT.key(), count)

    def next_proposal_id(self) -> int:
        """Reserve the next proposal id."""
        proposal_id = checked_add(self.proposal_count, 1, 0, U32_MAX, "proposal_count")
        self.proposal_count = proposal_id
        return proposal_id

    # Members

    def get_member(self, address: str) -> Optional[Member]:
        data = self.storage.get(StorageScope.PERSISTENT, DataKey.MEMBER.key(address))
        return Member.from_dict(data) if data is not None else None

    def has_member(self, address: str) -> bool:
        return self.storage.has(StorageScope.PERSISTENT, DataKey.MEMBER.key(address))

    def put_member(self, member: Member) -> None:
        self.storage.set(StorageScope.PERSISTENT, DataKey.MEMBER.key(member.address), member.to_dict())

    def add_member(self, member: Member) -> None:
        self.put_member(member)
        self.member_count = checked_add(self.member_count, 1, 0, U64_MAX, "member_count")

    def iter_members(self) -> Iterator[Member]:
        prefix = DataKey.MEMBER.key("")
        for key in self.storage.keys(StorageScope.PERSISTENT, prefix):
            member = self.get_member(key[len(prefix):])
            if member is not None:
                yield member

    # Proposals

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        data = self.storage.get(StorageScope.PERSISTENT, DataKey.PROPOSAL.key(proposal_id))
        return Proposal.from_dict(data) if data is not None else None

    def put_proposal(self, proposal: Proposal) -> None:
        self.storage.set(StorageScope.PERSISTENT, DataKey.PROPOSAL.key(proposal.id), proposal.to_dict())

    def iter_proposals(self) -> Iterator[Proposal]:
        for proposal_id in range(1, self.proposal_count + 1):
            proposal = self.get_proposal(proposal_id)
            if proposal is not None:
                yield proposal
