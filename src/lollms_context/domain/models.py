from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class InclusionPolicy(str, Enum):
    FULL_CONTENT = "fullContent"
    SIGNATURES = "signatures"
    EXCLUDED = "excluded"
    TREE_ONLY = "treeOnly"

    @property
    def badge(self) -> str:
        return _BADGES.get(self, "")

    @property
    def contributes_content(self) -> bool:
        return self in (InclusionPolicy.FULL_CONTENT, InclusionPolicy.SIGNATURES)

    @classmethod
    def from_tag(cls, tag: str) -> "InclusionPolicy":
        """
        Decode a persisted tag. `treeOnly` is implicit and never persisted, so
        it is rejected here along with any unknown value.
        """
        for policy in PERSISTED_POLICIES:
            if policy.value == tag:
                return policy
        raise ValueError(f"Unknown policy tag: {tag!r}")


PERSISTED_POLICIES = (
    InclusionPolicy.FULL_CONTENT,
    InclusionPolicy.SIGNATURES,
    InclusionPolicy.EXCLUDED,
)

_BADGES = {
    InclusionPolicy.FULL_CONTENT: "[+]",
    InclusionPolicy.SIGNATURES: "[S]",
}

# TreeOnly -> FullContent -> SignaturesOnly -> TreeOnly
CYCLE_ORDER: Dict[InclusionPolicy, InclusionPolicy] = {
    InclusionPolicy.TREE_ONLY: InclusionPolicy.FULL_CONTENT,
    InclusionPolicy.FULL_CONTENT: InclusionPolicy.SIGNATURES,
    InclusionPolicy.SIGNATURES: InclusionPolicy.TREE_ONLY,
    # An explicitly excluded path re-enters the cycle at its start.
    InclusionPolicy.EXCLUDED: InclusionPolicy.FULL_CONTENT,
}


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    role: ChatRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatExchange:
    """
    Ordered, role-tagged messages for one context generation. The first
    message is always the system message carrying the context document.
    """

    messages: List[ChatMessage] = field(default_factory=list)

    @classmethod
    def seeded(cls, document: "ContextDocument") -> "ChatExchange":
        return cls(messages=[ChatMessage(ChatRole.SYSTEM, f"CONTEXT:\n{document.markdown}")])

    def append(self, role: ChatRole, content: str) -> None:
        self.messages.append(ChatMessage(role, content))

    def to_payload(self) -> List[Dict[str, str]]:
        return [message.to_dict() for message in self.messages]


@dataclass(frozen=True)
class ContextDocument:
    markdown: str
    files: List[str] = field(default_factory=list)
    content_files: List[str] = field(default_factory=list)
    custom_prompt: str = ""
