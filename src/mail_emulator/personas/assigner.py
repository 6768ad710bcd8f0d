"""Deterministic mapping from real addresses to synthetic personas.

Ranking is done on participation counts (one count per message an address
appears in as sender or recipient). The top K non-owner addresses receive
the named personas of the catalog in rank order; everybody else lands in one
of N generic personas chosen by a stable hash of the address, so the mapping
does not depend on iteration order, worker interleaving or process salt.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import structlog

from mail_emulator.models import ContactSummary, ParsedMessage, Persona
from mail_emulator.utils import is_sent_folder, stable_hash

from .catalog import GENERIC_ROLE, NAMED_PERSONAS, SELF_PERSONA_ID, SELF_ROLE, generic_persona_id

logger = structlog.get_logger()

_EMAIL = re.compile(r"[\w.+'-]+@[\w-]+(?:\.[\w-]+)+")
_MIN_NAME_LENGTH = 4


def _count_chunk(chunk: Sequence[ParsedMessage]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for m in chunk:
        counts.update(m.participants)
    return counts


def count_participation(
    messages: Sequence[ParsedMessage],
    *,
    workers: int = 1,
    chunk_size: int = 500,
) -> Counter[str]:
    """Count, per address, the number of messages it participates in.

    Each worker folds its chunk into a local ``Counter``; the partial counters
    are merged once at the end. Addition is commutative, so the totals (and
    therefore the ranking) do not depend on how the work was split.
    """
    chunks = [messages[i : i + chunk_size] for i in range(0, len(messages), chunk_size)]
    if workers <= 1 or len(chunks) <= 1:
        partials = [_count_chunk(c) for c in chunks]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partials = list(pool.map(_count_chunk, chunks))

    total: Counter[str] = Counter()
    for partial in partials:
        total.update(partial)
    return total


def infer_owner_address(messages: Sequence[ParsedMessage]) -> str | None:
    """Guess the mailbox owner's real address.

    The most frequent sender of messages filed in a sent folder wins; without
    sent folders, the most frequent recipient is used.
    """
    senders: Counter[str] = Counter(
        m.from_address for m in messages if any(is_sent_folder(f) for f in m.folders)
    )
    if senders:
        return min(senders.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    recipients: Counter[str] = Counter()
    for m in messages:
        recipients.update(m.to_addresses)
    if recipients:
        return min(recipients.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return None


def _name_variants(name: str) -> list[str]:
    name = " ".join(name.split())
    variants = [name]
    if "," in name:
        last, first = (p.strip() for p in name.split(",", 1))
        if first and last:
            variants.append(f"{first.rstrip('.')} {last}")
    return [v for v in variants if len(v) >= _MIN_NAME_LENGTH and any(c.isalpha() for c in v)]


class PersonaTable:
    """The resolved persona mapping for one run."""

    def __init__(
        self,
        *,
        self_persona: Persona,
        owner_address: str | None,
        named: dict[str, Persona],
        generic: list[Persona],
        counts: Counter[str],
        display_names: dict[str, str] | None = None,
    ) -> None:
        self.self_persona = self_persona
        self.owner_address = owner_address
        self.named = named
        self.generic = generic
        self.counts = counts
        self._name_pattern, self._name_targets = self._compile_names(display_names or {})

    def resolve(self, address: str) -> Persona:
        """Return the persona for a real address. Unknown addresses get a generic persona."""
        address = address.strip().lower()
        if self.owner_address and address == self.owner_address:
            return self.self_persona
        named = self.named.get(address)
        if named is not None:
            return named
        return self.generic[stable_hash(address) % len(self.generic)]

    @property
    def personas(self) -> list[Persona]:
        """All personas: self, named in rank order, then generic slots."""
        ranked = sorted(self.named.values(), key=lambda p: p.frequency_rank or 0)
        return [self.self_persona, *ranked, *self.generic]

    def top_contacts(self) -> list[ContactSummary]:
        by_persona = {p.persona_id: addr for addr, p in self.named.items()}
        return [
            ContactSummary(
                rank=p.frequency_rank or 0,
                persona_id=p.persona_id,
                display_name=p.display_name,
                synthetic_email=p.synthetic_email,
                role=p.role,
                message_count=self.counts[by_persona[p.persona_id]],
            )
            for p in sorted(self.named.values(), key=lambda p: p.frequency_rank or 0)
        ]

    def scrub(self, text: str) -> str:
        """Replace real addresses and known real names in free text."""
        if not text:
            return text
        text = _EMAIL.sub(lambda m: self.resolve(m.group(0)).synthetic_email, text)
        if self._name_pattern is not None:
            targets = self._name_targets
            text = self._name_pattern.sub(lambda m: targets.get(m.group(0).casefold(), m.group(0)), text)
        return text

    def _compile_names(self, display_names: dict[str, str]) -> tuple[re.Pattern[str] | None, dict[str, str]]:
        targets: dict[str, str] = {}
        for address in sorted(display_names):
            replacement = self.resolve(address).display_name
            for variant in _name_variants(display_names[address]):
                targets.setdefault(variant.casefold(), replacement)
        if not targets:
            return None, {}
        alternation = "|".join(re.escape(n) for n in sorted(targets, key=lambda n: (-len(n), n)))
        return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE), targets


class PersonaAssigner:
    """Builds a ``PersonaTable`` from participation counts."""

    def __init__(
        self,
        *,
        top_k: int = 5,
        generic_count: int = 8,
        synthetic_domain: str = "example.com",
        self_email: str = "test.account@example.com",
        self_name: str = "Test Account",
    ) -> None:
        if not 0 <= top_k <= len(NAMED_PERSONAS):
            raise ValueError(f"top_k must be between 0 and {len(NAMED_PERSONAS)}")
        if generic_count < 1:
            raise ValueError("generic_count must be at least 1")
        self.top_k = top_k
        self.generic_count = generic_count
        self.synthetic_domain = synthetic_domain
        self.self_email = self_email.strip().lower()
        self.self_name = self_name

    def assign(
        self,
        counts: Counter[str],
        *,
        owner_address: str | None,
        display_names: dict[str, str] | None = None,
    ) -> PersonaTable:
        """Rank addresses and hand out personas.

        Args:
            counts: Participation count per real address.
            owner_address: Real address of the mailbox owner; always maps to self.
            display_names: Real display names per address, used for scrubbing.
        """
        owner = owner_address.strip().lower() if owner_address else None
        ranked = sorted(
            ((addr, n) for addr, n in counts.items() if addr != owner),
            key=lambda kv: (-kv[1], kv[0]),
        )

        named: dict[str, Persona] = {}
        for rank, ((address, _), spec) in enumerate(zip(ranked[: self.top_k], NAMED_PERSONAS), start=1):
            named[address] = Persona(
                persona_id=spec.role,
                display_name=spec.display_name,
                synthetic_email=f"{spec.local_part}@{self.synthetic_domain}",
                role=spec.role,
                frequency_rank=rank,
            )

        generic = [
            Persona(
                persona_id=generic_persona_id(slot),
                display_name=f"Colleague {slot}",
                synthetic_email=f"{generic_persona_id(slot)}@{self.synthetic_domain}",
                role=GENERIC_ROLE,
            )
            for slot in range(1, self.generic_count + 1)
        ]

        self_persona = Persona(
            persona_id=SELF_PERSONA_ID,
            display_name=self.self_name,
            synthetic_email=self.self_email,
            role=SELF_ROLE,
        )

        logger.info(
            "personas_assigned",
            address_count=len(counts),
            named_count=len(named),
            generic_count=len(generic),
            owner_known=owner is not None,
        )
        return PersonaTable(
            self_persona=self_persona,
            owner_address=owner,
            named=named,
            generic=generic,
            counts=counts,
            display_names=display_names,
        )
