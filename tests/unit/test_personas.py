"""Unit tests for persona assignment and scrubbing."""

from __future__ import annotations

from collections import Counter

import pytest

from mail_emulator.models import ParsedMessage
from mail_emulator.personas import (
    NAMED_PERSONAS,
    PersonaAssigner,
    count_participation,
    infer_owner_address,
)

OWNER = "phillip.allen@enron.com"


def _msg(mid: str, sender: str, to: list[str], *, cc: list[str] | None = None, folder: str = "inbox"):
    return ParsedMessage(
        original_message_id=mid,
        from_address=sender,
        to_addresses=to,
        cc_addresses=cc or [],
        folder_owner="allen-p",
        folders=[folder],
    )


@pytest.fixture
def counts() -> Counter[str]:
    return Counter(
        {
            OWNER: 10,
            "john.arnold@enron.com": 5,
            "mike.grigsby@enron.com": 3,
            "keith.holst@enron.com": 3,
            "ina.rangel@enron.com": 1,
        }
    )


class TestCountParticipation:
    """Test suite for count_participation."""

    def test_counts_each_message_once_per_address(self) -> None:
        messages = [
            _msg("1", "a@x.com", ["b@x.com", "b@x.com"], cc=["a@x.com"]),
            _msg("2", "b@x.com", ["a@x.com"]),
        ]

        assert count_participation(messages) == Counter({"a@x.com": 2, "b@x.com": 2})

    def test_parallel_fold_matches_sequential(self) -> None:
        messages = [
            _msg(str(i), f"s{i % 7}@x.com", [f"r{i % 5}@x.com", "all@x.com"]) for i in range(200)
        ]

        sequential = count_participation(messages, workers=1)
        parallel = count_participation(messages, workers=4, chunk_size=9)

        assert parallel == sequential
        assert parallel["all@x.com"] == 200


class TestInferOwnerAddress:
    """Test suite for infer_owner_address."""

    def test_prefers_sender_of_sent_folder(self) -> None:
        messages = [
            _msg("1", OWNER, ["a@x.com"], folder="sent_items"),
            _msg("2", "a@x.com", [OWNER]),
            _msg("3", "b@x.com", ["a@x.com"]),
            _msg("4", "b@x.com", ["a@x.com"]),
        ]

        assert infer_owner_address(messages) == OWNER

    def test_falls_back_to_most_frequent_recipient(self) -> None:
        messages = [_msg("1", "a@x.com", [OWNER]), _msg("2", "b@x.com", [OWNER, "c@x.com"])]

        assert infer_owner_address(messages) == OWNER

    def test_no_messages(self) -> None:
        assert infer_owner_address([]) is None


class TestPersonaAssigner:
    """Test suite for PersonaAssigner and PersonaTable."""

    def test_top_k_get_named_personas_in_rank_order(self, counts) -> None:
        table = PersonaAssigner(top_k=2).assign(counts, owner_address=OWNER)

        first = table.resolve("john.arnold@enron.com")
        second = table.resolve("keith.holst@enron.com")

        assert (first.persona_id, first.display_name, first.frequency_rank) == ("sister", "Emma Larsen", 1)
        assert first.synthetic_email == "emma.larsen@example.com"
        # Ties on count break on the address.
        assert (second.persona_id, second.frequency_rank) == ("cto", 2)

    def test_owner_maps_to_self(self, counts) -> None:
        table = PersonaAssigner(top_k=2, self_email="QA@Example.com").assign(counts, owner_address=OWNER)

        me = table.resolve(" Phillip.Allen@Enron.com ")

        assert me.persona_id == "self"
        assert me.synthetic_email == "qa@example.com"

    def test_long_tail_collapses_into_generic_personas(self, counts) -> None:
        table = PersonaAssigner(top_k=2, generic_count=3).assign(counts, owner_address=OWNER)

        persona = table.resolve("ina.rangel@enron.com")

        assert persona.role == "colleague"
        assert persona.frequency_rank is None
        assert persona in table.generic
        assert table.resolve("never.seen@elsewhere.org") in table.generic

    def test_assignment_is_deterministic(self, counts) -> None:
        reordered = Counter(dict(reversed(list(counts.items()))))

        a = PersonaAssigner(top_k=2).assign(counts, owner_address=OWNER)
        b = PersonaAssigner(top_k=2).assign(reordered, owner_address=OWNER)

        for address in [*counts, "stranger@x.com"]:
            assert a.resolve(address) == b.resolve(address)

    def test_personas_and_top_contacts(self, counts) -> None:
        table = PersonaAssigner(top_k=3, generic_count=2).assign(counts, owner_address=OWNER)

        assert [p.persona_id for p in table.personas] == [
            "self",
            "sister",
            "cto",
            "manager",
            "colleague-1",
            "colleague-2",
        ]
        contacts = table.top_contacts()
        assert [(c.rank, c.persona_id, c.message_count) for c in contacts] == [
            (1, "sister", 5),
            (2, "cto", 3),
            (3, "manager", 3),
        ]

    def test_top_k_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            PersonaAssigner(top_k=len(NAMED_PERSONAS) + 1)

    def test_scrub_replaces_addresses_and_names(self, counts) -> None:
        table = PersonaAssigner(top_k=2).assign(
            counts,
            owner_address=OWNER,
            display_names={"john.arnold@enron.com": "Arnold, John", OWNER: "Phillip K Allen"},
        )

        text = "Ask john.arnold@enron.com (John Arnold) or ARNOLD, JOHN. Regards, Phillip K Allen"

        assert table.scrub(text) == (
            "Ask emma.larsen@example.com (Emma Larsen) or Emma Larsen. Regards, Test Account"
        )

    def test_scrub_leaves_unknown_words_alone(self, counts) -> None:
        table = PersonaAssigner(top_k=1).assign(
            counts, owner_address=OWNER, display_names={"john.arnold@enron.com": "Jon"}
        )

        # Names shorter than four characters are too ambiguous to replace.
        assert table.scrub("Jon and Jonathan went home") == "Jon and Jonathan went home"
        assert table.scrub("") == ""
