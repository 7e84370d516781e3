"""Tests for character records: tier rules and validation."""

import pytest

from cardhunt.models.character import (
    Character,
    InvalidCharacter,
    Tier,
    ValidCharacter,
    check_tier_prefix,
    tier_from_prefix,
    tier_from_value,
    validate_character,
)


def record(**overrides) -> dict:
    data = {
        "id": "c101",
        "name": "Pikachu",
        "question": "What type is Pikachu?",
        "options": ["Electric", "Water", "Fire"],
        "correctAnswer": 0,
        "value": 50,
        "image": "⚡",
        "isCaught": False,
        "caughtByTeam": "",
    }
    data.update(overrides)
    return data


class TestTiers:
    @pytest.mark.parametrize(
        ("value", "tier"),
        [
            (50, Tier.LEGENDARY),
            (100, Tier.LEGENDARY),
            (49, Tier.RARE),
            (20, Tier.RARE),
            (19, Tier.COMMON),
            (8, Tier.COMMON),
            (0, Tier.COMMON),
        ],
    )
    def test_tier_from_value(self, value: int, tier: Tier) -> None:
        assert tier_from_value(value) == tier

    def test_tier_from_prefix(self) -> None:
        assert tier_from_prefix("c101") == Tier.LEGENDARY
        assert tier_from_prefix("c215") == Tier.RARE
        assert tier_from_prefix("c399") == Tier.COMMON
        assert tier_from_prefix("char_001") is None
        assert tier_from_prefix("c1") is None

    def test_prefix_mismatch_reported(self) -> None:
        """The id prefix never overrides the value-derived tier."""
        result = validate_character(record(id="c105", value=8))

        assert isinstance(result, ValidCharacter)
        assert result.character.tier == Tier.COMMON
        message = check_tier_prefix(result.character)
        assert message is not None
        assert "Legendary" in message and "Common" in message

    def test_prefix_agreement(self) -> None:
        result = validate_character(record())

        assert isinstance(result, ValidCharacter)
        assert check_tier_prefix(result.character) is None

    def test_unprefixed_id_not_checked(self) -> None:
        result = validate_character(record(id="legacy-7", value=8))

        assert isinstance(result, ValidCharacter)
        assert check_tier_prefix(result.character) is None


class TestValidation:
    def test_valid_record(self) -> None:
        result = validate_character(record(modelUrl="/models/pikachu.glb"))

        assert result.valid is True
        assert isinstance(result, ValidCharacter)
        character = result.character
        assert character.id == "c101"
        assert character.options == ["Electric", "Water", "Fire"]
        assert character.model_url == "/models/pikachu.glb"
        assert character.mind_file is None

    @pytest.mark.parametrize(
        "field",
        ["id", "name", "question", "options", "correctAnswer", "value", "isCaught", "caughtByTeam"],
    )
    def test_missing_required_field(self, field: str) -> None:
        data = record()
        del data[field]

        result = validate_character(data)

        assert isinstance(result, InvalidCharacter)
        assert f"missing {field}" in result.problems

    def test_defaults_are_never_filled_in(self) -> None:
        """Missing ownership fields make the record invalid, not unclaimed."""
        data = record()
        del data["isCaught"]
        del data["caughtByTeam"]

        result = validate_character(data)

        assert result.valid is False

    def test_all_problems_reported(self) -> None:
        result = validate_character({"id": "c101", "value": -5})

        assert isinstance(result, InvalidCharacter)
        assert result.record_id == "c101"
        assert "missing name" in result.problems
        assert "value must be a non-negative integer" in result.problems

    @pytest.mark.parametrize(
        ("overrides", "problem"),
        [
            ({"options": []}, "options must be a non-empty list"),
            ({"options": "Electric"}, "options must be a non-empty list"),
            ({"options": ["Electric", ""]}, "options must be non-empty strings"),
            ({"correctAnswer": 3}, "correctAnswer is out of range"),
            ({"correctAnswer": -1}, "correctAnswer is out of range"),
            ({"correctAnswer": "0"}, "correctAnswer must be an integer"),
            ({"correctAnswer": True}, "correctAnswer must be an integer"),
            ({"value": 2.5}, "value must be a non-negative integer"),
            ({"isCaught": "no"}, "isCaught must be a boolean"),
            ({"caughtByTeam": None}, "missing caughtByTeam"),
            ({"isCaught": True}, "isCaught disagrees with caughtByTeam"),
            ({"caughtByTeam": "team_001"}, "isCaught disagrees with caughtByTeam"),
        ],
    )
    def test_malformed_fields(self, overrides: dict, problem: str) -> None:
        result = validate_character(record(**overrides))

        assert isinstance(result, InvalidCharacter)
        assert problem in result.problems

    def test_caught_record(self) -> None:
        result = validate_character(record(isCaught=True, caughtByTeam="team_002"))

        assert isinstance(result, ValidCharacter)
        assert result.character.caught_by_team == "team_002"

    def test_not_a_mapping(self) -> None:
        result = validate_character(["c101"])

        assert isinstance(result, InvalidCharacter)
        assert result.record_id == "(unknown)"


class TestCharacterModel:
    def test_fields_round_trip_through_validation(self) -> None:
        character = Character(
            id="c201",
            name="Eevee",
            question="How many evolutions?",
            options=["3", "8"],
            correct_answer=1,
            value=20,
            mind_file="/ar-targets/rare.mind",
        )

        result = validate_character({"id": character.id, **character.to_fields()})

        assert isinstance(result, ValidCharacter)
        assert result.character == character

    def test_to_dict_includes_tier(self) -> None:
        character = Character(
            id="c301",
            name="Magikarp",
            question="?",
            options=["Splash"],
            correct_answer=0,
            value=8,
        )

        data = character.to_dict()

        assert data["tier"] == "Common"
        assert data["correctAnswer"] == 0
        assert "modelUrl" not in data

    def test_is_correct_answer(self) -> None:
        character = Character(
            id="c301", name="Magikarp", question="?", options=["a", "b"], correct_answer=1, value=8
        )

        assert character.is_correct_answer(1) is True
        assert character.is_correct_answer(0) is False
