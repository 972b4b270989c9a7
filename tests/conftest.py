import copy

import pytest

from perseus_qti.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached; drop the cache so env overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def paragraph(*texts: str) -> dict:
    return {"type": "paragraph", "content": [{"type": "text", "content": t} for t in texts]}


HITTITE_PROMPT = "Which region was the heart of the Hittite empire? Select one answer."


@pytest.fixture
def radio_source():
    """Source item whose body paragraph restates the radio prompt."""
    return {
        "id": "x1a2b3c",
        "title": "Hittite heartland",
        "exerciseId": "ancient-empires",
        "content": ["Which region was the heart of the Hittite empire?\n\n[[☃ radio 1]]"],
        "widgets": {
            "radio 1": {
                "type": "radio",
                "options": {
                    "prompt": HITTITE_PROMPT,
                    "choices": [
                        {"content": "Anatolia", "correct": True},
                        {"content": "Egypt", "clue": "Egypt was ruled by pharaohs."},
                        {"content": "Mesopotamia"},
                    ],
                },
            },
        },
    }


@pytest.fixture
def numeric_source():
    """Source item with TeX and an inline numeric answer."""
    return {
        "id": "frac-decimal",
        "content": ["What is $\\frac{3}{4}$ written as a decimal? [[☃ numeric-input 1]]"],
        "widgets": {
            "numeric-input 1": {
                "type": "numeric-input",
                "options": {"answers": [{"value": 0.75, "status": "correct"}]},
            },
        },
    }


@pytest.fixture
def graphie_source(radio_source):
    """Source item with an image the compiler has no renderer for."""
    source = copy.deepcopy(radio_source)
    source["content"] = ["[[☃ image 1]]", "Which region was the heart of the Hittite empire? [[☃ radio 1]]"]
    source["widgets"]["image 1"] = {
        "type": "image",
        "options": {"backgroundImage": {"url": "web+graphie://ka-perseus-graphie/3a6f"}},
    }
    return source


@pytest.fixture
def merged_item():
    """A merged item in its JSON form, ready for XML compilation."""
    return {
        "identifier": "nice_x1a2b3c",
        "title": "Hittite heartland",
        "body": [
            paragraph("Which region was the heart of the Hittite empire?"),
            {"type": "blockSlot", "slotId": "choice_interaction"},
        ],
        "interactions": {
            "choice_interaction": {
                "type": "choiceInteraction",
                "responseIdentifier": "RESPONSE",
                "prompt": [{"type": "text", "content": HITTITE_PROMPT}],
                "choices": [
                    {"identifier": "A", "content": [paragraph("Anatolia")], "isCorrect": True},
                    {"identifier": "B", "content": [paragraph("Egypt")]},
                    {"identifier": "C", "content": [paragraph("Mesopotamia")]},
                ],
                "shuffle": False,
            },
        },
        "responseDeclarations": [
            {"identifier": "RESPONSE", "cardinality": "single", "baseType": "identifier", "correct": "A"},
        ],
        "feedback": {
            "correct": [paragraph("Correct.")],
            "incorrect": [paragraph("Review the Hittite empire.")],
        },
    }
