import hashlib

from flashdeck.domain.constants import CARD_ID_LENGTH, CARD_ID_SEPARATOR


def generate_card_id(question: str, answer: str) -> str:
    """
    Derive a card ID from its content.

    The same (question, answer) pair always yields the same ID, so progress
    written by any code path can be merged. This is the only identity
    function in the project.
    """
    content = f"{question}{CARD_ID_SEPARATOR}{answer}"
    return hashlib.md5(content.encode("utf-8")).hexdigest()[:CARD_ID_LENGTH]
