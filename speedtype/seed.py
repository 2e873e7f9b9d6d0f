"""Seed the database with a starter set of typing passages."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.services.texts import count_texts, create_text

logger = logging.getLogger(__name__)

DEFAULT_TEXTS: dict[str, list[str]] = {
    "easy": [
        "The quick brown fox jumps over the lazy dog. This pangram sentence contains "
        "every letter of the alphabet at least once, making it perfect for typing practice.",
        "Practice makes perfect when learning to type. Focus on accuracy first, then "
        "gradually increase your speed. Proper posture and finger placement are essential "
        "for long-term improvement.",
        "Learning to type is a valuable skill that will serve you well throughout your "
        "life. Take your time and be patient with yourself as you develop this important "
        "ability.",
    ],
    "medium": [
        "Technology has revolutionized the way we communicate, work, and live. From "
        "smartphones to artificial intelligence, innovation continues to shape our daily "
        "experiences and transform how we interact with the world around us.",
        "Machine learning algorithms analyze vast amounts of data to identify patterns and "
        "make predictions. These systems power everything from recommendation engines to "
        "autonomous vehicles, demonstrating the incredible potential of artificial "
        "intelligence.",
        "The internet has connected billions of people across the globe, enabling instant "
        "communication and access to information. This unprecedented connectivity has "
        "transformed education, commerce, and social interactions in ways we are still "
        "discovering.",
    ],
    "hard": [
        "Quantum computing represents a fundamental shift in computational power, "
        "leveraging quantum mechanical phenomena like superposition and entanglement to "
        "process information in ways that classical computers cannot match, potentially "
        "revolutionizing cryptography, drug discovery, and complex system optimization.",
        "Neuroplasticity demonstrates the brain's remarkable ability to reorganize itself "
        "by forming new neural connections throughout life. This adaptability underlies "
        "learning, memory, and recovery from brain injuries, highlighting the importance "
        "of continuous mental stimulation and challenging cognitive activities.",
    ],
}


async def seed_default_texts(db: AsyncSession) -> int:
    """Insert the English starter passages if there are no active texts yet."""
    if await count_texts(db):
        return 0

    added = 0
    for difficulty, passages in DEFAULT_TEXTS.items():
        for content in passages:
            await create_text(db, content, language="en", difficulty=difficulty)
            added += 1
    logger.info("Seeded %d default texts", added)
    return added
