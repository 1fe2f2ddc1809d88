"""Seed a sample four-dimension matching survey and a few photographer profiles."""
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from photomatch.database import dispose_engine, get_session_factory
from photomatch.models import PhotographerProfile, SurveyChoice, SurveyImage, SurveyQuestion


SURVEY_QUESTIONS = [
    {
        "question_order": 1,
        "question_key": "shoot_mood",
        "title": "Which mood should your photos have?",
        "question_type": "single_choice",
        "dimension_weights": {"style_emotion": 1.0},
        "choices": [
            "Calm and quiet, with soft natural light",
            "Warm and cosy, like a family album",
            "Bright and energetic, full of movement",
            "Cinematic and moody, with strong contrast",
        ],
    },
    {
        "question_order": 2,
        "question_key": "reference_image",
        "title": "Pick the picture that feels most like you.",
        "question_type": "image_choice",
        "dimension_weights": {"style_emotion": 0.5, "purpose_story": 0.5},
        "images": [
            ("https://example.com/survey/forest.jpg", "A person walking alone through a misty forest"),
            ("https://example.com/survey/cafe.jpg", "Friends laughing together in a sunny cafe"),
            ("https://example.com/survey/street.jpg", "A neon-lit city street at night"),
            ("https://example.com/survey/studio.jpg", "A minimal studio portrait on a plain backdrop"),
        ],
    },
    {
        "question_order": 3,
        "question_key": "direction_style",
        "title": "How would you like the photographer to work with you?",
        "question_type": "single_choice",
        "dimension_weights": {"communication_psychology": 1.0},
        "choices": [
            "Give me clear directions for every pose",
            "Chat with me and let things happen naturally",
            "Mostly stay in the background and observe",
            "Experiment together and try unusual ideas",
        ],
    },
    {
        "question_order": 4,
        "question_key": "shoot_purpose",
        "title": "What are these photos for?",
        "question_type": "single_choice",
        "dimension_weights": {"purpose_story": 1.0},
        "choices": [
            "Marking a milestone such as a birthday or graduation",
            "A profile or portfolio for work",
            "Recording an ordinary day as it is",
            "Telling a story about someone I love",
        ],
    },
    {
        "question_order": 5,
        "question_key": "companion",
        "title": "Who will be in the photos with you?",
        "question_type": "single_choice",
        "dimension_weights": {"companion": 1.0},
        "choices": [
            "Just me",
            "My partner",
            "My family, including children",
            "A group of friends",
        ],
    },
]

SAMPLE_PHOTOGRAPHERS = [
    {
        "display_name": "Quiet Light Studio",
        "style_emotion_description": "Soft natural light, muted tones and calm, airy compositions.",
        "communication_psychology_description": "Gentle and patient; lets clients settle in at their own pace.",
        "purpose_story_description": "Everyday moments and personal milestones told honestly.",
        "companion_description": "Solo portraits and couples who prefer an intimate session.",
    },
    {
        "display_name": "City Frames",
        "style_emotion_description": "High-contrast urban scenes, neon at night and cinematic colour.",
        "communication_psychology_description": "Energetic director who gives clear, quick posing cues.",
        "purpose_story_description": "Editorial profiles and portfolio shoots with a strong concept.",
        "companion_description": "Individuals and groups of friends who enjoy the street.",
    },
]


async def seed():
    async with get_session_factory()() as session:
        for q in SURVEY_QUESTIONS:
            existing = await session.execute(
                select(SurveyQuestion).where(SurveyQuestion.question_key == q["question_key"])
            )
            if existing.scalar_one_or_none() is not None:
                print(f"  Question {q['question_key']} already exists, skipping.")
                continue

            question = SurveyQuestion(
                question_order=q["question_order"],
                question_key=q["question_key"],
                title=q["title"],
                question_type=q["question_type"],
                dimension_weights=q["dimension_weights"],
            )
            session.add(question)
            await session.flush()
            for order, label in enumerate(q.get("choices", []), start=1):
                session.add(SurveyChoice(question_id=question.id, choice_order=order, label=label))
            for order, (url, label) in enumerate(q.get("images", []), start=1):
                session.add(
                    SurveyImage(question_id=question.id, image_order=order, image_url=url, image_label=label)
                )
            print(f"  Seeded question {q['question_order']}: {q['question_key']}")

        for p in SAMPLE_PHOTOGRAPHERS:
            existing = await session.execute(
                select(PhotographerProfile).where(PhotographerProfile.display_name == p["display_name"])
            )
            if existing.scalar_one_or_none() is None:
                session.add(PhotographerProfile(**p))
                print(f"  Seeded photographer {p['display_name']}")
        await session.commit()
    await dispose_engine()
    print("Done seeding. Run scripts/process_embedding_queue.py --enqueue-missing to vectorise.")


if __name__ == "__main__":
    asyncio.run(seed())
