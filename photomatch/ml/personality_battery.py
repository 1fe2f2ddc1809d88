"""
The 21-question personality battery.

Each choice contributes a fixed number of points to every one of the nine
personality codes.  Contributions are content, authored by hand; nothing
here is computed at runtime.  Weight tuples follow ``PERSONALITY_CODES``
order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

PERSONALITY_CODES: tuple[str, ...] = ("A1", "A2", "B1", "C1", "D1", "E1", "E2", "F1", "F2")

# Ties between codes resolve to the earliest entry.
TIE_BREAK_PRIORITY: tuple[str, ...] = PERSONALITY_CODES


@dataclass(frozen=True)
class BatteryChoice:
    choice_id: str
    text: str
    contributions: Mapping[str, float]


@dataclass(frozen=True)
class BatteryQuestion:
    question_id: int
    part: str
    text: str
    choices: tuple[BatteryChoice, ...]

    def choice(self, choice_id: str) -> BatteryChoice | None:
        for c in self.choices:
            if c.choice_id == choice_id:
                return c
        return None


@dataclass(frozen=True)
class PersonalityType:
    code: str
    name: str
    description: str
    style_keywords: tuple[str, ...]


PERSONALITY_TYPES: dict[str, PersonalityType] = {
    "A1": PersonalityType(
        "A1", "Quiet Observer",
        "Prefers a solitary gaze and calm atmospheres; sensitive and detailed.",
        ("calm", "introverted", "observant", "delicate"),
    ),
    "A2": PersonalityType(
        "A2", "Warm Companion",
        "Values warm, emotional connection and affectionate relationships.",
        ("warm", "emotional", "together", "caring"),
    ),
    "B1": PersonalityType(
        "B1", "Sentimental Recorder",
        "Captures everyday feeling; a natural healer who seeks comfort.",
        ("natural", "healing", "everyday", "peaceful"),
    ),
    "C1": PersonalityType(
        "C1", "Cinematic Dreamer",
        "Drawn to structural beauty and urban mood; a chic minimalist.",
        ("chic", "minimal", "urban", "structured"),
    ),
    "D1": PersonalityType(
        "D1", "Energetic Leader",
        "Bright, energetic compositions; a casual optimist.",
        ("vital", "bright", "leadership", "positive"),
    ),
    "E1": PersonalityType(
        "E1", "City Dreamer",
        "Loves city light and shadow; a dreaming, romantic soul.",
        ("urban", "dreamy", "light-and-shadow", "romantic"),
    ),
    "E2": PersonalityType(
        "E2", "Nonchalant Artist",
        "Prefers experimental, emotive approaches; a free-spirited artist.",
        ("artistic", "experimental", "original", "free"),
    ),
    "F1": PersonalityType(
        "F1", "Free Explorer",
        "Enjoys dynamic exploration unbound by convention; adventurous.",
        ("free", "exploration", "dynamic", "adventure"),
    ),
    "F2": PersonalityType(
        "F2", "Sensory Experimenter",
        "Seeks conceptual, unusual attempts; a creative experimenter.",
        ("sensory", "unique", "conceptual", "creative"),
    ),
}


def _q(question_id: int, part: str, text: str, *choices: tuple[str, str, tuple[int, ...]]) -> BatteryQuestion:
    return BatteryQuestion(
        question_id=question_id,
        part=part,
        text=text,
        choices=tuple(
            BatteryChoice(cid, ctext, dict(zip(PERSONALITY_CODES, weights)))
            for cid, ctext, weights in choices
        ),
    )


#                                                                 A1 A2 B1 C1 D1 E1 E2 F1 F2
DEFAULT_BATTERY: tuple[BatteryQuestion, ...] = (
    _q(1, "emotion", "At a gathering with friends, I usually...",
       ("1a", "Observe quietly and join the conversation only when needed", (3, 1, 2, 2, 0, 1, 2, 0, 1)),
       ("1b", "Adjust the mood so everyone feels comfortable",             (0, 3, 2, 1, 2, 1, 0, 1, 0)),
       ("1c", "Lead the conversation and set the mood",                    (0, 1, 0, 0, 3, 1, 1, 2, 2)),
       ("1d", "Go deep only on topics that interest me",                   (2, 0, 1, 2, 0, 2, 3, 0, 2))),
    _q(2, "emotion", "When I am stressed, I...",
       ("2a", "Take time alone to think calmly",                           (3, 1, 2, 2, 0, 2, 2, 0, 1)),
       ("2b", "Talk it over with someone I trust",                         (1, 3, 2, 1, 1, 1, 0, 1, 0)),
       ("2c", "Burn off energy with something active",                     (0, 0, 1, 0, 3, 1, 1, 3, 1)),
       ("2d", "Work it out through creative or artistic expression",       (1, 0, 1, 1, 0, 2, 3, 1, 3))),
    _q(3, "emotion", "When adapting to a new environment, I...",
       ("3a", "Observe slowly and act carefully",                          (3, 2, 2, 2, 0, 1, 1, 0, 1)),
       ("3b", "Try to get close to the people around me",                  (0, 3, 1, 1, 2, 1, 0, 2, 1)),
       ("3c", "Explore and take on challenges actively",                   (0, 1, 0, 1, 3, 2, 2, 3, 2)),
       ("3d", "Settle in naturally, in my own way",                        (2, 1, 3, 2, 1, 2, 2, 1, 2))),
    _q(4, "emotion", "When it comes to expressing feelings, I...",
       ("4a", "Rarely show my emotions",                                   (3, 0, 1, 2, 0, 1, 2, 1, 1)),
       ("4b", "Express them warmly and sincerely",                         (1, 3, 3, 1, 2, 2, 1, 2, 1)),
       ("4c", "Show them openly and directly",                             (0, 1, 1, 0, 3, 1, 1, 3, 2)),
       ("4d", "Express them in creative, unusual ways",                    (1, 0, 0, 1, 0, 2, 3, 1, 3))),
    _q(5, "emotion", "When I rest, I...",
       ("5a", "Spend time alone somewhere quiet",                          (3, 1, 2, 2, 0, 1, 2, 0, 1)),
       ("5b", "Spend warm time with family or close friends",              (1, 3, 3, 1, 1, 1, 0, 1, 0)),
       ("5c", "Do an active hobby or exercise",                            (0, 1, 1, 1, 3, 1, 1, 3, 1)),
       ("5d", "Enjoy inspiring art or cultural activities",                (2, 0, 1, 2, 0, 3, 3, 1, 3))),
    _q(6, "emotion", "When making an important decision, I...",
       ("6a", "Think it through alone and decide carefully",               (3, 1, 2, 2, 0, 2, 2, 1, 1)),
       ("6b", "Listen to others and decide together",                      (1, 3, 2, 1, 2, 1, 0, 1, 0)),
       ("6c", "Decide quickly on instinct and act",                        (0, 0, 0, 0, 3, 1, 1, 3, 2)),
       ("6d", "Decide by my own standards and philosophy",                 (2, 0, 1, 2, 1, 2, 3, 2, 3))),
    _q(7, "emotion", "In a conflict, I...",
       ("7a", "Step back quietly and watch",                               (3, 1, 1, 2, 0, 1, 2, 0, 1)),
       ("7b", "Mediate and try to reconcile",                              (1, 3, 2, 1, 1, 1, 0, 1, 0)),
       ("7c", "Actively work to solve the problem",                        (0, 1, 1, 1, 3, 1, 1, 3, 2)),
       ("7d", "Interpret and respond in my own way",                       (2, 0, 1, 2, 0, 2, 3, 1, 3))),
    _q(8, "emotion", "When meeting new people, I...",
       ("8a", "Observe quietly and open up gradually",                     (3, 2, 2, 2, 0, 1, 2, 0, 1)),
       ("8b", "Approach warmly and make things comfortable",               (1, 3, 2, 1, 2, 1, 0, 2, 1)),
       ("8c", "Start and lead the conversation",                           (0, 1, 0, 1, 3, 2, 1, 3, 2)),
       ("8d", "Leave an impression with my uniqueness",                    (1, 0, 0, 1, 1, 2, 3, 2, 3))),
    _q(9, "emotion", "In daily life, I...",
       ("9a", "Prefer regular, stable patterns",                           (3, 2, 2, 2, 1, 1, 0, 0, 0)),
       ("9b", "Centre my day on relationships with people",                (1, 3, 2, 1, 2, 1, 0, 2, 1)),
       ("9c", "Look for new challenges and activities every day",          (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("9d", "Live fluidly, following mood and inspiration",              (1, 0, 2, 1, 1, 2, 3, 2, 3))),
    _q(10, "emotion", "I feel accomplished when...",
       ("10a", "My own effort pays off",                                   (3, 1, 2, 2, 1, 2, 2, 1, 2)),
       ("10b", "I have helped someone else",                               (1, 3, 2, 1, 2, 1, 0, 1, 0)),
       ("10c", "I reach a challenging goal",                               (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("10d", "I finish a creative piece of work",                        (2, 0, 1, 2, 0, 3, 3, 2, 3))),
    _q(11, "photo", "What mood do you prefer when being photographed?",
       ("11a", "Quiet and calm",                                           (3, 2, 3, 2, 0, 1, 1, 0, 1)),
       ("11b", "Warm and cosy",                                            (1, 3, 3, 1, 1, 1, 0, 1, 0)),
       ("11c", "Lively and dynamic",                                       (0, 1, 0, 1, 3, 2, 2, 3, 2)),
       ("11d", "Unique and artistic",                                      (1, 0, 0, 2, 0, 3, 3, 1, 3))),
    _q(12, "photo", "How do you want to appear in a photo?",
       ("12a", "Sincere and natural",                                      (2, 3, 3, 1, 2, 1, 1, 2, 1)),
       ("12b", "Polished and refined",                                     (1, 1, 1, 3, 2, 2, 2, 1, 2)),
       ("12c", "Bright and full of energy",                                (0, 2, 1, 1, 3, 2, 1, 3, 2)),
       ("12d", "Original and full of character",                           (2, 0, 0, 2, 1, 3, 3, 2, 3))),
    _q(13, "photo", "Which composition do you prefer?",
       ("13a", "Stable and balanced",                                      (2, 2, 2, 3, 1, 1, 1, 1, 1)),
       ("13b", "Warm and friendly",                                        (1, 3, 3, 1, 2, 1, 0, 2, 0)),
       ("13c", "Dynamic, with a sense of movement",                        (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("13d", "Unusual and experimental",                                 (1, 0, 0, 2, 1, 3, 3, 2, 3))),
    _q(14, "photo", "Which colour palette do you prefer?",
       ("14a", "Calm and restrained",                                      (3, 1, 2, 3, 0, 1, 2, 0, 1)),
       ("14b", "Warm and natural",                                         (1, 3, 3, 1, 1, 1, 1, 2, 1)),
       ("14c", "Bright and vivid",                                         (0, 2, 1, 1, 3, 2, 1, 3, 2)),
       ("14d", "Distinctive and striking",                                 (1, 0, 0, 2, 1, 3, 3, 2, 3))),
    _q(15, "photo", "Where would you like to be photographed?",
       ("15a", "Somewhere quiet in nature",                                (3, 2, 3, 1, 0, 1, 2, 2, 1)),
       ("15b", "A warm, cosy indoor space",                                (2, 3, 2, 2, 1, 1, 1, 0, 1)),
       ("15c", "A lively city street or square",                           (0, 1, 0, 2, 3, 3, 1, 2, 2)),
       ("15d", "A unique, special place",                                  (1, 0, 1, 2, 1, 2, 3, 3, 3))),
    _q(16, "photo", "What lighting do you prefer?",
       ("16a", "Soft and natural",                                         (2, 3, 3, 2, 1, 1, 1, 2, 1)),
       ("16b", "Clean and clear",                                          (2, 1, 1, 3, 2, 1, 2, 1, 2)),
       ("16c", "Bright and radiant",                                       (0, 2, 2, 1, 3, 2, 1, 3, 2)),
       ("16d", "Dramatic",                                                 (1, 0, 0, 2, 1, 3, 3, 1, 3))),
    _q(17, "photo", "Which props or elements would you include?",
       ("17a", "Minimal, natural props",                                   (3, 2, 3, 2, 1, 1, 1, 1, 1)),
       ("17b", "Cosy props that add warmth",                               (1, 3, 2, 1, 1, 1, 0, 1, 0)),
       ("17c", "Active, energetic props",                                  (0, 1, 1, 1, 3, 2, 1, 3, 2)),
       ("17d", "Original, artistic props",                                 (1, 0, 0, 2, 1, 3, 3, 2, 3))),
    _q(18, "photo", "What overall feeling do you want?",
       ("18a", "Peaceful and settled",                                     (3, 2, 3, 2, 0, 1, 1, 0, 1)),
       ("18b", "Warm and emotional",                                       (1, 3, 3, 1, 1, 2, 1, 1, 1)),
       ("18c", "Lively and vivid",                                         (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("18d", "Mysterious and artistic",                                  (2, 0, 0, 2, 0, 3, 3, 1, 3))),
    _q(19, "photo", "What story do you want your photos to tell?",
       ("19a", "Precious moments of a quiet everyday",                     (3, 2, 3, 2, 0, 1, 1, 1, 1)),
       ("19b", "Warm relationships and connection",                        (1, 3, 2, 1, 2, 1, 0, 2, 0)),
       ("19c", "Dynamic challenge and achievement",                        (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("19d", "Unique character and creative expression",                 (2, 0, 0, 2, 1, 3, 3, 2, 3))),
    _q(20, "photo", "What message should viewers take away?",
       ("20a", "Stillness and inner peace",                                (3, 1, 2, 2, 0, 1, 2, 0, 1)),
       ("20b", "Warmth and human emotion",                                 (1, 3, 3, 1, 2, 2, 1, 2, 1)),
       ("20c", "Passion and positive energy",                              (0, 2, 1, 1, 3, 2, 1, 3, 2)),
       ("20d", "Originality and artistic inspiration",                     (2, 0, 0, 2, 0, 3, 3, 2, 3))),
    _q(21, "photo", "Finally, what kind of finish do you want?",
       ("21a", "Natural and authentic",                                    (2, 3, 3, 1, 1, 1, 1, 2, 1)),
       ("21b", "Refined and flawless",                                     (2, 1, 1, 3, 2, 2, 2, 1, 2)),
       ("21c", "Vivid and impactful",                                      (0, 1, 1, 1, 3, 2, 2, 3, 2)),
       ("21d", "Original and artistic",                                    (1, 0, 0, 2, 1, 3, 3, 2, 3))),
)
