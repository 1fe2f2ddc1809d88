from pydantic import BaseModel, Field
from typing import Optional

class PersonalityAnswer(BaseModel):
    question_id: int
    choice_id: str

class PersonalityClassifyRequest(BaseModel):
    answers: list[PersonalityAnswer] = Field(..., min_length=1)

class PersonalityClassifyResponse(BaseModel):
    code: str
    name: Optional[str] = None
    scores: dict[str, float]
    answered_count: int

class PersonalityTypeResponse(BaseModel):
    code: str
    name: str
    description: str
    style_keywords: list[str]

class PersonalityChoiceResponse(BaseModel):
    choice_id: str
    text: str

class PersonalityQuestionResponse(BaseModel):
    question_id: int
    part: str
    text: str
    choices: list[PersonalityChoiceResponse]
