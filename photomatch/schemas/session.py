from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional

class SessionResponse(BaseModel):
    session_id: UUID
    session_token: str
    status: str
    created_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class AnswerCreate(BaseModel):
    question_id: UUID
    choice_id: UUID  # survey_choices.id or survey_images.id depending on question type
