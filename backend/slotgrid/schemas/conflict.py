from pydantic import BaseModel, Field
from typing import Literal, List

ConflictType = Literal[
    "room_conflict",
    "teacher_conflict",
    "class_conflict",
    "slot_occupied",
]

class ConflictDetail(BaseModel):
    id: str
    conflict_type: ConflictType
    description: str
    severity: Literal["hard", "soft"] = "hard"
    affected_sessions: List[int]  # ids of the sessions involved

class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_room", "change_teacher"]
    description: str
    target_session_id: int
    parameters: dict = Field(default_factory=dict)  # e.g. {"roomRef": "B-204"}

class ConflictReport(BaseModel):
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction] = Field(default_factory=list)
