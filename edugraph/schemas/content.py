from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ConceptType(str, Enum):
    SUBJECT = "Subject"
    MATTER = "Matter"
    GRADE = "Grade"
    MOLECULE = "Molecule"
    TOPIC = "Topic"
    ATOM = "Atom"
    PARTICLE = "Particle"


class ResourceType(str, Enum):
    VIDEO = "video"
    DOCUMENT = "document"
    IMAGE = "image"
    AUDIO = "audio"
    INTERACTIVE = "interactive"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    OTHER = "other"


class ConceptCreate(BaseModel):
    concept_id: Optional[str] = None
    name: str = Field(min_length=1)
    type: ConceptType
    description: Optional[str] = None
    parent_id: Optional[str] = None
    prerequisite_ids: List[str] = []


class ConceptUpdate(BaseModel):
    """Fields left out are untouched; `parent_id` set to None detaches the concept from its parent."""
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[ConceptType] = None
    description: Optional[str] = None
    parent_id: Optional[str] = None


class QuestionCreate(BaseModel):
    id: Optional[str] = None
    question_text: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_answer: str
    explanation: Optional[str] = None
    tags: List[str] = []


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(default=None, min_length=1)
    options: Optional[List[str]] = Field(default=None, min_length=2)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    tags: Optional[List[str]] = None


class QuizCreate(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None
    time_limit: int = Field(ge=1)
    concept_id: str
    question_ids: List[str] = Field(min_length=1)


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=1)
    concept_id: Optional[str] = None
    question_ids: Optional[List[str]] = None


class ResourceCreate(BaseModel):
    resource_id: Optional[str] = None
    name: str = Field(min_length=1)
    type: ResourceType
    description: Optional[str] = None
    url: str
    is_public: bool = True
    price: Optional[float] = Field(default=None, ge=0)
    tags: List[str] = []
    concept_id: str
    grade_level: Optional[str] = None
    subject: Optional[str] = None


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[ResourceType] = None
    description: Optional[str] = None
    url: Optional[str] = None
    is_public: Optional[bool] = None
    price: Optional[float] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None
    concept_id: Optional[str] = None
    grade_level: Optional[str] = None
    subject: Optional[str] = None


class TaskIn(BaseModel):
    task_id: Optional[str] = None
    title: str
    type: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[int] = None


class ContestCreate(BaseModel):
    contest_id: Optional[str] = None
    contest_name: str = Field(min_length=1)
    sub_title: Optional[str] = None
    start_date: datetime
    end_date: datetime
    tasks: List[TaskIn] = []


class ContestUpdate(BaseModel):
    contest_name: Optional[str] = Field(default=None, min_length=1)
    sub_title: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tasks: Optional[List[TaskIn]] = None


class LearningPathStepIn(BaseModel):
    step_number: int = Field(ge=1)
    title: str
    description: Optional[str] = None
    estimated_duration: Optional[str] = None
    resources: List[str] = []
    prerequisites: List[int] = []


class LearningPathCreate(BaseModel):
    learning_goal: str = Field(min_length=1)
    difficulty_level: Optional[str] = None
    total_duration: Optional[str] = None
    steps: List[LearningPathStepIn] = []
