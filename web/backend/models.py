"""Pydantic models for API requests and responses"""
from typing import List, Optional, Dict, Any
from pydantic import BaseModel

from orchestrator.memory import ConversationMessage


class AnalyzeRequest(BaseModel):
    csv_text: str
    goal: Optional[Any] = None


class QuestionRequest(BaseModel):
    question: str
    eda_results: Optional[Dict[str, Any]] = None


class ChatRequest(BaseModel):
    message: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    conversation_id: Optional[str] = None


class CreateConversationRequest(BaseModel):
    restore_session: bool = False
    session: Optional[Dict[str, Any]] = None


class DatasetTextRequest(BaseModel):
    csv_text: str
    filename: Optional[str] = None


class GoalRequest(BaseModel):
    text: str


class QuestionAsk(BaseModel):
    question: str


class ConversationView(BaseModel):
    conversation_id: str
    state: str
    messages: List[ConversationMessage]
    pending_goal: Optional[str] = None
    goal: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
