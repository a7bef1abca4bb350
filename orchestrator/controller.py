"""Conversation state machine driving upload -> goal -> analysis -> Q&A"""
import uuid
import logging
from enum import Enum
from typing import Optional

from analysis.csv_codec import parse
from analysis.errors import FormatError, RemoteServiceError, ValidationError
from analysis.models import AnalysisResult, Dataset
from analysis.session_bridge import SessionBridge, SessionSnapshot
from .answers import answer_locally, suggest_followups, summarize_result
from .dispatcher import AnalysisDispatcher
from .goals import GoalClassifier
from .memory import ConversationLog, ConversationMessage
from .policies import PolicyManager
from .remote import ServiceProxy

logger = logging.getLogger(__name__)

GREETING = "Hello! I'm your validation agent. Upload a CSV and tell me your goal."


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_GOAL = "awaitingGoal"
    ANALYZING = "analyzing"
    READY = "ready"


class ConversationLoop:
    """One conversation: a dataset, a goal, a cached result and the message log.

    Questions are neither queued nor deduplicated. When two ``ask`` calls
    overlap, each user message is logged on submission and each answer on
    completion, so answers can land out of submission order.
    """

    def __init__(
        self,
        dispatcher: Optional[AnalysisDispatcher] = None,
        proxy: Optional[ServiceProxy] = None,
        classifier: Optional[GoalClassifier] = None,
        policy: Optional[PolicyManager] = None,
        conversation_id: Optional[str] = None,
    ):
        self.policy = policy or PolicyManager()
        self.proxy = proxy or (dispatcher.proxy if dispatcher else ServiceProxy(policy=self.policy))
        self.dispatcher = dispatcher or AnalysisDispatcher(proxy=self.proxy, policy=self.policy)
        self.classifier = classifier or GoalClassifier()
        self.id = conversation_id or str(uuid.uuid4())[:8]

        self.state = ConversationState.IDLE
        self.log = ConversationLog()
        self.dataset: Optional[Dataset] = None
        self.goal = None
        self.result: Optional[AnalysisResult] = None
        self.pending_goal_text: Optional[str] = None
        self._generation = 0

        self.log.append("agent", GREETING)

    @property
    def messages(self):
        return self.log.messages

    def _transition(self, new_state: ConversationState) -> None:
        logger.info(f"Conversation {self.id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def ingest(self, dataset: Dataset, source_name: Optional[str] = None) -> None:
        """Load a dataset; valid from any state and discards any cached result"""
        if dataset is None or dataset.is_empty:
            raise ValidationError("The dataset needs a header and at least one row")

        self._generation += 1
        self.dataset = dataset
        self.goal = None
        self.result = None
        if source_name:
            self.log.append("user", f"Uploaded: {source_name}")
        self.log.append(
            "agent",
            f"Dataset loaded: {dataset.row_count} rows, {dataset.column_count} columns. What's your goal?",
        )
        self._transition(ConversationState.AWAITING_GOAL)

    def ingest_text(self, text: str, source_name: Optional[str] = None) -> Dataset:
        try:
            dataset = parse(text)
        except FormatError as e:
            self.log.append("system", f"Could not read the table: {e}")
            raise
        self.ingest(dataset, source_name)
        return dataset

    def restore(self, bridge: SessionBridge) -> SessionSnapshot:
        """Resume from a persisted snapshot; a stored goal is kept pending, not run"""
        snapshot = bridge.load()
        if snapshot.dataset is not None:
            self.ingest(snapshot.dataset)
        if snapshot.goal_text:
            self.pending_goal_text = snapshot.goal_text
            self.log.append("agent", f'Your previous goal was: "{snapshot.goal_text}". Submit it again to run the analysis.')
        return snapshot

    async def submit_goal(self, text: str) -> AnalysisResult:
        if self.state == ConversationState.ANALYZING:
            raise ValidationError("An analysis is already running")
        if self.dataset is None:
            raise ValidationError("Upload a dataset before setting a goal")
        if self.state != ConversationState.AWAITING_GOAL:
            raise ValidationError("A goal was already analyzed; upload a dataset again to start over")
        if not text or not text.strip():
            raise ValidationError("Goal text is required")

        text = text.strip()
        self.log.append("user", text)
        goal = self.classifier.classify(text, self.dataset.headers)
        self.goal = goal
        self.pending_goal_text = None
        self.log.append("agent", f"Detected goal: {goal.description}. Running analysis...")
        self._transition(ConversationState.ANALYZING)

        generation = self._generation
        try:
            result = await self.dispatcher.analyze(self.dataset, goal)
        except Exception as e:
            logger.error(f"Conversation {self.id}: analysis failed: {e}")
            if generation == self._generation:
                self._transition(ConversationState.AWAITING_GOAL)
            raise

        if generation != self._generation:
            logger.info(f"Conversation {self.id}: dataset replaced during analysis; discarding result")
            return result

        self.result = result
        self._transition(ConversationState.READY)
        self.log.append("agent", summarize_result(result), suggest_followups("", self.policy.max_suggestions))
        return result

    async def ask(self, question: str) -> ConversationMessage:
        if self.state != ConversationState.READY or self.result is None:
            raise ValidationError("Run an analysis before asking questions")
        if not question or not question.strip():
            raise ValidationError("Question text is required")

        question = question.strip()
        result = self.result
        self.log.append("user", question)
        answer = await self._answer(question, result)
        return self.log.append("agent", answer, suggest_followups(question, self.policy.max_suggestions))

    async def handle_message(self, text: str) -> ConversationMessage:
        """Single text entry point: a goal while awaiting one, else a question"""
        if self.state == ConversationState.AWAITING_GOAL:
            await self.submit_goal(text)
            return self.log.last
        if self.state == ConversationState.READY:
            return await self.ask(text)
        if self.state == ConversationState.ANALYZING:
            return self.log.append("system", "Analysis is still running; please wait.")
        self.log.append("user", text)
        return self.log.append("agent", "Please upload a dataset and set a goal to start analysis.")

    async def _answer(self, question: str, result: AnalysisResult) -> str:
        target = self.proxy.targets.question
        try:
            data = await self.proxy.request_json(
                target, {"question": question, "eda_results": result.to_wire()},
            )
            if isinstance(data, dict) and data.get("answer"):
                return str(data["answer"])
            logger.warning(f"Question endpoint {target} returned no answer; answering locally")
        except RemoteServiceError as e:
            logger.warning(f"Question endpoint unavailable ({e.message}); answering locally")
        return answer_locally(question, result)
