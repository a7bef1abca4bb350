"""Dataset validation orchestrator core"""
from .controller import ConversationLoop, ConversationState
from .dispatcher import AnalysisDispatcher
from .goals import GoalClassifier, classify
from .memory import ConversationLog, ConversationMessage
from .policies import PolicyManager
from .remote import ProxyResponse, ServiceProxy, ServiceTargets

__all__ = [
    'ConversationLoop', 'ConversationState', 'AnalysisDispatcher', 'GoalClassifier', 'classify',
    'ConversationLog', 'ConversationMessage', 'PolicyManager', 'ProxyResponse', 'ServiceProxy', 'ServiceTargets'
]
