"""Table parsing, local statistics and session restore"""
from .csv_codec import parse, parse_bytes, serialize
from .eda import EDAThresholds, run_local_eda, strong_correlations
from .models import AnalysisResult, Dataset, Goal
from .session_bridge import JsonFileSessionStore, MemorySessionStore, SessionBridge, SessionSnapshot, SessionStore

__all__ = [
    'parse', 'parse_bytes', 'serialize', 'EDAThresholds', 'run_local_eda', 'strong_correlations',
    'AnalysisResult', 'Dataset', 'Goal', 'JsonFileSessionStore', 'MemorySessionStore',
    'SessionBridge', 'SessionSnapshot', 'SessionStore'
]
